"""
In-process meter state store, used when no database is configured.
The cumulative counter then restarts from a fresh backfill after a restart.
"""

from typing import Dict, Optional

from ostrom_bridge.models.contract import MeterState


class InMemoryMeterStore:
    """Same interface as DatabaseService, backed by a dict."""

    def __init__(self):
        self._states: Dict[int, MeterState] = {}

    async def init(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def load_meter_state(self, contract_id: int) -> Optional[MeterState]:
        return self._states.get(contract_id)

    async def save_meter_state(self, contract_id: int, state: MeterState) -> None:
        self._states[contract_id] = state

    async def health_check(self) -> bool:
        return True
