"""
Bridge service - resolves the configured contract and owns its device session.
"""

from typing import List, Optional

from ostrom_bridge.client.client import OstromClient
from ostrom_bridge.config import Settings
from ostrom_bridge.database import MeterStore
from ostrom_bridge.exceptions import ContractNotFoundError
from ostrom_bridge.logging_config import get_logger
from ostrom_bridge.models.contract import Contract
from ostrom_bridge.services.device_session import DeviceSession

logger = get_logger(__name__)


def select_contract(contracts: List[Contract], contract_id: Optional[int] = None) -> Contract:
    """
    Pick the configured contract, or the first active one when none is configured.

    Raises:
        ContractNotFoundError: If no matching contract exists
    """
    if contract_id is not None:
        for contract in contracts:
            if contract.id == contract_id:
                return contract
        raise ContractNotFoundError(f"Contract {contract_id} is not linked to this user")

    active = [contract for contract in contracts if contract.is_active]
    if active:
        return active[0]
    if contracts:
        return contracts[0]
    raise ContractNotFoundError("No contracts are linked to this user")


class BridgeService:
    """Process-wide holder of the single device session."""

    def __init__(self, client: OstromClient, store: MeterStore, settings: Settings):
        self._client = client
        self._store = store
        self._settings = settings
        self.session: Optional[DeviceSession] = None

    async def start(self) -> DeviceSession:
        """Resolve the contract, backfill its meter and start the hourly refresh."""
        contracts = await self._client.retrieve_contracts(self._settings.external_user_id)
        contract = select_contract(contracts, self._settings.contract_id)
        logger.info("Bridging contract", contract_id=contract.id, name=contract.display_name)

        session = DeviceSession(
            client=self._client,
            store=self._store,
            external_user_id=self._settings.external_user_id,
            contract=contract,
            timezone=self._settings.timezone,
            jitter_min=self._settings.jitter_min_seconds,
            jitter_max=self._settings.jitter_max_seconds,
        )
        await session.activate()
        self.session = session
        return session

    async def stop(self) -> None:
        if self.session:
            await self.session.close()
            self.session = None
