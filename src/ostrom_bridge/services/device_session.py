"""
Device session - one running instance bound to a single contract.

Activation seeds the meter from the contract history and arms the hourly
scheduler. Each refresh cycle tops up the meter, then refreshes today's prices
and fires the trigger catalogue. A failing phase is logged and the next cycle
is scheduled regardless.
"""

from datetime import datetime
from typing import Callable, Optional

from ostrom_bridge.client.client import OstromClient
from ostrom_bridge.database import MeterStore
from ostrom_bridge.exceptions import DataAbsentError, OstromBridgeError
from ostrom_bridge.logging_config import get_logger
from ostrom_bridge.models.contract import Contract
from ostrom_bridge.models.device import DeviceState
from ostrom_bridge.scheduler.hourly_scheduler import HourlyScheduler
from ostrom_bridge.services.consumption_sync import ConsumptionSynchronizer
from ostrom_bridge.services.price_service import PriceService
from ostrom_bridge.services.triggers import EvaluationContext, TriggerEngine, build_context
from ostrom_bridge.utils.time_utils import utc_now

logger = get_logger(__name__)


class DeviceSession:
    """Owns the meter, the published state values and the refresh timer of one contract."""

    def __init__(
        self,
        client: OstromClient,
        store: MeterStore,
        external_user_id: str,
        contract: Contract,
        trigger_engine: Optional[TriggerEngine] = None,
        timezone: str = "Europe/Berlin",
        jitter_min: int = 0,
        jitter_max: int = 60,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.contract = contract
        self.trigger_engine = trigger_engine or TriggerEngine()
        self.synchronizer = ConsumptionSynchronizer(client, store, external_user_id, contract, clock=clock)
        zip_code = contract.address.zip if contract.address else None
        self.price_service = PriceService(client, zip_code=zip_code, timezone=timezone)
        self.scheduler = HourlyScheduler(
            self.run_cycle,
            jitter_min=jitter_min,
            jitter_max=jitter_max,
            clock=clock,
            name=f"contract-{contract.id}",
        )
        self._clock = clock
        self._closed = False
        self.state = DeviceState(contract_id=contract.id)
        self.context: Optional[EvaluationContext] = None

    async def activate(self) -> None:
        """
        Backfill the meter and start the hourly refresh.

        Backfill failures propagate; the session is then not started.
        """
        meter = await self.synchronizer.backfill()
        self.state = self.state.model_copy(update={"meter_power_imported": meter.cumulative_kwh})

        self.scheduler.start()
        logger.info("Device session activated", contract_id=self.contract.id)

    async def close(self) -> None:
        """Cancel the pending refresh; a cycle in flight completes but is not published."""
        self._closed = True
        await self.scheduler.stop()
        logger.info("Device session closed", contract_id=self.contract.id)

    async def run_cycle(self) -> None:
        """One refresh: consumption top-up, then prices and triggers."""
        await self.update_consumption()
        await self.update_pricing()

        if not self._closed:
            self.state = self.state.model_copy(update={"last_cycle": self._clock()})

    async def update_consumption(self) -> None:
        try:
            meter = await self.synchronizer.top_up()
        except OstromBridgeError as e:
            logger.error("Consumption update failed", contract_id=self.contract.id, error=str(e))
            return

        if meter is not None and not self._closed:
            self.state = self.state.model_copy(update={"meter_power_imported": meter.cumulative_kwh})

    async def update_pricing(self) -> None:
        now = self._clock()
        try:
            today = await self.price_service.get_today(now)
        except OstromBridgeError as e:
            logger.error("Price update failed", contract_id=self.contract.id, error=str(e))
            return

        if self._closed:
            return

        self.state = self.state.model_copy(update={
            "lowest_price": today.lowest(),
            "highest_price": today.highest(),
            "average_price": today.average(),
        })

        try:
            context = build_context(today, now, self.price_service.tz)
        except DataAbsentError as e:
            # Never trigger on stale or missing data
            logger.warning("Skipping trigger evaluation", contract_id=self.contract.id, error=str(e))
            self.context = None
            self.state = self.state.model_copy(update={"current_price": None})
            return

        self.context = context
        self.state = self.state.model_copy(update={"current_price": context.price})
        await self.trigger_engine.dispatch(context)

    def evaluate(self, rule_id: str, args: dict) -> bool:
        """
        Evaluate a rule against the latest cycle.

        Raises:
            DataAbsentError: Before the first successful pricing update
        """
        if self.context is None:
            raise DataAbsentError("No price context available yet")
        return self.trigger_engine.evaluate(rule_id, args, self.context)
