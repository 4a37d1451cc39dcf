"""
Cumulative smart-meter counter for one contract.

The counter is seeded once by summing the hourly consumption since the start
of the contract (backfill) and topped up with the new hours on every refresh
cycle. Upstream consumption queries are limited to one year, so longer spans
are fetched in consecutive yearly chunks.
"""

from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from ostrom_bridge.client.client import OstromClient
from ostrom_bridge.database import MeterStore
from ostrom_bridge.exceptions import MeterNotInitializedError, UpstreamRequestError
from ostrom_bridge.logging_config import get_logger
from ostrom_bridge.models.contract import ConsumptionPoint, Contract, MeterState, Resolution
from ostrom_bridge.utils.time_utils import add_years, truncate_to_hour, utc_now

logger = get_logger(__name__)

MAX_CHUNK_YEARS = 1


def split_into_chunks(start: datetime, end: datetime, years: int = MAX_CHUNK_YEARS) -> List[Tuple[datetime, datetime]]:
    """
    Split [start, end) into consecutive ranges of at most `years` years.

    Each chunk ends at min(chunk_start + years, end); a span of at most one
    chunk length is returned unchanged.
    """
    if end <= add_years(start, years):
        return [(start, end)]

    chunks = []
    chunk_start = start
    while chunk_start < end:
        chunk_end = min(add_years(chunk_start, years), end)
        chunks.append((chunk_start, chunk_end))
        chunk_start = chunk_end

    return chunks


class ConsumptionSynchronizer:
    """Owns the cumulative imported-energy meter of a contract."""

    def __init__(
        self,
        client: OstromClient,
        store: MeterStore,
        external_user_id: str,
        contract: Contract,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._client = client
        self._store = store
        self._external_user_id = external_user_id
        self.contract = contract
        self._clock = clock

    async def backfill(self) -> MeterState:
        """
        Seed the meter from the complete history of the contract.

        Nothing is stored unless every chunk was fetched successfully.
        """
        start = truncate_to_hour(self.contract.start_date)
        end = truncate_to_hour(self._clock())

        logger.info("Fetching historical usage", contract_id=self.contract.id, start=start.isoformat(), end=end.isoformat())
        history = await self.fetch_consumption(start, end)

        if history:
            state = MeterState(
                cumulative_kwh=_sum_deltas(history),
                last_fetched_hour=truncate_to_hour(history[-1].date),
            )
        else:
            logger.warning("Could not find any historical usage entries", contract_id=self.contract.id)
            state = MeterState(cumulative_kwh=0.0, last_fetched_hour=start - timedelta(hours=1))

        await self._store.save_meter_state(self.contract.id, state)
        logger.info(
            "Initialized meter from history",
            contract_id=self.contract.id,
            cumulative_kwh=round(state.cumulative_kwh, 2),
            last_fetched_hour=state.last_fetched_hour.isoformat(),
        )
        return state

    async def top_up(self) -> Optional[MeterState]:
        """
        Fold the hours since the last fetched hour into the meter.

        Returns the new state, or None when nothing changed. Running it twice
        within the same hour only counts that hour once.

        Raises:
            MeterNotInitializedError: If no backfill has been stored yet
        """
        state = await self._store.load_meter_state(self.contract.id)
        if state is None:
            raise MeterNotInitializedError(f"No meter state stored for contract {self.contract.id}")

        current_hour = truncate_to_hour(self._clock())
        # The range end is exclusive, so the last fetched hour trails the current one
        if state.last_fetched_hour + timedelta(hours=1) >= current_hour:
            return None

        consumption = await self._fetch_chunk(state.last_fetched_hour + timedelta(hours=1), current_hour)
        new_points = [point for point in consumption if truncate_to_hour(point.date) > state.last_fetched_hour]

        if not new_points:
            logger.info("Did not retrieve any incremental consumption data", contract_id=self.contract.id)
            return None

        delta = _sum_deltas(new_points)
        new_state = MeterState(
            cumulative_kwh=state.cumulative_kwh + delta,
            last_fetched_hour=truncate_to_hour(new_points[-1].date),
        )
        await self._store.save_meter_state(self.contract.id, new_state)

        logger.info(
            "Updated total energy consumption",
            contract_id=self.contract.id,
            added_kwh=round(delta, 3),
            cumulative_kwh=round(new_state.cumulative_kwh, 3),
            last_fetched_hour=new_state.last_fetched_hour.isoformat(),
        )
        return new_state

    async def fetch_consumption(self, start: datetime, end: datetime) -> List[ConsumptionPoint]:
        """Hourly consumption for [start, end), chunked into yearly requests."""
        chunks = split_into_chunks(start, end)
        if len(chunks) > 1:
            logger.info("Breaking up consumption request into yearly chunks", chunks=len(chunks))

        consumption: List[ConsumptionPoint] = []
        for chunk_start, chunk_end in chunks:
            try:
                consumption.extend(await self._fetch_chunk(chunk_start, chunk_end))
            except UpstreamRequestError as e:
                logger.error(
                    "Error fetching consumption chunk",
                    start=chunk_start.isoformat(),
                    end=chunk_end.isoformat(),
                    error=str(e),
                )
                raise

        return consumption

    async def _fetch_chunk(self, start: datetime, end: datetime) -> List[ConsumptionPoint]:
        return await self._client.retrieve_smart_meter_consumption(
            self._external_user_id,
            self.contract.id,
            start,
            end,
            Resolution.HOUR,
        )


def _sum_deltas(points: List[ConsumptionPoint]) -> float:
    total = 0.0
    for point in points:
        if point.kwh < 0:
            logger.warning("Ignoring negative consumption delta", date=point.date.isoformat(), kwh=point.kwh)
            continue
        total += point.kwh
    return total
