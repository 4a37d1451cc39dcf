"""
Price service - fetches today's spot prices and builds the cycle context.
Only the current local day is kept. The cache is replaced when the day changes
or when it has no price for the current hour.
"""

from datetime import date, datetime
from typing import Optional, Tuple

from ostrom_bridge.client.client import OstromClient
from ostrom_bridge.exceptions import DataAbsentError, InvalidPriceSeriesError
from ostrom_bridge.logging_config import get_logger
from ostrom_bridge.models.price_series import PriceSeries
from ostrom_bridge.services.triggers import EvaluationContext, build_context
from ostrom_bridge.utils.time_utils import get_timezone, local_day_bounds

logger = get_logger(__name__)


class PriceService:
    """Today's price series for one postal code."""

    def __init__(self, client: OstromClient, zip_code: Optional[str] = None, timezone: str = "Europe/Berlin"):
        self._client = client
        self.zip_code = zip_code
        self.tz = get_timezone(timezone)
        self._cached: Optional[Tuple[date, PriceSeries]] = None

    async def get_today(self, now: datetime) -> PriceSeries:
        """
        Today's hourly prices for the local day of `now`.

        The cached series is reused within the same local day as long as it
        covers the current hour; a partial day is fetched again.

        Raises:
            DataAbsentError: If the upstream has no prices for today
        """
        day_start, day_end = local_day_bounds(now, self.tz)
        local_date = day_start.astimezone(self.tz).date()

        if self._cached and self._cached[0] == local_date:
            if self._cached[1].includes(now):
                return self._cached[1]
            logger.info("Cached spot prices do not cover the current hour", date=local_date.isoformat())

        points = await self._client.retrieve_spot_prices(day_start, day_end, self.zip_code)
        points.sort(key=lambda point: point.date)

        try:
            series = PriceSeries(points)
        except InvalidPriceSeriesError:
            raise DataAbsentError(f"No spot prices available for {local_date.isoformat()}")

        self._cached = (local_date, series)
        logger.info(
            "Fetched today's spot prices",
            date=local_date.isoformat(),
            count=len(series),
            lowest=series.lowest(),
            highest=series.highest(),
            average=round(series.average(), 3),
        )
        return series

    async def get_context(self, now: datetime) -> EvaluationContext:
        """
        Context for the current hour.

        Raises:
            DataAbsentError: If today's prices or the current hour are missing
        """
        today = await self.get_today(now)
        return build_context(today, now, self.tz)

    def clear(self) -> None:
        self._cached = None
