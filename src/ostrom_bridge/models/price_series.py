"""
Immutable value type over today's hourly price points.

The series never re-sorts its input: callers hand in points ascending by
timestamp. Statistics are computed on the net price and memoized.
"""

from datetime import datetime
from typing import Iterator, List, Optional, Sequence

import pytz

from ostrom_bridge.exceptions import DataAbsentError, InvalidPriceSeriesError
from ostrom_bridge.models.price import PricePoint
from ostrom_bridge.utils.time_utils import minutes_since_midnight, parse_time_of_day, truncate_to_hour


class PriceSeries:
    """Non-empty, caller-sorted sequence of hourly price points."""

    def __init__(self, points: Sequence[PricePoint]):
        if not isinstance(points, (list, tuple)):
            raise InvalidPriceSeriesError(
                f"PriceSeries requires a list of price points, but received: {type(points).__name__}"
            )

        if len(points) == 0:
            raise InvalidPriceSeriesError("PriceSeries requires a non-empty list of price points")

        self._points = tuple(points)
        self._values = [point.net_price for point in self._points]
        self._average: Optional[float] = None
        self._lowest: Optional[float] = None
        self._highest: Optional[float] = None

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[PricePoint]:
        return iter(self._points)

    def __repr__(self) -> str:
        return f"PriceSeries({len(self._points)} points from {self._points[0].date.isoformat()})"

    @property
    def points(self) -> List[PricePoint]:
        return list(self._points)

    @property
    def values(self) -> List[float]:
        return list(self._values)

    def average(self) -> float:
        if not self._values:
            return 0.0

        if self._average is None:
            self._average = sum(self._values) / len(self._values)

        return self._average

    def lowest(self) -> float:
        if self._lowest is None:
            self._lowest = min(self._values)

        return self._lowest

    def highest(self) -> float:
        if self._highest is None:
            self._highest = max(self._values)

        return self._highest

    def windowed(self, from_instant: datetime, count: int) -> "PriceSeries":
        """
        Return the `count` points starting at the hour containing `from_instant`.

        The window is cut short at the end of the series.

        Raises:
            DataAbsentError: If the series has no point for that hour
        """
        index = self._index_of(from_instant)

        if index is None:
            raise DataAbsentError(f"No price found for {truncate_to_hour(from_instant).isoformat()}")

        return PriceSeries(list(self._points[index:index + count]))

    def n_lowest(self, n: int) -> "PriceSeries":
        """The n cheapest hours; equal prices keep their original order."""
        ranked = sorted(self._points, key=lambda point: point.net_price)
        return PriceSeries(ranked[:n])

    def n_highest(self, n: int) -> "PriceSeries":
        """The n most expensive hours; equal prices keep their original order."""
        ranked = sorted(self._points, key=lambda point: point.net_price, reverse=True)
        return PriceSeries(ranked[:n])

    def price_at(self, instant: datetime) -> Optional[PricePoint]:
        """Exact-hour lookup; None when the hour is not part of the series."""
        index = self._index_of(instant)
        return None if index is None else self._points[index]

    def includes(self, instant: datetime) -> bool:
        return self.price_at(instant) is not None

    def between(self, start_time: str, end_time: str, tz=pytz.UTC) -> "PriceSeries":
        """
        Keep the points whose local time of day lies within [start_time, end_time].

        Times are "HH:MM" strings. A start later than the end selects a range
        crossing midnight (e.g. 22:00 to 06:00).
        """
        start_minutes = parse_time_of_day(start_time)
        end_minutes = parse_time_of_day(end_time)

        def in_range(point: PricePoint) -> bool:
            minutes = minutes_since_midnight(point.date, tz)
            if start_minutes > end_minutes:
                return minutes >= start_minutes or minutes <= end_minutes
            return start_minutes <= minutes <= end_minutes

        return PriceSeries([point for point in self._points if in_range(point)])

    def _index_of(self, instant: datetime) -> Optional[int]:
        hour = truncate_to_hour(instant)
        for index, point in enumerate(self._points):
            if truncate_to_hour(point.date) == hour:
                return index
        return None
