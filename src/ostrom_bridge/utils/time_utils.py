"""
Time utility functions for hour alignment, local days and time-of-day parsing.
All instants handled by the service are timezone-aware; naive values are UTC.
"""

from datetime import datetime, time, timedelta
from typing import Tuple, Union

import pytz


def utc_now() -> datetime:
    """Current instant as an aware UTC datetime."""
    return datetime.now(pytz.UTC)


def ensure_aware(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC."""
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value


def to_utc_iso(value: datetime) -> str:
    """Serialize an instant the way the upstream API expects: 2023-10-22T01:00:00.000Z."""
    return ensure_aware(value).astimezone(pytz.UTC).strftime("%Y-%m-%dT%H:%M:%S.000Z")


def truncate_to_hour(value: datetime) -> datetime:
    """
    Truncate an instant to the start of its hour, in UTC.

    Examples:
        - 12:00:00 -> 12:00:00
        - 12:59:59 -> 12:00:00
    """
    return ensure_aware(value).astimezone(pytz.UTC).replace(minute=0, second=0, microsecond=0)


def next_top_of_hour(value: datetime) -> datetime:
    """Start of the hour following the given instant (12:00 -> 13:00, 12:05 -> 13:00)."""
    return truncate_to_hour(value) + timedelta(hours=1)


def get_timezone(tz: Union[str, pytz.BaseTzInfo, None]) -> pytz.BaseTzInfo:
    if tz is None:
        return pytz.UTC
    if isinstance(tz, str):
        return pytz.timezone(tz)
    return tz


def local_day_bounds(value: datetime, tz: Union[str, pytz.BaseTzInfo]) -> Tuple[datetime, datetime]:
    """
    Return the half-open [start, end) of the local day containing the instant.

    Both bounds are aware UTC datetimes. DST days are 23 or 25 hours long.
    """
    zone = get_timezone(tz)
    local_date = ensure_aware(value).astimezone(zone).date()

    start = zone.localize(datetime.combine(local_date, time.min))
    end = zone.localize(datetime.combine(local_date + timedelta(days=1), time.min))

    return start.astimezone(pytz.UTC), end.astimezone(pytz.UTC)


def add_years(value: datetime, years: int) -> datetime:
    """Add calendar years, mapping 29 February to 28 February on non-leap years."""
    try:
        return value.replace(year=value.year + years)
    except ValueError:
        return value.replace(year=value.year + years, day=28)


def parse_time_of_day(value: str) -> int:
    """
    Parse an "HH:MM" string into minutes since midnight.

    Raises:
        ValueError: If the string is not a valid 24h time
    """
    try:
        hours, minutes = value.strip().split(":")
        hours, minutes = int(hours), int(minutes)
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid time of day '{value}', expected HH:MM")

    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"Invalid time of day '{value}', expected HH:MM")

    return hours * 60 + minutes


def minutes_since_midnight(value: datetime, tz: Union[str, pytz.BaseTzInfo, None] = None) -> int:
    """Minute-of-day of an instant in the given timezone (UTC by default)."""
    local = ensure_aware(value).astimezone(get_timezone(tz))
    return local.hour * 60 + local.minute
