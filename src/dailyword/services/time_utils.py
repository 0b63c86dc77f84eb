"""Calendar date keys and delivery time arithmetic."""
from datetime import date, datetime, time, timedelta
from typing import Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dailyword.config import DELIVERY_TIME_PATTERN
from dailyword.exceptions import InvalidDateKeyError, InvalidDeliveryTimeError, InvalidTimezoneError
from dailyword.models.base import as_utc


def get_zone(timezone: str) -> ZoneInfo:
    """Resolve an IANA timezone name."""
    try:
        return ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError, TypeError):
        raise InvalidTimezoneError(timezone)


def to_date_key(value: Union[date, str]) -> str:
    """Normalize a date or ISO date string to YYYY-MM-DD."""
    if isinstance(value, datetime):
        raise InvalidDateKeyError(value.isoformat())
    if isinstance(value, date):
        return value.isoformat()
    try:
        parsed = date.fromisoformat(value)
    except (TypeError, ValueError):
        raise InvalidDateKeyError(value)
    key = parsed.isoformat()
    if key != value:
        # fromisoformat accepts compact forms such as 20240203
        raise InvalidDateKeyError(value)
    return key


def get_local_date_key(instant: datetime, timezone: str) -> str:
    """Calendar date of a UTC instant in the given timezone."""
    return as_utc(instant).astimezone(get_zone(timezone)).date().isoformat()


def parse_delivery_time(value: str) -> Tuple[int, int]:
    """Parse an HH:MM delivery time into (hour, minute)."""
    match = DELIVERY_TIME_PATTERN.match(value) if isinstance(value, str) else None
    if not match:
        raise InvalidDeliveryTimeError(value)
    return int(match.group(1)), int(match.group(2))


def _local_to_utc(day: date, hour: int, minute: int, zone: ZoneInfo) -> datetime:
    local = datetime.combine(day, time(hour, minute), tzinfo=zone)
    return as_utc(local)


def compute_next_delivery_at(timezone: str, delivery_time: str, now: datetime) -> datetime:
    """First occurrence of the delivery time strictly after ``now``.

    Used when a schedule is created or its time changes.
    """
    hour, minute = parse_delivery_time(delivery_time)
    zone = get_zone(timezone)
    now = as_utc(now)
    local_day = now.astimezone(zone).date()

    scheduled = _local_to_utc(local_day, hour, minute, zone)
    if scheduled <= now:
        scheduled = _local_to_utc(local_day + timedelta(days=1), hour, minute, zone)
    return scheduled


def compute_following_delivery(timezone: str, delivery_time: str, now: datetime) -> datetime:
    """Tomorrow's delivery time in the user's timezone, as UTC.

    Calendar arithmetic happens on the local date, so DST transitions shift
    the UTC instant instead of the wall-clock time.
    """
    hour, minute = parse_delivery_time(delivery_time)
    zone = get_zone(timezone)
    local_day = as_utc(now).astimezone(zone).date()
    return _local_to_utc(local_day + timedelta(days=1), hour, minute, zone)
