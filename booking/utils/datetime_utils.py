"""
Timezone helpers for the booking core.

Branch hours, calendar dates and "today" are interpreted in the configured
TIMEZONE. Every datetime leaving these helpers is timezone-aware.
"""

from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from shared.config import get_settings

WEEKDAY_KEYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


def get_timezone() -> ZoneInfo:
    """Return the configured business timezone."""
    return get_settings().tz


def ensure_aware(value: datetime, tz: ZoneInfo | None = None) -> datetime:
    """
    Attach the business timezone to a naive datetime.

    Aware datetimes are returned unchanged.
    """
    if value.tzinfo is not None:
        return value
    return value.replace(tzinfo=tz or get_timezone())


def local_date(value: date | datetime, tz: ZoneInfo | None = None) -> date:
    """
    Calendar day of a value in the business timezone.

    Plain dates are returned as-is; datetimes are converted first so that
    an instant late in the UTC day lands on the right local day.
    """
    if isinstance(value, datetime):
        return ensure_aware(value, tz).astimezone(tz or get_timezone()).date()
    return value


def at_local_time(target_date: date, clock: time, tz: ZoneInfo | None = None) -> datetime:
    """Combine a calendar day and a wall-clock time in the business timezone."""
    return datetime.combine(target_date, clock, tzinfo=tz or get_timezone())


def weekday_key(target_date: date) -> str:
    """Lowercase English day name used as operating_hours key."""
    return WEEKDAY_KEYS[target_date.weekday()]
