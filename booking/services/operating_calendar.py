"""
Operating Calendar Resolver.

Merges a branch's weekly operating-hours template with its date-scoped
calendar entries and answers one question: when is the branch open on a
given day?

Precedence for a target date:
1. Active holiday/closure entry -> Closed
2. Active special_hours entry with an {open, close} payload -> WorkingWindow
3. Weekly template for the weekday -> WorkingWindow, Closed, or "not configured"

Usage:
    from booking.services.operating_calendar import resolve_working_window

    window = resolve_working_window(branch.operating_hours, entries, date(2025, 6, 2))
    if isinstance(window, Closed):
        print(window.reason)
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Optional, Union
from zoneinfo import ZoneInfo

from booking.exceptions import ClosedError, ConfigurationError
from booking.utils.datetime_utils import at_local_time, local_date, weekday_key
from database.models import CalendarEntryType

logger = logging.getLogger(__name__)

NOT_CONFIGURED_REASON = "No operating hours configured for this branch"

CLOSURE_LABELS = {
    CalendarEntryType.HOLIDAY.value: "Holiday",
    CalendarEntryType.CLOSURE.value: "Temporary Closure",
}


@dataclass(frozen=True)
class WorkingWindow:
    """Open and close wall-clock times for one day."""

    open_time: time
    close_time: time
    source: str = "weekly"

    def bounds(self, target_date: date, tz: Optional[ZoneInfo] = None) -> tuple[datetime, datetime]:
        """Return the window as tz-aware instants on target_date."""
        return (
            at_local_time(target_date, self.open_time, tz),
            at_local_time(target_date, self.close_time, tz),
        )


@dataclass(frozen=True)
class Closed:
    """The branch takes no appointments on the date."""

    reason: str
    not_configured: bool = False

    def to_error(self) -> Union[ConfigurationError, ClosedError]:
        if self.not_configured:
            return ConfigurationError(self.reason)
        return ClosedError(self.reason)


def parse_hhmm(value: Any) -> time:
    """
    Parse an "HH:MM" string into a time.

    Raises:
        ValueError: If the value is not a valid 24h clock string
    """
    if not isinstance(value, str) or ":" not in value:
        raise ValueError(f"Invalid time value: {value!r}")
    hours, minutes = value.strip().split(":", 1)
    return time(int(hours), int(minutes))


def _field(entry: Any, name: str, alias: Optional[str] = None) -> Any:
    # Calendar entries arrive as ORM rows or as plain documents
    if isinstance(entry, Mapping):
        if name in entry:
            return entry[name]
        return entry.get(alias) if alias else None
    return getattr(entry, name, None)


def _entry_type(entry: Any) -> Optional[str]:
    value = _field(entry, "type")
    if isinstance(value, CalendarEntryType):
        return value.value
    return value


def _is_active(entry: Any) -> bool:
    status = _field(entry, "status")
    return status is None or status == "active"


def _entries_for_date(calendar_entries: Iterable[Any], target_date: date) -> list[Any]:
    matching = []
    for entry in calendar_entries or ():
        entry_date = _field(entry, "date")
        if entry_date is None or not _is_active(entry):
            continue
        if local_date(entry_date) == target_date:
            matching.append(entry)
    return matching


def _window_from_payload(payload: Any, source: str) -> Optional[WorkingWindow]:
    if not isinstance(payload, Mapping):
        return None
    try:
        open_time = parse_hhmm(payload.get("open"))
        close_time = parse_hhmm(payload.get("close"))
    except ValueError:
        return None
    if close_time <= open_time:
        return None
    return WorkingWindow(open_time=open_time, close_time=close_time, source=source)


def _is_open(day_config: Mapping) -> bool:
    # Legacy documents carry "closed" instead of "isOpen"
    if day_config.get("isOpen") is not None:
        return bool(day_config["isOpen"])
    return not day_config.get("closed", False)


def resolve_working_window(
    operating_hours: Optional[Mapping[str, Any]],
    calendar_entries: Iterable[Any],
    target_date: date | datetime,
) -> Union[WorkingWindow, Closed]:
    """
    Resolve the working window for a branch on a date.

    Args:
        operating_hours: Weekly template keyed by lowercase day name
        calendar_entries: All calendar entries of the branch (any dates)
        target_date: Day to resolve; datetimes are reduced to the local day

    Returns:
        WorkingWindow if the branch is open, Closed otherwise. A Closed with
        not_configured=True means the weekday has no usable configuration.
    """
    day = local_date(target_date)
    entries = _entries_for_date(calendar_entries, day)

    for entry in entries:
        entry_type = _entry_type(entry)
        if entry_type in CLOSURE_LABELS:
            reason = CLOSURE_LABELS[entry_type]
            title = _field(entry, "title")
            if title:
                reason += f" ({title})"
            return Closed(reason=f"{reason} - No appointments available")

    for entry in entries:
        if _entry_type(entry) != CalendarEntryType.SPECIAL_HOURS.value:
            continue
        window = _window_from_payload(
            _field(entry, "special_hours", alias="specialHours"), source="special_hours"
        )
        if window is not None:
            return window
        logger.warning(f"Ignoring special hours entry with unusable payload on {day}")

    day_key = weekday_key(day)
    day_config = (operating_hours or {}).get(day_key)
    if not isinstance(day_config, Mapping):
        return Closed(reason=NOT_CONFIGURED_REASON, not_configured=True)

    if not _is_open(day_config):
        return Closed(reason=f"Branch is closed on {day_key.capitalize()}s")

    window = _window_from_payload(day_config, source="weekly")
    if window is None:
        logger.warning(f"Malformed operating hours for {day_key}: {dict(day_config)}")
        return Closed(reason=NOT_CONFIGURED_REASON, not_configured=True)
    return window


def require_working_window(
    operating_hours: Optional[Mapping[str, Any]],
    calendar_entries: Iterable[Any],
    target_date: date | datetime,
) -> WorkingWindow:
    """
    Raising variant of resolve_working_window for write paths.

    Raises:
        ConfigurationError: Weekday has no usable operating hours
        ClosedError: Holiday, closure or weekly day off
    """
    window = resolve_working_window(operating_hours, calendar_entries, target_date)
    if isinstance(window, Closed):
        raise window.to_error()
    return window
