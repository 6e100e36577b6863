"""
Slot Generator.

Enumerates candidate start times inside a working window at a fixed
granularity. A slot is only produced when the whole service fits before
closing time.
"""

from collections.abc import Iterator
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from booking.services.operating_calendar import WorkingWindow
from booking.utils.datetime_utils import get_timezone
from shared.config import get_settings


class SlotSequence:
    """
    Lazy, restartable sequence of slot start datetimes.

    Each iteration recomputes the starts from the same inputs, so two
    iterations (or two sequences built from equal inputs) are identical.
    """

    def __init__(
        self,
        open_at: datetime,
        close_at: datetime,
        duration_minutes: int,
        granularity_minutes: int,
    ):
        self.open_at = open_at
        self.close_at = close_at
        self.duration = timedelta(minutes=duration_minutes)
        self.step = timedelta(minutes=granularity_minutes)

    def __iter__(self) -> Iterator[datetime]:
        start = self.open_at
        while start + self.duration <= self.close_at:
            yield start
            start += self.step

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SlotSequence):
            return NotImplemented
        return list(self) == list(other)

    def __repr__(self) -> str:
        return (
            f"<SlotSequence({self.open_at.isoformat()} -> {self.close_at.isoformat()}, "
            f"duration={self.duration}, step={self.step})>"
        )


def generate_slots(
    window: WorkingWindow,
    target_date: date,
    service_duration_minutes: Optional[int],
    granularity_minutes: Optional[int] = None,
    tz: Optional[ZoneInfo] = None,
) -> SlotSequence:
    """
    Build the candidate start times for a service on target_date.

    Args:
        window: Resolved working window for the day
        target_date: Local calendar day
        service_duration_minutes: Service length; values <= 0 (or None) mean the default duration
        granularity_minutes: Step between starts (SLOT_GRANULARITY_MINUTES by default)
        tz: Timezone of the window (business timezone by default)

    Returns:
        SlotSequence of tz-aware start datetimes

    Raises:
        ValueError: If granularity_minutes is not positive

    Example:
        >>> window = WorkingWindow(time(9, 0), time(17, 0))
        >>> [s.strftime("%H:%M") for s in generate_slots(window, monday, 60)][:3]
        ['09:00', '09:30', '10:00']
    """
    settings = get_settings()
    if granularity_minutes is None:
        granularity_minutes = settings.SLOT_GRANULARITY_MINUTES
    if granularity_minutes <= 0:
        raise ValueError(f"granularity_minutes must be positive, got {granularity_minutes}")

    if not service_duration_minutes or service_duration_minutes <= 0:
        service_duration_minutes = settings.DEFAULT_SERVICE_DURATION_MINUTES

    open_at, close_at = window.bounds(target_date, tz or get_timezone())
    return SlotSequence(open_at, close_at, service_duration_minutes, granularity_minutes)
