"""
Conflict Checker.

Decides whether a stylist is free for a time window given a snapshot of
existing appointments. Appointments come in two shapes (legacy stylist_id
and the services array); busy_intervals() is the only place that reads
either shape, everything else works on BusyInterval values.

All windows are half-open: [start, end). Back-to-back appointments do not
conflict.
"""

import bisect
from collections import defaultdict
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from booking.schemas import AppointmentSnapshot


@dataclass(frozen=True, order=True)
class BusyInterval:
    """Time a stylist is held by one appointment."""

    start: datetime
    end: datetime
    stylist_id: str
    appointment_id: str


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open interval overlap test; symmetric in its two windows."""
    return a_start < b_end and b_start < a_end


def busy_intervals(
    appointments: Iterable[AppointmentSnapshot],
    exclude_appointment_id: Optional[str] = None,
) -> Iterator[BusyInterval]:
    """
    Normalize appointments into one BusyInterval per assigned stylist.

    Non-occupying statuses and the excluded appointment are skipped.
    A stylist listed on several service lines yields a single interval.
    """
    exclude = str(exclude_appointment_id) if exclude_appointment_id is not None else None
    for appointment in appointments:
        if not appointment.is_occupying:
            continue
        if exclude is not None and str(appointment.id) == exclude:
            continue
        start = appointment.appointment_date
        end = appointment.end_time
        for stylist_id in appointment.stylist_ids():
            yield BusyInterval(
                start=start,
                end=end,
                stylist_id=stylist_id,
                appointment_id=str(appointment.id),
            )


def is_stylist_free(
    stylist_id: Optional[str],
    window_start: datetime,
    window_end: datetime,
    appointments: Iterable[AppointmentSnapshot],
    exclude_appointment_id: Optional[str] = None,
) -> bool:
    """
    Check a single stylist against a snapshot of appointments.

    Unassigned services (no stylist_id) never constrain availability.
    """
    if not stylist_id:
        return True
    for interval in busy_intervals(appointments, exclude_appointment_id):
        if interval.stylist_id != stylist_id:
            continue
        if overlaps(window_start, window_end, interval.start, interval.end):
            return False
    return True


class BusyIndex:
    """
    Busy intervals grouped by stylist and sorted by start.

    Built once per availability query so that every slot x stylist check
    runs in memory against the same snapshot.
    """

    def __init__(self, intervals: Iterable[BusyInterval] = ()):
        grouped: dict[str, list[BusyInterval]] = defaultdict(list)
        for interval in intervals:
            grouped[interval.stylist_id].append(interval)
        self._by_stylist = {stylist: sorted(items) for stylist, items in grouped.items()}
        self._starts = {
            stylist: [interval.start for interval in items]
            for stylist, items in self._by_stylist.items()
        }

    @classmethod
    def build(
        cls,
        appointments: Iterable[AppointmentSnapshot],
        exclude_appointment_id: Optional[str] = None,
    ) -> "BusyIndex":
        return cls(busy_intervals(appointments, exclude_appointment_id))

    def intervals_for(self, stylist_id: str) -> list[BusyInterval]:
        return list(self._by_stylist.get(stylist_id, ()))

    def conflict_for(
        self, stylist_id: Optional[str], window_start: datetime, window_end: datetime
    ) -> Optional[BusyInterval]:
        """Return the first interval overlapping the window, or None."""
        if not stylist_id:
            return None
        intervals = self._by_stylist.get(stylist_id)
        if not intervals:
            return None
        # Only intervals starting before window_end can overlap
        upper = bisect.bisect_left(self._starts[stylist_id], window_end)
        for interval in intervals[:upper]:
            if overlaps(window_start, window_end, interval.start, interval.end):
                return interval
        return None

    def is_free(self, stylist_id: Optional[str], window_start: datetime, window_end: datetime) -> bool:
        return self.conflict_for(stylist_id, window_start, window_end) is None
