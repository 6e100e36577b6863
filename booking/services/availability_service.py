"""
Availability Aggregator.

Combines the operating calendar, the slot generator and the conflict
checker into the slot list shown to a client picking a time.

Reads never raise: a closed day, an unknown branch or a database failure
comes back as an empty slot list plus a message.

Usage:
    from booking.services.availability_service import get_available_slots

    result = await get_available_slots(
        stylist_ids=["stylist-1", "stylist-2"],
        branch_id="branch-makati",
        target_date=date(2025, 6, 2),
        service_duration_minutes=60,
    )
    for slot in result.slots:
        print(slot.time, slot.available)
"""

import logging
from collections.abc import Sequence
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from booking.schemas import AvailabilityResult, TimeSlot
from booking.services.appointment_queries import (
    fetch_active_appointments,
    fetch_calendar_entries,
    get_branch,
)
from booking.services.conflict_checker import BusyIndex
from booking.services.operating_calendar import Closed, resolve_working_window
from booking.services.slot_generator import generate_slots
from booking.utils.datetime_utils import ensure_aware, get_timezone, local_date
from database.connection import get_async_session
from shared.config import get_settings

logger = logging.getLogger(__name__)

BRANCH_NOT_FOUND_MESSAGE = "Branch not found"
LOAD_ERROR_MESSAGE = "Error loading time slots. Please try again."


def _unique_stylists(stylist_ids: Optional[Sequence[Optional[str]]]) -> list[str]:
    return list(dict.fromkeys(s for s in (stylist_ids or ()) if s))


async def get_available_slots(
    stylist_ids: Optional[Sequence[Optional[str]]],
    branch_id: str,
    target_date: date | datetime,
    service_duration_minutes: Optional[int],
    *,
    now: Optional[datetime] = None,
) -> AvailabilityResult:
    """
    Compute every candidate slot for a day and mark which ones are bookable.

    A slot is available only when every stylist in stylist_ids is free for
    the whole service (AND semantics). An empty stylist list leaves every
    generated slot available. On the current day, slots starting at or before
    now are unavailable.

    Args:
        stylist_ids: Stylists that must all be free (may be empty)
        branch_id: Branch to book at
        target_date: Local day (datetimes are reduced to their local day)
        service_duration_minutes: Total service length; <= 0 means the default
        now: Current instant, injectable for tests

    Returns:
        AvailabilityResult with all candidates in chronological order and a
        message when the day has no slots
    """
    stylists = _unique_stylists(stylist_ids)
    tz = get_timezone()

    try:
        day = local_date(target_date, tz)
        current = ensure_aware(now, tz) if now else datetime.now(tz)

        async with get_async_session() as session:
            branch = await get_branch(session, branch_id)
            if branch is None:
                logger.warning(f"Availability requested for unknown branch {branch_id}", extra={"branch_id": branch_id})
                return AvailabilityResult(message=BRANCH_NOT_FOUND_MESSAGE)

            entries = await fetch_calendar_entries(session, branch_id, day)
            window = resolve_working_window(branch.operating_hours, entries, day)
            if isinstance(window, Closed):
                logger.info(
                    f"Branch {branch_id} has no slots on {day}: {window.reason}",
                    extra={"branch_id": branch_id},
                )
                return AvailabilityResult(message=window.reason)

            candidates = generate_slots(window, day, service_duration_minutes, tz=tz)
            duration = candidates.duration

            # Single snapshot for the whole day; every slot check below is in memory
            busy = BusyIndex()
            if stylists:
                open_at, close_at = window.bounds(day, tz)
                appointments = await fetch_active_appointments(
                    session, open_at, close_at, branch_id=branch_id, stylist_ids=stylists
                )
                busy = BusyIndex.build(appointments)

        is_today = day == local_date(current, tz)
        slots = []
        for start in candidates:
            end = start + duration
            available = all(busy.is_free(stylist_id, start, end) for stylist_id in stylists)
            if available and is_today and start <= current:
                available = False
            slots.append(TimeSlot(time=start, available=available))

        message = None
        if not slots:
            message = "No time slots fit within operating hours for this service"

        logger.info(
            f"Computed {len(slots)} slots for branch {branch_id} on {day} "
            f"({sum(1 for slot in slots if slot.available)} available, stylists={stylists})",
            extra={"branch_id": branch_id},
        )
        return AvailabilityResult(slots=slots, message=message)

    except Exception as e:
        logger.error(
            f"Error computing availability for branch {branch_id} on {target_date}: {e}",
            exc_info=True,
            extra={"branch_id": branch_id},
        )
        return AvailabilityResult(message=LOAD_ERROR_MESSAGE)


async def check_stylists_availability(
    stylist_ids: Sequence[Optional[str]],
    start: datetime,
    duration_minutes: Optional[int],
    exclude_appointment_id: Optional[str] = None,
    session: Optional[AsyncSession] = None,
    branch_id: Optional[str] = None,
) -> dict[str, bool]:
    """
    Fresh availability check for a concrete window, used right before a write.

    Unlike get_available_slots this reads inside the caller's session when one
    is given and lets database errors propagate.

    Args:
        stylist_ids: Stylists implicated by the booking
        start: Appointment start (timezone-aware)
        duration_minutes: Appointment length; <= 0 means the default
        exclude_appointment_id: Appointment being rescheduled
        session: Optional existing database session
        branch_id: Branch whose appointments are also included in the snapshot

    Returns:
        Mapping stylist_id -> True if free
    """
    stylists = _unique_stylists(stylist_ids)
    if not stylists:
        return {}

    if not duration_minutes or duration_minutes <= 0:
        duration_minutes = get_settings().DEFAULT_SERVICE_DURATION_MINUTES
    start = ensure_aware(start)
    end = start + timedelta(minutes=duration_minutes)

    async def _check(sess: AsyncSession) -> dict[str, bool]:
        appointments = await fetch_active_appointments(
            sess, start, end, branch_id=branch_id, stylist_ids=stylists
        )
        busy = BusyIndex.build(appointments, exclude_appointment_id=exclude_appointment_id)
        return {stylist_id: busy.is_free(stylist_id, start, end) for stylist_id in stylists}

    if session is not None:
        return await _check(session)

    async with get_async_session() as new_session:
        return await _check(new_session)
