"""
Transaction Validators for Booking Business Rules.

Validators that check business constraints before a booking write executes.
Used by BookingTransaction; each validator raises the matching booking
error so the caller can re-prompt the user.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from booking.exceptions import (
    DuplicateAppointmentError,
    LeadTimeError,
    RescheduleNotAllowedError,
    ValidationError,
)
from booking.schemas import AppointmentCreate, ServiceLine
from booking.services.appointment_queries import to_snapshot
from booking.services.conflict_checker import overlaps
from booking.utils.datetime_utils import ensure_aware, get_timezone
from database.models import TERMINAL_STATUSES, Appointment, AppointmentStatus
from shared.config import get_settings

logger = logging.getLogger(__name__)

# Statuses whose appointment can no longer be moved
NON_RESCHEDULABLE_STATUSES = frozenset(
    {
        AppointmentStatus.IN_SERVICE,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }
)


def validate_booking_payload(data: AppointmentCreate) -> None:
    """
    Check the required fields of a new booking.

    Required: branch, at least one service (legacy service_id or a non-empty
    services list), appointment date, and the client identity (client_id for
    registered clients, client_name for guests).

    Raises:
        ValidationError: With a message naming what is missing
    """
    if not data.branch_id or not data.service_lines() or data.appointment_date is None:
        raise ValidationError("Missing required appointment fields")

    if not data.is_guest and not data.client_id:
        raise ValidationError("Client ID is required for registered client appointments")

    if data.is_guest and not data.client_name:
        raise ValidationError("Client name is required for guest client appointments")

    validate_duration(data.duration)


def validate_duration(duration: Optional[int]) -> None:
    """
    A stored duration is either positive or absent (absent means the default).

    Raises:
        ValidationError: For a negative duration
    """
    if duration is not None and duration < 0:
        raise ValidationError("Appointment duration must be positive")


def _minutes_until(starts_at: datetime, now: datetime) -> int:
    return int((starts_at - now).total_seconds() // 60)


def validate_booking_lead_time(
    starts_at: datetime, now: Optional[datetime] = None, is_guest: bool = False
) -> None:
    """
    Registered clients must book at least MIN_LEAD_TIME_HOURS ahead.

    Guest bookings are taken at the desk and may start right away.

    Raises:
        LeadTimeError: If the start is too close (or already past)
    """
    if is_guest:
        return

    lead_hours = get_settings().MIN_LEAD_TIME_HOURS
    now = ensure_aware(now) if now else datetime.now(get_timezone())
    starts_at = ensure_aware(starts_at)

    if starts_at - now < timedelta(hours=lead_hours):
        minutes = _minutes_until(starts_at, now)
        logger.warning(
            f"Lead time violation on create: {minutes} minutes until start (min: {lead_hours}h)"
        )
        raise LeadTimeError(
            f"Appointments must be booked at least {lead_hours} hours in advance",
            starts_at=starts_at,
            minutes_until_start=minutes,
        )


def validate_reschedule_lead_time(original_start: datetime, now: Optional[datetime] = None) -> None:
    """
    Block last-minute moves of an upcoming appointment.

    Applies only while the original start is still in the future; an
    appointment whose time has already passed can be moved freely.

    Raises:
        LeadTimeError: If the original start is less than MIN_LEAD_TIME_HOURS away
    """
    lead_hours = get_settings().MIN_LEAD_TIME_HOURS
    now = ensure_aware(now) if now else datetime.now(get_timezone())
    original_start = ensure_aware(original_start)

    if now < original_start < now + timedelta(hours=lead_hours):
        minutes = _minutes_until(original_start, now)
        raise LeadTimeError(
            f"Appointments cannot be rescheduled less than {lead_hours} hours before the scheduled time",
            starts_at=original_start,
            minutes_until_start=minutes,
        )


def validate_reschedulable(status: AppointmentStatus) -> None:
    """
    Raises:
        RescheduleNotAllowedError: For in-service and finished appointments
    """
    if status in NON_RESCHEDULABLE_STATUSES:
        raise RescheduleNotAllowedError(
            f"Cannot reschedule an appointment that is {AppointmentStatus(status).value.replace('_', ' ')}"
        )


def _same_service(a: ServiceLine, b: ServiceLine) -> bool:
    return a.service_id == b.service_id and (a.stylist_id or None) == (b.stylist_id or None)


async def validate_no_duplicate(session: AsyncSession, data: AppointmentCreate) -> None:
    """
    Reject a second booking of the same service with the same stylist by the
    same client at an overlapping time.

    Guests without a client_id are not checked.

    Raises:
        DuplicateAppointmentError: If such a booking already exists
    """
    if not data.client_id or data.appointment_date is None:
        return

    start = ensure_aware(data.appointment_date)
    end = start + timedelta(minutes=data.effective_duration)
    requested = data.service_lines()

    stmt = select(Appointment).where(
        Appointment.client_id == data.client_id,
        Appointment.status.not_in(list(TERMINAL_STATUSES)),
        Appointment.appointment_date < end,
        Appointment.appointment_date >= start - timedelta(hours=24),
    )
    result = await session.execute(stmt)

    for row in result.scalars().all():
        existing = to_snapshot(row)
        if not overlaps(start, end, existing.appointment_date, existing.end_time):
            continue
        existing_lines = existing.service_lines()
        if any(_same_service(line, other) for line in requested for other in existing_lines):
            logger.warning(
                f"Duplicate booking attempt by client {data.client_id}",
                extra={"appointment_id": existing.id},
            )
            raise DuplicateAppointmentError(
                "You already have an appointment for this service, time, and stylist"
            )
