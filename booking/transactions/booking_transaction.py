"""
Booking Transaction Handler.

This module is the only writer of appointment times:
- Business rule validation (required fields, lead time, duplicates, operating hours)
- Fresh conflict re-check for every implicated stylist right before the write
- Per-stylist reservation ranges under an exclusion constraint, so two
  concurrent writers for overlapping windows of a stylist cannot both commit
- Notification fan-out AFTER commit (fire-and-forget, failures only logged)

BookingTransaction.create() and BookingTransaction.reschedule() raise
booking errors (see booking.exceptions) instead of returning error payloads.
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any, Optional, Union
from uuid import uuid4

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from booking.exceptions import (
    AppointmentNotFoundError,
    SlotUnavailableError,
    ValidationError,
)
from booking.schemas import AppointmentCreate, ServiceLine
from booking.services.appointment_queries import (
    fetch_calendar_entries,
    get_appointment,
    get_branch,
    to_snapshot,
)
from booking.services.availability_service import check_stylists_availability
from booking.services.notification_service import notify_participants
from booking.services.operating_calendar import require_working_window
from booking.services.reservations import replace_reservations, replace_stylist_index
from booking.utils.datetime_utils import ensure_aware, get_timezone, local_date
from booking.utils.history import history_entry
from booking.validators.transaction_validators import (
    validate_booking_lead_time,
    validate_booking_payload,
    validate_duration,
    validate_no_duplicate,
    validate_reschedulable,
    validate_reschedule_lead_time,
)
from database.connection import get_async_session
from database.models import Appointment, AppointmentStatus, NotificationType

logger = logging.getLogger(__name__)

SLOT_TAKEN_MESSAGE = "Selected time slot is not available for one or more stylists"


async def _ensure_within_operating_hours(
    session: AsyncSession, branch_id: str, start: datetime, end: datetime
) -> None:
    """
    Raises:
        ValidationError: Unknown branch
        ClosedError / ConfigurationError: Branch not open that day
        SlotUnavailableError: Window starts before opening or ends after closing
    """
    branch = await get_branch(session, branch_id)
    if branch is None:
        raise ValidationError("Branch not found")

    day = local_date(start)
    entries = await fetch_calendar_entries(session, branch_id, day)
    window = require_working_window(branch.operating_hours, entries, day)
    open_at, close_at = window.bounds(day)
    if start < open_at or end > close_at:
        raise SlotUnavailableError("Selected time is outside the branch operating hours")


async def _ensure_stylists_free(
    session: AsyncSession,
    trace_id: str,
    stylist_ids: list[str],
    start: datetime,
    duration: int,
    branch_id: str,
    exclude_appointment_id: Optional[str] = None,
) -> None:
    availability = await check_stylists_availability(
        stylist_ids,
        start,
        duration,
        exclude_appointment_id=exclude_appointment_id,
        session=session,
        branch_id=branch_id,
    )
    busy = [stylist_id for stylist_id, free in availability.items() if not free]
    if busy:
        logger.warning(
            f"[{trace_id}] Slot re-check failed for stylists {busy}",
            extra={"stylist_id": busy[0], "branch_id": branch_id},
        )
        raise SlotUnavailableError(SLOT_TAKEN_MESSAGE, stylist_id=busy[0])


class BookingTransaction:
    """
    Transaction handler for creating and rescheduling appointments.

    Create flow:
    1. Validate required fields
    2. Enforce the minimum lead time for registered clients
    3. Reject duplicates (same client, service, stylist and overlapping time)
    4. Re-check operating hours and stylist conflicts on a fresh snapshot
    5. Insert appointment, stylist index rows and slot reservations; commit
    6. Fan out the appointment_created notification
    """

    @staticmethod
    async def create(
        data: Union[AppointmentCreate, dict[str, Any]],
        created_by: Optional[str] = None,
        *,
        now: Optional[datetime] = None,
    ) -> str:
        """
        Create a pending appointment.

        Args:
            data: Booking request (model or document with camelCase keys)
            created_by: User performing the booking
            now: Current instant, injectable for tests

        Returns:
            The new appointment id

        Raises:
            ValidationError: Missing fields, unknown branch or duplicate booking
            LeadTimeError: Registered client booking too close to the start
            ClosedError / ConfigurationError: Branch not open on that date
            SlotUnavailableError: A stylist is no longer free
        """
        if not isinstance(data, AppointmentCreate):
            data = AppointmentCreate.model_validate(data)
        validate_booking_payload(data)

        tz = get_timezone()
        current = ensure_aware(now, tz) if now else datetime.now(tz)
        start = ensure_aware(data.appointment_date, tz)
        duration = data.effective_duration
        end = start + timedelta(minutes=duration)
        stylist_ids = data.stylist_ids()

        trace_id = f"{data.client_id or 'guest'}_{start.isoformat()}"
        logger.info(
            f"[{trace_id}] Starting booking transaction",
            extra={"branch_id": data.branch_id, "trace_id": trace_id},
        )

        validate_booking_lead_time(start, current, is_guest=data.is_guest)

        async with get_async_session() as session:
            await validate_no_duplicate(session, data)
            await _ensure_within_operating_hours(session, data.branch_id, start, end)
            await _ensure_stylists_free(session, trace_id, stylist_ids, start, duration, data.branch_id)

            appointment = Appointment(
                id=uuid4(),
                branch_id=data.branch_id,
                client_id=data.client_id,
                client_name=data.client_name,
                is_guest=data.is_guest,
                service_id=data.service_id,
                stylist_id=data.stylist_id,
                services=[line.to_document() for line in data.services],
                appointment_date=start,
                duration=data.duration if data.duration else None,
                status=AppointmentStatus.PENDING,
                notes=data.notes,
                created_by=created_by,
                history=[
                    history_entry(
                        "created",
                        created_by,
                        current,
                        notes="Appointment created for new client" if data.is_guest else "Appointment created",
                    )
                ],
            )

            try:
                session.add(appointment)
                await session.flush()
                await replace_stylist_index(session, appointment.id, stylist_ids)
                await replace_reservations(session, appointment.id, stylist_ids, start, end)
                await session.commit()

            except IntegrityError as e:
                logger.warning(
                    f"[{trace_id}] Reservation conflict on insert, slot taken concurrently",
                    extra={"error": str(e), "branch_id": data.branch_id},
                )
                await session.rollback()
                raise SlotUnavailableError(SLOT_TAKEN_MESSAGE) from e

            except SQLAlchemyError as e:
                logger.error(
                    f"[{trace_id}] Database error",
                    extra={"error": str(e)},
                    exc_info=True,
                )
                await session.rollback()
                raise

        logger.info(
            f"[{trace_id}] Appointment committed",
            extra={"appointment_id": appointment.id, "branch_id": data.branch_id},
        )

        # Fire-and-forget: the booking is already committed
        await notify_participants(NotificationType.APPOINTMENT_CREATED, to_snapshot(appointment))

        return str(appointment.id)

    @staticmethod
    async def reschedule(
        appointment_id: str,
        new_start: datetime,
        *,
        duration: Optional[int] = None,
        services: Optional[Iterable[Union[ServiceLine, dict[str, Any]]]] = None,
        changed_by: Optional[str] = None,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        """
        Move an appointment to a new start (optionally with new services/duration).

        The re-check excludes the appointment itself, so moving it inside its
        own current window never conflicts with itself.

        Raises:
            ValidationError: Negative duration
            AppointmentNotFoundError: Unknown appointment
            RescheduleNotAllowedError: In service or already finished
            LeadTimeError: Original start is in the future and too close
            ClosedError / ConfigurationError: Branch not open on the new date
            SlotUnavailableError: A stylist is not free at the new time
        """
        validate_duration(duration)

        tz = get_timezone()
        current = ensure_aware(now, tz) if now else datetime.now(tz)
        new_start = ensure_aware(new_start, tz)
        trace_id = f"{appointment_id}_{new_start.isoformat()}"

        logger.info(
            f"[{trace_id}] Starting reschedule",
            extra={"appointment_id": appointment_id, "trace_id": trace_id},
        )

        async with get_async_session() as session:
            appointment = await get_appointment(session, appointment_id, for_update=True)
            if appointment is None:
                raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")

            validate_reschedulable(appointment.status)
            validate_reschedule_lead_time(appointment.appointment_date, current)

            current_view = to_snapshot(appointment)
            update: dict[str, Any] = {"appointment_date": new_start}
            if duration is not None:
                update["duration"] = duration or None
            if services is not None:
                update["services"] = [
                    line if isinstance(line, ServiceLine) else ServiceLine.model_validate(line)
                    for line in services
                ]
            moved = current_view.model_copy(update=update)

            stylist_ids = moved.stylist_ids()
            new_end = moved.end_time

            await _ensure_within_operating_hours(session, appointment.branch_id, new_start, new_end)
            await _ensure_stylists_free(
                session,
                trace_id,
                stylist_ids,
                new_start,
                moved.effective_duration,
                appointment.branch_id,
                exclude_appointment_id=str(appointment.id),
            )

            old_date = appointment.appointment_date
            appointment.appointment_date = new_start
            if duration is not None:
                appointment.duration = duration or None
            if services is not None:
                appointment.services = [line.to_document() for line in moved.services]
            appointment.history = [
                *(appointment.history or []),
                history_entry(
                    "rescheduled",
                    changed_by,
                    current,
                    oldDate=ensure_aware(old_date, tz).isoformat(),
                    newDate=new_start.isoformat(),
                    reason=reason,
                ),
            ]

            try:
                await replace_stylist_index(session, appointment.id, stylist_ids)
                await replace_reservations(session, appointment.id, stylist_ids, new_start, new_end)
                await session.commit()

            except IntegrityError as e:
                logger.warning(
                    f"[{trace_id}] Reservation conflict on reschedule",
                    extra={"error": str(e), "appointment_id": appointment_id},
                )
                await session.rollback()
                raise SlotUnavailableError(SLOT_TAKEN_MESSAGE) from e

            except SQLAlchemyError as e:
                logger.error(
                    f"[{trace_id}] Database error",
                    extra={"error": str(e)},
                    exc_info=True,
                )
                await session.rollback()
                raise

        logger.info(
            f"[{trace_id}] Appointment rescheduled from {old_date.isoformat()}",
            extra={"appointment_id": appointment_id},
        )

        await notify_participants(NotificationType.APPOINTMENT_RESCHEDULED, moved)
