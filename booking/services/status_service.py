"""
Appointment status transitions.

Lifecycle: pending -> confirmed -> in_service -> completed, and any
non-terminal status -> cancelled / no_show.

Leaving the occupying statuses (pending, confirmed, in_service) releases
the appointment's slot reservations so the time can be booked again.
"""

import logging
from datetime import datetime
from typing import Optional

from booking.exceptions import AppointmentNotFoundError, InvalidStatusTransitionError
from booking.services.appointment_queries import get_appointment, to_snapshot
from booking.services.notification_service import STATUS_NOTIFICATIONS, notify_participants
from booking.services.reservations import release_reservations
from booking.utils.datetime_utils import ensure_aware, get_timezone
from booking.utils.history import history_entry
from database.connection import get_async_session
from database.models import OCCUPYING_STATUSES, AppointmentStatus

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset(
        {AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW}
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {AppointmentStatus.IN_SERVICE, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW}
    ),
    AppointmentStatus.IN_SERVICE: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW}
    ),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}


def can_transition(old_status: AppointmentStatus, new_status: AppointmentStatus) -> bool:
    return AppointmentStatus(new_status) in ALLOWED_TRANSITIONS.get(AppointmentStatus(old_status), frozenset())


async def update_appointment_status(
    appointment_id: str,
    new_status: AppointmentStatus,
    changed_by: Optional[str] = None,
    notes: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
) -> None:
    """
    Move an appointment to a new status.

    Args:
        appointment_id: Appointment to update
        new_status: Target status
        changed_by: User performing the change
        notes: Post-service notes on completion, reason on cancellation
        now: Current instant, injectable for tests

    Raises:
        AppointmentNotFoundError: Unknown appointment
        InvalidStatusTransitionError: Transition not allowed from the current status
    """
    new_status = AppointmentStatus(new_status)
    current = ensure_aware(now) if now else datetime.now(get_timezone())

    async with get_async_session() as session:
        appointment = await get_appointment(session, appointment_id, for_update=True)
        if appointment is None:
            raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")

        old_status = appointment.status
        if not can_transition(old_status, new_status):
            raise InvalidStatusTransitionError(
                f"Cannot change appointment status from {old_status} to {new_status}"
            )

        appointment.status = new_status
        if new_status == AppointmentStatus.COMPLETED:
            appointment.completed_at = current
            if notes:
                appointment.post_service_notes = notes
        elif new_status == AppointmentStatus.CANCELLED:
            appointment.cancelled_at = current
            appointment.cancelled_by = changed_by
            appointment.cancellation_reason = notes

        reason = notes if new_status == AppointmentStatus.CANCELLED else None
        appointment.history = [
            *(appointment.history or []),
            history_entry(f"status_changed_to_{new_status.value}", changed_by, current, reason=reason),
        ]

        if new_status not in OCCUPYING_STATUSES:
            await release_reservations(session, appointment.id)

        await session.commit()

    logger.info(
        f"Appointment {appointment_id} status changed: {old_status} -> {new_status}",
        extra={"appointment_id": appointment_id},
    )

    notification_type = STATUS_NOTIFICATIONS.get(new_status)
    if notification_type is not None:
        await notify_participants(notification_type, to_snapshot(appointment))


async def cancel_appointment(
    appointment_id: str,
    reason: Optional[str] = None,
    cancelled_by: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
) -> None:
    """Cancel an appointment and free its stylists' time."""
    await update_appointment_status(
        appointment_id,
        AppointmentStatus.CANCELLED,
        changed_by=cancelled_by,
        notes=reason,
        now=now,
    )
