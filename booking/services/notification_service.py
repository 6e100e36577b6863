"""
Appointment notification fan-out.

Writes one notifications row per participant (the client and every
assigned stylist) when an appointment changes. Client and stylist apps
read these rows; push/email delivery is not handled here.

Fan-out is fire-and-forget: a failing recipient is logged and skipped, and
notify_participants() never raises, so a booking is never rolled back
because a notification could not be stored.
"""

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from booking.schemas import AppointmentSnapshot
from booking.utils.datetime_utils import get_timezone
from database.connection import get_async_session
from database.models import AppointmentStatus, Notification, NotificationType, RecipientRole

logger = logging.getLogger(__name__)

# (client title, client message, stylist title, stylist message)
TEMPLATES: dict[NotificationType, tuple[str, str, str, str]] = {
    NotificationType.APPOINTMENT_CREATED: (
        "Appointment Booked Successfully",
        "Your appointment has been scheduled for {date} at {time}",
        "New Appointment Assigned",
        "You have a new appointment with {client} on {date}",
    ),
    NotificationType.APPOINTMENT_CONFIRMED: (
        "Appointment Confirmed",
        "Your appointment for {date} has been confirmed",
        "Appointment Confirmed",
        "Appointment with {client} has been confirmed",
    ),
    NotificationType.APPOINTMENT_CANCELLED: (
        "Appointment Cancelled",
        "Your appointment for {date} has been cancelled",
        "Appointment Cancelled",
        "Appointment with {client} has been cancelled",
    ),
    NotificationType.APPOINTMENT_REMINDER: (
        "Appointment Reminder",
        "Reminder: You have an appointment tomorrow at {time}",
        "Appointment Reminder",
        "Reminder: You have an appointment with {client} tomorrow",
    ),
    NotificationType.APPOINTMENT_COMPLETED: (
        "Thank You for Visiting!",
        "Thank you for visiting. We hope you enjoyed your experience!",
        "Appointment Completed",
        "Appointment with {client} has been completed",
    ),
    NotificationType.APPOINTMENT_RESCHEDULED: (
        "Appointment Rescheduled",
        "Your appointment has been rescheduled to {date} at {time}",
        "Appointment Rescheduled",
        "Appointment with {client} has been rescheduled to {date} at {time}",
    ),
    NotificationType.APPOINTMENT_IN_SERVICE: (
        "Service Started",
        "Your service has started. We hope you enjoy your experience!",
        "Service Started",
        "Service for {client} has started",
    ),
    NotificationType.APPOINTMENT_NO_SHOW: (
        "Missed Appointment",
        "You missed your appointment on {date} at {time}",
        "Client No-Show",
        "{client} did not show up for the appointment on {date}",
    ),
}

# Notification sent when an appointment enters a status
STATUS_NOTIFICATIONS = {
    AppointmentStatus.CONFIRMED: NotificationType.APPOINTMENT_CONFIRMED,
    AppointmentStatus.IN_SERVICE: NotificationType.APPOINTMENT_IN_SERVICE,
    AppointmentStatus.COMPLETED: NotificationType.APPOINTMENT_COMPLETED,
    AppointmentStatus.CANCELLED: NotificationType.APPOINTMENT_CANCELLED,
    AppointmentStatus.NO_SHOW: NotificationType.APPOINTMENT_NO_SHOW,
}


@dataclass(frozen=True)
class Recipient:
    recipient_id: str
    role: RecipientRole


def extract_recipients(appointment: AppointmentSnapshot) -> list[Recipient]:
    """
    Client (when registered) plus every unique stylist from both appointment shapes.

    Guests have no client_id and receive nothing.
    """
    recipients = []
    if appointment.client_id:
        recipients.append(Recipient(appointment.client_id, RecipientRole.CLIENT))
    for stylist_id in appointment.stylist_ids():
        recipients.append(Recipient(stylist_id, RecipientRole.STYLIST))
    return recipients


def render_notification(
    notification_type: NotificationType, role: RecipientRole, appointment: AppointmentSnapshot
) -> tuple[str, str]:
    """Return (title, message) for one recipient."""
    local_start = appointment.appointment_date.astimezone(get_timezone())
    values = {
        "date": f"{local_start:%B} {local_start.day}, {local_start.year}",
        "time": local_start.strftime("%I:%M %p"),
        "client": appointment.client_name or "a client",
    }
    template = TEMPLATES.get(notification_type)
    if template is None:
        return "Appointment Update", "Appointment updated for {client}".format(**values)

    if role == RecipientRole.CLIENT:
        title, message = template[0], template[1]
    else:
        title, message = template[2], template[3]
    return title, message.format(**values)


def _add_notifications(
    session: AsyncSession,
    notification_type: NotificationType,
    appointment: AppointmentSnapshot,
) -> int:
    added = 0
    for recipient in extract_recipients(appointment):
        try:
            title, message = render_notification(notification_type, recipient.role, appointment)
            session.add(
                Notification(
                    type=notification_type,
                    recipient_id=recipient.recipient_id,
                    recipient_role=recipient.role,
                    appointment_id=UUID(str(appointment.id)),
                    title=title,
                    message=message,
                )
            )
            added += 1
        except Exception as e:
            logger.error(
                f"Failed to build {notification_type.value} notification for {recipient.role.value} "
                f"{recipient.recipient_id}: {e}",
                exc_info=True,
                extra={"appointment_id": appointment.id, "notification_type": notification_type.value},
            )
    return added


async def notify_participants(
    notification_type: NotificationType,
    appointment: AppointmentSnapshot,
    session: Optional[AsyncSession] = None,
) -> int:
    """
    Store one notification per participant of an appointment.

    When a session is given the rows join the caller's transaction and the
    caller commits; otherwise a dedicated session is opened and committed.

    Args:
        notification_type: Event being announced
        appointment: Appointment after the change
        session: Optional existing database session

    Returns:
        Number of notifications stored (0 on failure). Never raises.
    """
    try:
        if session is not None:
            return _add_notifications(session, notification_type, appointment)

        async with get_async_session() as new_session:
            added = _add_notifications(new_session, notification_type, appointment)
            await new_session.commit()

        logger.info(
            f"Stored {added} {notification_type.value} notifications for appointment {appointment.id}",
            extra={"appointment_id": appointment.id, "notification_type": notification_type.value},
        )
        return added

    except Exception as e:
        logger.error(
            f"Notification fan-out failed for appointment {appointment.id}: {e}",
            exc_info=True,
            extra={"appointment_id": appointment.id, "notification_type": notification_type.value},
        )
        return 0
