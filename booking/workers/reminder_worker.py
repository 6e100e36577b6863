"""
Appointment reminder worker.

Runs send_reminders() every REMINDER_JOB_INTERVAL_MINUTES. Each run stores
an appointment_reminder notification for every pending or confirmed
appointment that starts 20-28 hours from now and has not been reminded yet,
then stamps reminder_sent_at so the appointment is never reminded twice.

All window arithmetic is done on timezone-aware datetimes.
"""

import asyncio
import json
import logging
import signal
import time
from collections.abc import Iterable
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Optional

from sqlalchemy import select

from booking.schemas import AppointmentSnapshot
from booking.services.appointment_queries import to_snapshot
from booking.services.notification_service import notify_participants
from booking.utils.datetime_utils import ensure_aware, get_timezone
from database.connection import get_async_session
from database.models import Appointment, AppointmentStatus, NotificationType
from shared.config import get_settings
from shared.logging_config import configure_logging

logger = logging.getLogger(__name__)

REMINDABLE_STATUSES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED})

HEALTH_FILE = Path("/tmp/health/reminder_worker_health.json")

# Global flag for graceful shutdown
shutdown_requested = False


def signal_handler(signum: int, frame: Any) -> None:
    """
    Handle SIGTERM/SIGINT for graceful shutdown.
    """
    global shutdown_requested
    logger.info(f"Received signal {signum}, initiating graceful shutdown...")
    shutdown_requested = True


def select_due_reminders(
    appointments: Iterable[AppointmentSnapshot],
    now: datetime,
    window_start_hours: Optional[int] = None,
    window_end_hours: Optional[int] = None,
) -> list[AppointmentSnapshot]:
    """
    Pick appointments that should get their day-before reminder.

    Due means: pending or confirmed, never reminded, and starting within
    [now + window_start_hours, now + window_end_hours].
    """
    settings = get_settings()
    if window_start_hours is None:
        window_start_hours = settings.REMINDER_WINDOW_START_HOURS
    if window_end_hours is None:
        window_end_hours = settings.REMINDER_WINDOW_END_HOURS

    now = ensure_aware(now)
    window_start = now + timedelta(hours=window_start_hours)
    window_end = now + timedelta(hours=window_end_hours)

    return [
        appointment
        for appointment in appointments
        if appointment.status in REMINDABLE_STATUSES
        and appointment.reminder_sent_at is None
        and window_start <= ensure_aware(appointment.appointment_date) <= window_end
    ]


async def send_reminders(branch_id: Optional[str] = None, now: Optional[datetime] = None) -> int:
    """
    Store reminder notifications for due appointments.

    Each appointment is committed on its own; a failure is logged, rolled
    back and does not stop the others.

    Args:
        branch_id: Limit the run to one branch
        now: Current instant, injectable for tests

    Returns:
        Number of appointments reminded
    """
    settings = get_settings()
    now = ensure_aware(now) if now else datetime.now(get_timezone())
    window_start = now + timedelta(hours=settings.REMINDER_WINDOW_START_HOURS)
    window_end = now + timedelta(hours=settings.REMINDER_WINDOW_END_HOURS)

    logger.info(f"Starting send_reminders job at {now.isoformat()}", extra={"branch_id": branch_id})

    reminded = 0
    errors = 0

    async with get_async_session() as session:
        stmt = select(Appointment).where(
            Appointment.status.in_(list(REMINDABLE_STATUSES)),
            Appointment.reminder_sent_at.is_(None),
            Appointment.appointment_date >= window_start,
            Appointment.appointment_date <= window_end,
        )
        if branch_id:
            stmt = stmt.where(Appointment.branch_id == branch_id)

        result = await session.execute(stmt)
        rows = {str(row.id): row for row in result.scalars().all()}
        due = select_due_reminders([to_snapshot(row) for row in rows.values()], now)

        if due:
            logger.info(f"Found {len(due)} appointments to send reminders")
        else:
            logger.info("No appointments need reminders")

        for snapshot in due:
            try:
                await notify_participants(NotificationType.APPOINTMENT_REMINDER, snapshot, session=session)
                rows[snapshot.id].reminder_sent_at = now
                await session.commit()
                reminded += 1

            except Exception as e:
                errors += 1
                logger.error(
                    f"Error processing reminder for appointment {snapshot.id}: {e}",
                    exc_info=True,
                    extra={"appointment_id": snapshot.id},
                )
                await session.rollback()

    logger.info(f"Completed send_reminders: sent={reminded}, errors={errors}")
    update_health_check("send_reminders", now, reminded, errors)
    return reminded


def update_health_check(job_name: str, last_run: datetime, processed: int, errors: int) -> None:
    """Write the last run statistics to the health check file."""
    health_data: dict[str, Any] = {}
    try:
        if HEALTH_FILE.exists():
            health_data = json.loads(HEALTH_FILE.read_text())
    except (OSError, ValueError) as e:
        logger.warning(f"Could not read health check file: {e}")

    health_data[job_name] = {
        "last_run": last_run.isoformat(),
        "status": "healthy" if errors == 0 else "unhealthy",
        "processed": processed,
        "errors": errors,
    }

    try:
        HEALTH_FILE.parent.mkdir(parents=True, exist_ok=True)
        temp_file = HEALTH_FILE.with_name(f"{HEALTH_FILE.stem}.{int(time.time())}.tmp")
        temp_file.write_text(json.dumps(health_data, indent=2))
        temp_file.rename(HEALTH_FILE)
    except OSError as e:
        logger.error(f"Failed to write health check file: {e}", exc_info=True)


async def async_main() -> None:
    """
    Run send_reminders on a fixed interval in a single event loop until shutdown.
    """
    interval_minutes = get_settings().REMINDER_JOB_INTERVAL_MINUTES
    logger.info(f"Reminder worker starting (interval={interval_minutes}min, TIMEZONE={get_timezone()})")

    last_run: Optional[datetime] = None

    # Check once a minute so shutdown is picked up promptly
    while not shutdown_requested:
        now = datetime.now(get_timezone())
        if last_run is None or (now - last_run) >= timedelta(minutes=interval_minutes):
            try:
                await send_reminders(now=now)
            except Exception as e:
                logger.error(f"Error in send_reminders: {e}", exc_info=True)
            last_run = now

        await asyncio.sleep(60)

    logger.info("Reminder worker shutting down gracefully...")


def run_reminder_worker() -> None:
    """
    Synchronous entry point that sets up logging and signal handlers,
    then runs the async main function.
    """
    configure_logging()
    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)
    asyncio.run(async_main())


if __name__ == "__main__":
    run_reminder_worker()
