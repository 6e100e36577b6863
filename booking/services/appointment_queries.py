"""
Session-scoped read helpers shared by availability and booking writes.

Every helper takes an open AsyncSession so the caller decides whether the
read is a standalone snapshot or part of a write transaction.
"""

import logging
from collections.abc import Iterable
from datetime import date, datetime, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from booking.schemas import AppointmentSnapshot, ServiceLine
from database.models import (
    OCCUPYING_STATUSES,
    Appointment,
    AppointmentStylist,
    Branch,
    CalendarEntry,
)

logger = logging.getLogger(__name__)

# Appointments that started the previous day can still run into the window
LOOKBACK = timedelta(hours=24)


def to_snapshot(appointment: Appointment) -> AppointmentSnapshot:
    """Convert an ORM row into the value used by conflict checks."""
    return AppointmentSnapshot(
        id=str(appointment.id),
        branch_id=appointment.branch_id,
        appointment_date=appointment.appointment_date,
        duration=appointment.duration,
        status=appointment.status,
        stylist_id=appointment.stylist_id,
        service_id=appointment.service_id,
        services=[ServiceLine.model_validate(line) for line in (appointment.services or [])],
        client_id=appointment.client_id,
        client_name=appointment.client_name,
        reminder_sent_at=appointment.reminder_sent_at,
    )


async def get_branch(session: AsyncSession, branch_id: str) -> Optional[Branch]:
    return await session.get(Branch, branch_id)


async def fetch_calendar_entries(
    session: AsyncSession, branch_id: str, target_date: Optional[date] = None
) -> list[CalendarEntry]:
    """
    Load calendar entries for a branch, optionally narrowed to one day.

    Status filtering is left to the resolver so inactive entries stay visible
    to callers that list them.
    """
    stmt = select(CalendarEntry).where(CalendarEntry.branch_id == branch_id)
    if target_date is not None:
        stmt = stmt.where(CalendarEntry.date == target_date)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def fetch_active_appointments(
    session: AsyncSession,
    start: datetime,
    end: datetime,
    branch_id: Optional[str] = None,
    stylist_ids: Iterable[str] = (),
) -> list[AppointmentSnapshot]:
    """
    Snapshot of occupying appointments that overlap [start, end).

    One statement covers both the branch scope and every appointment that
    involves one of stylist_ids (through the appointment_stylists index or
    the legacy stylist_id column), so a stylist booked at another branch is
    still seen as busy.

    Args:
        session: Open database session
        start: Window start (timezone-aware)
        end: Window end (timezone-aware)
        branch_id: Branch whose appointments are included
        stylist_ids: Stylists whose appointments are included at any branch

    Returns:
        List of AppointmentSnapshot ordered by start
    """
    stylist_ids = [stylist_id for stylist_id in stylist_ids if stylist_id]

    scope = []
    if branch_id:
        scope.append(Appointment.branch_id == branch_id)
    if stylist_ids:
        scope.append(
            Appointment.id.in_(
                select(AppointmentStylist.appointment_id).where(
                    AppointmentStylist.stylist_id.in_(stylist_ids)
                )
            )
        )
        scope.append(Appointment.stylist_id.in_(stylist_ids))

    stmt = (
        select(Appointment)
        .where(
            Appointment.status.in_(list(OCCUPYING_STATUSES)),
            Appointment.appointment_date >= start - LOOKBACK,
            Appointment.appointment_date < end,
        )
        .order_by(Appointment.appointment_date)
    )
    if scope:
        stmt = stmt.where(or_(*scope))

    result = await session.execute(stmt)
    snapshots = [to_snapshot(row) for row in result.scalars().all()]
    active = [snapshot for snapshot in snapshots if snapshot.end_time > start]

    logger.debug(
        f"Fetched {len(active)} active appointments between {start.isoformat()} and {end.isoformat()}",
        extra={"branch_id": branch_id},
    )
    return active


async def get_appointment(
    session: AsyncSession, appointment_id: str | UUID, for_update: bool = False
) -> Optional[Appointment]:
    """Load one appointment; returns None for unknown or malformed ids."""
    try:
        key = appointment_id if isinstance(appointment_id, UUID) else UUID(str(appointment_id))
    except ValueError:
        logger.warning(f"Malformed appointment id: {appointment_id}")
        return None

    stmt = select(Appointment).where(Appointment.id == key)
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    return result.scalar_one_or_none()
