"""
Stylist slot reservations.

Each occupying appointment holds one stylist_slot_reservations row per
assigned stylist, covering the exact half-open window [start, end). The
gist exclusion constraint on (stylist_id WITH =, period WITH &&) makes two
concurrent writers for overlapping windows of the same stylist collide on
insert, so only one of them can commit. Back-to-back windows never collide.
"""

import logging
from collections.abc import Iterable
from datetime import datetime
from uuid import UUID

from sqlalchemy import delete
from sqlalchemy.dialects.postgresql import Range
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import AppointmentStylist, StylistSlotReservation

logger = logging.getLogger(__name__)


def reservation_period(start: datetime, end: datetime) -> Range[datetime]:
    """
    Half-open range stored for one stylist reservation.

    Uses the same [start, end) semantics as conflict_checker.overlaps, so a
    window the checker reports as free never collides with an existing
    reservation.
    """
    if end <= start:
        raise ValueError(f"Reservation must end after it starts: {start.isoformat()} - {end.isoformat()}")
    return Range(start, end, bounds="[)")


async def release_reservations(session: AsyncSession, appointment_id: UUID) -> None:
    """Drop every reservation held by an appointment."""
    await session.execute(
        delete(StylistSlotReservation).where(
            StylistSlotReservation.appointment_id == appointment_id
        )
    )


async def replace_reservations(
    session: AsyncSession,
    appointment_id: UUID,
    stylist_ids: Iterable[str],
    start: datetime,
    end: datetime,
) -> int:
    """
    Swap an appointment's reservations for the given window.

    The flush makes an overlap with another appointment's reservation raise
    IntegrityError here rather than at commit.

    Returns:
        Number of reservation rows written
    """
    period = reservation_period(start, end)
    await release_reservations(session, appointment_id)

    rows = [
        StylistSlotReservation(stylist_id=stylist_id, period=period, appointment_id=appointment_id)
        for stylist_id in dict.fromkeys(s for s in stylist_ids if s)
    ]
    session.add_all(rows)
    await session.flush()

    logger.debug(
        f"Reserved {period} for {len(rows)} stylists on appointment {appointment_id}",
        extra={"appointment_id": appointment_id},
    )
    return len(rows)


async def replace_stylist_index(
    session: AsyncSession, appointment_id: UUID, stylist_ids: Iterable[str]
) -> None:
    """Rewrite the appointment_stylists rows of an appointment."""
    await session.execute(
        delete(AppointmentStylist).where(AppointmentStylist.appointment_id == appointment_id)
    )
    session.add_all([
        AppointmentStylist(appointment_id=appointment_id, stylist_id=stylist_id)
        for stylist_id in dict.fromkeys(s for s in stylist_ids if s)
    ])
