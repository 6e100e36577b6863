"""
SQLAlchemy ORM models for the booking core.

This module defines the tables:
- branches: Physical salon locations with a weekly operating-hours template
- calendar_entries: Date-scoped overrides (holidays, closures, special hours)
- appointments: Bookings in both the legacy single-stylist and multi-service shapes
- appointment_stylists: Denormalized stylist -> appointment lookup
- stylist_slot_reservations: Non-overlapping per-stylist time ranges held by active bookings
- notifications: Per-recipient appointment notifications

All models use:
- TIMESTAMP WITH TIME ZONE for datetime fields
- JSONB for document-shaped payloads (hours, services, history)
- String keys for branches, stylists, clients and services (owned by other systems)
"""

from datetime import date, datetime
from enum import Enum as PyEnum
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    DATE,
    TIMESTAMP,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy import (
    Enum as SQLEnum,
)
from sqlalchemy.dialects.postgresql import JSONB, TSTZRANGE, ExcludeConstraint, Range
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# ============================================================================
# Base Class
# ============================================================================


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


# ============================================================================
# Enums
# ============================================================================


class AppointmentStatus(str, PyEnum):
    """Appointment lifecycle status."""

    PENDING = "pending"          # Booked, awaiting confirmation
    CONFIRMED = "confirmed"      # Confirmed by reception or client
    IN_SERVICE = "in_service"    # Client is in the chair
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"

    def __str__(self):
        return self.value


# Statuses that hold a stylist's time
OCCUPYING_STATUSES = frozenset(
    {AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED, AppointmentStatus.IN_SERVICE}
)

TERMINAL_STATUSES = frozenset(
    {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW}
)


class CalendarEntryType(str, PyEnum):
    """Type of branch calendar override."""

    HOLIDAY = "holiday"
    CLOSURE = "closure"
    SPECIAL_HOURS = "special_hours"


class RecipientRole(str, PyEnum):
    """Who a notification is addressed to."""

    CLIENT = "client"
    STYLIST = "stylist"


class NotificationType(str, PyEnum):
    """Type of appointment notification."""

    APPOINTMENT_CREATED = "appointment_created"
    APPOINTMENT_CONFIRMED = "appointment_confirmed"
    APPOINTMENT_CANCELLED = "appointment_cancelled"
    APPOINTMENT_REMINDER = "appointment_reminder"
    APPOINTMENT_COMPLETED = "appointment_completed"
    APPOINTMENT_RESCHEDULED = "appointment_rescheduled"
    APPOINTMENT_IN_SERVICE = "appointment_in_service"
    APPOINTMENT_NO_SHOW = "appointment_no_show"


# ============================================================================
# Branch Models
# ============================================================================


class Branch(Base):
    """
    Branch model - A physical salon location.

    operating_hours is keyed by lowercase day name (monday..sunday):
        {"monday": {"isOpen": true, "open": "09:00", "close": "17:00"}, ...}
    Older documents use {"closed": true} instead of isOpen.
    """

    __tablename__ = "branches"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    operating_hours: Mapped[dict[str, Any]] = mapped_column(
        JSONB, default=dict, nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=datetime.utcnow,
        nullable=False,
    )

    calendar_entries: Mapped[list["CalendarEntry"]] = relationship(
        "CalendarEntry", back_populates="branch", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Branch(id={self.id}, name='{self.name}')>"


class CalendarEntry(Base):
    """
    CalendarEntry model - Date-scoped override of a branch's weekly hours.

    A holiday or closure makes the whole date unbookable.
    A special_hours entry replaces the weekly hours with special_hours {open, close}.
    Entries whose status is not "active" are ignored by availability.
    """

    __tablename__ = "calendar_entries"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )
    branch_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("branches.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    date: Mapped[date] = mapped_column(DATE, nullable=False)
    type: Mapped[CalendarEntryType] = mapped_column(
        SQLEnum(
            CalendarEntryType,
            name="calendar_entry_type",
            create_type=True,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    special_hours: Mapped[dict[str, str] | None] = mapped_column(JSONB, nullable=True)
    status: Mapped[str | None] = mapped_column(
        String(20), default="active", nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    branch: Mapped["Branch"] = relationship("Branch", back_populates="calendar_entries")

    __table_args__ = (
        Index("idx_calendar_entries_branch_date", "branch_id", "date"),
    )

    def __repr__(self) -> str:
        return f"<CalendarEntry(branch_id={self.branch_id}, date={self.date}, type='{self.type.value}')>"


# ============================================================================
# Appointment Models
# ============================================================================


class Appointment(Base):
    """
    Appointment model - The unit of booking.

    Two shapes coexist:
    - legacy single-service: service_id + stylist_id
    - multi-service: services = [{serviceId, stylistId, duration, price, clientType, ...}]
    Both must be considered when deciding whether a stylist is busy.
    """

    __tablename__ = "appointments"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )
    branch_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("branches.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # Client identity (guests carry a name only)
    client_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    client_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    is_guest: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Legacy single-service shape
    service_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    stylist_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Multi-service shape
    services: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB, default=list, nullable=False
    )

    # Scheduling
    appointment_date: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, index=True
    )
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)

    status: Mapped[AppointmentStatus] = mapped_column(
        SQLEnum(
            AppointmentStatus,
            name="appointment_status",
            create_type=True,
            values_callable=lambda x: [e.value for e in x],
        ),
        default=AppointmentStatus.PENDING,
        nullable=False,
        index=True,
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    post_service_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    history: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB, default=list, nullable=False
    )

    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancelled_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    reminder_sent_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    stylist_links: Mapped[list["AppointmentStylist"]] = relationship(
        "AppointmentStylist", back_populates="appointment", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint(
            "duration IS NULL OR duration > 0", name="check_appointment_duration_positive"
        ),
        # Day-range queries per branch filtered by status
        Index(
            "idx_appointments_branch_date_status",
            "branch_id",
            "appointment_date",
            "status",
        ),
        # Reminder worker scan
        Index(
            "idx_appointments_reminder",
            "appointment_date",
            "status",
            postgresql_where=text("reminder_sent_at IS NULL"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Appointment(id={self.id}, branch_id={self.branch_id}, status='{self.status.value}')>"


class AppointmentStylist(Base):
    """
    Denormalized lookup of stylists assigned to an appointment.

    Written together with the appointment so that "appointments involving
    stylist S" is an indexed lookup instead of a scan of the services arrays.
    """

    __tablename__ = "appointment_stylists"

    appointment_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("appointments.id", ondelete="CASCADE"),
        primary_key=True,
    )
    stylist_id: Mapped[str] = mapped_column(String(64), primary_key=True)

    appointment: Mapped["Appointment"] = relationship(
        "Appointment", back_populates="stylist_links"
    )

    __table_args__ = (
        Index("idx_appointment_stylists_stylist", "stylist_id"),
    )

    def __repr__(self) -> str:
        return f"<AppointmentStylist(appointment_id={self.appointment_id}, stylist_id={self.stylist_id})>"


class StylistSlotReservation(Base):
    """
    StylistSlotReservation model - Per-stylist time range held by a booking.

    Every occupying appointment holds one row per assigned stylist whose
    period is the exact half-open window [start, end). The gist exclusion
    constraint rejects two overlapping periods for the same stylist, so a
    concurrent double booking fails at write time while back-to-back
    bookings never collide.
    """

    __tablename__ = "stylist_slot_reservations"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )
    stylist_id: Mapped[str] = mapped_column(String(64), nullable=False)
    period: Mapped[Range[datetime]] = mapped_column(TSTZRANGE, nullable=False)
    appointment_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    __table_args__ = (
        # Requires the btree_gist extension (created by the initial migration)
        ExcludeConstraint(
            ("stylist_id", "="),
            ("period", "&&"),
            name="excl_stylist_reservation_overlap",
            using="gist",
        ),
    )

    def __repr__(self) -> str:
        return f"<StylistSlotReservation(stylist_id={self.stylist_id}, period={self.period})>"


# ============================================================================
# Notification Models
# ============================================================================


class Notification(Base):
    """
    Notification model - One row per recipient per appointment event.

    Client and stylist apps read these records; delivery is handled elsewhere.
    """

    __tablename__ = "notifications"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )
    type: Mapped[NotificationType] = mapped_column(
        SQLEnum(
            NotificationType,
            name="notification_type",
            create_type=True,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    recipient_id: Mapped[str] = mapped_column(String(64), nullable=False)
    recipient_role: Mapped[RecipientRole] = mapped_column(
        SQLEnum(
            RecipientRole,
            name="recipient_role",
            create_type=True,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    appointment_id: Mapped[Optional[UUID]] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=True,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    __table_args__ = (
        Index("idx_notifications_recipient_unread", "recipient_id", "is_read"),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, type='{self.type.value}', recipient={self.recipient_id})>"
