"""
Pydantic models for the booking core.

Document-shaped payloads keep their camelCase keys on the wire
(serviceId, stylistId, clientType) and snake_case attributes in Python.
"""

from datetime import datetime, timedelta
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from database.models import OCCUPYING_STATUSES, AppointmentStatus
from shared.config import get_settings


def _default_duration() -> int:
    return get_settings().DEFAULT_SERVICE_DURATION_MINUTES


def _unique(values) -> list[str]:
    seen: list[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


class ServiceLine(BaseModel):
    """One service inside a multi-service appointment."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    service_id: str | None = Field(default=None, alias="serviceId")
    stylist_id: str | None = Field(default=None, alias="stylistId")
    duration: int | None = None
    price: float | None = None
    client_type: str | None = Field(default=None, alias="clientType")

    def to_document(self) -> dict[str, Any]:
        """Shape stored in the appointments.services JSONB column."""
        return self.model_dump(by_alias=True, exclude_none=True)


class AppointmentSnapshot(BaseModel):
    """
    Point-in-time view of an appointment used by conflict checks.

    Built from database rows (see appointment_queries.to_snapshot) or directly in tests.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str
    branch_id: str | None = None
    appointment_date: datetime
    duration: int | None = None
    status: AppointmentStatus = AppointmentStatus.PENDING
    stylist_id: str | None = None
    service_id: str | None = None
    services: list[ServiceLine] = Field(default_factory=list)
    client_id: str | None = None
    client_name: str | None = None
    reminder_sent_at: datetime | None = None

    @property
    def effective_duration(self) -> int:
        if self.duration and self.duration > 0:
            return self.duration
        return _default_duration()

    @property
    def end_time(self) -> datetime:
        return self.appointment_date + timedelta(minutes=self.effective_duration)

    @property
    def is_occupying(self) -> bool:
        return self.status in OCCUPYING_STATUSES

    def stylist_ids(self) -> list[str]:
        """Every stylist assigned, from the legacy field and the services array."""
        return _unique([self.stylist_id, *(line.stylist_id for line in self.services)])

    def service_lines(self) -> list[ServiceLine]:
        if self.services:
            return list(self.services)
        if self.service_id:
            return [ServiceLine(service_id=self.service_id, stylist_id=self.stylist_id)]
        return []


class AppointmentCreate(BaseModel):
    """
    Booking request as submitted by a form.

    Required fields are checked by validate_booking_payload so that missing
    values surface as booking ValidationError with a readable message.
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    branch_id: str | None = Field(default=None, alias="branchId")
    appointment_date: datetime | None = Field(default=None, alias="appointmentDate")
    duration: int | None = None
    service_id: str | None = Field(default=None, alias="serviceId")
    stylist_id: str | None = Field(default=None, alias="stylistId")
    services: list[ServiceLine] = Field(default_factory=list)
    client_id: str | None = Field(default=None, alias="clientId")
    client_name: str | None = Field(default=None, alias="clientName")
    is_guest: bool = Field(default=False, alias="isGuest")
    notes: str | None = None

    @property
    def effective_duration(self) -> int:
        if self.duration and self.duration > 0:
            return self.duration
        return _default_duration()

    def service_lines(self) -> list[ServiceLine]:
        """Normalize the legacy single-service fields into one service line."""
        if self.services:
            return list(self.services)
        if self.service_id:
            return [ServiceLine(service_id=self.service_id, stylist_id=self.stylist_id)]
        return []

    def stylist_ids(self) -> list[str]:
        return _unique([self.stylist_id, *(line.stylist_id for line in self.services)])


class TimeSlot(BaseModel):
    """Candidate start time; recomputed on every query, never stored."""

    time: datetime
    available: bool


class AvailabilityResult(BaseModel):
    """Slots for a day plus a message explaining why a day has none."""

    slots: list[TimeSlot] = Field(default_factory=list)
    message: Optional[str] = None

    @property
    def available_slots(self) -> list[TimeSlot]:
        return [slot for slot in self.slots if slot.available]
