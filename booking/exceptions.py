"""
Booking error taxonomy.

Availability reads never raise these (they return a message instead);
writes raise them so the caller can re-prompt the user.
"""

from datetime import datetime
from typing import Optional


class BookingError(Exception):
    """Base exception for booking core errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(BookingError):
    """Branch has no usable operating hours for the requested weekday."""
    pass


class ClosedError(BookingError):
    """Requested date is a holiday, a closure or a weekly day off."""
    pass


class SlotUnavailableError(BookingError):
    """The chosen slot is no longer free for at least one stylist."""

    def __init__(self, message: str, stylist_id: Optional[str] = None):
        super().__init__(message)
        self.stylist_id = stylist_id


class LeadTimeError(BookingError):
    """The change is too close to the appointment start."""

    def __init__(self, message: str, starts_at: Optional[datetime] = None, minutes_until_start: Optional[int] = None):
        super().__init__(message)
        self.starts_at = starts_at
        self.minutes_until_start = minutes_until_start


class ValidationError(BookingError):
    """Missing or inconsistent booking fields."""
    pass


class DuplicateAppointmentError(ValidationError):
    """Same client already holds the same service with the same stylist at an overlapping time."""
    pass


class AppointmentNotFoundError(BookingError):
    pass


class RescheduleNotAllowedError(BookingError):
    """Appointment is in service or already finished."""
    pass


class InvalidStatusTransitionError(BookingError):
    pass
