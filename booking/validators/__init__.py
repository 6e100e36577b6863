"""
Transaction validators.

Business rules checked before BookingTransaction writes:
- validate_booking_payload: Required fields and client identity
- validate_duration: Stored durations are positive or absent
- validate_booking_lead_time: Minimum notice for registered clients
- validate_reschedule_lead_time: No last-minute moves of upcoming appointments
- validate_reschedulable: Only active appointments can be moved
- validate_no_duplicate: Same client, service and stylist at an overlapping time
"""

from booking.validators.transaction_validators import (
    validate_booking_lead_time,
    validate_booking_payload,
    validate_duration,
    validate_no_duplicate,
    validate_reschedulable,
    validate_reschedule_lead_time,
)

__all__ = [
    "validate_booking_lead_time",
    "validate_booking_payload",
    "validate_duration",
    "validate_no_duplicate",
    "validate_reschedulable",
    "validate_reschedule_lead_time",
]
