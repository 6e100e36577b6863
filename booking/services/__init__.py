"""
Booking services module.

Provides the availability and booking business logic.

Services:
- operating_calendar: Weekly hours + calendar overrides -> working window
- slot_generator: Candidate start times inside a working window
- conflict_checker: Stylist overlap checks on an appointment snapshot
- availability_service: Slot list for a day, fresh pre-write checks
- status_service: Appointment lifecycle transitions
- notification_service: Fire-and-forget participant notifications
"""

from booking.services.availability_service import (
    check_stylists_availability,
    get_available_slots,
)
from booking.services.conflict_checker import (
    BusyIndex,
    BusyInterval,
    busy_intervals,
    is_stylist_free,
    overlaps,
)
from booking.services.notification_service import (
    extract_recipients,
    notify_participants,
)
from booking.services.operating_calendar import (
    Closed,
    WorkingWindow,
    require_working_window,
    resolve_working_window,
)
from booking.services.slot_generator import SlotSequence, generate_slots
from booking.services.status_service import (
    can_transition,
    cancel_appointment,
    update_appointment_status,
)

__all__ = [
    # Availability service
    "check_stylists_availability",
    "get_available_slots",
    # Conflict checker
    "BusyIndex",
    "BusyInterval",
    "busy_intervals",
    "is_stylist_free",
    "overlaps",
    # Notifications
    "extract_recipients",
    "notify_participants",
    # Operating calendar
    "Closed",
    "WorkingWindow",
    "require_working_window",
    "resolve_working_window",
    # Slot generator
    "SlotSequence",
    "generate_slots",
    # Status transitions
    "can_transition",
    "cancel_appointment",
    "update_appointment_status",
]
