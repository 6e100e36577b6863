"""
Utility functions shared by services and transaction handlers.
"""

from booking.utils.datetime_utils import (
    at_local_time,
    ensure_aware,
    get_timezone,
    local_date,
    weekday_key,
)
from booking.utils.history import history_entry

__all__ = [
    # Timezone helpers
    "at_local_time",
    "ensure_aware",
    "get_timezone",
    "local_date",
    "weekday_key",
    # History log
    "history_entry",
]
