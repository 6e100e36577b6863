"""Appointment history log entries."""

from datetime import datetime
from typing import Any, Optional


def history_entry(action: str, by: Optional[str], at: datetime, **details: Any) -> dict[str, Any]:
    """
    Build one entry of the appointment history log.

    Example:
        >>> history_entry("created", "user-1", now, notes="Appointment created")
        {"action": "created", "by": "user-1", "timestamp": "...", "notes": "Appointment created"}
    """
    entry = {"action": action, "by": by, "timestamp": at.isoformat()}
    entry.update({key: value for key, value in details.items() if value is not None})
    return entry
