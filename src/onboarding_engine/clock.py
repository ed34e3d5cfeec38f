"""Injectable wall clock.

Services and the reminder scheduler never call ``datetime.now()`` directly;
they ask a ``Clock`` so tests can pin "now" to a fixed instant.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol
from zoneinfo import ZoneInfo


class Clock(Protocol):
    """Source of the current time."""

    def now(self) -> datetime:
        """Return the current time as an aware datetime."""
        ...


class SystemClock:
    """Clock backed by the system time in a fixed timezone."""

    def __init__(self, tz: str = "UTC"):
        self.tz = ZoneInfo(tz)

    def now(self) -> datetime:
        return datetime.now(self.tz)


def as_utc(value: datetime | None) -> datetime | None:
    """Normalize a stored datetime to an aware UTC datetime.

    SQLite hands back naive values for timezone-aware columns; those are
    treated as UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
