"""Time source abstraction."""

from datetime import UTC, datetime
from typing import Protocol


class Clock(Protocol):
    """Interface for reading the current time."""

    def now(self) -> datetime:
        """Return the current UTC time."""


class SystemClock(Clock):
    """Clock backed by the system time."""

    def now(self) -> datetime:
        return datetime.now(tz=UTC)
