"""
Clock
=====

Injectable time source. Services receive a Clock instead of calling
``datetime.now()`` so SLA detection can be tested deterministically.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional


class Clock(ABC):
    """Abstract source of the current UTC time."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current timezone-aware UTC time."""


class SystemClock(Clock):
    """Production clock backed by the system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """
    Test clock with controlled time.

    Returns the same instant until ``advance()`` or ``set()`` is called.
    """

    def __init__(self, fixed_time: Optional[datetime] = None):
        self._time = fixed_time or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._time

    def set(self, moment: datetime) -> None:
        self._time = moment

    def advance(self, **delta) -> datetime:
        """Move forward by ``timedelta(**delta)`` and return the new time."""
        self._time = self._time + timedelta(**delta)
        return self._time
