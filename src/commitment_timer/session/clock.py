"""Wall-clock sources.

The engine never reads the system time directly; it asks a ``Clock``.
Monotonicity is not required and large forward jumps (device sleep) are
expected.

Classes
-------
- Clock        — abstract wall-clock source
- SystemClock  — the real UTC wall clock
- FrozenClock  — manually advanced clock for tests and simulations
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """Read-only source of the current wall-clock time."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current time as a timezone-aware UTC datetime."""


class SystemClock(Clock):
    """Reads ``datetime.now(timezone.utc)``."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def __repr__(self) -> str:
        return "SystemClock()"


class FrozenClock(Clock):
    """A clock that only moves when told to.

    Parameters
    ----------
    start:
        Initial time.  Naive values are taken as UTC.  Defaults to the
        current system time.
    """

    def __init__(self, start: datetime | None = None) -> None:
        if start is None:
            start = datetime.now(timezone.utc)
        elif start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        self._now = start

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float = 0.0, **kwargs: float) -> datetime:
        """Move the clock forward and return the new time.

        Extra keyword arguments are passed to ``timedelta`` (``minutes``,
        ``hours``, ``days``).
        """
        self._now = self._now + timedelta(seconds=seconds, **kwargs)
        return self._now

    def set(self, value: datetime) -> None:
        """Jump to ``value``; backwards jumps are allowed."""
        self._now = value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    def __repr__(self) -> str:
        return f"FrozenClock(now={self._now.isoformat()!r})"
