"""
Injectable time source for transitions.

Every timestamp a transition writes (state_changed_at, started_at,
completed_at, inspection_duration, history changed_at) is derived from a
single ``Clock.now()`` reading taken by the executor, so the values in one
unit agree with each other and tests can pin them exactly.  Kernel code
never calls ``datetime.now()`` itself.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

_DEFAULT_START = datetime(2024, 1, 1, 8, 0, 0, tzinfo=timezone.utc)


def _require_aware(value: datetime) -> datetime:
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"Clock times must be timezone-aware, got {value!r}")
    return value.astimezone(timezone.utc)


class Clock(ABC):
    """Source of the current time.  ``now()`` is always timezone-aware UTC."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    ``now()`` keeps returning the same instant until ``advance()`` or
    ``set_time()`` is called, which lets a test walk an inspection through
    its lifecycle with exact gaps between steps.
    """

    def __init__(self, start: datetime | None = None):
        self._current = _require_aware(start or _DEFAULT_START)

    def now(self) -> datetime:
        return self._current

    def set_time(self, value: datetime) -> None:
        self._current = _require_aware(value)

    def advance(self, delta: int | float | timedelta = 1) -> datetime:
        """Move forward by ``delta`` (seconds or a timedelta); returns the new time."""
        step = delta if isinstance(delta, timedelta) else timedelta(seconds=delta)
        if step < timedelta(0):
            raise ValueError("DeterministicClock cannot move backwards")
        self._current += step
        return self._current
