"""
Clock -- injectable source of "now" for approval timestamps.

Request creation, step decisions, completion and notification times are
all read from a ``Clock`` passed to the approval service, so nothing in
the domain or services calls ``datetime.now()`` itself.  ``SystemClock``
is the one place wall time enters.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

EPOCH = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def _require_aware(value: datetime) -> datetime:
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"Clock times must be timezone-aware, got {value!r}")
    return value


class Clock(ABC):
    """Returns timezone-aware datetimes."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Manually driven clock for tests and replays.

    ``now()`` is stable until ``advance()`` is called.  With ``step`` set,
    every ``now()`` call moves the clock forward by that amount after
    reading, which gives strictly increasing timestamps without manual
    advancing.
    """

    def __init__(self, start: datetime = EPOCH, step: timedelta | None = None):
        self._current = _require_aware(start)
        self._step = step

    def now(self) -> datetime:
        current = self._current
        if self._step is not None:
            self._current += self._step
        return current

    def advance(self, by: timedelta | int | float = 1) -> datetime:
        """Move forward by ``by`` (a timedelta or a number of seconds)."""
        delta = by if isinstance(by, timedelta) else timedelta(seconds=by)
        if delta < timedelta(0):
            raise ValueError("DeterministicClock cannot move backwards")
        self._current += delta
        return self._current
