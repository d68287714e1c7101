"""Injectable wall-clock sources."""

from __future__ import annotations

from datetime import datetime, timedelta
from threading import Lock
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """Local wall-clock time as naive datetimes, matching stored booking times."""

    def now(self) -> datetime:
        return datetime.now()


class FixedClock:
    """Manually driven clock for deterministic lifecycle checks."""

    def __init__(self, current: datetime) -> None:
        self._current = current
        self._lock = Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._current

    def set(self, value: datetime) -> None:
        with self._lock:
            self._current = value

    def advance(self, delta: timedelta) -> datetime:
        with self._lock:
            self._current = self._current + delta
            return self._current
