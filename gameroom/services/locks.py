"""Per-device mutual exclusion for check-then-reserve sequences."""

from __future__ import annotations

from contextlib import contextmanager
from threading import Lock
from typing import Iterable, Iterator

from gameroom.domain.errors import TransientStoreError
from gameroom.utils.logger import get_logger


logger = get_logger(__name__)


class DeviceLockRegistry:
    """Hands out one lock per device id, created lazily."""

    def __init__(self, timeout_seconds: float) -> None:
        self._timeout_seconds = timeout_seconds
        self._guard = Lock()
        self._locks: dict[int, Lock] = {}

    def _lock_for(self, device_id: int) -> Lock:
        with self._guard:
            lock = self._locks.get(device_id)
            if lock is None:
                lock = Lock()
                self._locks[device_id] = lock
            return lock

    @contextmanager
    def hold(self, device_ids: Iterable[int]) -> Iterator[None]:
        """Lock every device in ascending id order so two holders never deadlock."""
        ordered = sorted(set(device_ids))
        acquired: list[Lock] = []
        try:
            for device_id in ordered:
                lock = self._lock_for(device_id)
                if not lock.acquire(timeout=self._timeout_seconds):
                    logger.warning(
                        "Device lock timeout | device_id=%s | timeout=%.2fs",
                        device_id,
                        self._timeout_seconds,
                    )
                    raise TransientStoreError(
                        f"Device {device_id} is busy; try again shortly."
                    )
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
