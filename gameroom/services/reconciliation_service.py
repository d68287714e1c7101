"""Persist derived booking statuses, separately from the read path."""

from __future__ import annotations

from threading import Event, Thread
from typing import Optional

from gameroom.domain.lifecycle import derive_status
from gameroom.domain.models import BookingStatus
from gameroom.repository.data_repository import DataRepository
from gameroom.utils.clock import Clock, SystemClock
from gameroom.utils.config import Settings, get_settings
from gameroom.utils.logger import get_logger


logger = get_logger(__name__)


class StatusReconciliationService:
    """Writes Upcoming/Ongoing/Completed transitions back to the store."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._clock = clock or SystemClock()

    def reconcile(self) -> int:
        now = self._clock.now()
        with self._repository.transaction() as store:
            changes: list[tuple[int, BookingStatus]] = []
            for booking in store.list_bookings():
                if booking.is_cancelled:
                    continue
                status = derive_status(booking, now)
                if status is not booking.status:
                    changes.append((booking.booking_id, status))
            written = store.update_booking_statuses(changes, now)
        logger.info("Status reconciliation completed | updated=%s", written)
        return written


class ReconciliationWorker:
    """Background thread running reconciliation on a fixed interval."""

    def __init__(self, service: StatusReconciliationService, interval_seconds: float) -> None:
        self._service = service
        self._interval_seconds = interval_seconds
        self._stop = Event()
        self._thread: Optional[Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self._interval_seconds <= 0 or self.running:
            return
        self._stop.clear()
        self._thread = Thread(target=self._run, name="status-reconciliation", daemon=True)
        self._thread.start()
        logger.info("Reconciliation worker started | interval=%.1fs", self._interval_seconds)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self._interval_seconds):
            try:
                self._service.reconcile()
            except Exception:
                # Keep the worker alive; the next tick retries.
                logger.exception("Status reconciliation failed")
