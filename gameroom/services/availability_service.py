"""Device availability queries over the non-cancelled booking set."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from gameroom.domain.capacity import compute_device_availabilities, has_free_unit
from gameroom.domain.intervals import to_local_naive, window_for
from gameroom.domain.models import DeviceAvailability
from gameroom.repository.data_repository import DataRepository, StoreSession
from gameroom.utils.config import Settings, get_settings
from gameroom.utils.logger import get_logger


logger = get_logger(__name__)


def device_has_capacity(
    store: StoreSession,
    *,
    device_id: int,
    start: datetime,
    duration_hours: float,
    exclude_booking_id: Optional[int] = None,
) -> bool:
    """Capacity check against an open session, so it can share a write transaction."""
    device = store.get_device(device_id)
    if device is None or device.capacity <= 0:
        return False
    window = window_for(start, duration_hours)
    reserved = store.count_overlapping(
        device_id=device_id,
        start=window.start,
        end=window.end,
        exclude_booking_id=exclude_booking_id,
    )
    return has_free_unit(device, reserved)


class AvailabilityService:
    """Answers whether devices can take another booking for a window."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def is_device_available(
        self,
        *,
        device_id: int,
        start: datetime,
        duration_hours: float,
        exclude_booking_id: Optional[int] = None,
    ) -> bool:
        with self._repository.session() as store:
            return device_has_capacity(
                store,
                device_id=device_id,
                start=to_local_naive(start),
                duration_hours=duration_hours,
                exclude_booking_id=exclude_booking_id,
            )

    def list_device_availabilities(
        self,
        *,
        start: datetime,
        duration_hours: float,
    ) -> list[DeviceAvailability]:
        """Remaining units per device; degrades to ``[]`` on any internal fault."""
        try:
            window = window_for(to_local_naive(start), duration_hours)
            with self._repository.session() as store:
                devices = store.list_devices()
                bookings = store.list_active_bookings_overlapping(window.start, window.end)
            availabilities = compute_device_availabilities(
                devices,
                bookings,
                start=window.start,
                end=window.end,
            )
        except Exception:
            logger.exception(
                "Device availability lookup failed | start=%s | duration=%s",
                start,
                duration_hours,
            )
            return []

        logger.info(
            "Device availabilities computed | start=%s | duration=%s | devices=%s",
            window.start,
            duration_hours,
            len(availabilities),
        )
        return availabilities
