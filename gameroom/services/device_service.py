"""Administrative device management."""

from __future__ import annotations

from dataclasses import replace
from typing import Optional

from gameroom.domain.errors import ConflictError, NotFoundError, ValidationError
from gameroom.domain.models import Device, DeviceStatus
from gameroom.repository.data_repository import DataRepository
from gameroom.services.locks import DeviceLockRegistry
from gameroom.utils.clock import Clock, SystemClock
from gameroom.utils.config import Settings, get_settings
from gameroom.utils.logger import get_logger


logger = get_logger(__name__)


def _validate_device_fields(name: str, quantity: Optional[int]) -> str:
    cleaned = name.strip()
    if not cleaned:
        raise ValidationError("Device name is required.")
    if quantity is not None and quantity < 0:
        raise ValidationError("Device quantity cannot be negative.")
    return cleaned


class DeviceService:
    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
        locks: Optional[DeviceLockRegistry] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._clock = clock or SystemClock()
        self._locks = locks or DeviceLockRegistry(self._settings.device_lock_timeout_seconds)

    def get_device(self, device_id: int) -> Device:
        device = self._repository.get_device(device_id)
        if device is None:
            raise NotFoundError(f"Device with ID {device_id} not found.")
        return device

    def list_devices(self, status: Optional[DeviceStatus] = None) -> list[Device]:
        return self._repository.list_devices(status)

    def create_device(
        self,
        *,
        name: str,
        quantity: Optional[int],
        description: Optional[str] = None,
        status: DeviceStatus = DeviceStatus.AVAILABLE,
    ) -> Device:
        cleaned = _validate_device_fields(name, quantity)
        device = self._repository.create_device(
            name=cleaned,
            quantity=quantity,
            description=description,
            status=status,
            now=self._clock.now(),
        )
        logger.info("Device created | device_id=%s | quantity=%s", device.device_id, quantity)
        return device

    def update_device(
        self,
        device_id: int,
        *,
        name: str,
        quantity: Optional[int],
        description: Optional[str] = None,
        status: DeviceStatus = DeviceStatus.AVAILABLE,
    ) -> Device:
        cleaned = _validate_device_fields(name, quantity)
        # Capacity changes must not interleave with a reservation on the same device.
        with self._locks.hold([device_id]):
            with self._repository.transaction() as store:
                current = store.get_device(device_id)
                if current is None:
                    raise NotFoundError(f"Device with ID {device_id} not found.")
                updated = replace(
                    current,
                    name=cleaned,
                    quantity=quantity,
                    description=description,
                    status=status,
                )
                store.update_device(updated, self._clock.now())
        logger.info("Device updated | device_id=%s | quantity=%s", device_id, quantity)
        return updated

    def delete_device(self, device_id: int) -> None:
        with self._locks.hold([device_id]):
            with self._repository.transaction() as store:
                if store.get_device(device_id) is None:
                    raise NotFoundError(f"Device with ID {device_id} not found.")
                if store.count_bookings_for_device(device_id) > 0:
                    raise ConflictError("Device has bookings and cannot be deleted.")
                store.delete_device(device_id)
        logger.info("Device deleted | device_id=%s", device_id)
