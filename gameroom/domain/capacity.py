"""Device capacity accounting over sets of bookings."""

from __future__ import annotations

from collections import Counter
from datetime import datetime
from typing import Iterable, Optional

from gameroom.domain.intervals import overlaps
from gameroom.domain.models import Booking, Device, DeviceAvailability


def has_free_unit(device: Optional[Device], reserved_units: int) -> bool:
    if device is None or device.capacity <= 0:
        return False
    return reserved_units < device.capacity


def availability_for(device: Device, reserved_units: int) -> DeviceAvailability:
    total = device.capacity
    return DeviceAvailability(
        device_id=device.device_id,
        device_name=device.name,
        total_quantity=total,
        available_quantity=max(0, total - reserved_units),
    )


def usage_by_device(bookings: Iterable[Booking]) -> Counter[int]:
    return Counter(booking.device_id for booking in bookings if not booking.is_cancelled)


def compute_device_availabilities(
    devices: Iterable[Device],
    bookings: Iterable[Booking],
    *,
    start: datetime,
    end: datetime,
) -> list[DeviceAvailability]:
    overlapping = [
        booking
        for booking in bookings
        if not booking.is_cancelled and overlaps(booking.start, booking.end, start, end)
    ]
    usage = usage_by_device(overlapping)
    return [availability_for(device, usage.get(device.device_id, 0)) for device in devices]
