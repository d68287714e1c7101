"""Domain models for devices, bookings and calendar occupancy."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional


class BookingStatus(str, Enum):
    UPCOMING = "Upcoming"
    ONGOING = "Ongoing"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class DeviceStatus(str, Enum):
    AVAILABLE = "Available"
    UNAVAILABLE = "Unavailable"


class SegmentClassification(str, Enum):
    FREE = "Free"
    PARTIAL = "Partial"
    FULL = "Full"


@dataclass(frozen=True)
class Device:
    device_id: int
    name: str
    quantity: Optional[int]
    status: DeviceStatus = DeviceStatus.AVAILABLE
    description: Optional[str] = None

    @property
    def capacity(self) -> int:
        """Bookable units; a missing or negative quantity means none."""
        if self.quantity is None or self.quantity <= 0:
            return 0
        return self.quantity


@dataclass(frozen=True)
class Player:
    player_id: int
    email: str


@dataclass(frozen=True)
class Booking:
    booking_id: int
    player_id: int
    device_id: int
    start: datetime
    duration_hours: float
    is_playing_alone: bool
    fellows: int
    status: BookingStatus
    passcode: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def end(self) -> datetime:
        return self.start + timedelta(hours=self.duration_hours)

    @property
    def is_cancelled(self) -> bool:
        return self.status is BookingStatus.CANCELLED


@dataclass(frozen=True)
class BookingDraft:
    """Validated field set for a booking that is about to be written."""

    player_id: int
    device_id: int
    start: datetime
    duration_hours: float
    is_playing_alone: bool
    fellows: int

    @property
    def end(self) -> datetime:
        return self.start + timedelta(hours=self.duration_hours)


@dataclass(frozen=True)
class DeviceAvailability:
    device_id: int
    device_name: str
    total_quantity: int
    available_quantity: int

    @property
    def is_available(self) -> bool:
        return self.available_quantity > 0


@dataclass(frozen=True)
class FreeTimeSegment:
    start: datetime
    end: datetime
    classification: SegmentClassification
