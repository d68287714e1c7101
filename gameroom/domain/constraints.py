"""Domain-level validation rules for booking requests."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from gameroom.domain.errors import ValidationError
from gameroom.domain.models import BookingDraft


@dataclass(frozen=True)
class BookingRules:
    opening_hour: int
    closing_hour: int
    min_duration_hours: float
    max_duration_hours: float
    duration_step_hours: float
    duration_tolerance: float


def validate_booking_rules(rules: BookingRules) -> None:
    if not 0 <= rules.opening_hour < rules.closing_hour <= 24:
        raise ValueError("opening_hour must precede closing_hour within a day")
    if rules.min_duration_hours <= 0.0:
        raise ValueError("min_duration_hours must be > 0")
    if rules.max_duration_hours < rules.min_duration_hours:
        raise ValueError("max_duration_hours must be >= min_duration_hours")
    if rules.duration_step_hours <= 0.0:
        raise ValueError("duration_step_hours must be > 0")
    if rules.duration_tolerance < 0.0:
        raise ValueError("duration_tolerance must be >= 0")


def validate_duration(duration_hours: float, rules: BookingRules) -> None:
    if not math.isfinite(duration_hours):
        raise ValidationError("Duration must be a finite number of hours.")
    tolerance = rules.duration_tolerance
    if duration_hours < rules.min_duration_hours - tolerance:
        raise ValidationError(
            f"Duration must be at least {rules.min_duration_hours:g} hours."
        )
    if duration_hours > rules.max_duration_hours + tolerance:
        raise ValidationError(
            f"Duration must be {rules.max_duration_hours:g} hours or less."
        )
    steps = duration_hours / rules.duration_step_hours
    if abs(steps - round(steps)) > tolerance:
        raise ValidationError(
            f"Duration must be a multiple of {rules.duration_step_hours:g} hours."
        )


def validate_start(start: Optional[datetime], now: datetime, rules: BookingRules) -> datetime:
    if start is None:
        raise ValidationError("Booking date/time is required.")
    if start <= now:
        raise ValidationError("Booking date/time must be in the future.")
    if not rules.opening_hour <= start.hour < rules.closing_hour:
        raise ValidationError(
            f"Bookings can only be made between {rules.opening_hour:02d}:00 "
            f"and {rules.closing_hour:02d}:00."
        )
    return start


def validate_occupants(is_playing_alone: bool, fellows: int) -> None:
    if fellows < 0:
        raise ValidationError("Fellows cannot be negative.")
    if is_playing_alone and fellows > 0:
        raise ValidationError("You cannot play alone and have fellows at the same time.")
    if not is_playing_alone and fellows == 0:
        raise ValidationError(
            "If you are not playing alone, you must specify the number of fellows."
        )


def resolve_single_device_id(device_ids: Iterable[int]) -> int:
    """Collapse a device selection to its one id; bookings hold exactly one device."""
    distinct = sorted({int(device_id) for device_id in device_ids})
    if len(distinct) != 1:
        raise ValidationError("Exactly one device must be selected for a booking.")
    if distinct[0] <= 0:
        raise ValidationError("Device id must be a positive integer.")
    return distinct[0]


def build_draft(
    *,
    player_id: int,
    device_id: int,
    start: Optional[datetime],
    duration_hours: float,
    is_playing_alone: bool,
    fellows: int,
    now: datetime,
    rules: BookingRules,
) -> BookingDraft:
    """Run every field-level rule a new or rescheduled booking must satisfy."""
    validated_start = validate_start(start, now, rules)
    validate_duration(duration_hours, rules)
    validate_occupants(is_playing_alone, fellows)
    return BookingDraft(
        player_id=player_id,
        device_id=device_id,
        start=validated_start,
        duration_hours=float(duration_hours),
        is_playing_alone=is_playing_alone,
        fellows=fellows,
    )
