"""Partition operating hours into free / partial / full calendar segments."""

from __future__ import annotations

from datetime import date
from typing import Iterable, Sequence

from gameroom.domain.capacity import usage_by_device
from gameroom.domain.intervals import (
    Interval,
    change_points,
    days_in_range,
    operating_window,
    overlaps,
)
from gameroom.domain.models import Booking, Device, FreeTimeSegment, SegmentClassification


def classify_segment(
    segment: Interval,
    bookings: Sequence[Booking],
    devices: Sequence[Device],
) -> SegmentClassification:
    active = [
        booking
        for booking in bookings
        if not booking.is_cancelled
        and overlaps(booking.start, booking.end, segment.start, segment.end)
    ]
    if not active:
        return SegmentClassification.FREE

    usage = usage_by_device(active)
    bookable = [device for device in devices if device.capacity > 0]
    if all(usage.get(device.device_id, 0) >= device.capacity for device in bookable):
        return SegmentClassification.FULL
    return SegmentClassification.PARTIAL


def segments_for_day(
    day: date,
    bookings: Iterable[Booking],
    devices: Sequence[Device],
    *,
    opening_hour: int,
    closing_hour: int,
) -> list[FreeTimeSegment]:
    window = operating_window(day, opening_hour, closing_hour)
    day_bookings = [
        booking
        for booking in bookings
        if not booking.is_cancelled
        and overlaps(booking.start, booking.end, window.start, window.end)
    ]
    points = change_points(
        (Interval(start=booking.start, end=booking.end) for booking in day_bookings),
        window,
    )

    segments: list[FreeTimeSegment] = []
    for seg_start, seg_end in zip(points, points[1:]):
        if seg_start >= seg_end:
            continue
        segment = Interval(start=seg_start, end=seg_end)
        segments.append(
            FreeTimeSegment(
                start=seg_start,
                end=seg_end,
                classification=classify_segment(segment, day_bookings, devices),
            )
        )
    return segments


def segments_for_range(
    start_day: date,
    end_day: date,
    bookings: Sequence[Booking],
    devices: Sequence[Device],
    *,
    opening_hour: int,
    closing_hour: int,
) -> list[FreeTimeSegment]:
    """Concatenate per-day segments; days are never merged across midnight."""
    segments: list[FreeTimeSegment] = []
    for day in days_in_range(start_day, end_day):
        segments.extend(
            segments_for_day(
                day,
                bookings,
                devices,
                opening_hour=opening_hour,
                closing_hour=closing_hour,
            )
        )
    return segments
