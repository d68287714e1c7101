"""Half-open interval helpers used by availability and calendar segmentation.

Every interval is ``[start, end)``: it contains ``start`` and excludes ``end``,
so two bookings that merely touch never overlap.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional


@dataclass(frozen=True)
class Interval:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError("interval end must not precede its start")

    @property
    def is_empty(self) -> bool:
        return self.start >= self.end


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and b_start < a_end


def clip(interval: Interval, bounds: Interval) -> Optional[Interval]:
    """Intersect ``interval`` with ``bounds``; ``None`` when they are disjoint."""
    start = max(interval.start, bounds.start)
    end = min(interval.end, bounds.end)
    if start >= end:
        return None
    return Interval(start=start, end=end)


def change_points(intervals: Iterable[Interval], bounds: Interval) -> list[datetime]:
    """Sorted, de-duplicated instants where occupancy inside ``bounds`` may change."""
    points = {bounds.start, bounds.end}
    for interval in intervals:
        clipped = clip(interval, bounds)
        if clipped is None:
            continue
        points.add(clipped.start)
        points.add(clipped.end)
    return sorted(points)


def window_for(start: datetime, duration_hours: float) -> Interval:
    return Interval(start=start, end=start + timedelta(hours=duration_hours))


def operating_window(day: date, opening_hour: int, closing_hour: int) -> Interval:
    return Interval(
        start=datetime.combine(day, time(hour=opening_hour)),
        end=datetime.combine(day, time(hour=closing_hour)),
    )


def days_in_range(start_day: date, end_day: date) -> list[date]:
    """Inclusive list of calendar days from ``start_day`` to ``end_day``."""
    span = (end_day - start_day).days
    return [start_day + timedelta(days=offset) for offset in range(span + 1)]


def to_local_naive(value: datetime) -> datetime:
    """Convert aware datetimes to naive local time; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)
