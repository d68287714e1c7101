"""Calendar occupancy segments for day and date-range views."""

from __future__ import annotations

from datetime import date
from typing import Optional

from gameroom.domain.errors import ValidationError
from gameroom.domain.intervals import operating_window
from gameroom.domain.models import FreeTimeSegment
from gameroom.domain.segmentation import segments_for_day, segments_for_range
from gameroom.repository.data_repository import DataRepository
from gameroom.utils.config import Settings, get_settings
from gameroom.utils.logger import get_logger


logger = get_logger(__name__)


class FreeTimeService:
    """Loads the relevant bookings and devices, then runs the segmenter."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def segments_for_day(self, day: date) -> list[FreeTimeSegment]:
        window = operating_window(day, self._settings.opening_hour, self._settings.closing_hour)
        with self._repository.session() as store:
            devices = store.list_devices()
            bookings = store.list_active_bookings_overlapping(window.start, window.end)
        segments = segments_for_day(
            day,
            bookings,
            devices,
            opening_hour=self._settings.opening_hour,
            closing_hour=self._settings.closing_hour,
        )
        logger.debug("Free-time segments | day=%s | segments=%s", day, len(segments))
        return segments

    def segments_for_range(self, start_day: date, end_day: date) -> list[FreeTimeSegment]:
        if start_day > end_day:
            raise ValidationError("startDate must be before or equal to endDate.")
        if (end_day - start_day).days > self._settings.max_calendar_range_days:
            raise ValidationError(
                f"Date range cannot exceed {self._settings.max_calendar_range_days} days."
            )

        first = operating_window(start_day, self._settings.opening_hour, self._settings.closing_hour)
        last = operating_window(end_day, self._settings.opening_hour, self._settings.closing_hour)
        with self._repository.session() as store:
            devices = store.list_devices()
            bookings = store.list_active_bookings_overlapping(first.start, last.end)
        segments = segments_for_range(
            start_day,
            end_day,
            bookings,
            devices,
            opening_hour=self._settings.opening_hour,
            closing_hour=self._settings.closing_hour,
        )
        logger.debug(
            "Free-time segments | start=%s | end=%s | segments=%s",
            start_day,
            end_day,
            len(segments),
        )
        return segments
