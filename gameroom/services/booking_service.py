"""Booking lifecycle orchestration: create, reschedule, cancel, delete, read."""

from __future__ import annotations

import time
from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional, TypeVar

from gameroom.domain.constraints import BookingRules, build_draft, validate_booking_rules
from gameroom.domain.errors import ConflictError, NotFoundError, OwnershipError, TransientStoreError
from gameroom.domain.intervals import to_local_naive
from gameroom.domain.lifecycle import ensure_cancellable, ensure_updatable, with_derived_status
from gameroom.domain.models import Booking, BookingDraft, BookingStatus
from gameroom.domain.passcode import generate_passcode
from gameroom.repository.data_repository import DataRepository, StoreSession
from gameroom.services.availability_service import device_has_capacity
from gameroom.services.locks import DeviceLockRegistry
from gameroom.utils.clock import Clock, SystemClock
from gameroom.utils.config import Settings, get_settings
from gameroom.utils.logger import get_logger


logger = get_logger(__name__)

T = TypeVar("T")


def rules_from_settings(settings: Settings) -> BookingRules:
    rules = BookingRules(
        opening_hour=settings.opening_hour,
        closing_hour=settings.closing_hour,
        min_duration_hours=settings.min_duration_hours,
        max_duration_hours=settings.max_duration_hours,
        duration_step_hours=settings.duration_step_hours,
        duration_tolerance=settings.duration_tolerance,
    )
    validate_booking_rules(rules)
    return rules


class BookingService:
    """Validates and applies booking mutations under per-device serialization."""

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
        self._rules = rules_from_settings(self._settings)

    def _run_serialized(
        self,
        *,
        action: str,
        device_ids: list[int],
        operation: Callable[[StoreSession], T],
    ) -> T:
        """Run ``operation`` holding the device locks and one write transaction.

        Contention is retried with exponential backoff; once the attempts are
        used up the caller gets a ConflictError chained to the last failure.
        """
        attempts = max(1, self._settings.store_retry_attempts)
        last_error: Optional[TransientStoreError] = None
        for attempt in range(1, attempts + 1):
            try:
                with self._locks.hold(device_ids):
                    with self._repository.transaction() as store:
                        return operation(store)
            except TransientStoreError as exc:
                last_error = exc
                logger.warning(
                    "Store contention | action=%s | attempt=%s/%s | error=%s",
                    action,
                    attempt,
                    attempts,
                    exc,
                )
                if attempt < attempts:
                    time.sleep(self._settings.store_retry_backoff_seconds * (2 ** (attempt - 1)))
        raise ConflictError(
            f"Could not {action} because the booking store is busy. Please retry."
        ) from last_error

    def _require_capacity(
        self,
        store: StoreSession,
        draft: BookingDraft,
        exclude_booking_id: Optional[int] = None,
    ) -> None:
        if store.get_device(draft.device_id) is None:
            raise NotFoundError(f"Device with ID {draft.device_id} not found.")
        if not device_has_capacity(
            store,
            device_id=draft.device_id,
            start=draft.start,
            duration_hours=draft.duration_hours,
            exclude_booking_id=exclude_booking_id,
        ):
            logger.warning(
                "Device unavailable | device_id=%s | start=%s | duration=%s",
                draft.device_id,
                draft.start,
                draft.duration_hours,
            )
            raise ConflictError("Device is not available at the requested time.")

    def create_booking(
        self,
        *,
        player_id: int,
        start: Optional[datetime],
        duration_hours: float,
        device_id: int,
        is_playing_alone: bool,
        fellows: int,
    ) -> Booking:
        now = self._clock.now()
        draft = build_draft(
            player_id=player_id,
            device_id=device_id,
            start=None if start is None else to_local_naive(start),
            duration_hours=duration_hours,
            is_playing_alone=is_playing_alone,
            fellows=fellows,
            now=now,
            rules=self._rules,
        )
        if self._repository.get_player(player_id) is None:
            raise NotFoundError(f"Player with ID {player_id} not found.")

        def _insert(store: StoreSession) -> Booking:
            self._require_capacity(store, draft)
            return store.insert_booking(
                draft,
                status=BookingStatus.UPCOMING,
                passcode=generate_passcode(self._settings.passcode_length),
                now=now,
            )

        booking = self._run_serialized(
            action="create the booking",
            device_ids=[draft.device_id],
            operation=_insert,
        )
        logger.info(
            "Booking created | booking_id=%s | player_id=%s | device_id=%s | start=%s | duration=%s",
            booking.booking_id,
            booking.player_id,
            booking.device_id,
            booking.start,
            booking.duration_hours,
        )
        return booking

    def update_booking(
        self,
        booking_id: int,
        *,
        start: Optional[datetime],
        duration_hours: float,
        device_id: int,
        is_playing_alone: bool,
        fellows: int,
        cancel: bool = False,
    ) -> Booking:
        existing = self._repository.get_booking(booking_id)
        if existing is None:
            raise NotFoundError(f"Booking with ID {booking_id} not found.")
        ensure_updatable(existing)

        if cancel:
            return self.cancel_booking(booking_id)

        now = self._clock.now()
        draft = build_draft(
            player_id=existing.player_id,
            device_id=device_id,
            start=None if start is None else to_local_naive(start),
            duration_hours=duration_hours,
            is_playing_alone=is_playing_alone,
            fellows=fellows,
            now=now,
            rules=self._rules,
        )

        def _reschedule(store: StoreSession) -> Booking:
            current = store.get_booking(booking_id)
            if current is None:
                raise NotFoundError(f"Booking with ID {booking_id} not found.")
            ensure_updatable(current)
            same_device = current.device_id == draft.device_id
            self._require_capacity(
                store,
                draft,
                exclude_booking_id=booking_id if same_device else None,
            )
            updated = replace(
                current,
                device_id=draft.device_id,
                start=draft.start,
                duration_hours=draft.duration_hours,
                is_playing_alone=draft.is_playing_alone,
                fellows=draft.fellows,
                status=BookingStatus.UPCOMING,
                updated_at=now,
            )
            store.update_booking(updated, now)
            return updated

        booking = self._run_serialized(
            action="update the booking",
            device_ids=[draft.device_id],
            operation=_reschedule,
        )
        logger.info(
            "Booking updated | booking_id=%s | device_id=%s | start=%s | duration=%s",
            booking.booking_id,
            booking.device_id,
            booking.start,
            booking.duration_hours,
        )
        return booking

    def cancel_booking(self, booking_id: int) -> Booking:
        now = self._clock.now()
        try:
            with self._repository.transaction() as store:
                current = store.get_booking(booking_id)
                if current is None:
                    raise NotFoundError(f"Booking with ID {booking_id} not found.")
                ensure_cancellable(current, now)
                cancelled = replace(current, status=BookingStatus.CANCELLED, updated_at=now)
                store.update_booking(cancelled, now)
        except TransientStoreError as exc:
            raise ConflictError(
                "Could not cancel the booking because the booking store is busy. Please retry."
            ) from exc
        logger.info("Booking cancelled | booking_id=%s", booking_id)
        return cancelled

    def delete_booking(self, booking_id: int) -> None:
        with self._repository.transaction() as store:
            if not store.delete_booking(booking_id):
                raise NotFoundError(f"Booking with ID {booking_id} not found.")
        logger.info("Booking deleted | booking_id=%s", booking_id)

    def delete_own_booking(self, booking_id: int, player_id: int) -> None:
        with self._repository.transaction() as store:
            booking = store.get_booking(booking_id)
            if booking is None:
                raise NotFoundError(f"Booking with ID {booking_id} not found.")
            if booking.player_id != player_id:
                logger.warning(
                    "Delete-own rejected | booking_id=%s | caller=%s | owner=%s",
                    booking_id,
                    player_id,
                    booking.player_id,
                )
                raise OwnershipError("You can only delete your own bookings.")
            store.delete_booking(booking_id)
        logger.info("Own booking deleted | booking_id=%s | player_id=%s", booking_id, player_id)

    def get_booking(self, booking_id: int) -> Booking:
        booking = self._repository.get_booking(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking with ID {booking_id} not found.")
        return with_derived_status(booking, self._clock.now())

    def list_bookings(self, status: Optional[BookingStatus] = None) -> list[Booking]:
        now = self._clock.now()
        bookings = [with_derived_status(b, now) for b in self._repository.list_bookings()]
        if status is None:
            return bookings
        return [booking for booking in bookings if booking.status is status]

    def list_bookings_by_player(self, player_id: int) -> list[Booking]:
        now = self._clock.now()
        return [
            with_derived_status(booking, now)
            for booking in self._repository.list_bookings_by_player(player_id)
        ]
