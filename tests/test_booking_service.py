"""Tests for booking lifecycle orchestration against a real SQLite store."""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

import pytest

from gameroom.domain.errors import (
    ConflictError,
    NotFoundError,
    OwnershipError,
    TransientStoreError,
    ValidationError,
)
from gameroom.domain.models import BookingStatus
from gameroom.repository.data_repository import DataRepository
from gameroom.services.booking_service import BookingService
from gameroom.services.device_service import DeviceService
from gameroom.services.locks import DeviceLockRegistry
from gameroom.services.reconciliation_service import (
    ReconciliationWorker,
    StatusReconciliationService,
)
from gameroom.utils.clock import FixedClock
from gameroom.utils.config import get_settings


NOW = datetime(2030, 3, 4, 7, 0)


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2030, 3, 4, hour, minute)


@dataclass
class Harness:
    repository: DataRepository
    clock: FixedClock
    bookings: BookingService
    devices: DeviceService
    reconciliation: StatusReconciliationService
    locks: DeviceLockRegistry


def _build_harness(tmp_path, **overrides) -> Harness:
    get_settings.cache_clear()
    settings = replace(
        get_settings(),
        database_path=tmp_path / "bookings.db",
        store_retry_backoff_seconds=0.0,
        seed_demo_data=False,
        **overrides,
    )
    repository = DataRepository(settings)
    repository.initialize_database()
    clock = FixedClock(NOW)
    locks = DeviceLockRegistry(settings.device_lock_timeout_seconds)
    return Harness(
        repository=repository,
        clock=clock,
        bookings=BookingService(repository=repository, settings=settings, clock=clock, locks=locks),
        devices=DeviceService(repository=repository, settings=settings, clock=clock, locks=locks),
        reconciliation=StatusReconciliationService(
            repository=repository,
            settings=settings,
            clock=clock,
        ),
        locks=locks,
    )


def _book(harness: Harness, player_id: int, device_id: int, start: datetime, hours: float = 1.0):
    return harness.bookings.create_booking(
        player_id=player_id,
        start=start,
        duration_hours=hours,
        device_id=device_id,
        is_playing_alone=True,
        fellows=0,
    )


def test_create_booking_persists_upcoming_with_passcode(tmp_path) -> None:
    harness = _build_harness(tmp_path)
    player = harness.repository.create_player("p@example.edu", NOW)
    device = harness.devices.create_device(name="PS5", quantity=1)

    booking = _book(harness, player.player_id, device.device_id, at(10))

    assert booking.status is BookingStatus.UPCOMING
    assert len(booking.passcode) == 6 and booking.passcode.isdigit()
    assert not booking.passcode.startswith("0")
    stored = harness.repository.get_booking(booking.booking_id)
    assert stored is not None
    assert stored.start == at(10)
    assert stored.end == at(11)


def test_create_rejects_invalid_requests_before_touching_store(tmp_path) -> None:
    harness = _build_harness(tmp_path)
    player = harness.repository.create_player("p@example.edu", NOW)
    device = harness.devices.create_device(name="PS5", quantity=1)

    with pytest.raises(ValidationError):
        _book(harness, player.player_id, device.device_id, at(20))
    with pytest.raises(ValidationError):
        _book(harness, player.player_id, device.device_id, at(10), hours=0.7)
    with pytest.raises(ValidationError):
        _book(harness, player.player_id, device.device_id, at(6))
    assert harness.repository.count_bookings() == 0


def test_create_unknown_player_or_device_is_not_found(tmp_path) -> None:
    harness = _build_harness(tmp_path)
    player = harness.repository.create_player("p@example.edu", NOW)
    device = harness.devices.create_device(name="PS5", quantity=1)

    with pytest.raises(NotFoundError):
        _book(harness, 999, device.device_id, at(10))
    with pytest.raises(NotFoundError):
        _book(harness, player.player_id, 999, at(10))


def test_capacity_is_enforced_and_adjacent_slots_are_allowed(tmp_path) -> None:
    harness = _build_harness(tmp_path)
    player = harness.repository.create_player("p@example.edu", NOW)
    device = harness.devices.create_device(name="PS5", quantity=1)
    _book(harness, player.player_id, device.device_id, at(10))

    with pytest.raises(ConflictError, match="not available"):
        _book(harness, player.player_id, device.device_id, at(10, 30))
    adjacent = _book(harness, player.player_id, device.device_id, at(11))

    assert adjacent.start == at(11)


def test_booking_may_run_past_closing(tmp_path) -> None:
    harness = _build_harness(tmp_path)
    player = harness.repository.create_player("p@example.edu", NOW)
    device = harness.devices.create_device(name="PS5", quantity=1)

    booking = _book(harness, player.player_id, device.device_id, at(19), hours=2.0)

    assert booking.end == at(21)


def test_update_same_device_excludes_itself(tmp_path) -> None:
    harness = _build_harness(tmp_path)
    player = harness.repository.create_player("p@example.edu", NOW)
    device = harness.devices.create_device(name="PS5", quantity=1)
    booking = _book(harness, player.player_id, device.device_id, at(10))

    updated = harness.bookings.update_booking(
        booking.booking_id,
        start=at(10, 30),
        duration_hours=1.5,
        device_id=device.device_id,
        is_playing_alone=False,
        fellows=2,
    )

    assert updated.start == at(10, 30)
    assert updated.duration_hours == 1.5
    assert updated.fellows == 2
    assert updated.passcode == booking.passcode
    assert updated.status is BookingStatus.UPCOMING


def test_update_rejected_when_other_bookings_fill_the_device(tmp_path) -> None:
    harness = _build_harness(tmp_path)
    player = harness.repository.create_player("p@example.edu", NOW)
    device = harness.devices.create_device(name="PS5", quantity=1)
    first = _book(harness, player.player_id, device.device_id, at(10))
    _book(harness, player.player_id, device.device_id, at(12))

    with pytest.raises(ConflictError):
        harness.bookings.update_booking(
            first.booking_id,
            start=at(11, 30),
            duration_hours=1.0,
            device_id=device.device_id,
            is_playing_alone=True,
            fellows=0,
        )


def test_update_to_other_device_checks_full_capacity(tmp_path) -> None:
    harness = _build_harness(tmp_path)
    player = harness.repository.create_player("p@example.edu", NOW)
    ps5 = harness.devices.create_device(name="PS5", quantity=1)
    xbox = harness.devices.create_device(name="Xbox", quantity=1)
    booking = _book(harness, player.player_id, ps5.device_id, at(10))
    _book(harness, player.player_id, xbox.device_id, at(10))

    with pytest.raises(ConflictError):
        harness.bookings.update_booking(
            booking.booking_id,
            start=at(10),
            duration_hours=1.0,
            device_id=xbox.device_id,
            is_playing_alone=True,
            fellows=0,
        )

    moved = harness.bookings.update_booking(
        booking.booking_id,
        start=at(14),
        duration_hours=1.0,
        device_id=xbox.device_id,
        is_playing_alone=True,
        fellows=0,
    )
    assert moved.device_id == xbox.device_id


def test_cancel_then_update_is_rejected(tmp_path) -> None:
    harness = _build_harness(tmp_path)
    player = harness.repository.create_player("p@example.edu", NOW)
    device = harness.devices.create_device(name="PS5", quantity=1)
    booking = _book(harness, player.player_id, device.device_id, at(10))

    cancelled = harness.bookings.update_booking(
        booking.booking_id,
        start=at(10),
        duration_hours=1.0,
        device_id=device.device_id,
        is_playing_alone=True,
        fellows=0,
        cancel=True,
    )

    assert cancelled.status is BookingStatus.CANCELLED
    with pytest.raises(ConflictError, match="already cancelled"):
        harness.bookings.update_booking(
            booking.booking_id,
            start=at(12),
            duration_hours=1.0,
            device_id=device.device_id,
            is_playing_alone=True,
            fellows=0,
        )


def test_started_booking_cannot_be_cancelled(tmp_path) -> None:
    harness = _build_harness(tmp_path)
    player = harness.repository.create_player("p@example.edu", NOW)
    device = harness.devices.create_device(name="PS5", quantity=1)
    booking = _book(harness, player.player_id, device.device_id, at(10))

    harness.clock.set(at(10, 30))

    with pytest.raises(ConflictError, match="in the past"):
        harness.bookings.cancel_booking(booking.booking_id)
    assert harness.bookings.get_booking(booking.booking_id).status is BookingStatus.ONGOING


def test_reads_derive_status_without_writing(tmp_path) -> None:
    harness = _build_harness(tmp_path)
    player = harness.repository.create_player("p@example.edu", NOW)
    device = harness.devices.create_device(name="PS5", quantity=2)
    first = _book(harness, player.player_id, device.device_id, at(9))
    second = _book(harness, player.player_id, device.device_id, at(12))

    harness.clock.set(at(12, 30))

    assert [b.booking_id for b in harness.bookings.list_bookings(BookingStatus.COMPLETED)] == [
        first.booking_id
    ]
    assert [b.booking_id for b in harness.bookings.list_bookings(BookingStatus.ONGOING)] == [
        second.booking_id
    ]
    assert harness.repository.get_booking(first.booking_id).status is BookingStatus.UPCOMING


def test_reconciliation_persists_transitions_but_keeps_cancellations(tmp_path) -> None:
    harness = _build_harness(tmp_path)
    player = harness.repository.create_player("p@example.edu", NOW)
    device = harness.devices.create_device(name="PS5", quantity=2)
    finished = _book(harness, player.player_id, device.device_id, at(9))
    cancelled = _book(harness, player.player_id, device.device_id, at(9))
    harness.bookings.cancel_booking(cancelled.booking_id)

    harness.clock.set(at(11))
    updated = harness.reconciliation.reconcile()

    assert updated == 1
    assert harness.repository.get_booking(finished.booking_id).status is BookingStatus.COMPLETED
    assert harness.repository.get_booking(cancelled.booking_id).status is BookingStatus.CANCELLED
    assert harness.reconciliation.reconcile() == 0


def test_reconciliation_worker_does_not_start_when_disabled(tmp_path) -> None:
    harness = _build_harness(tmp_path)
    worker = ReconciliationWorker(harness.reconciliation, interval_seconds=0)

    worker.start()

    assert not worker.running
    worker.stop()


def test_delete_own_booking_checks_owner(tmp_path) -> None:
    harness = _build_harness(tmp_path)
    owner = harness.repository.create_player("owner@example.edu", NOW)
    other = harness.repository.create_player("other@example.edu", NOW)
    device = harness.devices.create_device(name="PS5", quantity=1)
    booking = _book(harness, owner.player_id, device.device_id, at(10))

    with pytest.raises(OwnershipError):
        harness.bookings.delete_own_booking(booking.booking_id, other.player_id)
    harness.bookings.delete_own_booking(booking.booking_id, owner.player_id)

    with pytest.raises(NotFoundError):
        harness.bookings.get_booking(booking.booking_id)
    with pytest.raises(NotFoundError):
        harness.bookings.delete_booking(booking.booking_id)


def test_bookings_by_player_only_returns_their_rows(tmp_path) -> None:
    harness = _build_harness(tmp_path)
    first = harness.repository.create_player("one@example.edu", NOW)
    second = harness.repository.create_player("two@example.edu", NOW)
    device = harness.devices.create_device(name="PC", quantity=3)
    _book(harness, first.player_id, device.device_id, at(10))
    _book(harness, second.player_id, device.device_id, at(10))
    _book(harness, first.player_id, device.device_id, at(14))

    rows = harness.bookings.list_bookings_by_player(first.player_id)

    assert [row.start for row in rows] == [at(10), at(14)]


def test_device_with_bookings_cannot_be_deleted(tmp_path) -> None:
    harness = _build_harness(tmp_path)
    player = harness.repository.create_player("p@example.edu", NOW)
    device = harness.devices.create_device(name="PS5", quantity=1)
    spare = harness.devices.create_device(name="Spare", quantity=1)
    _book(harness, player.player_id, device.device_id, at(10))

    with pytest.raises(ConflictError):
        harness.devices.delete_device(device.device_id)
    harness.devices.delete_device(spare.device_id)
    with pytest.raises(NotFoundError):
        harness.devices.get_device(spare.device_id)


def test_concurrent_creates_never_exceed_capacity(tmp_path) -> None:
    harness = _build_harness(tmp_path)
    player = harness.repository.create_player("p@example.edu", NOW)
    device = harness.devices.create_device(name="PC", quantity=2)
    barrier = threading.Barrier(8)
    outcomes: list[str] = []
    outcomes_lock = threading.Lock()

    def _attempt() -> None:
        barrier.wait()
        try:
            _book(harness, player.player_id, device.device_id, at(15))
            result = "booked"
        except ConflictError:
            result = "conflict"
        with outcomes_lock:
            outcomes.append(result)

    threads = [threading.Thread(target=_attempt) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert outcomes.count("booked") == 2
    assert outcomes.count("conflict") == 6
    stored = harness.repository.list_active_bookings_overlapping(at(15), at(16))
    assert len(stored) == 2


def test_exhausted_retries_surface_as_conflict(tmp_path, monkeypatch) -> None:
    harness = _build_harness(tmp_path, store_retry_attempts=2)
    player = harness.repository.create_player("p@example.edu", NOW)
    device = harness.devices.create_device(name="PS5", quantity=1)
    calls: list[int] = []

    def _busy():
        calls.append(1)
        raise TransientStoreError("Booking store is busy: database is locked")

    monkeypatch.setattr(harness.repository, "transaction", _busy)

    with pytest.raises(ConflictError, match="busy") as excinfo:
        _book(harness, player.player_id, device.device_id, at(10))
    assert isinstance(excinfo.value.__cause__, TransientStoreError)
    assert len(calls) == 2


def test_clock_advance_moves_upcoming_to_completed(tmp_path) -> None:
    harness = _build_harness(tmp_path)
    player = harness.repository.create_player("p@example.edu", NOW)
    device = harness.devices.create_device(name="PS5", quantity=1)
    booking = _book(harness, player.player_id, device.device_id, at(10))

    harness.clock.advance(timedelta(hours=5))

    assert harness.bookings.get_booking(booking.booking_id).status is BookingStatus.COMPLETED


def test_concurrent_reschedules_never_exceed_capacity(tmp_path) -> None:
    harness = _build_harness(tmp_path)
    player = harness.repository.create_player("p@example.edu", NOW)
    target = harness.devices.create_device(name="PC", quantity=2)
    other = harness.devices.create_device(name="Xbox", quantity=3)
    movers = [
        _book(harness, player.player_id, target.device_id, at(9)),
        _book(harness, player.player_id, target.device_id, at(10)),
        _book(harness, player.player_id, target.device_id, at(11)),
        _book(harness, player.player_id, other.device_id, at(15)),
        _book(harness, player.player_id, other.device_id, at(15)),
        _book(harness, player.player_id, other.device_id, at(15)),
    ]
    barrier = threading.Barrier(len(movers))
    outcomes: list[str] = []
    outcomes_lock = threading.Lock()

    def _attempt(booking_id: int) -> None:
        barrier.wait()
        try:
            harness.bookings.update_booking(
                booking_id,
                start=at(15),
                duration_hours=1.0,
                device_id=target.device_id,
                is_playing_alone=True,
                fellows=0,
            )
            result = "moved"
        except ConflictError:
            result = "conflict"
        with outcomes_lock:
            outcomes.append(result)

    threads = [
        threading.Thread(target=_attempt, args=(booking.booking_id,)) for booking in movers
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert outcomes.count("moved") == 2
    assert outcomes.count("conflict") == 4
    on_target = [
        booking
        for booking in harness.repository.list_active_bookings_overlapping(at(15), at(16))
        if booking.device_id == target.device_id
    ]
    assert len(on_target) == 2


def test_held_device_lock_times_out_into_conflict(tmp_path) -> None:
    harness = _build_harness(
        tmp_path,
        device_lock_timeout_seconds=0.05,
        store_retry_attempts=2,
    )
    player = harness.repository.create_player("p@example.edu", NOW)
    device = harness.devices.create_device(name="PS5", quantity=1)

    with harness.locks.hold([device.device_id]):
        with pytest.raises(ConflictError, match="busy") as excinfo:
            _book(harness, player.player_id, device.device_id, at(10))

    assert isinstance(excinfo.value.__cause__, TransientStoreError)
    assert "Device" in str(excinfo.value.__cause__)
    assert harness.repository.count_bookings() == 0
    booked = _book(harness, player.player_id, device.device_id, at(10))
    assert booked.device_id == device.device_id
