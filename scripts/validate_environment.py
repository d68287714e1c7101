#!/usr/bin/env python3
"""Validate local game room booking environment readiness."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from datetime import datetime, timedelta
from importlib.metadata import version
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from gameroom.repository.data_repository import DataRepository
from gameroom.services.availability_service import AvailabilityService
from gameroom.services.booking_service import BookingService
from gameroom.utils.clock import FixedClock
from gameroom.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="gameroom-env-")

    if sys.version_info >= (3, 10):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.10",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    package_specs = [
        ("fastapi", "fastapi"),
        ("uvicorn", "uvicorn"),
        ("pydantic", "pydantic"),
        ("httpx", "httpx"),
        ("pytest", "pytest"),
    ]
    import_errors: list[str] = []
    for module_name, dist_name in package_specs:
        try:
            importlib.import_module(module_name)
            version(dist_name)
        except Exception as exc:  # pragma: no cover - runtime guard
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    try:
        validation_settings = replace(
            get_settings(),
            database_path=Path(temp_dir) / "gameroom_validation.db",
        )
        repository = DataRepository(validation_settings)

        try:
            repository.initialize_database()
            ok, line = _print_result("Database initialization", True)
        except Exception as exc:
            ok, line = _print_result("Database initialization", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        try:
            seeded = repository.seed_demo_data()
            if seeded <= 0:
                raise RuntimeError("no demo devices were seeded")
            ok, line = _print_result("Demo device seeding", True, f": {seeded} devices")
        except Exception as exc:
            ok, line = _print_result("Demo device seeding", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        try:
            now = datetime.now().replace(hour=9, minute=0, second=0, microsecond=0)
            clock = FixedClock(now - timedelta(days=1))
            player = repository.create_player("validator@example.edu", now)
            device = repository.list_devices()[0]
            booking_service = BookingService(
                repository=repository,
                settings=validation_settings,
                clock=clock,
            )
            booking = booking_service.create_booking(
                player_id=player.player_id,
                start=now,
                duration_hours=1.0,
                device_id=device.device_id,
                is_playing_alone=True,
                fellows=0,
            )
            availabilities = AvailabilityService(
                repository=repository,
                settings=validation_settings,
            ).list_device_availabilities(start=now, duration_hours=1.0)
            reserved = next(
                item for item in availabilities if item.device_id == booking.device_id
            )
            if reserved.available_quantity != device.capacity - 1:
                raise RuntimeError("reservation not reflected in device availability")
            ok, line = _print_result(
                "Booking round trip",
                True,
                f": passcode={booking.passcode} remaining={reserved.available_quantity}",
            )
        except Exception as exc:
            ok, line = _print_result("Booking round trip", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Game Room Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
