"""Environment-driven runtime settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return float(value)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "t", "yes")


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    database_path: Path
    log_level: str

    opening_hour: int
    closing_hour: int
    min_duration_hours: float
    max_duration_hours: float
    duration_step_hours: float
    duration_tolerance: float
    passcode_length: int
    max_calendar_range_days: int

    device_lock_timeout_seconds: float
    store_busy_timeout_seconds: float
    store_retry_attempts: int
    store_retry_backoff_seconds: float
    status_reconcile_interval_seconds: float

    admin_token: str | None
    seed_demo_data: bool


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process; tests derive variants via replace()."""
    admin_token = os.getenv("GAMEROOM_ADMIN_TOKEN") or None
    return Settings(
        app_name=_env_str("GAMEROOM_APP_NAME", "Game Room Booking Engine"),
        app_version=_env_str("GAMEROOM_APP_VERSION", "1.0.0"),
        database_path=Path(_env_str("GAMEROOM_DATABASE_PATH", "data/gameroom.db")),
        log_level=_env_str("GAMEROOM_LOG_LEVEL", "INFO"),
        opening_hour=_env_int("GAMEROOM_OPENING_HOUR", 8),
        closing_hour=_env_int("GAMEROOM_CLOSING_HOUR", 20),
        min_duration_hours=_env_float("GAMEROOM_MIN_DURATION_HOURS", 0.5),
        max_duration_hours=_env_float("GAMEROOM_MAX_DURATION_HOURS", 2.0),
        duration_step_hours=_env_float("GAMEROOM_DURATION_STEP_HOURS", 0.5),
        duration_tolerance=_env_float("GAMEROOM_DURATION_TOLERANCE", 1e-9),
        passcode_length=_env_int("GAMEROOM_PASSCODE_LENGTH", 6),
        max_calendar_range_days=_env_int("GAMEROOM_MAX_CALENDAR_RANGE_DAYS", 30),
        device_lock_timeout_seconds=_env_float("GAMEROOM_DEVICE_LOCK_TIMEOUT_SECONDS", 5.0),
        store_busy_timeout_seconds=_env_float("GAMEROOM_STORE_BUSY_TIMEOUT_SECONDS", 5.0),
        store_retry_attempts=_env_int("GAMEROOM_STORE_RETRY_ATTEMPTS", 3),
        store_retry_backoff_seconds=_env_float("GAMEROOM_STORE_RETRY_BACKOFF_SECONDS", 0.05),
        status_reconcile_interval_seconds=_env_float(
            "GAMEROOM_STATUS_RECONCILE_INTERVAL_SECONDS", 300.0
        ),
        admin_token=admin_token,
        seed_demo_data=_env_bool("GAMEROOM_SEED_DEMO_DATA", True),
    )
