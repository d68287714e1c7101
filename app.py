"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires all services, registers routers, and runs startup initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from gameroom.controllers.auth_controller import router as auth_router
from gameroom.controllers.booking_controller import router as booking_router
from gameroom.controllers.device_controller import router as device_router
from gameroom.repository.data_repository import DataRepository
from gameroom.services.auth_service import AuthService
from gameroom.services.availability_service import AvailabilityService
from gameroom.services.booking_service import BookingService
from gameroom.services.calendar_service import FreeTimeService
from gameroom.services.device_service import DeviceService
from gameroom.services.locks import DeviceLockRegistry
from gameroom.services.reconciliation_service import (
    ReconciliationWorker,
    StatusReconciliationService,
)
from gameroom.utils.clock import Clock, SystemClock
from gameroom.utils.config import Settings, get_settings
from gameroom.utils.logger import configure_logging, get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None, clock: Optional[Clock] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Every service shares one repository, one clock and one device lock
    registry so that reservations on the same device serialize across routes.
    """
    settings = settings or get_settings()
    clock = clock or SystemClock()
    configure_logging(settings.log_level)

    repository = DataRepository(settings)
    locks = DeviceLockRegistry(settings.device_lock_timeout_seconds)

    booking_service = BookingService(
        repository=repository,
        settings=settings,
        clock=clock,
        locks=locks,
    )
    availability_service = AvailabilityService(repository=repository, settings=settings)
    free_time_service = FreeTimeService(repository=repository, settings=settings)
    device_service = DeviceService(
        repository=repository,
        settings=settings,
        clock=clock,
        locks=locks,
    )
    reconciliation_service = StatusReconciliationService(
        repository=repository,
        settings=settings,
        clock=clock,
    )
    reconciliation_worker = ReconciliationWorker(
        reconciliation_service,
        settings.status_reconcile_interval_seconds,
    )
    auth_service = AuthService(settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app)
        yield
        _shutdown(app)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.include_router(auth_router)
    app.include_router(booking_router)
    app.include_router(device_router)

    app.state.settings = settings
    app.state.clock = clock
    app.state.repository = repository
    app.state.booking_service = booking_service
    app.state.availability_service = availability_service
    app.state.free_time_service = free_time_service
    app.state.device_service = device_service
    app.state.reconciliation_service = reconciliation_service
    app.state.reconciliation_worker = reconciliation_worker
    app.state.auth_service = auth_service

    return app


def _startup(app: FastAPI) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    Schema must exist before seeding, and statuses are reconciled once
    before the periodic worker takes over.
    """
    settings: Settings = app.state.settings
    repository: DataRepository = app.state.repository

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    if settings.seed_demo_data:
        logger.info("Startup: seeding demo devices (skipped if Devices table not empty)")
        repository.seed_demo_data(app.state.clock.now())

    logger.info(
        "Startup: reconciling stored booking statuses | bookings=%s",
        repository.count_bookings(),
    )
    app.state.reconciliation_service.reconcile()

    app.state.reconciliation_worker.start()
    logger.info("Startup complete, system ready")


def _shutdown(app: FastAPI) -> None:
    logger.info("Shutdown: stopping reconciliation worker")
    app.state.reconciliation_worker.stop()


# Module-level app object for uvicorn
app = create_app()
