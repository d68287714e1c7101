"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from typing import Any

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from gameroom.domain.errors import (
    BookingError,
    ConflictError,
    NotFoundError,
    OwnershipError,
    TransientStoreError,
    ValidationError,
)
from gameroom.services.auth_service import (
    AdminTokenNotConfiguredError,
    AuthService,
    InvalidAdminTokenError,
)
from gameroom.services.availability_service import AvailabilityService
from gameroom.services.booking_service import BookingService
from gameroom.services.calendar_service import FreeTimeService
from gameroom.services.device_service import DeviceService
from gameroom.services.reconciliation_service import StatusReconciliationService
from gameroom.utils.config import Settings


bearer_scheme = HTTPBearer(auto_error=False)

_STATUS_BY_ERROR: list[tuple[type[BookingError], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (OwnershipError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (TransientStoreError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def to_http_exception(exc: BookingError) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=str(exc),
    )


def _service_from_state(request: Request, attribute: str, label: str) -> Any:
    service = getattr(request.app.state, attribute, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} service is not initialized",
        )
    return service


def get_app_settings(request: Request) -> Settings:
    return _service_from_state(request, "settings", "Settings")


def get_booking_service(request: Request) -> BookingService:
    return _service_from_state(request, "booking_service", "Booking")


def get_availability_service(request: Request) -> AvailabilityService:
    return _service_from_state(request, "availability_service", "Availability")


def get_free_time_service(request: Request) -> FreeTimeService:
    return _service_from_state(request, "free_time_service", "Free-time")


def get_device_service(request: Request) -> DeviceService:
    return _service_from_state(request, "device_service", "Device")


def get_reconciliation_service(request: Request) -> StatusReconciliationService:
    return _service_from_state(request, "reconciliation_service", "Reconciliation")


def get_auth_service(request: Request) -> AuthService:
    return _service_from_state(request, "auth_service", "Auth")


async def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> None:
    if not auth_service.auth_enabled:
        return
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header with Bearer token is required",
        )
    try:
        auth_service.validate_bearer_token(credentials.credentials)
    except (AdminTokenNotConfiguredError, InvalidAdminTokenError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
