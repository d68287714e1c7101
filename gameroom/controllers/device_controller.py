"""HTTP controller layer for device administration."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator

from gameroom.controllers.dependencies import get_device_service, require_admin, to_http_exception
from gameroom.domain.errors import BookingError
from gameroom.domain.models import Device, DeviceStatus
from gameroom.services.device_service import DeviceService
from gameroom.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/api/devices", tags=["devices"])


class DeviceRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    description: Optional[str] = None
    quantity: Optional[int] = Field(default=None, ge=0)
    status: DeviceStatus = DeviceStatus.AVAILABLE

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("name must be non-empty")
        return value


class DeviceResponse(BaseModel):
    id: int = Field(gt=0)
    name: str
    description: Optional[str] = None
    quantity: Optional[int] = None
    status: DeviceStatus

    @classmethod
    def from_device(cls, device: Device) -> "DeviceResponse":
        return cls(
            id=device.device_id,
            name=device.name,
            description=device.description,
            quantity=device.quantity,
            status=device.status,
        )


class MessageResponse(BaseModel):
    message: str


@router.post(
    "/adddevice",
    response_model=DeviceResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def add_device(
    payload: DeviceRequest,
    service: DeviceService = Depends(get_device_service),
) -> DeviceResponse:
    try:
        device = service.create_device(
            name=payload.name,
            quantity=payload.quantity,
            description=payload.description,
            status=payload.status,
        )
        return DeviceResponse.from_device(device)
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected device creation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create device",
        ) from exc


@router.get("/list", response_model=list[DeviceResponse])
def list_devices(
    service: DeviceService = Depends(get_device_service),
) -> list[DeviceResponse]:
    return [DeviceResponse.from_device(device) for device in service.list_devices()]


@router.get("/availabledevices", response_model=list[DeviceResponse])
def list_available_devices(
    service: DeviceService = Depends(get_device_service),
) -> list[DeviceResponse]:
    devices = service.list_devices(DeviceStatus.AVAILABLE)
    return [DeviceResponse.from_device(device) for device in devices]


@router.get("/unavailabledevices", response_model=list[DeviceResponse])
def list_unavailable_devices(
    service: DeviceService = Depends(get_device_service),
) -> list[DeviceResponse]:
    devices = service.list_devices(DeviceStatus.UNAVAILABLE)
    return [DeviceResponse.from_device(device) for device in devices]


@router.get("/device/{device_id}", response_model=DeviceResponse)
def get_device(
    device_id: int,
    service: DeviceService = Depends(get_device_service),
) -> DeviceResponse:
    try:
        return DeviceResponse.from_device(service.get_device(device_id))
    except BookingError as exc:
        raise to_http_exception(exc) from exc


@router.put(
    "/device/{device_id}",
    response_model=DeviceResponse,
    dependencies=[Depends(require_admin)],
)
def update_device(
    device_id: int,
    payload: DeviceRequest,
    service: DeviceService = Depends(get_device_service),
) -> DeviceResponse:
    try:
        device = service.update_device(
            device_id,
            name=payload.name,
            quantity=payload.quantity,
            description=payload.description,
            status=payload.status,
        )
        return DeviceResponse.from_device(device)
    except BookingError as exc:
        raise to_http_exception(exc) from exc


@router.delete(
    "/device/{device_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_admin)],
)
def delete_device(
    device_id: int,
    service: DeviceService = Depends(get_device_service),
) -> MessageResponse:
    try:
        service.delete_device(device_id)
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    return MessageResponse(message="Device deleted successfully.")
