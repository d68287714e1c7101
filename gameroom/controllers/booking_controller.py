"""HTTP controller layer for room bookings, availability and calendar views."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from pydantic import BaseModel, Field

from gameroom.controllers.dependencies import (
    get_app_settings,
    get_availability_service,
    get_booking_service,
    get_free_time_service,
    get_reconciliation_service,
    require_admin,
    to_http_exception,
)
from gameroom.domain.constraints import resolve_single_device_id
from gameroom.domain.errors import BookingError, ValidationError
from gameroom.domain.models import Booking, BookingStatus, SegmentClassification
from gameroom.services.availability_service import AvailabilityService
from gameroom.services.booking_service import BookingService
from gameroom.services.calendar_service import FreeTimeService
from gameroom.services.reconciliation_service import StatusReconciliationService
from gameroom.utils.config import Settings
from gameroom.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/api/gameroombookings", tags=["bookings"])

_SEGMENT_COLORS = {
    SegmentClassification.FREE: "lightgreen",
    SegmentClassification.PARTIAL: "khaki",
    SegmentClassification.FULL: "lightcoral",
}


class BookingCreateRequest(BaseModel):
    """Input DTO validated before entering service layer."""

    player_id: int = Field(gt=0)
    booking_date_time: datetime
    duration: float = Field(gt=0.0)
    is_playing_alone: bool = True
    fellows: int = Field(default=0, ge=0)
    device_ids: list[int] = Field(default_factory=list)


class BookingUpdateRequest(BaseModel):
    booking_date_time: datetime
    duration: float = Field(gt=0.0)
    is_playing_alone: bool = True
    fellows: int = Field(default=0, ge=0)
    device_ids: list[int] = Field(default_factory=list)
    status: Optional[BookingStatus] = None
    cancel: bool = False

    @property
    def wants_cancellation(self) -> bool:
        return self.cancel or self.status is BookingStatus.CANCELLED


class BookingResponse(BaseModel):
    id: int = Field(gt=0)
    player_id: int
    device_id: int
    booking_date_time: datetime
    end_date_time: datetime
    duration: float
    is_playing_alone: bool
    fellows: int = Field(ge=0)
    status: BookingStatus
    passcode: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingResponse":
        return cls(
            id=booking.booking_id,
            player_id=booking.player_id,
            device_id=booking.device_id,
            booking_date_time=booking.start,
            end_date_time=booking.end,
            duration=booking.duration_hours,
            is_playing_alone=booking.is_playing_alone,
            fellows=booking.fellows,
            status=booking.status,
            passcode=booking.passcode,
            created_at=booking.created_at,
            updated_at=booking.updated_at,
        )


class AvailabilityWindowResponse(BaseModel):
    id: int
    device_id: int
    booking_date_time: datetime
    duration: float
    status: BookingStatus


class DeviceAvailabilityResponse(BaseModel):
    device_id: int
    device_name: str
    total_quantity: int = Field(ge=0)
    available_quantity: int = Field(ge=0)
    is_available: bool


class CheckAvailabilityResponse(BaseModel):
    device_id: int
    available: bool


class CalendarEventResponse(BaseModel):
    start: datetime
    end: datetime
    classification: SegmentClassification
    display: str = "background"
    color: str


class MessageResponse(BaseModel):
    message: str


class ReconcileResponse(BaseModel):
    updated: int = Field(ge=0)


def _to_responses(bookings: list[Booking]) -> list[BookingResponse]:
    return [BookingResponse.from_booking(booking) for booking in bookings]


@router.post(
    "/bookgameroom",
    response_model=BookingResponse,
    status_code=status.HTTP_200_OK,
)
def book_game_room(
    payload: BookingCreateRequest,
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = service.create_booking(
            player_id=payload.player_id,
            start=payload.booking_date_time,
            duration_hours=payload.duration,
            device_id=resolve_single_device_id(payload.device_ids),
            is_playing_alone=payload.is_playing_alone,
            fellows=payload.fellows,
        )
        return BookingResponse.from_booking(booking)
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected booking creation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create booking",
        ) from exc


@router.put(
    "/booking/{booking_id}",
    response_model=BookingResponse,
    status_code=status.HTTP_200_OK,
)
def update_room_booking(
    booking_id: int,
    payload: BookingUpdateRequest,
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        if payload.wants_cancellation:
            booking = service.cancel_booking(booking_id)
        else:
            booking = service.update_booking(
                booking_id,
                start=payload.booking_date_time,
                duration_hours=payload.duration,
                device_id=resolve_single_device_id(payload.device_ids),
                is_playing_alone=payload.is_playing_alone,
                fellows=payload.fellows,
            )
        return BookingResponse.from_booking(booking)
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected booking update failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update booking",
        ) from exc


@router.get("/upcomingbookings", response_model=list[BookingResponse])
def get_upcoming_bookings(
    service: BookingService = Depends(get_booking_service),
) -> list[BookingResponse]:
    return _to_responses(service.list_bookings(BookingStatus.UPCOMING))


@router.get("/ongoingbookings", response_model=list[BookingResponse])
def get_ongoing_bookings(
    service: BookingService = Depends(get_booking_service),
) -> list[BookingResponse]:
    return _to_responses(service.list_bookings(BookingStatus.ONGOING))


@router.get("/historybookings", response_model=list[BookingResponse])
def get_history_bookings(
    service: BookingService = Depends(get_booking_service),
) -> list[BookingResponse]:
    return _to_responses(service.list_bookings(BookingStatus.COMPLETED))


@router.get(
    "/allbookings",
    response_model=list[BookingResponse],
    dependencies=[Depends(require_admin)],
)
def get_all_bookings(
    service: BookingService = Depends(get_booking_service),
) -> list[BookingResponse]:
    return _to_responses(service.list_bookings())


@router.get("/player/{player_id}", response_model=list[BookingResponse])
def get_bookings_by_player(
    player_id: int,
    service: BookingService = Depends(get_booking_service),
) -> list[BookingResponse]:
    return _to_responses(service.list_bookings_by_player(player_id))


@router.get("/free-time-events", response_model=list[CalendarEventResponse])
def get_free_time_events_for_day(
    day: date = Query(alias="date"),
    service: FreeTimeService = Depends(get_free_time_service),
) -> list[CalendarEventResponse]:
    try:
        segments = service.segments_for_day(day)
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    return [
        CalendarEventResponse(
            start=segment.start,
            end=segment.end,
            classification=segment.classification,
            color=_SEGMENT_COLORS[segment.classification],
        )
        for segment in segments
    ]


@router.get("/free-time-events-range", response_model=list[CalendarEventResponse])
def get_free_time_events_for_range(
    start_date: date,
    end_date: date,
    service: FreeTimeService = Depends(get_free_time_service),
) -> list[CalendarEventResponse]:
    try:
        segments = service.segments_for_range(start_date, end_date)
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    return [
        CalendarEventResponse(
            start=segment.start,
            end=segment.end,
            classification=segment.classification,
            color=_SEGMENT_COLORS[segment.classification],
        )
        for segment in segments
    ]


@router.get("/bookings-for-availability", response_model=list[AvailabilityWindowResponse])
def get_bookings_for_availability(
    service: BookingService = Depends(get_booking_service),
) -> list[AvailabilityWindowResponse]:
    """Active booking windows only, without owner or passcode details."""
    return [
        AvailabilityWindowResponse(
            id=booking.booking_id,
            device_id=booking.device_id,
            booking_date_time=booking.start,
            duration=booking.duration_hours,
            status=booking.status,
        )
        for booking in service.list_bookings()
        if booking.status is not BookingStatus.CANCELLED
    ]


@router.get("/device-availabilities", response_model=list[DeviceAvailabilityResponse])
def get_device_availabilities(
    start_time: datetime,
    duration: float = Query(gt=0.0),
    settings: Settings = Depends(get_app_settings),
    service: AvailabilityService = Depends(get_availability_service),
) -> list[DeviceAvailabilityResponse]:
    if not settings.min_duration_hours <= duration <= settings.max_duration_hours:
        raise to_http_exception(
            ValidationError(
                f"Duration must be between {settings.min_duration_hours:g} "
                f"and {settings.max_duration_hours:g} hours."
            )
        )
    availabilities = service.list_device_availabilities(
        start=start_time,
        duration_hours=duration,
    )
    return [
        DeviceAvailabilityResponse(
            device_id=item.device_id,
            device_name=item.device_name,
            total_quantity=item.total_quantity,
            available_quantity=item.available_quantity,
            is_available=item.is_available,
        )
        for item in availabilities
    ]


@router.get("/check-availability", response_model=CheckAvailabilityResponse)
def check_availability(
    device_id: int,
    start_time: datetime,
    duration: float = Query(gt=0.0),
    exclude_booking_id: Optional[int] = None,
    service: AvailabilityService = Depends(get_availability_service),
) -> CheckAvailabilityResponse:
    try:
        available = service.is_device_available(
            device_id=device_id,
            start=start_time,
            duration_hours=duration,
            exclude_booking_id=exclude_booking_id,
        )
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    return CheckAvailabilityResponse(device_id=device_id, available=available)


@router.post(
    "/reconcile-statuses",
    response_model=ReconcileResponse,
    dependencies=[Depends(require_admin)],
)
def reconcile_statuses(
    service: StatusReconciliationService = Depends(get_reconciliation_service),
) -> ReconcileResponse:
    try:
        return ReconcileResponse(updated=service.reconcile())
    except BookingError as exc:
        raise to_http_exception(exc) from exc


@router.delete("/my/{booking_id}", response_model=MessageResponse)
def delete_own_booking(
    booking_id: int,
    player_id: int = Header(alias="X-Player-Id", gt=0),
    service: BookingService = Depends(get_booking_service),
) -> MessageResponse:
    logger.info("Delete-own requested | booking_id=%s | player_id=%s", booking_id, player_id)
    try:
        service.delete_own_booking(booking_id, player_id)
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    return MessageResponse(message="Booking deleted successfully.")


@router.delete(
    "/{booking_id}",
    response_model=MessageResponse,
    dependencies=[Depends(require_admin)],
)
def delete_booking(
    booking_id: int,
    service: BookingService = Depends(get_booking_service),
) -> MessageResponse:
    try:
        service.delete_booking(booking_id)
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    return MessageResponse(message="Booking deleted successfully.")


@router.get("/{booking_id}", response_model=BookingResponse)
def get_room_booking_by_id(
    booking_id: int,
    service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        return BookingResponse.from_booking(service.get_booking(booking_id))
    except BookingError as exc:
        raise to_http_exception(exc) from exc
