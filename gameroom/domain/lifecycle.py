"""Booking lifecycle: derived status and guarded transitions."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from gameroom.domain.errors import ConflictError
from gameroom.domain.models import Booking, BookingStatus


def derive_status(booking: Booking, now: datetime) -> BookingStatus:
    if booking.status is BookingStatus.CANCELLED:
        return BookingStatus.CANCELLED
    if now < booking.start:
        return BookingStatus.UPCOMING
    if now < booking.end:
        return BookingStatus.ONGOING
    return BookingStatus.COMPLETED


def with_derived_status(booking: Booking, now: datetime) -> Booking:
    status = derive_status(booking, now)
    if status is booking.status:
        return booking
    return replace(booking, status=status)


def ensure_updatable(booking: Booking) -> None:
    if booking.status is BookingStatus.CANCELLED:
        raise ConflictError("Booking is already cancelled and cannot be updated.")


def ensure_cancellable(booking: Booking, now: datetime) -> None:
    # Started bookings, ongoing ones included, are not cancellable.
    ensure_updatable(booking)
    if booking.start < now:
        raise ConflictError("Cannot cancel a booking in the past.")
