"""Error taxonomy shared by the booking engine layers."""

from __future__ import annotations


class BookingError(Exception):
    """Base class for every engine failure surfaced to callers."""


class ValidationError(BookingError):
    """Malformed input; the caller must correct it before retrying."""


class NotFoundError(BookingError):
    """A referenced device, player or booking does not exist."""


class ConflictError(BookingError):
    """Capacity exhausted, or the booking's state forbids the transition."""


class OwnershipError(BookingError):
    """The caller tried to act on a booking owned by another player."""


class TransientStoreError(BookingError):
    """Lock or transaction contention; safe to retry with backoff."""
