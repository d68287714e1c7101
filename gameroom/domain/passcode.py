"""Access passcodes printed on booking confirmations."""

from __future__ import annotations

import secrets


def generate_passcode(length: int = 6) -> str:
    """Random numeric code without a leading zero.

    Codes are scoped to one booking's confirmation, so collisions between
    unrelated bookings are tolerated and never checked.
    """
    if length <= 0:
        raise ValueError("passcode length must be > 0")
    lower = 10 ** (length - 1)
    upper = 10**length
    return str(lower + secrets.randbelow(upper - lower))
