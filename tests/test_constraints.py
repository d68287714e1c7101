"""Tests for booking request validation rules.

Covers duration quantization, operating-hour start checks, occupant
consistency, single-device selection and the rule set itself.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime

import pytest

from gameroom.domain.constraints import (
    BookingRules,
    build_draft,
    resolve_single_device_id,
    validate_booking_rules,
    validate_duration,
    validate_occupants,
    validate_start,
)
from gameroom.domain.errors import ValidationError


NOW = datetime(2030, 3, 4, 7, 0)


def rules(**overrides) -> BookingRules:
    """Return the default operating rules, optionally overriding fields."""
    defaults = {
        "opening_hour": 8,
        "closing_hour": 20,
        "min_duration_hours": 0.5,
        "max_duration_hours": 2.0,
        "duration_step_hours": 0.5,
        "duration_tolerance": 1e-9,
    }
    defaults.update(overrides)
    return BookingRules(**defaults)


# --- duration ---

@pytest.mark.parametrize("duration", [0.5, 1.0, 1.5, 2.0])
def test_half_hour_multiples_are_accepted(duration: float) -> None:
    validate_duration(duration, rules())


@pytest.mark.parametrize("duration", [0.4, 0.7, 1.3])
def test_off_grid_durations_are_rejected(duration: float) -> None:
    with pytest.raises(ValidationError):
        validate_duration(duration, rules())


def test_duration_above_maximum_is_rejected() -> None:
    with pytest.raises(ValidationError, match="2 hours or less"):
        validate_duration(2.5, rules())


@pytest.mark.parametrize("duration", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_durations_are_rejected(duration: float) -> None:
    with pytest.raises(ValidationError, match="finite"):
        validate_duration(duration, rules())


# --- start ---

def test_start_at_closing_hour_is_rejected() -> None:
    with pytest.raises(ValidationError):
        validate_start(datetime(2030, 3, 4, 20, 0), NOW, rules())


def test_start_before_opening_is_rejected() -> None:
    with pytest.raises(ValidationError):
        validate_start(datetime(2030, 3, 4, 7, 30), datetime(2030, 3, 4, 6, 0), rules())


def test_start_in_last_hour_is_accepted_with_long_duration() -> None:
    draft = build_draft(
        player_id=1,
        device_id=1,
        start=datetime(2030, 3, 4, 19, 0),
        duration_hours=2.0,
        is_playing_alone=True,
        fellows=0,
        now=NOW,
        rules=rules(),
    )

    assert draft.end == datetime(2030, 3, 4, 21, 0)


def test_start_equal_to_now_is_rejected() -> None:
    with pytest.raises(ValidationError, match="future"):
        validate_start(datetime(2030, 3, 4, 9, 0), datetime(2030, 3, 4, 9, 0), rules())


def test_missing_start_is_rejected() -> None:
    with pytest.raises(ValidationError, match="required"):
        validate_start(None, NOW, rules())


# --- occupants ---

def test_alone_with_fellows_is_rejected() -> None:
    with pytest.raises(ValidationError):
        validate_occupants(True, 2)


def test_group_without_fellows_is_rejected() -> None:
    with pytest.raises(ValidationError):
        validate_occupants(False, 0)


def test_negative_fellows_are_rejected() -> None:
    with pytest.raises(ValidationError):
        validate_occupants(False, -1)


def test_consistent_occupants_pass() -> None:
    validate_occupants(True, 0)
    validate_occupants(False, 3)


# --- device selection ---

def test_single_device_is_resolved() -> None:
    assert resolve_single_device_id([4]) == 4
    assert resolve_single_device_id([4, 4]) == 4


@pytest.mark.parametrize("device_ids", [[], [1, 2], [0]])
def test_invalid_device_selection_is_rejected(device_ids: list[int]) -> None:
    with pytest.raises(ValidationError):
        resolve_single_device_id(device_ids)


# --- rule set ---

def test_default_rules_are_valid() -> None:
    validate_booking_rules(rules())


def test_inverted_operating_hours_raise() -> None:
    with pytest.raises(ValueError):
        validate_booking_rules(rules(opening_hour=20, closing_hour=8))


def test_max_below_min_duration_raises() -> None:
    with pytest.raises(ValueError):
        validate_booking_rules(replace(rules(), max_duration_hours=0.25))


def test_non_positive_step_raises() -> None:
    with pytest.raises(ValueError):
        validate_booking_rules(rules(duration_step_hours=0.0))
