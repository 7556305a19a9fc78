from __future__ import annotations

from datetime import date

import pytest

from athlete_hub.stats import StatsValidationError
from athlete_hub.stats import speed_agility, strength_power
from athlete_hub.stats.validators import (
    ensure_valid,
    validate_basic_metrics,
    validate_category,
    validate_injuries,
    validate_injury,
)

BASIC = {"height": 180, "weight": 80, "age": 25, "bodyFat": 12}


def test_basic_metrics_accept_valid_values():
    assert validate_basic_metrics(BASIC) == {}


def test_basic_metrics_report_every_problem():
    errors = validate_basic_metrics({"height": 180, "age": 5, "bodyFat": "lots"})
    assert set(errors) == {"age", "bodyFat"}
    assert "between 10 and 100" in errors["age"][0]
    assert errors["bodyFat"] == ["bodyFat must be a number."]


def test_basic_metrics_are_individually_optional():
    assert validate_basic_metrics({"height": 180, "weight": 80, "age": 25}) == {}
    assert validate_basic_metrics({"weight": 80, "bodyFat": ""}) == {}


def test_basic_metrics_need_at_least_one_value():
    assert validate_basic_metrics({}) == {"general": ["At least one metric must be provided."]}
    assert "general" in validate_basic_metrics({"height": None, "weight": " "})


def test_speed_attempt_out_of_range():
    errors = validate_category(
        "speed", {"Ten_Meter_Sprint": {"attempts": [{"sprintTime": 10}]}}, speed_agility.TEST_NAMES
    )
    assert list(errors) == ["speed.Ten_Meter_Sprint.attempts[0].sprintTime"]


def test_attempt_count_is_limited():
    attempts = [{"sprintTime": 1.9} for _ in range(11)]
    errors = validate_category("speed", {"Ten_Meter_Sprint": {"attempts": attempts}}, speed_agility.TEST_NAMES)
    assert "speed.Ten_Meter_Sprint.attempts" in errors


def test_rsa_sprint_times_are_checked_individually():
    errors = validate_category(
        "speed", {"Repeated_Sprint_Ability": {"sprintTimes": [4.0, 9.5]}}, speed_agility.TEST_NAMES
    )
    assert list(errors) == ["speed.Repeated_Sprint_Ability.sprintTimes[1]"]


def test_jump_reach_must_exceed_standing_reach():
    errors = validate_category(
        "strength",
        {"Countermovement_Jump": {"attempts": [{"data": {"standingReach": 230, "jumpReach": 220}}]}},
        strength_power.TEST_NAMES,
    )
    assert "strength.Countermovement_Jump.attempts[0].data.jumpReach" in errors


def test_whole_numbers_required_for_reps():
    errors = validate_category(
        "strength", {"Push_Up": {"attempts": [{"data": {"reps": 12.5}}]}}, strength_power.TEST_NAMES
    )
    assert errors["strength.Push_Up.attempts[0].data.reps"] == ["reps must be a whole number."]


def test_recovered_injury_needs_recovery_date():
    errors = validate_injury(
        {"type": "sprain", "bodyPart": "ankle", "severity": "mild", "occurredAt": "2024-01-01", "status": "recovered"},
        today=date(2024, 6, 1),
    )
    assert errors == {"recoveredAt": ["Recovery date is required for recovered injuries."]}


def test_injury_dates_cannot_be_in_the_future():
    errors = validate_injury(
        {"type": "tear", "bodyPart": "knee", "severity": "severe", "occurredAt": "2024-07-01", "status": "active"},
        today=date(2024, 6, 1),
    )
    assert errors["occurredAt"] == ["Occurred date cannot be in the future."]


def test_injury_errors_are_prefixed_by_index():
    errors = validate_injuries([{"type": "sprain", "bodyPart": "ankle", "severity": "mild", "occurredAt": "2020-01-01"}])
    assert "injury_0_status" in errors


def test_ensure_valid_raises_with_fields():
    ensure_valid({})
    with pytest.raises(StatsValidationError) as excinfo:
        ensure_valid({"weight": ["weight is required."]})
    assert excinfo.value.fields == {"weight": ["weight is required."]}
