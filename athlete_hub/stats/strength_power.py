"""Strength & power calculators (wall-and-chalk jumps, loaded lifts, endurance holds)."""

from __future__ import annotations

import math
from typing import Any, Dict, Mapping

from .common import as_float, attempts_of, mean, round_half_up

TestData = Dict[str, Any]

GRAVITY = 9.81

JUMP_TESTS = ("Countermovement_Jump", "Loaded_Squat_Jump", "Depth_Jump")
REP_TESTS = ("Ballistic_Bench_Press", "Push_Up", "Ballistic_Push_Up", "Pull_Ups")
LOAD_TESTS = ("Deadlift_Velocity", "Barbell_Row")
SET_TESTS = ("Barbell_Hip_Thrust", "Weighted_Pull_up")
TEST_NAMES = JUMP_TESTS + REP_TESTS + LOAD_TESTS + SET_TESTS + ("Plank_Hold",)


def calculate_jump_height(standing_reach: float, jump_reach: float) -> float:
    """Jump height in cm from the two chalk marks."""
    return jump_reach - standing_reach


def estimate_flight_time(jump_height_cm: float) -> float:
    """Flight time in seconds: t = sqrt(8h / g)."""
    height_m = jump_height_cm / 100
    return math.sqrt(8 * height_m / GRAVITY)


def jump_height_from_flight_time(flight_time: float) -> float:
    """Jump height in cm: h = g t^2 / 8."""
    return GRAVITY * flight_time**2 / 8 * 100


def estimate_peak_power(jump_height_cm: float, body_mass_kg: float) -> float:
    """Sayers equation, in watts."""
    return 60.7 * jump_height_cm + 45.3 * body_mass_kg - 2055


def calculate_relative_power(peak_power: float, body_mass_kg: float) -> float | None:
    if body_mass_kg <= 0:
        return None
    return peak_power / body_mass_kg


def _attempt_data(attempt: Mapping[str, Any]) -> Mapping[str, Any]:
    data = attempt.get("data")
    return data if isinstance(data, Mapping) else {}


def _best_index(values: list[float]) -> int | None:
    if not values:
        return None
    return max(range(len(values)), key=values.__getitem__)


def calculate_jump_metrics(test: Mapping[str, Any]) -> TestData:
    """Fill `jumpHeight` on each attempt and mark the best one."""
    attempts = attempts_of(test)
    if not attempts:
        return dict(test)

    updated_attempts = []
    heights: list[float] = []
    for attempt in attempts:
        data = dict(_attempt_data(attempt))
        standing = as_float(data.get("standingReach"))
        reach = as_float(data.get("jumpReach"))
        flight = as_float(data.get("flightTime"))
        if standing is not None and reach is not None:
            data["jumpHeight"] = round_half_up(calculate_jump_height(standing, reach), 1)
        elif flight:
            data["jumpHeight"] = round_half_up(jump_height_from_flight_time(flight), 1)
        heights.append(as_float(data.get("jumpHeight")) or 0.0)
        updated_attempts.append({**attempt, "data": data})

    return {**test, "attempts": updated_attempts, "bestAttempt": _best_index(heights)}


def calculate_rep_metrics(test: Mapping[str, Any]) -> TestData:
    attempts = attempts_of(test)
    if not attempts:
        return dict(test)
    reps = [as_float(_attempt_data(attempt).get("reps")) or 0.0 for attempt in attempts]
    return {**test, "bestAttempt": _best_index(reps)}


def calculate_load_metrics(test: Mapping[str, Any]) -> TestData:
    attempts = attempts_of(test)
    if not attempts:
        return dict(test)
    loads = [as_float(_attempt_data(attempt).get("load")) or 0.0 for attempt in attempts]
    best = _best_index(loads)
    recorded = as_float(test.get("maxLoad")) or 0.0
    return {
        **test,
        "maxLoad": max([recorded, *loads]),
        "maxLoadAttempt": best,
        "bestAttempt": best,
    }


def calculate_set_metrics(test: Mapping[str, Any]) -> TestData:
    sets = attempts_of(test, "sets")
    if not sets:
        return dict(test)
    reps = [as_float(item.get("reps")) or 0.0 for item in sets]
    loads = [as_float(item.get("load")) or 0.0 for item in sets]
    recorded = as_float(test.get("maxLoad")) or 0.0
    return {
        **test,
        "totalReps": int(sum(reps)),
        "maxLoad": max([recorded, *loads]),
    }


def calculate_plank_metrics(test: Mapping[str, Any]) -> TestData:
    attempts = attempts_of(test)
    if not attempts:
        return dict(test)
    durations = [as_float(_attempt_data(attempt).get("duration")) or 0.0 for attempt in attempts]
    return {**test, "bestAttempt": _best_index(durations)}


def _best_attempt_value(data: Mapping[str, Any], test_name: str, field: str) -> float | None:
    attempts = attempts_of(data.get(test_name))
    if not attempts:
        return None
    return max(as_float(_attempt_data(attempt).get(field)) or 0.0 for attempt in attempts)


def _test_field(data: Mapping[str, Any], test_name: str, field: str) -> float | None:
    test = data.get(test_name)
    if not isinstance(test, Mapping):
        return None
    value = as_float(test.get(field))
    return value if value else None


def calculate_explosive_power_score(data: Mapping[str, Any]) -> float:
    """Mean of jump and ballistic sub-scores (70 cm CMJ, 30 bench reps, 40 push-ups = 100)."""
    scores: list[float] = []
    body_weight = as_float(data.get("athleteBodyWeight"))

    cmj = _best_attempt_value(data, "Countermovement_Jump", "jumpHeight")
    if cmj is not None:
        scores.append(min(100.0, cmj / 70 * 100))

    squat_jump = _best_attempt_value(data, "Loaded_Squat_Jump", "jumpHeight")
    if squat_jump is not None and body_weight:
        best_load = _best_attempt_value(data, "Loaded_Squat_Jump", "load") or 0.0
        relative_load = best_load / body_weight
        scores.append(min(100.0, squat_jump / 50 * (1 + relative_load) * 50))

    bench = _best_attempt_value(data, "Ballistic_Bench_Press", "reps")
    if bench is not None:
        scores.append(min(100.0, bench / 30 * 100))

    push_ups = _best_attempt_value(data, "Ballistic_Push_Up", "reps")
    if push_ups is not None:
        scores.append(min(100.0, push_ups / 40 * 100))

    return mean(scores)


def calculate_muscle_mass_score(data: Mapping[str, Any]) -> float:
    """Mean of loads relative to body weight (2.5x deadlift, 3x hip thrust, ...)."""
    body_weight = as_float(data.get("athleteBodyWeight"))
    if not body_weight:
        return 0.0

    targets = (
        ("Deadlift_Velocity", 2.5),
        ("Barbell_Hip_Thrust", 3.0),
        ("Weighted_Pull_up", 0.75),
        ("Barbell_Row", 1.5),
    )
    scores: list[float] = []
    for test_name, multiple in targets:
        max_load = _test_field(data, test_name, "maxLoad")
        if max_load:
            scores.append(min(100.0, max_load / body_weight / multiple * 100))
    return mean(scores)


def calculate_endurance_strength_score(data: Mapping[str, Any]) -> float:
    """Mean of plank (300 s), push-ups (60), pull-ups (30) and hip thrust reps (50)."""
    scores: list[float] = []

    plank = _best_attempt_value(data, "Plank_Hold", "duration")
    if plank is not None:
        scores.append(min(100.0, plank / 300 * 100))

    push_ups = _best_attempt_value(data, "Push_Up", "reps")
    if push_ups is not None:
        scores.append(min(100.0, push_ups / 60 * 100))

    pull_ups = _best_attempt_value(data, "Pull_Ups", "reps")
    if pull_ups is not None:
        scores.append(min(100.0, pull_ups / 30 * 100))

    hip_thrust_reps = _test_field(data, "Barbell_Hip_Thrust", "totalReps")
    if hip_thrust_reps:
        scores.append(min(100.0, hip_thrust_reps / 50 * 100))

    return mean(scores)


def recalculate_strength_scores(data: Mapping[str, Any]) -> TestData:
    updated: TestData = dict(data)
    for name in JUMP_TESTS:
        if isinstance(updated.get(name), Mapping):
            updated[name] = calculate_jump_metrics(updated[name])
    for name in REP_TESTS:
        if isinstance(updated.get(name), Mapping):
            updated[name] = calculate_rep_metrics(updated[name])
    for name in LOAD_TESTS:
        if isinstance(updated.get(name), Mapping):
            updated[name] = calculate_load_metrics(updated[name])
    for name in SET_TESTS:
        if isinstance(updated.get(name), Mapping):
            updated[name] = calculate_set_metrics(updated[name])
    if isinstance(updated.get("Plank_Hold"), Mapping):
        updated["Plank_Hold"] = calculate_plank_metrics(updated["Plank_Hold"])

    updated["explosivePower"] = round_half_up(calculate_explosive_power_score(updated), 1)
    updated["muscleMass"] = round_half_up(calculate_muscle_mass_score(updated), 1)
    updated["enduranceStrength"] = round_half_up(calculate_endurance_strength_score(updated), 1)
    return updated
