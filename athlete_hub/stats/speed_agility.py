"""Speed & agility calculators.

Every `calculate_*_metrics` function takes the raw test mapping and returns a new
dict with the computed fields added. Tests without attempts come back unchanged.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Mapping

from .common import as_float, attempts_of, field_values, mean, round_half_up
from .ranges import SPEED_RANGES

TestData = Dict[str, Any]

TEST_NAMES = (
    "Ten_Meter_Sprint",
    "Fourty_Meter_Dash",
    "Repeated_Sprint_Ability",
    "Five_0_Five_Agility_Test",
    "T_Test",
    "Illinois_Agility_Test",
    "Visual_Reaction_Speed_Drill",
    "Long_Jump",
    "Reactive_Agility_T_Test",
    "Standing_Long_Jump",
)


def _best_and_mean_time(test: Mapping[str, Any], field: str) -> TestData:
    attempts = attempts_of(test)
    if not attempts:
        return dict(test)
    times = field_values(attempts, field)
    return {
        **test,
        "bestTime": min(times) if times else None,
        "meanTime": mean(times) if times else None,
    }


def _best_and_mean_distance(test: Mapping[str, Any]) -> TestData:
    attempts = attempts_of(test)
    if not attempts:
        return dict(test)
    distances = field_values(attempts, "distance")
    return {
        **test,
        "bestDistance": max(distances) if distances else None,
        "meanDistance": mean(distances) if distances else None,
    }


def calculate_ten_meter_sprint_metrics(test: Mapping[str, Any]) -> TestData:
    return _best_and_mean_time(test, "sprintTime")


def calculate_forty_meter_dash_metrics(test: Mapping[str, Any]) -> TestData:
    return _best_and_mean_time(test, "totalTime_0_40m")


def calculate_rsa_metrics(test: Mapping[str, Any]) -> TestData:
    """Repeated sprint ability: best/worst/mean/total plus fatigue index and decrement.

    fatigueIndex = (worst - best) / best * 100
    percentDecrement = 100 - total / (best * sprints) * 100
    """
    raw_times = test.get("sprintTimes") if isinstance(test, Mapping) else None
    if not isinstance(raw_times, (list, tuple)) or not raw_times:
        return dict(test)

    times = [number for number in (as_float(value) for value in raw_times) if number and number > 0]
    if not times:
        return dict(test)

    best = min(times)
    worst = max(times)
    total = sum(times)
    fatigue_index = (worst - best) / best * 100
    percent_decrement = 100 - (total / (best * len(times))) * 100

    return {
        **test,
        "bestTime": round_half_up(best, 2),
        "worstTime": round_half_up(worst, 2),
        "meanTime": round_half_up(mean(times), 2),
        "totalTime": round_half_up(total, 2),
        "fatigueIndex": round_half_up(fatigue_index, 1),
        "percentDecrement": round_half_up(percent_decrement, 1),
    }


def calculate_t_test_metrics(test: Mapping[str, Any]) -> TestData:
    return _best_and_mean_time(test, "completionTime")


def calculate_illinois_agility_metrics(test: Mapping[str, Any]) -> TestData:
    return _best_and_mean_time(test, "completionTime")


def calculate_five05_agility_metrics(test: Mapping[str, Any]) -> TestData:
    attempts = attempts_of(test)
    if not attempts:
        return dict(test)

    left = field_values(attempts, "leftTurnTime")
    right = field_values(attempts, "rightTurnTime")
    best_left = min(left) if left else None
    best_right = min(right) if right else None

    asymmetry = None
    if best_left and best_right:
        asymmetry = round_half_up(abs(best_left - best_right), 2)

    return {
        **test,
        "bestLeftTime": best_left,
        "bestRightTime": best_right,
        "meanLeftTime": mean(left) if left else None,
        "meanRightTime": mean(right) if right else None,
        "asymmetryIndex": asymmetry,
    }


def calculate_visual_reaction_metrics(test: Mapping[str, Any]) -> TestData:
    attempts = attempts_of(test)
    if not attempts:
        return dict(test)
    times = field_values(attempts, "reactionTime")
    return {
        **test,
        "bestReactionTime": min(times) if times else None,
        "meanReactionTime": mean(times) if times else None,
    }


def calculate_standing_long_jump_metrics(test: Mapping[str, Any]) -> TestData:
    return _best_and_mean_distance(test)


def calculate_long_jump_metrics(test: Mapping[str, Any]) -> TestData:
    return _best_and_mean_distance(test)


def calculate_reactive_agility_metrics(test: Mapping[str, Any]) -> TestData:
    attempts = attempts_of(test)
    if not attempts:
        return dict(test)
    result = _best_and_mean_time(test, "completionTime")
    accuracies = field_values(attempts, "correctResponseRate")
    result["averageAccuracy"] = mean(accuracies) if accuracies else None
    return result


def normalize_time_to_score(time: float, min_time: float, max_time: float) -> float:
    """Map a time onto 0-100 where faster is better (100 at/below `min_time`)."""
    if time <= 0:
        return 0.0
    if time <= min_time:
        return 100.0
    if time >= max_time:
        return 0.0
    score = 100 - (time - min_time) / (max_time - min_time) * 100
    return max(0.0, min(100.0, round_half_up(score, 1)))


def normalize_distance_to_score(distance: float, min_distance: float, max_distance: float) -> float:
    """Map a distance onto 0-100 where further is better."""
    if distance <= 0:
        return 0.0
    if distance >= max_distance:
        return 100.0
    if distance <= min_distance:
        return 0.0
    score = (distance - min_distance) / (max_distance - min_distance) * 100
    return max(0.0, min(100.0, round_half_up(score, 1)))


def normalize_reaction_time_to_score(reaction_time_ms: float) -> float:
    bounds = SPEED_RANGES["reactionTime"]
    return normalize_time_to_score(reaction_time_ms, bounds.minimum, bounds.maximum)


def _test_value(data: Mapping[str, Any], test_name: str, field: str) -> float | None:
    test = data.get(test_name)
    if not isinstance(test, Mapping):
        return None
    value = as_float(test.get(field))
    return value if value else None


def _time_score(value: float, range_name: str) -> float:
    bounds = SPEED_RANGES[range_name]
    return normalize_time_to_score(value, bounds.minimum, bounds.maximum)


def calculate_sprint_speed_score(data: Mapping[str, Any]) -> float:
    """Weighted blend of 10 m, 40 m (x1.2) and RSA (x0.8) best times."""
    scores: list[float] = []

    ten = _test_value(data, "Ten_Meter_Sprint", "bestTime")
    if ten:
        scores.append(_time_score(ten, "tenMeterSprint"))

    forty = _test_value(data, "Fourty_Meter_Dash", "bestTime")
    if forty:
        scores.append(_time_score(forty, "fortyMeterDash") * 1.2)

    rsa = _test_value(data, "Repeated_Sprint_Ability", "bestTime")
    if rsa:
        scores.append(_time_score(rsa, "repeatedSprintSingle") * 0.8)

    if not scores:
        return 0.0

    total_weight = {1: 1.0, 2: 2.2}.get(len(scores), 3.0)
    return round_half_up(sum(scores) / total_weight, 1)


def calculate_acceleration_score(data: Mapping[str, Any]) -> float:
    ten = _test_value(data, "Ten_Meter_Sprint", "bestTime")
    if not ten:
        return 0.0
    return _time_score(ten, "tenMeterSprint")


def calculate_agility_score(data: Mapping[str, Any]) -> float:
    scores: list[float] = []

    t_test = _test_value(data, "T_Test", "bestTime")
    if t_test:
        scores.append(_time_score(t_test, "tTest"))

    illinois = _test_value(data, "Illinois_Agility_Test", "bestTime")
    if illinois:
        scores.append(_time_score(illinois, "illinoisTest"))

    left = _test_value(data, "Five_0_Five_Agility_Test", "bestLeftTime")
    right = _test_value(data, "Five_0_Five_Agility_Test", "bestRightTime")
    if left and right:
        scores.append(_time_score((left + right) / 2, "five05Test"))

    if not scores:
        return 0.0
    return round_half_up(mean(scores), 1)


def calculate_reaction_time_score(data: Mapping[str, Any]) -> float:
    best = _test_value(data, "Visual_Reaction_Speed_Drill", "bestReactionTime")
    if not best:
        return 0.0
    return normalize_reaction_time_to_score(best)


def calculate_balance_score(data: Mapping[str, Any]) -> float:
    # No balance test is recorded yet.
    return 0.0


def calculate_coordination_score(data: Mapping[str, Any]) -> float:
    """Mean of reactive-agility accuracy and 505 left/right symmetry."""
    scores: list[float] = []

    accuracy = _test_value(data, "Reactive_Agility_T_Test", "averageAccuracy")
    if accuracy:
        scores.append(accuracy)

    five05 = data.get("Five_0_Five_Agility_Test")
    if isinstance(five05, Mapping):
        asymmetry = as_float(five05.get("asymmetryIndex"))
        if asymmetry is not None:
            scores.append(max(0.0, 100 - asymmetry * 100))

    if not scores:
        return 0.0
    return round_half_up(mean(scores), 1)


_CALCULATORS: Mapping[str, Callable[[Mapping[str, Any]], TestData]] = {
    "Ten_Meter_Sprint": calculate_ten_meter_sprint_metrics,
    "Fourty_Meter_Dash": calculate_forty_meter_dash_metrics,
    "Repeated_Sprint_Ability": calculate_rsa_metrics,
    "Five_0_Five_Agility_Test": calculate_five05_agility_metrics,
    "T_Test": calculate_t_test_metrics,
    "Illinois_Agility_Test": calculate_illinois_agility_metrics,
    "Visual_Reaction_Speed_Drill": calculate_visual_reaction_metrics,
    "Long_Jump": calculate_long_jump_metrics,
    "Reactive_Agility_T_Test": calculate_reactive_agility_metrics,
    "Standing_Long_Jump": calculate_standing_long_jump_metrics,
}


def recalculate_speed_scores(data: Mapping[str, Any]) -> TestData:
    """Run every per-test calculator, then refresh the category scores."""
    updated: TestData = dict(data)
    for name, calculator in _CALCULATORS.items():
        test = updated.get(name)
        if isinstance(test, Mapping):
            updated[name] = calculator(test)

    updated["sprintSpeed"] = calculate_sprint_speed_score(updated)
    updated["acceleration"] = {"score": calculate_acceleration_score(updated)}
    updated["agility"] = {"score": calculate_agility_score(updated)}
    updated["reactionTime"] = {"score": calculate_reaction_time_score(updated)}
    updated["balance"] = {"score": calculate_balance_score(updated)}
    updated["coordination"] = {"score": calculate_coordination_score(updated)}
    return updated
