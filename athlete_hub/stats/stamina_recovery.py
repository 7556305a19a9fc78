"""Stamina, flexibility and heart-rate calculators."""

from __future__ import annotations

from typing import Any, Dict, Mapping

from .common import as_float, attempts_of, clamp, field_values, mean, round_half_up
from .ranges import RESTING_HR_THRESHOLDS, VO2_MAX_THRESHOLDS

TestData = Dict[str, Any]

TEST_NAMES = (
    "Beep_Test",
    "Cooper_Test",
    "Sit_and_Reach_Test",
    "Active_Straight_Leg_Raise",
    "Shoulder_External_Internal_Rotation",
    "Knee_to_Wall_Test",
    "Resting_Heart_Rate",
    "Post_Exercise_Heart_Rate_Recovery",
    "Peak_Heart_Rate",
)

SHUTTLE_LENGTH_M = 20
DEFAULT_MAX_HR = 190
ZONE_BOUNDS = (0.5, 0.6, 0.7, 0.8, 0.9, 1.0)


def total_shuttles(level: int, shuttle: int) -> int:
    """Cumulative shuttles: 7 in level 1, 8 in level 2, then one more per level."""
    total = 0
    for completed in range(1, int(level)):
        if completed == 1:
            total += 7
        elif completed == 2:
            total += 8
        else:
            total += 8 + (completed - 2)
    return total + int(shuttle)


def calculate_beep_test_metrics(test: Mapping[str, Any]) -> TestData:
    attempts = attempts_of(test)
    if not attempts:
        return dict(test)

    best_index = 0
    best_score = 0.0
    for index, attempt in enumerate(attempts):
        level = as_float(attempt.get("finalLevel")) or 0.0
        shuttle = as_float(attempt.get("finalShuttle")) or 0.0
        score = level * 100 + shuttle
        if score > best_score:
            best_score = score
            best_index = index

    best = attempts[best_index]
    level = int(as_float(best.get("finalLevel")) or 0)
    shuttle = int(as_float(best.get("finalShuttle")) or 0)
    shuttles = total_shuttles(level, shuttle)
    vo2_max = min(85.0, level * 2.3 + 28)

    return {
        **test,
        "bestAttempt": best_index,
        "totalShuttles": shuttles,
        "calculatedVO2Max": round_half_up(vo2_max, 1),
        "estimatedDistance": shuttles * SHUTTLE_LENGTH_M,
    }


def cooper_vo2_max(distance_m: float) -> float:
    """VO2 max from the 12-minute run distance, clamped to 20-85 ml/kg/min."""
    return clamp((distance_m - 504.9) / 44.73, 20.0, 85.0)


def calculate_cooper_test_metrics(test: Mapping[str, Any]) -> TestData:
    attempts = attempts_of(test)
    if not attempts:
        return dict(test)

    distances = [as_float(attempt.get("distanceCovered")) or 0.0 for attempt in attempts]
    best_index = 0
    best_distance = 0.0
    for index, distance in enumerate(distances):
        if distance > best_distance:
            best_distance = distance
            best_index = index

    return {
        **test,
        "bestAttempt": best_index,
        "calculatedVO2Max": round_half_up(cooper_vo2_max(best_distance), 1),
        "averageDistance": round_half_up(mean(distances)),
    }


def _sit_and_reach_score(reach: float) -> float:
    if reach >= 15:
        return 100.0
    if reach >= 10:
        return 80 + (reach - 10) * 4
    if reach >= 5:
        return 70 + (reach - 5) * 2
    if reach >= 0:
        return 60 + reach * 2
    return max(0.0, 40 + (reach + 5) * 4)


def calculate_sit_and_reach_metrics(test: Mapping[str, Any]) -> TestData:
    attempts = attempts_of(test)
    if not attempts:
        return dict(test)

    reaches = field_values(attempts, "reachDistance", positive=False)
    if not reaches:
        return dict(test)

    best = max(reaches)
    return {
        **test,
        "bestReach": round_half_up(best, 1),
        "averageReach": round_half_up(mean(reaches), 1),
        "flexibilityScore": round_half_up(_sit_and_reach_score(best)),
    }


def _leg_raise_score(angle: float) -> float:
    if angle >= 90:
        return 100.0
    if angle >= 70:
        return 80 + (angle - 70)
    if angle >= 50:
        return 60 + (angle - 50)
    return max(0.0, angle * 1.2)


def calculate_active_leg_raise_metrics(test: Mapping[str, Any]) -> TestData:
    attempts = attempts_of(test)
    if not attempts:
        return dict(test)

    left = field_values(attempts, "leftLegAngle", positive=False)
    right = field_values(attempts, "rightLegAngle", positive=False)
    best_left = max(left) if left else None
    best_right = max(right) if right else None

    asymmetry = None
    score = 0.0
    if best_left is not None and best_right is not None:
        asymmetry = abs(best_left - best_right)
        score = _leg_raise_score((best_left + best_right) / 2)

    return {
        **test,
        "bestLeftAngle": round_half_up(best_left) if best_left else None,
        "bestRightAngle": round_half_up(best_right) if best_right else None,
        "asymmetryScore": round_half_up(asymmetry) if asymmetry else None,
        "flexibilityScore": round_half_up(score) if score > 0 else None,
    }


def _shoulder_score(grip_width: float, shoulder_width: float | None) -> float:
    if shoulder_width:
        ratio = grip_width / shoulder_width
        if ratio <= 1.5:
            return 100.0
        if ratio <= 2.0:
            return 80 - (ratio - 1.5) * 40
        if ratio <= 2.5:
            return 60 - (ratio - 2.0) * 40
        return max(0.0, 60 - (ratio - 2.5) * 40)

    # Absolute scale assumes an average shoulder width of about 40 cm.
    if grip_width <= 60:
        return 100.0
    if grip_width <= 80:
        return 80 + (80 - grip_width)
    if grip_width <= 100:
        return 60 + (100 - grip_width)
    return max(0.0, 60 - (grip_width - 100) * 0.6)


def calculate_shoulder_rotation_metrics(test: Mapping[str, Any]) -> TestData:
    attempts = attempts_of(test)
    if not attempts:
        return dict(test)

    widths = field_values(attempts, "gripWidth")
    if not widths:
        return dict(test)

    best = min(widths)
    anthropometric = test.get("anthropometricData")
    shoulder_width = None
    if isinstance(anthropometric, Mapping):
        shoulder_width = as_float(anthropometric.get("shoulderWidth"))

    return {
        **test,
        "bestGripWidth": round_half_up(best, 1),
        "shoulderMobilityScore": round_half_up(_shoulder_score(best, shoulder_width)),
    }


def _ankle_score(distance: float) -> float:
    if distance >= 12:
        return 100.0
    if distance >= 8:
        return 80 + (distance - 8) * 5
    if distance >= 5:
        return 60 + (distance - 5) * 6.67
    return distance * 12


def calculate_knee_to_wall_metrics(test: Mapping[str, Any]) -> TestData:
    attempts = attempts_of(test)
    if not attempts:
        return dict(test)

    left = field_values(attempts, "leftFootDistance", positive=False)
    right = field_values(attempts, "rightFootDistance", positive=False)
    best_left = max(left) if left else None
    best_right = max(right) if right else None

    asymmetry = None
    score = 0.0
    if best_left is not None and best_right is not None:
        asymmetry = abs(best_left - best_right)
        score = _ankle_score((best_left + best_right) / 2)

    return {
        **test,
        "bestLeftDistance": round_half_up(best_left, 1) if best_left else None,
        "bestRightDistance": round_half_up(best_right, 1) if best_right else None,
        "asymmetryScore": round_half_up(asymmetry, 1) if asymmetry else None,
        "ankleMobilityScore": round_half_up(score) if score > 0 else None,
    }


def pulse_count_to_bpm(pulse_count_15_sec: float) -> float:
    """Convert a 15-second pulse count into beats per minute."""
    return pulse_count_15_sec * 4


def resting_hr_rating(bpm: float) -> str:
    if bpm < RESTING_HR_THRESHOLDS["excellent"]:
        return "Excellent"
    if bpm < RESTING_HR_THRESHOLDS["good"]:
        return "Good"
    if bpm < RESTING_HR_THRESHOLDS["average"]:
        return "Average"
    return "Needs Improvement"


def calculate_resting_heart_rate_metrics(test: Mapping[str, Any]) -> TestData:
    attempts = attempts_of(test)
    if not attempts:
        return dict(test)

    readings: list[float] = []
    for attempt in attempts:
        pulse = as_float(attempt.get("pulseCount15Sec"))
        if attempt.get("inputMethod") == "manual" and pulse:
            readings.append(pulse_count_to_bpm(pulse))
            continue
        bpm = as_float(attempt.get("heartRateBPM")) or 0.0
        if bpm > 0:
            readings.append(bpm)

    if not readings:
        return dict(test)

    lowest = min(readings)
    return {
        **test,
        "averageRHR": round_half_up(mean(readings)),
        "lowestRHR": round_half_up(lowest),
        "cardiovascularFitnessRating": resting_hr_rating(lowest),
    }


def recovery_efficiency(recovery_rate: float) -> float:
    """Score the one-minute heart-rate drop on a 0-100 scale."""
    if recovery_rate >= 25:
        return 100.0
    if recovery_rate >= 18:
        return 80 + (recovery_rate - 18) * 2.86
    if recovery_rate >= 12:
        return 60 + (recovery_rate - 12) * 3.33
    return max(0.0, recovery_rate * 5)


def _one_minute_recovery_hr(attempt: Mapping[str, Any]) -> float:
    value = as_float(attempt.get("recovery1MinHR")) or 0.0
    if attempt.get("inputMethod") == "manual":
        pulse = as_float(attempt.get("recovery1MinPulseCount"))
        if pulse:
            value = pulse_count_to_bpm(pulse)
    return value


def calculate_heart_rate_recovery_metrics(test: Mapping[str, Any]) -> TestData:
    attempts = attempts_of(test)
    if not attempts:
        return dict(test)

    best_index = 0
    best_rate = 0.0
    rates: list[float] = []
    for index, attempt in enumerate(attempts):
        recovered = _one_minute_recovery_hr(attempt)
        if recovered <= 0:
            continue
        rate = (as_float(attempt.get("peakHR")) or 0.0) - recovered
        rates.append(rate)
        if rate > best_rate:
            best_rate = rate
            best_index = index

    return {
        **test,
        "bestRecoveryAttempt": best_index,
        "averageRecoveryRate": round_half_up(mean(rates)),
        "recoveryEfficiencyScore": round_half_up(recovery_efficiency(best_rate)),
    }


def training_zones(max_hr: float) -> dict[str, list[int]]:
    zones: dict[str, list[int]] = {}
    for index in range(5):
        lower, upper = ZONE_BOUNDS[index], ZONE_BOUNDS[index + 1]
        zones[f"zone{index + 1}"] = [
            int(round_half_up(max_hr * lower)),
            int(round_half_up(max_hr * upper)),
        ]
    return zones


def calculate_peak_heart_rate_metrics(test: Mapping[str, Any], age: float | None = None) -> TestData:
    """Max recorded HR, 220-age estimate, and five training zones.

    Manual entries count only with a 15-second pulse of at least 20, device
    entries only from 100 bpm. Zones use the recorded max, then the estimate,
    then 190 bpm.
    """
    entries = attempts_of(test, "entries")
    if not entries:
        return dict(test)

    peaks: list[float] = []
    for entry in entries:
        method = entry.get("inputMethod")
        pulse = as_float(entry.get("pulseCount15Sec"))
        peak = as_float(entry.get("peakHR"))
        if method == "manual" and pulse and pulse >= 20:
            peaks.append(pulse_count_to_bpm(pulse))
        elif method == "device" and peak and peak >= 100:
            peaks.append(peak)

    max_recorded = max(peaks) if peaks else None
    estimated = 220 - age if age else None
    zone_basis = max_recorded or estimated or DEFAULT_MAX_HR

    return {
        **test,
        "maxRecordedHR": round_half_up(max_recorded) if max_recorded else None,
        "estimatedMaxHR": estimated,
        "trainingZones": training_zones(zone_basis),
    }


def _score(data: Mapping[str, Any], test_name: str, field: str) -> float | None:
    test = data.get(test_name)
    if not isinstance(test, Mapping):
        return None
    value = as_float(test.get(field))
    return value if value else None


def calculate_overall_flexibility_score(data: Mapping[str, Any]) -> float:
    """Weighted mean: sit-and-reach and leg raise count double."""
    weighted = (
        (_score(data, "Sit_and_Reach_Test", "flexibilityScore"), 2),
        (_score(data, "Active_Straight_Leg_Raise", "flexibilityScore"), 2),
        (_score(data, "Shoulder_External_Internal_Rotation", "shoulderMobilityScore"), 1),
        (_score(data, "Knee_to_Wall_Test", "ankleMobilityScore"), 1),
    )
    total = 0.0
    weights = 0
    for value, weight in weighted:
        if value:
            total += value * weight
            weights += weight
    if not weights:
        return 0.0
    return round_half_up(total / weights)


def _current_vo2_max(data: Mapping[str, Any]) -> float:
    return (
        _score(data, "Beep_Test", "calculatedVO2Max")
        or _score(data, "Cooper_Test", "calculatedVO2Max")
        or as_float(data.get("vo2Max"))
        or 0.0
    )


def _vo2_component(vo2_max: float) -> float:
    if vo2_max >= VO2_MAX_THRESHOLDS["excellent"]:
        return 100.0
    if vo2_max >= VO2_MAX_THRESHOLDS["good"]:
        return 70 + (vo2_max - VO2_MAX_THRESHOLDS["good"]) * 1.5
    if vo2_max >= VO2_MAX_THRESHOLDS["fair"]:
        return 50 + (vo2_max - VO2_MAX_THRESHOLDS["fair"]) * 2
    return max(0.0, vo2_max * 1.67)


def _resting_hr_component(bpm: float) -> float:
    if bpm < RESTING_HR_THRESHOLDS["excellent"]:
        return 100.0
    if bpm < RESTING_HR_THRESHOLDS["good"]:
        return 80 + (RESTING_HR_THRESHOLDS["good"] - bpm) * 2
    if bpm < RESTING_HR_THRESHOLDS["average"]:
        return 60 + (RESTING_HR_THRESHOLDS["average"] - bpm) * 2
    return max(0.0, 100 - bpm * 0.5)


def calculate_cardiovascular_fitness_score(data: Mapping[str, Any]) -> float:
    """VO2 max (double weight) blended with the lowest resting heart rate."""
    total = 0.0
    count = 0

    vo2_max = _current_vo2_max(data)
    if vo2_max > 0:
        total += _vo2_component(vo2_max) * 2
        count += 2

    lowest_rhr = _score(data, "Resting_Heart_Rate", "lowestRHR")
    if lowest_rhr:
        total += _resting_hr_component(lowest_rhr)
        count += 1

    return round_half_up(total / count) if count else 0.0


def calculate_recovery_efficiency_score(data: Mapping[str, Any]) -> float:
    return _score(data, "Post_Exercise_Heart_Rate_Recovery", "recoveryEfficiencyScore") or 0.0


_SIMPLE_CALCULATORS = {
    "Beep_Test": calculate_beep_test_metrics,
    "Cooper_Test": calculate_cooper_test_metrics,
    "Sit_and_Reach_Test": calculate_sit_and_reach_metrics,
    "Active_Straight_Leg_Raise": calculate_active_leg_raise_metrics,
    "Shoulder_External_Internal_Rotation": calculate_shoulder_rotation_metrics,
    "Knee_to_Wall_Test": calculate_knee_to_wall_metrics,
    "Resting_Heart_Rate": calculate_resting_heart_rate_metrics,
    "Post_Exercise_Heart_Rate_Recovery": calculate_heart_rate_recovery_metrics,
}


def recalculate_stamina_scores(data: Mapping[str, Any], age: float | None = None) -> TestData:
    """Refresh every stamina test plus the composite and scalar summary fields."""
    updated: TestData = dict(data)
    for name, calculator in _SIMPLE_CALCULATORS.items():
        test = updated.get(name)
        if isinstance(test, Mapping):
            updated[name] = calculator(test)

    peak = updated.get("Peak_Heart_Rate")
    if isinstance(peak, Mapping):
        updated["Peak_Heart_Rate"] = calculate_peak_heart_rate_metrics(peak, age)

    updated["overallFlexibilityScore"] = calculate_overall_flexibility_score(updated)
    updated["cardiovascularFitnessScore"] = calculate_cardiovascular_fitness_score(updated)
    updated["recoveryEfficiencyScore"] = calculate_recovery_efficiency_score(updated)

    updated["vo2Max"] = _current_vo2_max(updated)
    updated["flexibility"] = (
        _score(updated, "Sit_and_Reach_Test", "bestReach") or as_float(updated.get("flexibility")) or 0.0
    )

    average_rate = _score(updated, "Post_Exercise_Heart_Rate_Recovery", "averageRecoveryRate")
    if average_rate:
        updated["recoveryTime"] = clamp(300 - average_rate * 5, 30.0, 600.0)
    return updated


def _percent_change(current: Any, previous: Any) -> float | None:
    now = as_float(current)
    before = as_float(previous)
    if not now or not before:
        return None
    return (now - before) / before * 100


def calculate_improvements(current: Mapping[str, Any], previous: Mapping[str, Any]) -> dict[str, float]:
    """Percent change in VO2 max, flexibility and recovery between two snapshots."""
    improvements: dict[str, float] = {}
    pairs = {
        "vo2MaxChange": "vo2Max",
        "flexibilityChange": "overallFlexibilityScore",
        "recoveryChange": "recoveryEfficiencyScore",
    }
    for label, field in pairs.items():
        change = _percent_change(current.get(field), previous.get(field))
        if change is not None:
            improvements[label] = change
    return improvements
