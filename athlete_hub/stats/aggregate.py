"""Cross-test aggregation into the six composite radar scores plus summary helpers."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Iterable, Mapping

from ..constants import SCORE_AXES
from .common import as_float, clamp, mean, nested_get, safe_number

SCORE_CEILING = 100.0

# Hand-tuned caps applied before the final 0-100 clamp.
POWER_CAP = 65.0
SPEED_CAP = 30.0
AGILITY_CAP = 250.0
RECOVERY_CAP = 50.0
STAMINA_CAP = 50.0


@dataclass(frozen=True)
class CompositeScores:
    strength: float = 0.0
    power: float = 0.0
    speed: float = 0.0
    agility: float = 0.0
    recovery: float = 0.0
    stamina: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return asdict(self)

    def values(self) -> list[float]:
        return [getattr(self, axis) for axis in SCORE_AXES]


RECORD_HOLDER_STATS = CompositeScores(
    strength=100.0, power=100.0, speed=100.0, agility=100.0, recovery=100.0, stamina=100.0
)


def _lookup(category: Mapping[str, Any], *path: Any) -> float:
    """Read a nested value, also accepting the flattened `Test_field` column form."""
    value = nested_get(category, *path)
    if value is None and len(path) >= 2 and isinstance(path[0], str) and isinstance(path[1], str):
        flattened = f"{path[0]}_{path[1]}"
        value = nested_get(category, flattened, *path[2:])
    return safe_number(value)


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


def _strength(strength: Mapping[str, Any], body_weight: float) -> float:
    total = (
        _lookup(strength, "Deadlift_Velocity", "maxLoad")
        + _lookup(strength, "Ballistic_Bench_Press", "attempts", 0, "data", "load")
        + _lookup(strength, "Barbell_Hip_Thrust", "maxLoad")
        + _lookup(strength, "Barbell_Row", "maxLoad")
        + _lookup(strength, "Weighted_Pull_up", "maxLoad")
    )
    relative = total / body_weight if body_weight > 0 else 0.0
    return min(SCORE_CEILING, relative * 10)


def _power(strength: Mapping[str, Any]) -> float:
    blended = (
        _lookup(strength, "Countermovement_Jump", "attempts", 0, "data", "jumpHeight") * 0.5
        + _lookup(strength, "Loaded_Squat_Jump", "attempts", 0, "data", "jumpHeight") * 0.15
        + _lookup(strength, "Depth_Jump", "attempts", 0, "data", "jumpHeight") * 0.15
        + _lookup(strength, "Ballistic_Push_Up", "attempts", 0, "data", "reps") * 1.2
        + _lookup(strength, "Ballistic_Bench_Press", "attempts", 0, "data", "reps")
    )
    return min(POWER_CAP, blended)


def _speed(speed: Mapping[str, Any]) -> float:
    sprint_10 = _lookup(speed, "Ten_Meter_Sprint", "attempts", 0, "sprintTime")
    sprint_40 = _lookup(speed, "Fourty_Meter_Dash", "attempts", 0, "totalTime_0_40m")
    repeated = _lookup(speed, "Repeated_Sprint_Ability", "bestTime")
    sprint_score = 0.0
    if sprint_10 and sprint_40 and repeated:
        sprint_score = sprint_10 / sprint_40 / repeated / 3
    jump_score = (
        _lookup(speed, "Long_Jump", "bestDistance") + _lookup(speed, "Standing_Long_Jump", "bestDistance")
    ) / 2
    return min(SPEED_CAP, sprint_score * 0.1 + jump_score * 0.2)


def _agility(speed: Mapping[str, Any]) -> float:
    blended = (
        _lookup(speed, "Five_0_Five_Agility_Test", "bestRightTime") * 0.2
        + _ratio(90, _lookup(speed, "T_Test", "bestTime")) * 4.2
        + _ratio(90, _lookup(speed, "Illinois_Agility_Test", "bestTime")) * 0.2
        + _ratio(60, _lookup(speed, "Reactive_Agility_T_Test", "bestTime")) * 1.2
        + _lookup(speed, "Visual_Reaction_Speed_Drill", "bestReactionTime") * 0.2
    )
    return min(AGILITY_CAP, blended)


def _recovery(stamina: Mapping[str, Any]) -> float:
    blended = (
        _lookup(stamina, "vo2Max") * 60
        + _lookup(stamina, "recoveryEfficiencyScore") * 35
        + _lookup(stamina, "Post_Exercise_Heart_Rate_Recovery", "averageRecoveryRate") * 20
        + _lookup(stamina, "cardiovascularFitnessScore") * 15
        + (250 - _lookup(stamina, "Resting_Heart_Rate", "lowestRHR")) * 10
    )
    return min(RECOVERY_CAP, blended)


def _stamina(stamina: Mapping[str, Any], strength: Mapping[str, Any]) -> float:
    level = _lookup(stamina, "Beep_Test", "attempts", 0, "finalLevel")
    shuttle = _lookup(stamina, "Beep_Test", "attempts", 0, "finalShuttle")
    beep_score = (level * 5 + shuttle) * 3
    cooper_score = _lookup(stamina, "Cooper_Test", "averageDistance") / 3500 * 100
    plank_score = _lookup(strength, "Plank_Hold", "attempts", 0, "data", "duration") / 300 * 100
    blended = (
        beep_score * 1.6
        + cooper_score * 0.3
        + _lookup(stamina, "vo2Max") * 1.25
        + plank_score * 1.15
    )
    return min(STAMINA_CAP, blended)


def _category(raw: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = raw.get(key)
    return value if isinstance(value, Mapping) else {}


def aggregate_user_stats(raw: Mapping[str, Any]) -> CompositeScores:
    """Blend the current strength/speed/stamina records into six 0-100 composites.

    `raw` carries `currentStrength`, `currentSpeed`, `currentStamina` and `weight`.
    Missing or non-numeric inputs count as zero, and every score is clamped to
    [0, 100] after its blend cap is applied.
    """
    strength = _category(raw, "currentStrength")
    speed = _category(raw, "currentSpeed")
    stamina = _category(raw, "currentStamina")
    body_weight = safe_number(raw.get("weight"))

    scores = {
        "strength": _strength(strength, body_weight),
        "power": _power(strength),
        "speed": _speed(speed),
        "agility": _agility(speed),
        "recovery": _recovery(stamina),
        "stamina": _stamina(stamina, strength),
    }
    return CompositeScores(**{axis: clamp(value, 0.0, SCORE_CEILING) for axis, value in scores.items()})


def _positive_scores(values: Iterable[Any]) -> list[float]:
    scores = []
    for value in values:
        if isinstance(value, Mapping):
            value = value.get("score")
        number = as_float(value)
        if number:
            scores.append(number)
    return scores


def calculate_overall_performance(snapshot: Mapping[str, Any]) -> dict[str, int]:
    """Rounded strength/speed/endurance/flexibility averages and their overall mean."""
    strength = _category(snapshot, "strength")
    speed = _category(snapshot, "speed")
    stamina = _category(snapshot, "stamina")

    strength_avg = mean(
        _positive_scores(strength.get(key) for key in ("explosivePower", "muscleMass", "enduranceStrength"))
    )
    speed_avg = mean(
        _positive_scores(
            speed.get(key)
            for key in ("sprintSpeed", "acceleration", "agility", "reactionTime", "balance", "coordination")
        )
    )

    vo2_max = as_float(stamina.get("vo2Max"))
    endurance = min(100.0, vo2_max / 60 * 100) if vo2_max else 0.0

    flexibility_raw = as_float(stamina.get("flexibility"))
    flexibility = clamp((flexibility_raw + 20) * 2.5, 0.0, 100.0) if flexibility_raw is not None else 0.0

    parts = [score for score in (strength_avg, speed_avg, endurance, flexibility) if score > 0]
    return {
        "overall": round(mean(parts)),
        "strength": round(strength_avg),
        "speed": round(speed_avg),
        "endurance": round(endurance),
        "flexibility": round(flexibility),
    }


def get_performance_level(score: float) -> str:
    if score >= 90:
        return "Elite"
    if score >= 80:
        return "Excellent"
    if score >= 70:
        return "Good"
    if score >= 60:
        return "Average"
    if score >= 50:
        return "Below Average"
    return "Needs Improvement"


def analyze_injuries(injuries: Iterable[Mapping[str, Any]]) -> dict[str, Any]:
    records = [injury for injury in injuries if isinstance(injury, Mapping)]
    active = sum(1 for injury in records if injury.get("status") == "active")
    severe_open = sum(
        1 for injury in records if injury.get("severity") == "severe" and injury.get("status") != "recovered"
    )

    risk = "low"
    if active >= 3 or severe_open >= 2:
        risk = "high"
    elif active >= 2 or severe_open >= 1:
        risk = "moderate"

    return {
        "total": len(records),
        "active": active,
        "recovering": sum(1 for injury in records if injury.get("status") == "recovering"),
        "recovered": sum(1 for injury in records if injury.get("status") == "recovered"),
        "riskLevel": risk,
    }


def generate_recommendations(snapshot: Mapping[str, Any]) -> list[str]:
    metrics = calculate_overall_performance(snapshot)
    injuries = analyze_injuries(snapshot.get("injuries") or [])
    stamina = _category(snapshot, "stamina")
    recommendations: list[str] = []

    if injuries["active"] > 0:
        recommendations.append("Address active injuries before intensive training")
    if injuries["riskLevel"] == "high":
        recommendations.append("Consider injury prevention program and recovery protocols")

    if metrics["strength"] < 60:
        recommendations.append("Focus on strength training to improve overall power")
    if metrics["speed"] < 60:
        recommendations.append("Incorporate speed and agility drills into training routine")
    if metrics["endurance"] < 60:
        recommendations.append("Increase cardiovascular conditioning for better stamina")
    if metrics["flexibility"] < 50:
        recommendations.append("Add flexibility and mobility work to prevent injuries")

    vo2_max = as_float(stamina.get("vo2Max"))
    if vo2_max and vo2_max < 40:
        recommendations.append("Implement aerobic base building program")

    recovery_time = as_float(stamina.get("recoveryTime"))
    if recovery_time and recovery_time > 180:
        recommendations.append("Work on recovery techniques and conditioning")

    if metrics["overall"] < 70:
        recommendations.append("Consider comprehensive training program for balanced development")

    recommendations.append("Schedule follow-up assessment in 3-6 months to track progress")
    return recommendations


def calculate_bmi(height_cm: Any, weight_kg: Any) -> float | None:
    """BMI rounded to one decimal, or None when either measurement is missing."""
    height = as_float(height_cm)
    weight = as_float(weight_kg)
    if not height or not weight:
        return None
    return round(weight / (height / 100) ** 2, 1)


def get_bmi_classification(bmi: float) -> str:
    if bmi < 18.5:
        return "Underweight"
    if bmi < 25:
        return "Normal"
    if bmi < 30:
        return "Overweight"
    return "Obese"
