"""Derived performance metrics shown alongside the composite scores.

Each function returns None when its inputs cannot produce a meaningful value,
so the report can print "n/a" instead of a misleading zero.
"""

from __future__ import annotations

from typing import Sequence

GRAVITY = 9.81

METRIC_DESCRIPTIONS = {
    "fatigue_index": (
        "Fatigue Index represents the percentage drop in power output during repeated "
        "attempts, indicating muscular endurance."
    ),
    "estimated_power": (
        "Estimated Power output calculated as the product of load and velocity during "
        "each attempt, averaged over attempts."
    ),
    "max_strength": "Max Strength is the maximum load lifted during weighted pull-ups.",
    "relative_strength_ratio": (
        "Relative Strength Ratio compares maximum load lifted to the athlete's body "
        "weight, indicating strength relative to mass."
    ),
    "jump_power": (
        "Jump Power estimates explosive lower-body power from jump height and body mass "
        "using the Sayers et al. formula."
    ),
    "average_sprint_speed": "Average sprint speed calculated by dividing distance by completion time.",
    "vo2_max": "Estimated VO2 Max based on Cooper Test distance using a standard formula.",
    "heart_rate_recovery": (
        "Heart Rate Recovery rate measures cardiovascular recovery after exercise by the "
        "drop in heart rate."
    ),
    "vertical_jump_efficiency": (
        "Vertical Jump Efficiency measures the ratio of jump height to standing reach "
        "height, indicating jump proficiency."
    ),
    "explosive_power": "Estimated explosive power output from jump velocity and body mass.",
    "muscular_endurance": (
        "Muscular Endurance estimated by multiplying number of repetitions with load lifted."
    ),
}


def calculate_fatigue_index(powers: Sequence[float]) -> float | None:
    """(max - min) / max * 100 over repeated efforts."""
    if not powers:
        return None
    peak = max(powers)
    if peak == 0:
        return None
    return (peak - min(powers)) / peak * 100


def estimate_power(loads: Sequence[float], velocities: Sequence[float]) -> float | None:
    """Mean of load x velocity per attempt."""
    if not loads or not velocities or len(loads) != len(velocities):
        return None
    return sum(load * velocity for load, velocity in zip(loads, velocities)) / len(loads)


def calculate_max_strength(loads: Sequence[float]) -> float | None:
    if not loads:
        return None
    return max(loads)


def calculate_relative_strength_ratio(max_strength: float, body_weight: float) -> float | None:
    if body_weight == 0:
        return None
    return max_strength / body_weight


def estimate_jump_power(jump_height_cm: float, body_mass_kg: float) -> float | None:
    """Sayers et al. (1999) peak power; None unless the result is positive."""
    if jump_height_cm <= 0 or body_mass_kg <= 0:
        return None
    power = 60.7 * jump_height_cm + 45.3 * body_mass_kg - 2055
    return power if power > 0 else None


def calculate_average_sprint_speed(distance_m: float, time_s: float) -> float | None:
    if time_s <= 0:
        return None
    return distance_m / time_s


def estimate_vo2_max(distance_m: float) -> float | None:
    """Cooper 12-minute run: (distance - 504.9) / 44.73."""
    if distance_m <= 0:
        return None
    return (distance_m - 504.9) / 44.73


def calculate_heart_rate_recovery(post_exercise_hr: float, recovery_hr: float) -> float | None:
    if post_exercise_hr <= 0 or recovery_hr <= 0:
        return None
    return post_exercise_hr - recovery_hr


def calculate_vertical_jump_efficiency(jump_height_cm: float, standing_reach_cm: float) -> float | None:
    if jump_height_cm <= 0 or standing_reach_cm <= 0:
        return None
    return jump_height_cm / standing_reach_cm


def estimate_explosive_power(jump_velocity: float, body_mass_kg: float) -> float | None:
    if jump_velocity <= 0 or body_mass_kg <= 0:
        return None
    return body_mass_kg * GRAVITY * jump_velocity


def calculate_muscular_endurance(repetitions: float, load_kg: float) -> float | None:
    if repetitions <= 0 or load_kg <= 0:
        return None
    return repetitions * load_kg
