from __future__ import annotations

import pytest

from athlete_hub.stats import aggregate
from athlete_hub.stats import (
    RECORD_HOLDER_STATS,
    CompositeScores,
    aggregate_user_stats,
    analyze_injuries,
    calculate_bmi,
    calculate_overall_performance,
    generate_recommendations,
    get_bmi_classification,
    get_performance_level,
)


def test_empty_input_only_scores_recovery():
    scores = aggregate_user_stats({})
    # The resting-heart-rate term contributes 250 * 10 even with no data, capped at 50.
    assert scores == CompositeScores(recovery=50.0)


def test_strength_is_relative_to_body_weight():
    raw = {"currentStrength": {"Deadlift_Velocity": {"maxLoad": 200}}, "weight": 80}
    assert aggregate_user_stats(raw).strength == pytest.approx(25.0)
    assert aggregate_user_stats({**raw, "weight": 0}).strength == 0.0


def test_flattened_keys_are_accepted():
    raw = {"currentStrength": {"Deadlift_Velocity_maxLoad": 200}, "weight": 80}
    assert aggregate_user_stats(raw).strength == pytest.approx(25.0)


def test_power_reads_first_attempt():
    raw = {
        "currentStrength": {
            "Countermovement_Jump": {
                "attempts": [{"data": {"jumpHeight": 60}}, {"data": {"jumpHeight": 70}}]
            }
        }
    }
    assert aggregate_user_stats(raw).power == pytest.approx(30.0)


def test_scores_are_capped_then_clamped():
    raw = {
        "currentStrength": {"Deadlift_Velocity": {"maxLoad": 500}, "Barbell_Row": {"maxLoad": 500}},
        "currentSpeed": {"Long_Jump": {"bestDistance": 500}, "Standing_Long_Jump": {"bestDistance": 250}},
        "currentStamina": {"Beep_Test": {"attempts": [{"finalLevel": 2, "finalShuttle": 0}]}},
        "weight": 70,
    }
    scores = aggregate_user_stats(raw)
    assert scores.strength == 100.0
    assert scores.speed == pytest.approx(30.0)
    assert scores.stamina == pytest.approx(48.0)
    assert all(0.0 <= value <= 100.0 for value in scores.values())


AGILITY_TIMES = {
    "Five_0_Five_Agility_Test": {"bestRightTime": 2.5},
    "T_Test": {"bestTime": 9},
    "Illinois_Agility_Test": {"bestTime": 15},
    "Reactive_Agility_T_Test": {"bestTime": 2},
    "Visual_Reaction_Speed_Drill": {"bestReactionTime": 0.25},
}


def test_agility_blends_inverse_times():
    # 2.5*0.2 + 90/9*4.2 + 90/15*0.2 + 60/2*1.2 + 0.25*0.2
    assert aggregate_user_stats({"currentSpeed": AGILITY_TIMES}).agility == pytest.approx(79.75)


def test_agility_without_t_test():
    speed = {key: value for key, value in AGILITY_TIMES.items() if key != "T_Test"}
    assert aggregate_user_stats({"currentSpeed": speed}).agility == pytest.approx(37.75)
    # A zero time contributes nothing instead of dividing by zero.
    zero = {**AGILITY_TIMES, "T_Test": {"bestTime": 0}}
    assert aggregate_user_stats({"currentSpeed": zero}).agility == pytest.approx(37.75)


def test_agility_is_capped_then_clamped():
    fast = {**AGILITY_TIMES, "T_Test": {"bestTime": 0.5}}
    assert aggregate._agility(fast) == aggregate.AGILITY_CAP == 250.0
    assert aggregate_user_stats({"currentSpeed": fast}).agility == 100.0


def test_recovery_blend_below_cap():
    stamina = {
        "vo2Max": 0.1,
        "recoveryEfficiencyScore": 0.2,
        "cardiovascularFitnessScore": 0.2,
        "Post_Exercise_Heart_Rate_Recovery_averageRecoveryRate": 0.5,
        "Resting_Heart_Rate_lowestRHR": 248,
    }
    # 0.1*60 + 0.2*35 + 0.5*20 + 0.2*15 + (250-248)*10
    assert aggregate_user_stats({"currentStamina": stamina}).recovery == pytest.approx(46.0)

    nested = {
        "vo2Max": 0.1,
        "recoveryEfficiencyScore": 0.2,
        "cardiovascularFitnessScore": 0.2,
        "Post_Exercise_Heart_Rate_Recovery": {"averageRecoveryRate": 0.5},
        "Resting_Heart_Rate": {"lowestRHR": 248},
    }
    assert aggregate_user_stats({"currentStamina": nested}).recovery == pytest.approx(46.0)


def test_recovery_cap_and_floor():
    resting = {"Resting_Heart_Rate": {"lowestRHR": 60}}
    assert aggregate._recovery(resting) == aggregate.RECOVERY_CAP == 50.0
    assert aggregate_user_stats({"currentStamina": resting}).recovery == pytest.approx(50.0)
    # (250-260)*10 + 1*20 is negative and clamps to zero.
    implausible = {"Resting_Heart_Rate_lowestRHR": 260, "Post_Exercise_Heart_Rate_Recovery_averageRecoveryRate": 1}
    assert aggregate_user_stats({"currentStamina": implausible}).recovery == 0.0


def test_non_numeric_values_count_as_zero():
    raw = {"currentStrength": {"Deadlift_Velocity": {"maxLoad": "heavy"}}, "weight": "eighty"}
    assert aggregate_user_stats(raw).strength == 0.0


def test_reference_vector_is_all_hundreds():
    assert RECORD_HOLDER_STATS.values() == [100.0] * 6


def test_overall_performance():
    snapshot = {
        "strength": {"explosivePower": 80, "muscleMass": 60, "enduranceStrength": 70},
        "stamina": {"vo2Max": 60, "flexibility": 20},
    }
    performance = calculate_overall_performance(snapshot)
    assert performance == {"overall": 90, "strength": 70, "speed": 0, "endurance": 100, "flexibility": 100}


@pytest.mark.parametrize(
    ("score", "level"),
    [(95, "Elite"), (85, "Excellent"), (72, "Good"), (60, "Average"), (55, "Below Average"), (10, "Needs Improvement")],
)
def test_performance_levels(score, level):
    assert get_performance_level(score) == level


def test_injury_risk_levels():
    injuries = [
        {"status": "active", "severity": "severe"},
        {"status": "active", "severity": "mild"},
        {"status": "recovered", "severity": "severe"},
    ]
    summary = analyze_injuries(injuries)
    assert summary["active"] == 2
    assert summary["recovered"] == 1
    assert summary["riskLevel"] == "moderate"
    assert analyze_injuries([])["riskLevel"] == "low"


def test_recommendations_always_end_with_follow_up():
    recommendations = generate_recommendations({"injuries": [{"status": "active", "severity": "mild"}]})
    assert recommendations[0] == "Address active injuries before intensive training"
    assert recommendations[-1].startswith("Schedule follow-up assessment")


def test_bmi():
    assert calculate_bmi(180, 81) == pytest.approx(25.0)
    assert calculate_bmi(None, 80) is None
    assert get_bmi_classification(25.0) == "Overweight"
    assert get_bmi_classification(22.0) == "Normal"
    assert get_bmi_classification(17.0) == "Underweight"
    assert get_bmi_classification(31.0) == "Obese"
