from __future__ import annotations

import pytest

from athlete_hub.stats.speed_agility import (
    calculate_acceleration_score,
    calculate_agility_score,
    calculate_balance_score,
    calculate_coordination_score,
    calculate_five05_agility_metrics,
    calculate_rsa_metrics,
    calculate_sprint_speed_score,
    calculate_ten_meter_sprint_metrics,
    normalize_distance_to_score,
    normalize_time_to_score,
    recalculate_speed_scores,
)


def test_ten_meter_sprint_best_and_mean():
    result = calculate_ten_meter_sprint_metrics({"attempts": [{"sprintTime": 1.9}, {"sprintTime": 1.8}]})
    assert result["bestTime"] == pytest.approx(1.8)
    assert result["meanTime"] == pytest.approx(1.85)


def test_test_without_attempts_is_returned_unchanged():
    assert calculate_ten_meter_sprint_metrics({"notes": "rain"}) == {"notes": "rain"}


def test_rsa_fatigue_index_and_decrement():
    result = calculate_rsa_metrics({"sprintTimes": [4.0, 4.2, 4.4], "restInterval": 20})
    assert result["bestTime"] == pytest.approx(4.0)
    assert result["worstTime"] == pytest.approx(4.4)
    assert result["meanTime"] == pytest.approx(4.2)
    assert result["totalTime"] == pytest.approx(12.6)
    assert result["fatigueIndex"] == pytest.approx(10.0)
    assert result["percentDecrement"] == pytest.approx(-5.0)
    assert result["restInterval"] == 20


def test_five05_asymmetry_uses_best_turns():
    result = calculate_five05_agility_metrics(
        {"attempts": [{"leftTurnTime": 2.5, "rightTurnTime": 2.6}, {"leftTurnTime": 2.4}]}
    )
    assert result["bestLeftTime"] == pytest.approx(2.4)
    assert result["bestRightTime"] == pytest.approx(2.6)
    assert result["asymmetryIndex"] == pytest.approx(0.2)


def test_time_normalisation_bounds():
    assert normalize_time_to_score(1.0, 1.5, 4.0) == 100.0
    assert normalize_time_to_score(5.0, 1.5, 4.0) == 0.0
    assert normalize_time_to_score(0, 1.5, 4.0) == 0.0
    assert normalize_time_to_score(2.75, 1.5, 4.0) == pytest.approx(50.0)


def test_distance_normalisation_bounds():
    assert normalize_distance_to_score(400, 100, 350) == 100.0
    assert normalize_distance_to_score(50, 100, 350) == 0.0
    assert normalize_distance_to_score(225, 100, 350) == pytest.approx(50.0)


def test_sprint_speed_blends_weighted_times():
    data = {"Ten_Meter_Sprint": {"bestTime": 2.75}, "Fourty_Meter_Dash": {"bestTime": 6.0}}
    # 50 + 50 * 1.2 over a total weight of 2.2
    assert calculate_sprint_speed_score(data) == pytest.approx(50.0)
    assert calculate_acceleration_score(data) == pytest.approx(50.0)
    assert calculate_sprint_speed_score({}) == 0.0


def test_agility_and_coordination_scores():
    data = {
        "T_Test": {"bestTime": 11.5},
        "Five_0_Five_Agility_Test": {"asymmetryIndex": 0.2},
    }
    assert calculate_agility_score(data) == pytest.approx(50.0)
    assert calculate_coordination_score(data) == pytest.approx(80.0)
    assert calculate_balance_score(data) == 0.0


def test_recalculate_fills_category_scores():
    result = recalculate_speed_scores(
        {
            "Ten_Meter_Sprint": {"attempts": [{"sprintTime": 2.75}]},
            "Standing_Long_Jump": {"attempts": [{"distance": 240}, {"distance": 250}]},
        }
    )
    assert result["Ten_Meter_Sprint"]["bestTime"] == pytest.approx(2.75)
    assert result["Standing_Long_Jump"]["bestDistance"] == pytest.approx(250)
    assert result["acceleration"] == {"score": pytest.approx(50.0)}
    assert result["balance"] == {"score": 0.0}
    assert result["sprintSpeed"] == pytest.approx(50.0)
