from __future__ import annotations

import pytest

from athlete_hub.stats.stamina_recovery import (
    calculate_beep_test_metrics,
    calculate_cooper_test_metrics,
    calculate_improvements,
    calculate_peak_heart_rate_metrics,
    calculate_resting_heart_rate_metrics,
    calculate_sit_and_reach_metrics,
    cooper_vo2_max,
    pulse_count_to_bpm,
    recalculate_stamina_scores,
    recovery_efficiency,
    total_shuttles,
)


@pytest.mark.parametrize(
    ("level", "shuttle", "expected"),
    [(1, 5, 5), (3, 2, 17), (4, 0, 24)],
)
def test_total_shuttles(level, shuttle, expected):
    assert total_shuttles(level, shuttle) == expected


def test_beep_test_picks_best_attempt():
    result = calculate_beep_test_metrics(
        {"attempts": [{"finalLevel": 8, "finalShuttle": 3}, {"finalLevel": 10, "finalShuttle": 5}]}
    )
    assert result["bestAttempt"] == 1
    assert result["totalShuttles"] == 104
    assert result["estimatedDistance"] == 2080
    assert result["calculatedVO2Max"] == pytest.approx(51.0)


def test_cooper_vo2_max_is_clamped():
    assert cooper_vo2_max(2741.4) == pytest.approx(50.0, abs=0.01)
    assert cooper_vo2_max(500) == 20.0
    assert cooper_vo2_max(10_000) == 85.0


def test_cooper_metrics_average_distance():
    result = calculate_cooper_test_metrics({"attempts": [{"distanceCovered": 2400}, {"distanceCovered": 2600}]})
    assert result["bestAttempt"] == 1
    assert result["averageDistance"] == 2500


def test_sit_and_reach_scores_best_reach():
    result = calculate_sit_and_reach_metrics({"attempts": [{"reachDistance": 12}, {"reachDistance": -2}]})
    assert result["bestReach"] == pytest.approx(12.0)
    assert result["averageReach"] == pytest.approx(5.0)
    assert result["flexibilityScore"] == 88


def test_resting_heart_rate_mixes_manual_and_device_readings():
    result = calculate_resting_heart_rate_metrics(
        {
            "attempts": [
                {"inputMethod": "manual", "pulseCount15Sec": 15},
                {"inputMethod": "device", "heartRateBPM": 58},
            ]
        }
    )
    assert pulse_count_to_bpm(15) == 60
    assert result["lowestRHR"] == 58
    assert result["averageRHR"] == 59
    assert result["cardiovascularFitnessRating"] == "Excellent"


def test_peak_heart_rate_zones_use_recorded_max():
    result = calculate_peak_heart_rate_metrics(
        {
            "entries": [
                {"inputMethod": "manual", "pulseCount15Sec": 48},
                {"inputMethod": "device", "peakHR": 185},
                {"inputMethod": "device", "peakHR": 90},
            ]
        },
        age=20,
    )
    assert result["maxRecordedHR"] == 192
    assert result["estimatedMaxHR"] == 200
    assert result["trainingZones"]["zone1"] == [96, 115]
    assert result["trainingZones"]["zone5"] == [173, 192]


def test_peak_heart_rate_falls_back_to_default():
    result = calculate_peak_heart_rate_metrics({"entries": [{"inputMethod": "device", "peakHR": 50}]})
    assert result["maxRecordedHR"] is None
    assert result["trainingZones"]["zone5"] == [171, 190]


def test_recovery_efficiency_bands():
    assert recovery_efficiency(30) == 100.0
    assert recovery_efficiency(12) == pytest.approx(60.0)
    assert recovery_efficiency(4) == pytest.approx(20.0)


def test_recalculate_stamina_sets_summary_fields():
    result = recalculate_stamina_scores(
        {
            "Beep_Test": {"attempts": [{"finalLevel": 10, "finalShuttle": 5}]},
            "Sit_and_Reach_Test": {"attempts": [{"reachDistance": 12}]},
            "Post_Exercise_Heart_Rate_Recovery": {
                "attempts": [{"restingHR": 60, "peakHR": 180, "recovery1MinHR": 150}]
            },
        },
        age=25,
    )
    assert result["vo2Max"] == pytest.approx(51.0)
    assert result["flexibility"] == pytest.approx(12.0)
    assert result["overallFlexibilityScore"] == 88
    assert result["recoveryEfficiencyScore"] == 100
    assert result["recoveryTime"] == pytest.approx(150.0)
    assert result["cardiovascularFitnessScore"] > 0


def test_improvements_percent_change():
    current = {"vo2Max": 55.0, "overallFlexibilityScore": 80, "recoveryEfficiencyScore": 0}
    previous = {"vo2Max": 50.0, "overallFlexibilityScore": 64, "recoveryEfficiencyScore": 70}
    improvements = calculate_improvements(current, previous)
    assert improvements["vo2MaxChange"] == pytest.approx(10.0)
    assert improvements["flexibilityChange"] == pytest.approx(25.0)
    assert "recoveryChange" not in improvements
