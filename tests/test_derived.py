from __future__ import annotations

import pytest

from athlete_hub.stats import derived


def test_fatigue_index():
    assert derived.calculate_fatigue_index([100, 80]) == pytest.approx(20.0)
    assert derived.calculate_fatigue_index([50, 50, 50]) == 0.0
    assert derived.calculate_fatigue_index([]) is None
    assert derived.calculate_fatigue_index([0, 0]) is None


def test_power_and_strength_ratios():
    assert derived.estimate_power([100, 100], [0.5, 1.0]) == pytest.approx(75.0)
    assert derived.estimate_power([100], [0.5, 1.0]) is None
    assert derived.calculate_max_strength([40, 55, 50]) == 55
    assert derived.calculate_max_strength([]) is None
    assert derived.calculate_relative_strength_ratio(120, 80) == pytest.approx(1.5)
    assert derived.calculate_relative_strength_ratio(120, 0) is None


def test_jump_power_is_positive_or_none():
    assert derived.estimate_jump_power(10, 40) == pytest.approx(364.0)
    assert derived.estimate_jump_power(5, 30) is None
    assert derived.estimate_jump_power(0, 80) is None


def test_speed_and_aerobic_estimates():
    assert derived.calculate_average_sprint_speed(10, 2.0) == pytest.approx(5.0)
    assert derived.calculate_average_sprint_speed(10, 0) is None
    assert derived.estimate_vo2_max(3000) > derived.estimate_vo2_max(2400)
    assert derived.estimate_vo2_max(0) is None
    assert derived.calculate_heart_rate_recovery(180, 150) == 30


def test_other_ratios():
    assert derived.calculate_vertical_jump_efficiency(50, 200) == pytest.approx(0.25)
    assert derived.estimate_explosive_power(2.0, 80) == pytest.approx(1569.6)
    assert derived.calculate_muscular_endurance(10, 50) == 500
    assert derived.calculate_muscular_endurance(0, 50) is None


def test_every_metric_has_a_description():
    for key in (
        "fatigue_index",
        "estimated_power",
        "max_strength",
        "relative_strength_ratio",
        "jump_power",
        "average_sprint_speed",
        "vo2_max",
        "heart_rate_recovery",
    ):
        assert derived.METRIC_DESCRIPTIONS[key]
