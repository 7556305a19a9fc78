"""Validation ranges and classification thresholds for athletic tests."""

from __future__ import annotations

from typing import Mapping, NamedTuple


class Range(NamedTuple):
    minimum: float
    maximum: float

    def contains(self, value: float) -> bool:
        return self.minimum <= value <= self.maximum


# Speed & agility (seconds unless noted)
SPEED_RANGES: Mapping[str, Range] = {
    "tenMeterSprint": Range(1.5, 4.0),
    "fortyMeterDash": Range(4.0, 8.0),
    "repeatedSprintSingle": Range(3.5, 8.0),
    "tTest": Range(8.0, 15.0),
    "illinoisTest": Range(12.0, 22.0),
    "five05Test": Range(2.0, 5.0),
    "reactionTime": Range(150.0, 500.0),  # ms
    "standingLongJump": Range(100.0, 350.0),  # cm
    "longJump": Range(200.0, 900.0),  # cm
    "accuracy": Range(0.0, 100.0),  # %
    "restInterval": Range(10.0, 60.0),
}

# Stamina & recovery
STAMINA_RANGES: Mapping[str, Range] = {
    "beepLevel": Range(1, 23),
    "beepShuttle": Range(1, 16),
    "cooperDistance": Range(500, 5000),  # m
    "sitAndReach": Range(-30, 50),  # cm
    "legRaiseAngle": Range(0, 180),  # degrees
    "legRaiseHeight": Range(0, 200),  # cm
    "shoulderGripWidth": Range(20, 200),  # cm
    "kneeToWall": Range(0, 30),  # cm
    "restingHeartRate": Range(30, 120),  # bpm
    "peakHeartRate": Range(100, 220),  # bpm
    "pulseCount15Sec": Range(8, 55),
    "vo2Max": Range(20, 85),  # ml/kg/min
    "perceivedExertion": Range(1, 10),
}

# Strength & power
STRENGTH_RANGES: Mapping[str, Range] = {
    "standingReach": Range(100, 350),  # cm
    "jumpReach": Range(100, 400),  # cm
    "jumpHeight": Range(0, 150),  # cm
    "squatJumpLoad": Range(0, 200),  # kg
    "flightTime": Range(0, 2),  # s
    "dropHeight": Range(10, 100),  # cm
    "benchLoad": Range(0, 300),
    "benchReps": Range(0, 100),
    "timeLimit": Range(30, 300),
    "pushUpReps": Range(0, 200),
    "ballisticPushUpReps": Range(0, 150),
    "ballisticPushUpLoad": Range(0, 100),
    "timeUsed": Range(0, 300),
    "heavyLoad": Range(0, 500),
    "deadliftReps": Range(0, 20),
    "setReps": Range(0, 50),
    "restAfter": Range(0, 300),
    "plankDuration": Range(0, 600),
    "plankLoad": Range(0, 100),
    "pullUpReps": Range(0, 100),
    "bodyWeight": Range(30, 200),
}

BASIC_METRIC_RANGES: Mapping[str, Range] = {
    "height": Range(120, 250),  # cm
    "weight": Range(30, 200),  # kg
    "age": Range(10, 100),
    "bodyFat": Range(3, 50),  # %
}

ATTEMPT_COUNT = Range(1, 10)
ATTEMPT_NUMBER = Range(1, 10)
MAX_INJURY_RECOVERY_DAYS = 730
MAX_NOTES_LENGTH = 500

# Classification thresholds
VO2_MAX_THRESHOLDS = {"excellent": 60.0, "veryGood": 50.0, "good": 40.0, "fair": 30.0}
RESTING_HR_THRESHOLDS = {"excellent": 60.0, "good": 70.0, "average": 80.0}
FLEXIBILITY_THRESHOLDS = {"excellent": 15.0, "good": 5.0, "average": 0.0, "belowAverage": -5.0}
