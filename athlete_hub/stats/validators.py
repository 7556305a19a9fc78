"""Range validation for raw test attempts, basic metrics and injuries.

Validators collect every problem instead of stopping at the first one; the
errors are keyed by a dotted path such as `Cooper_Test.attempts[0].distanceCovered`.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, NamedTuple

from ..models import ValidationError, parse_iso_date
from .common import as_float
from .ranges import (
    ATTEMPT_COUNT,
    ATTEMPT_NUMBER,
    BASIC_METRIC_RANGES,
    MAX_INJURY_RECOVERY_DAYS,
    MAX_NOTES_LENGTH,
    SPEED_RANGES,
    STAMINA_RANGES,
    STRENGTH_RANGES,
    Range,
)

FieldErrors = Dict[str, List[str]]

INJURY_STATUSES = ("active", "recovering", "recovered")
INJURY_SEVERITIES = ("mild", "moderate", "severe")


class StatsValidationError(ValidationError):
    """Raised when a stats payload fails validation; `fields` lists every problem."""


class FieldRule(NamedTuple):
    field: str
    bounds: Range
    required: bool = True
    integer: bool = False


def _rule(field: str, bounds: Range, *, required: bool = True, integer: bool = False) -> FieldRule:
    return FieldRule(field, bounds, required, integer)


SPEED_RULES: Mapping[str, tuple[FieldRule, ...]] = {
    "Ten_Meter_Sprint": (_rule("sprintTime", SPEED_RANGES["tenMeterSprint"]),),
    "Fourty_Meter_Dash": (_rule("totalTime_0_40m", SPEED_RANGES["fortyMeterDash"]),),
    "T_Test": (_rule("completionTime", SPEED_RANGES["tTest"]),),
    "Illinois_Agility_Test": (_rule("completionTime", SPEED_RANGES["illinoisTest"]),),
    "Five_0_Five_Agility_Test": (
        _rule("leftTurnTime", SPEED_RANGES["five05Test"]),
        _rule("rightTurnTime", SPEED_RANGES["five05Test"]),
    ),
    "Visual_Reaction_Speed_Drill": (_rule("reactionTime", SPEED_RANGES["reactionTime"]),),
    "Standing_Long_Jump": (_rule("distance", SPEED_RANGES["standingLongJump"]),),
    "Long_Jump": (_rule("distance", SPEED_RANGES["longJump"]),),
    "Reactive_Agility_T_Test": (
        _rule("completionTime", Range(SPEED_RANGES["tTest"].minimum, SPEED_RANGES["tTest"].maximum + 2)),
        _rule("correctResponseRate", SPEED_RANGES["accuracy"], required=False),
    ),
}

STAMINA_RULES: Mapping[str, tuple[FieldRule, ...]] = {
    "Beep_Test": (
        _rule("finalLevel", STAMINA_RANGES["beepLevel"], integer=True),
        _rule("finalShuttle", STAMINA_RANGES["beepShuttle"], integer=True),
    ),
    "Cooper_Test": (_rule("distanceCovered", STAMINA_RANGES["cooperDistance"]),),
    "Sit_and_Reach_Test": (_rule("reachDistance", STAMINA_RANGES["sitAndReach"]),),
    "Active_Straight_Leg_Raise": (
        _rule("leftLegAngle", STAMINA_RANGES["legRaiseAngle"], required=False),
        _rule("rightLegAngle", STAMINA_RANGES["legRaiseAngle"], required=False),
        _rule("leftLegHeight", STAMINA_RANGES["legRaiseHeight"], required=False),
        _rule("rightLegHeight", STAMINA_RANGES["legRaiseHeight"], required=False),
    ),
    "Shoulder_External_Internal_Rotation": (_rule("gripWidth", STAMINA_RANGES["shoulderGripWidth"]),),
    "Knee_to_Wall_Test": (
        _rule("leftFootDistance", STAMINA_RANGES["kneeToWall"], required=False),
        _rule("rightFootDistance", STAMINA_RANGES["kneeToWall"], required=False),
    ),
    "Resting_Heart_Rate": (
        _rule("pulseCount15Sec", STAMINA_RANGES["pulseCount15Sec"], required=False),
        _rule("heartRateBPM", STAMINA_RANGES["restingHeartRate"], required=False),
    ),
    "Post_Exercise_Heart_Rate_Recovery": (
        _rule("restingHR", STAMINA_RANGES["restingHeartRate"]),
        _rule("peakHR", STAMINA_RANGES["peakHeartRate"]),
        _rule("recovery1MinHR", Range(30, 220), required=False),
        _rule("recovery2MinHR", Range(30, 220), required=False),
        _rule("recovery3MinHR", Range(30, 220), required=False),
        _rule("recovery1MinPulseCount", STAMINA_RANGES["pulseCount15Sec"], required=False),
        _rule("recovery2MinPulseCount", STAMINA_RANGES["pulseCount15Sec"], required=False),
        _rule("recovery3MinPulseCount", STAMINA_RANGES["pulseCount15Sec"], required=False),
    ),
}

PEAK_HR_RULES = (
    _rule("peakHR", STAMINA_RANGES["peakHeartRate"], required=False),
    _rule("pulseCount15Sec", STAMINA_RANGES["pulseCount15Sec"], required=False),
    _rule("perceivedExertion", STAMINA_RANGES["perceivedExertion"], required=False),
)

_REACH = (
    _rule("standingReach", STRENGTH_RANGES["standingReach"]),
    _rule("jumpReach", STRENGTH_RANGES["jumpReach"]),
    _rule("jumpHeight", STRENGTH_RANGES["jumpHeight"], required=False),
)

STRENGTH_ATTEMPT_RULES: Mapping[str, tuple[FieldRule, ...]] = {
    "Countermovement_Jump": _REACH,
    "Loaded_Squat_Jump": (
        _rule("load", STRENGTH_RANGES["squatJumpLoad"]),
        *_REACH,
        _rule("flightTime", STRENGTH_RANGES["flightTime"], required=False),
    ),
    "Depth_Jump": (_rule("dropHeight", STRENGTH_RANGES["dropHeight"]), *_REACH),
    "Ballistic_Bench_Press": (
        _rule("load", STRENGTH_RANGES["benchLoad"]),
        _rule("reps", STRENGTH_RANGES["benchReps"], integer=True),
        _rule("timeLimit", STRENGTH_RANGES["timeLimit"], required=False),
    ),
    "Push_Up": (
        _rule("reps", STRENGTH_RANGES["pushUpReps"], integer=True),
        _rule("timeLimit", STRENGTH_RANGES["timeLimit"], required=False),
    ),
    "Ballistic_Push_Up": (
        _rule("reps", STRENGTH_RANGES["ballisticPushUpReps"], integer=True),
        _rule("load", STRENGTH_RANGES["ballisticPushUpLoad"], required=False),
        _rule("timeUsed", STRENGTH_RANGES["timeUsed"], required=False),
    ),
    "Deadlift_Velocity": (
        _rule("load", STRENGTH_RANGES["heavyLoad"]),
        _rule("reps", STRENGTH_RANGES["deadliftReps"], integer=True),
    ),
    "Barbell_Row": (
        _rule("load", STRENGTH_RANGES["heavyLoad"]),
        _rule("reps", STRENGTH_RANGES["setReps"], integer=True),
    ),
    "Plank_Hold": (
        _rule("duration", STRENGTH_RANGES["plankDuration"]),
        _rule("load", STRENGTH_RANGES["plankLoad"], required=False),
    ),
    "Pull_Ups": (
        _rule("reps", STRENGTH_RANGES["pullUpReps"], integer=True),
        _rule("timeUsed", STRENGTH_RANGES["timeUsed"], required=False),
    ),
}

STRENGTH_SET_RULES = (
    _rule("load", STRENGTH_RANGES["heavyLoad"]),
    _rule("reps", STRENGTH_RANGES["setReps"], integer=True),
    _rule("restAfter", STRENGTH_RANGES["restAfter"], required=False),
)
STRENGTH_SET_TESTS = ("Barbell_Hip_Thrust", "Weighted_Pull_up")


def _add(errors: FieldErrors, key: str, message: str) -> None:
    errors.setdefault(key, []).append(message)


def _check_value(errors: FieldErrors, key: str, value: Any, rule: FieldRule) -> None:
    if value is None or (isinstance(value, str) and not value.strip()):
        if rule.required:
            _add(errors, key, f"{rule.field} is required.")
        return
    number = as_float(value)
    if number is None:
        _add(errors, key, f"{rule.field} must be a number.")
        return
    if rule.integer and number != int(number):
        _add(errors, key, f"{rule.field} must be a whole number.")
    if not rule.bounds.contains(number):
        _add(
            errors,
            key,
            f"{rule.field} must be between {rule.bounds.minimum:g} and {rule.bounds.maximum:g}.",
        )


def _check_record(errors: FieldErrors, prefix: str, record: Mapping[str, Any], rules: Iterable[FieldRule]) -> None:
    for rule in rules:
        _check_value(errors, f"{prefix}.{rule.field}", record.get(rule.field), rule)
    notes = record.get("notes")
    if isinstance(notes, str) and len(notes) > MAX_NOTES_LENGTH:
        _add(errors, f"{prefix}.notes", f"notes must be at most {MAX_NOTES_LENGTH} characters.")


def _collection(errors: FieldErrors, test_name: str, test: Any, key: str = "attempts") -> list[Mapping[str, Any]]:
    if not isinstance(test, Mapping):
        _add(errors, test_name, "Test data must be an object.")
        return []
    items = test.get(key)
    if not isinstance(items, list):
        _add(errors, f"{test_name}.{key}", f"{key} must be a list.")
        return []
    if not ATTEMPT_COUNT.contains(len(items)):
        _add(
            errors,
            f"{test_name}.{key}",
            f"Between {ATTEMPT_COUNT.minimum:g} and {ATTEMPT_COUNT.maximum:g} {key} are required.",
        )
    records = []
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            _add(errors, f"{test_name}.{key}[{index}]", "Each entry must be an object.")
            continue
        number = item.get("attemptNumber")
        if number is not None:
            _check_value(
                errors,
                f"{test_name}.{key}[{index}].attemptNumber",
                number,
                _rule("attemptNumber", ATTEMPT_NUMBER, integer=True),
            )
        records.append(item)
    return records


def validate_speed_test(test_name: str, test: Any) -> FieldErrors:
    errors: FieldErrors = {}
    if test_name == "Repeated_Sprint_Ability":
        if not isinstance(test, Mapping):
            _add(errors, test_name, "Test data must be an object.")
            return errors
        times = test.get("sprintTimes")
        if not isinstance(times, list) or not times:
            _add(errors, f"{test_name}.sprintTimes", "At least one sprint time is required.")
        else:
            rule = _rule("sprintTime", SPEED_RANGES["repeatedSprintSingle"])
            for index, value in enumerate(times):
                _check_value(errors, f"{test_name}.sprintTimes[{index}]", value, rule)
        _check_value(
            errors,
            f"{test_name}.restInterval",
            test.get("restInterval"),
            _rule("restInterval", SPEED_RANGES["restInterval"], required=False),
        )
        return errors

    rules = SPEED_RULES.get(test_name)
    if rules is None:
        _add(errors, test_name, "Unknown speed & agility test.")
        return errors
    for index, attempt in enumerate(_collection(errors, test_name, test)):
        _check_record(errors, f"{test_name}.attempts[{index}]", attempt, rules)
    return errors


def validate_stamina_test(test_name: str, test: Any) -> FieldErrors:
    errors: FieldErrors = {}
    if test_name == "Peak_Heart_Rate":
        for index, entry in enumerate(_collection(errors, test_name, test, "entries")):
            prefix = f"{test_name}.entries[{index}]"
            _check_record(errors, prefix, entry, PEAK_HR_RULES)
            if entry.get("peakHR") is None and entry.get("pulseCount15Sec") is None:
                _add(errors, f"{prefix}.peakHR", "Provide a peak heart rate or a 15-second pulse count.")
        return errors

    rules = STAMINA_RULES.get(test_name)
    if rules is None:
        _add(errors, test_name, "Unknown stamina & recovery test.")
        return errors
    for index, attempt in enumerate(_collection(errors, test_name, test)):
        prefix = f"{test_name}.attempts[{index}]"
        _check_record(errors, prefix, attempt, rules)
        if test_name == "Resting_Heart_Rate" and attempt.get("pulseCount15Sec") is None and attempt.get("heartRateBPM") is None:
            _add(errors, f"{prefix}.heartRateBPM", "Provide a heart rate or a 15-second pulse count.")
    return errors


def validate_strength_test(test_name: str, test: Any) -> FieldErrors:
    errors: FieldErrors = {}
    if test_name in STRENGTH_SET_TESTS:
        for index, item in enumerate(_collection(errors, test_name, test, "sets")):
            _check_record(errors, f"{test_name}.sets[{index}]", item, STRENGTH_SET_RULES)
        if isinstance(test, Mapping):
            _check_value(
                errors,
                f"{test_name}.totalTimeUsed",
                test.get("totalTimeUsed"),
                _rule("totalTimeUsed", STRENGTH_RANGES["timeUsed"], required=False),
            )
        return errors

    rules = STRENGTH_ATTEMPT_RULES.get(test_name)
    if rules is None:
        _add(errors, test_name, "Unknown strength & power test.")
        return errors
    for index, attempt in enumerate(_collection(errors, test_name, test)):
        prefix = f"{test_name}.attempts[{index}].data"
        data = attempt.get("data")
        if not isinstance(data, Mapping):
            _add(errors, prefix, "Attempt data is required.")
            continue
        _check_record(errors, prefix, data, rules)
        standing = as_float(data.get("standingReach"))
        reach = as_float(data.get("jumpReach"))
        if standing is not None and reach is not None and reach < standing:
            _add(errors, f"{prefix}.jumpReach", "Jump reach must be greater than or equal to standing reach.")

    if test_name == "Loaded_Squat_Jump" and isinstance(test, Mapping):
        _check_value(
            errors,
            f"{test_name}.bodyWeight",
            test.get("bodyWeight"),
            _rule("bodyWeight", STRENGTH_RANGES["bodyWeight"], required=False),
        )
    if test_name == "Deadlift_Velocity" and isinstance(test, Mapping):
        _check_value(
            errors,
            f"{test_name}.maxLoad",
            test.get("maxLoad"),
            _rule("maxLoad", STRENGTH_RANGES["heavyLoad"], required=False),
        )
    return errors


def validate_basic_metrics(metrics: Mapping[str, Any]) -> FieldErrors:
    """Each measurement is optional, but at least one of them must be present."""
    errors: FieldErrors = {}
    provided = 0
    for field, bounds in BASIC_METRIC_RANGES.items():
        value = metrics.get(field)
        if value is not None and not (isinstance(value, str) and not value.strip()):
            provided += 1
        _check_value(errors, field, value, _rule(field, bounds, required=False))
    if not provided:
        _add(errors, "general", "At least one metric must be provided.")
    return errors


def validate_injury(injury: Mapping[str, Any], *, today: date | None = None) -> FieldErrors:
    errors: FieldErrors = {}
    today = today or date.today()

    for field, label in (("type", "Injury type"), ("bodyPart", "Body part")):
        if not str(injury.get(field) or "").strip():
            _add(errors, field, f"{label} is required.")

    severity = injury.get("severity")
    if not severity:
        _add(errors, "severity", "Severity is required.")
    elif severity not in INJURY_SEVERITIES:
        _add(errors, "severity", "Invalid injury severity.")

    occurred = _injury_date(errors, injury, "occurredAt", "Occurred date", today)
    recovered = None
    if injury.get("recoveredAt"):
        recovered = _injury_date(errors, injury, "recoveredAt", "Recovery date", today)
    if occurred and recovered and recovered < occurred:
        _add(errors, "recoveredAt", "Recovery date must be after occurrence date.")

    recovery_time = injury.get("recoveryTime")
    if recovery_time is not None:
        days = as_float(recovery_time)
        if days is None:
            _add(errors, "recoveryTime", "Recovery time must be a number of days.")
        elif days < 0:
            _add(errors, "recoveryTime", "Recovery time cannot be negative.")
        elif days > MAX_INJURY_RECOVERY_DAYS:
            _add(errors, "recoveryTime", f"Recovery time seems unrealistic (max {MAX_INJURY_RECOVERY_DAYS} days).")

    status = injury.get("status")
    if status not in INJURY_STATUSES:
        _add(errors, "status", "Invalid injury status.")
    elif status == "recovered" and not injury.get("recoveredAt"):
        _add(errors, "recoveredAt", "Recovery date is required for recovered injuries.")
    return errors


def _injury_date(errors: FieldErrors, injury: Mapping[str, Any], field: str, label: str, today: date) -> date | None:
    value = injury.get(field)
    if not value:
        _add(errors, field, f"{label} is required.")
        return None
    try:
        parsed = parse_iso_date(value, field=label)
    except ValidationError as exc:
        _add(errors, field, str(exc))
        return None
    if parsed > today:
        _add(errors, field, f"{label} cannot be in the future.")
    return parsed


def validate_injuries(injuries: Iterable[Mapping[str, Any]]) -> FieldErrors:
    errors: FieldErrors = {}
    for index, injury in enumerate(injuries):
        if not isinstance(injury, Mapping):
            _add(errors, f"injury_{index}", "Injury must be an object.")
            continue
        for field, messages in validate_injury(injury).items():
            errors[f"injury_{index}_{field}"] = messages
    return errors


_CATEGORY_VALIDATORS = {
    "strength": validate_strength_test,
    "speed": validate_speed_test,
    "stamina": validate_stamina_test,
}


def validate_category(category: str, tests: Mapping[str, Any], known_tests: Iterable[str]) -> FieldErrors:
    """Validate every known test present in one category mapping."""
    validator = _CATEGORY_VALIDATORS[category]
    errors: FieldErrors = {}
    for name in known_tests:
        if tests.get(name) is None:
            continue
        for key, messages in validator(name, tests[name]).items():
            errors[f"{category}.{key}"] = messages
    return errors


def ensure_valid(errors: FieldErrors, message: str = "Stats validation failed.") -> None:
    if errors:
        raise StatsValidationError(message, fields=errors)
