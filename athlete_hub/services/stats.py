"""Stats snapshots: validate raw test data, derive scores and keep the history."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from .. import storage
from ..constants import ROLE_ADMIN, ROLE_GUIDE
from ..errors import AuthorizationError, NotFoundError
from ..stats import (
    RECORD_HOLDER_STATS,
    CompositeScores,
    aggregate_user_stats,
    analyze_injuries,
    calculate_bmi,
    calculate_improvements,
    calculate_overall_performance,
    generate_recommendations,
    get_bmi_classification,
    recalculate_speed_scores,
    recalculate_stamina_scores,
    recalculate_strength_scores,
)
from ..stats import speed_agility, stamina_recovery, strength_power
from ..stats.common import as_float
from ..stats.history import score_trends, snapshots_to_dataframe
from ..stats.report import FullReport, build_full_report
from ..stats.validators import ensure_valid, validate_basic_metrics, validate_category, validate_injuries
from . import guides

LOGGER = logging.getLogger(__name__)

CATEGORY_TESTS = {
    "strength": strength_power.TEST_NAMES,
    "speed": speed_agility.TEST_NAMES,
    "stamina": stamina_recovery.TEST_NAMES,
}


def _category(payload: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = payload.get(name)
    return value if isinstance(value, Mapping) else {}


def validate_stats_payload(payload: Mapping[str, Any]) -> None:
    """Raise `StatsValidationError` listing every out-of-range field in `payload`."""
    errors = validate_basic_metrics(payload)
    for name, tests in CATEGORY_TESTS.items():
        errors.update(validate_category(name, _category(payload, name), tests))
    injuries = payload.get("injuries") or []
    if isinstance(injuries, list):
        errors.update(validate_injuries(injuries))
    else:
        errors["injuries"] = ["injuries must be a list."]
    ensure_valid(errors)


def compute_stats(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Validate and recalculate a full stats payload without touching the database."""
    validate_stats_payload(payload)
    weight = as_float(payload.get("weight"))
    age = as_float(payload.get("age"))

    strength = recalculate_strength_scores(_category(payload, "strength"))
    if not as_float(strength.get("athleteBodyWeight")):
        strength["athleteBodyWeight"] = weight
    speed = recalculate_speed_scores(_category(payload, "speed"))
    stamina = recalculate_stamina_scores(_category(payload, "stamina"), age=age)
    injuries = list(payload.get("injuries") or [])

    scores = aggregate_user_stats(
        {"currentStrength": strength, "currentSpeed": speed, "currentStamina": stamina, "weight": weight}
    )
    snapshot = {
        "height": as_float(payload.get("height")),
        "weight": weight,
        "age": int(age) if age is not None else None,
        "bodyFat": as_float(payload.get("bodyFat")),
        "strength": strength,
        "speed": speed,
        "stamina": stamina,
        "injuries": injuries,
        "scores": scores.to_dict(),
    }
    return _with_summary(snapshot)


def _with_summary(snapshot: dict[str, Any]) -> dict[str, Any]:
    bmi = calculate_bmi(snapshot.get("height"), snapshot.get("weight"))
    snapshot["bmi"] = bmi
    snapshot["bmiClassification"] = get_bmi_classification(bmi) if bmi is not None else None
    snapshot["performance"] = calculate_overall_performance(snapshot)
    snapshot["injurySummary"] = analyze_injuries(snapshot.get("injuries") or [])
    snapshot["recommendations"] = generate_recommendations(snapshot)
    return snapshot


def _authorise_update(conn: Any, user_id: int, updated_by: int, otp: Any, today: Any = None) -> Any:
    """Return the evaluation request an update fulfils, or None for admin updates."""
    updater = storage.fetch_user(conn, updated_by)
    if updater is None:
        raise NotFoundError("Updating user not found")
    if updater.role == ROLE_ADMIN:
        return None
    if updater.role == ROLE_GUIDE and updated_by != user_id:
        request = guides.find_verified_request(conn, updated_by, user_id, otp, today=today)
        if request is None:
            raise AuthorizationError("An accepted evaluation request scheduled for today with a valid OTP is required")
        return request
    raise AuthorizationError("Only guides and admins can record stats")


def save_stats(
    user_id: int, payload: Mapping[str, Any], updated_by: int, *, otp: Any = None, today: Any = None
) -> dict[str, Any]:
    """Store a new snapshot for `user_id`; earlier snapshots are kept as history.

    Guides must present the OTP of an accepted evaluation request from the
    athlete, on the day it is scheduled for; the request is closed in the
    same transaction as the snapshot.
    """
    with storage.open_database() as conn:
        if storage.fetch_user(conn, user_id) is None:
            raise NotFoundError("Athlete not found")
        request = _authorise_update(conn, user_id, updated_by, otp, today)
        computed = compute_stats(payload)

        with conn:
            cursor = conn.execute(
                """
                INSERT INTO stats_snapshots (
                    user_id, height, weight, age, body_fat, strength, speed, stamina,
                    injuries, scores, updated_by, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    computed["height"],
                    computed["weight"],
                    computed["age"],
                    computed["bodyFat"],
                    storage.dump_json(computed["strength"]),
                    storage.dump_json(computed["speed"]),
                    storage.dump_json(computed["stamina"]),
                    storage.dump_json(computed["injuries"]),
                    storage.dump_json(computed["scores"]),
                    updated_by,
                    storage.timestamp(),
                ),
            )
            if request is not None:
                guides.complete_evaluation(conn, request, updated_by)
        row = conn.execute("SELECT * FROM stats_snapshots WHERE id = ?", (cursor.lastrowid,)).fetchone()
    LOGGER.info("Saved stats snapshot %s for user %s (by %s)", row["id"], user_id, updated_by)
    return _with_summary(storage.row_to_snapshot(row))


def list_snapshots(user_id: int) -> list[dict[str, Any]]:
    """All snapshots for a user, oldest first."""
    with storage.open_database() as conn:
        if storage.fetch_user(conn, user_id) is None:
            raise NotFoundError("User not found")
        rows = conn.execute(
            "SELECT * FROM stats_snapshots WHERE user_id = ? ORDER BY created_at, id",
            (user_id,),
        ).fetchall()
    return [storage.row_to_snapshot(row) for row in rows]


def get_stats(user_id: int) -> dict[str, Any]:
    """Latest snapshot, condensed history, composite scores and score trends."""
    snapshots = list_snapshots(user_id)
    if not snapshots:
        return {
            "latest": None,
            "history": [],
            "scores": CompositeScores().to_dict(),
            "reference": RECORD_HOLDER_STATS.to_dict(),
            "trends": {},
            "improvements": {},
        }

    latest = _with_summary(dict(snapshots[-1]))
    improvements: dict[str, float] = {}
    if len(snapshots) > 1:
        improvements = calculate_improvements(latest["stamina"], snapshots[-2]["stamina"])
    history = [
        {"id": item["id"], "createdAt": item["createdAt"], "updatedBy": item["updatedBy"], "scores": item["scores"]}
        for item in reversed(snapshots)
    ]
    return {
        "latest": latest,
        "history": history,
        "scores": latest["scores"],
        "reference": RECORD_HOLDER_STATS.to_dict(),
        "trends": score_trends(snapshots_to_dataframe(snapshots)),
        "improvements": improvements,
    }


def snapshot_raw(snapshot: Mapping[str, Any]) -> dict[str, Any]:
    """Map a stored snapshot onto the aggregator's `current*` input shape."""
    return {
        "currentStrength": snapshot.get("strength") or {},
        "currentSpeed": snapshot.get("speed") or {},
        "currentStamina": snapshot.get("stamina") or {},
        "weight": snapshot.get("weight"),
    }


def latest_report(user_id: int) -> FullReport:
    snapshots = list_snapshots(user_id)
    if not snapshots:
        raise NotFoundError("No stats recorded for this user")
    latest = snapshots[-1]
    return build_full_report(snapshot_raw(latest), body_weight=as_float(latest.get("weight")))
