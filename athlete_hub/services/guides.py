"""Guide registration, discovery and the evaluation-request workflow.

An athlete asks an approved guide for an in-person evaluation. The guide
accepts (scheduling it and issuing a 6-digit OTP to the athlete) or rejects.
On the scheduled day the guide verifies the OTP the athlete shows them before
recording the athlete's stats.
"""

from __future__ import annotations

import logging
import math
import re
import secrets
import sqlite3
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable

from .. import storage
from ..config import get_config
from ..constants import ROLE_ADMIN, ROLE_ATHLETE, ROLE_GUIDE
from ..errors import AuthorizationError, BadRequestError, ConflictError, NotFoundError
from ..models import EvaluationRequest, Guide, ValidationError, coerce_number, optional_number, parse_iso_date, parse_list
from .notifications import insert_notification

LOGGER = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
OTP_MIN = 100000
OTP_MAX = 999999
TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
ACTIVE_STATUSES = ("PENDING", "ACCEPTED")


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


def generate_otp() -> int:
    return OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1)


def _bad_request(exc: ValidationError) -> BadRequestError:
    return BadRequestError(str(exc), details=exc.fields or None)


def _fetch_guide(conn: sqlite3.Connection, guide_id: int) -> Guide | None:
    row = conn.execute("SELECT * FROM guides WHERE id = ?", (guide_id,)).fetchone()
    return storage.row_to_guide(row) if row else None


def _fetch_guide_for_user(conn: sqlite3.Connection, user_id: int) -> Guide | None:
    row = conn.execute("SELECT * FROM guides WHERE user_id = ?", (user_id,)).fetchone()
    return storage.row_to_guide(row) if row else None


def _require_approved_guide(conn: sqlite3.Connection, user_id: int) -> Guide:
    guide = _fetch_guide_for_user(conn, user_id)
    if guide is None or guide.status != "approved":
        raise AuthorizationError("You must be an approved guide to perform this action")
    return guide


def _fetch_request(conn: sqlite3.Connection, request_id: int) -> EvaluationRequest:
    row = conn.execute("SELECT * FROM evaluation_requests WHERE id = ?", (request_id,)).fetchone()
    if row is None:
        raise NotFoundError("Evaluation request not found")
    return storage.row_to_request(row)


# Guides ----------------------------------------------------------------------


def register_guide(
    user_id: int,
    *,
    sport: str,
    experience_years: Any = None,
    city: str | None = None,
    state: str | None = None,
    country: str | None = None,
    lat: Any = None,
    lon: Any = None,
) -> Guide:
    """File a guide application; it starts out `pending` until an admin approves it."""
    config = get_config()
    sport_name = (sport or "").strip().lower()
    if sport_name not in config.allowed_sports:
        raise BadRequestError("Please select a valid sport from the list.")
    try:
        years = optional_number(experience_years, field="experienceYears", minimum=0, maximum=80, allow_float=False)
        latitude = optional_number(lat, field="lat", minimum=-90, maximum=90)
        longitude = optional_number(lon, field="lon", minimum=-180, maximum=180)
    except ValidationError as exc:
        raise _bad_request(exc) from exc
    if (latitude is None) != (longitude is None):
        raise BadRequestError("Both latitude and longitude are required when sharing a location.")

    with storage.open_database() as conn:
        if storage.fetch_user(conn, user_id) is None:
            raise NotFoundError("User not found")
        if _fetch_guide_for_user(conn, user_id) is not None:
            raise ConflictError("Guide application already exists")
        with conn:
            cursor = conn.execute(
                """
                INSERT INTO guides (user_id, status, sport, experience_years, city, state, country, lat, lon, created_at)
                VALUES (?, 'pending', ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    sport_name,
                    int(years) if years is not None else None,
                    (city or "").strip() or None,
                    (state or "").strip() or None,
                    (country or "").strip() or None,
                    latitude,
                    longitude,
                    storage.timestamp(),
                ),
            )
        guide = _fetch_guide(conn, int(cursor.lastrowid))
    if guide is None:
        raise NotFoundError("Guide not found")
    LOGGER.info("Guide application %s filed by user %s", guide.id, user_id)
    return guide


def approve_guide(guide_id: int, *, approved: bool = True) -> Guide:
    """Approve (or reject) an application; approval promotes the user to the guide role."""
    status = "approved" if approved else "rejected"
    with storage.open_database() as conn:
        guide = _fetch_guide(conn, guide_id)
        if guide is None:
            raise NotFoundError("Guide not found")
        with conn:
            conn.execute("UPDATE guides SET status = ? WHERE id = ?", (status, guide_id))
            if approved:
                conn.execute(
                    "UPDATE users SET role = ? WHERE id = ? AND role != ?",
                    (ROLE_GUIDE, guide.user_id, ROLE_ADMIN),
                )
            else:
                conn.execute(
                    "UPDATE users SET role = ? WHERE id = ? AND role = ?",
                    (ROLE_ATHLETE, guide.user_id, ROLE_GUIDE),
                )
        updated = _fetch_guide(conn, guide_id)
    if updated is None:
        raise NotFoundError("Guide not found")
    LOGGER.info("Guide %s marked %s", guide_id, status)
    return updated


def get_guide_for_user(user_id: int) -> Guide | None:
    with storage.open_database() as conn:
        return _fetch_guide_for_user(conn, user_id)


def find_nearby_guides(
    lat: Any,
    lon: Any,
    *,
    radius_km: Any = None,
    sport: str | None = None,
    limit: int | None = None,
    exclude_user_id: int | None = None,
) -> list[dict[str, Any]]:
    """Approved guides within `radius_km`, nearest first.

    The caller is never listed. Radius falls back to the configured default and
    is capped at the configured maximum.
    """
    settings = get_config().guide_search
    try:
        origin_lat = coerce_number(lat, field="lat", minimum=-90, maximum=90)
        origin_lon = coerce_number(lon, field="lon", minimum=-180, maximum=180)
        radius = optional_number(radius_km, field="radius", minimum=0)
    except ValidationError as exc:
        raise _bad_request(exc) from exc
    radius = min(radius if radius else settings.radius_km, settings.max_radius_km)
    size = settings.limit if not limit else max(1, min(int(limit), settings.limit))

    query = """
        SELECT g.*, u.username, u.first_name, u.last_name, u.profile_image_url
        FROM guides g
        JOIN users u ON u.id = g.user_id
        WHERE g.status = 'approved'
          AND u.deleted_at IS NULL
          AND g.lat IS NOT NULL AND g.lon IS NOT NULL
    """
    params: list[Any] = []
    if sport:
        query += " AND g.sport = ?"
        params.append(sport.strip().lower())
    if exclude_user_id is not None:
        query += " AND g.user_id != ?"
        params.append(exclude_user_id)

    with storage.open_database() as conn:
        rows = conn.execute(query, params).fetchall()

    matches: list[tuple[float, dict[str, Any]]] = []
    for row in rows:
        distance = haversine_km(origin_lat, origin_lon, row["lat"], row["lon"])
        if distance > radius:
            continue
        entry = storage.row_to_guide(row).to_dict()
        entry["distanceKm"] = round(distance, 2)
        entry["user"] = {
            "username": row["username"],
            "firstName": row["first_name"],
            "lastName": row["last_name"],
            "profileImageUrl": row["profile_image_url"],
        }
        matches.append((distance, entry))
    matches.sort(key=lambda item: (item[0], item[1]["id"]))
    return [entry for _, entry in matches[:size]]


# Evaluation requests ---------------------------------------------------------


def _cooldown_ends(conn: sqlite3.Connection, user_id: int, guide_id: int, cooldown_days: int) -> datetime | None:
    row = conn.execute(
        """
        SELECT updated_at FROM evaluation_requests
        WHERE user_id = ? AND guide_id = ? AND status = 'REJECTED'
        ORDER BY updated_at DESC, id DESC LIMIT 1
        """,
        (user_id, guide_id),
    ).fetchone()
    if row is None:
        return None
    return datetime.fromisoformat(row["updated_at"]) + timedelta(days=cooldown_days)


def create_evaluation_request(
    user_id: int,
    guide_id: int,
    message: str,
    *,
    now: datetime | None = None,
) -> EvaluationRequest:
    settings = get_config().evaluation
    moment = now or storage.now_utc()
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    text = (message or "").strip()
    if not settings.message_min_length <= len(text) <= settings.message_max_length:
        raise BadRequestError(
            f"Message must be between {settings.message_min_length} and {settings.message_max_length} characters"
        )

    with storage.open_database() as conn:
        athlete = storage.fetch_user(conn, user_id)
        if athlete is None:
            raise NotFoundError("User not found")
        guide = _fetch_guide(conn, guide_id)
        if guide is None or guide.status != "approved":
            raise NotFoundError("Guide not found")
        if guide.user_id == user_id:
            raise BadRequestError("You cannot request an evaluation from yourself")

        active = conn.execute(
            f"""
            SELECT id FROM evaluation_requests
            WHERE user_id = ? AND guide_id = ? AND status IN ({", ".join("?" for _ in ACTIVE_STATUSES)})
            """,
            (user_id, guide_id, *ACTIVE_STATUSES),
        ).fetchone()
        if active is not None:
            raise ConflictError("You already have an active request with this guide")

        retry_at = _cooldown_ends(conn, user_id, guide_id, settings.rejection_cooldown_days)
        if retry_at is not None and moment < retry_at:
            raise ConflictError(
                "This guide declined your last request; try again later",
                details={"retryAfter": storage.timestamp(retry_at)},
            )

        stamp = storage.timestamp(moment)
        with conn:
            cursor = conn.execute(
                """
                INSERT INTO evaluation_requests (user_id, guide_id, message, status, equipment, created_at, updated_at)
                VALUES (?, ?, ?, 'PENDING', '[]', ?, ?)
                """,
                (user_id, guide_id, text, stamp, stamp),
            )
            request_id = int(cursor.lastrowid)
            insert_notification(
                conn,
                user_id=guide.user_id,
                actor_id=user_id,
                type="STAT_UPDATE_REQUEST",
                title="New evaluation request",
                message=f"{athlete.display_name} requested a physical evaluation",
                data={"requestId": request_id},
            )
        created = _fetch_request(conn, request_id)
    LOGGER.info("Evaluation request %s created by user %s for guide %s", request_id, user_id, guide_id)
    return created


def respond_to_request(
    guide_user_id: int,
    request_id: int,
    action: str,
    *,
    location: str | None = None,
    scheduled_date: Any = None,
    scheduled_time: str | None = None,
    equipment: Any = None,
    message: str | None = None,
    today: date | None = None,
) -> EvaluationRequest:
    """ACCEPT (scheduling the evaluation and issuing an OTP) or REJECT a pending request."""
    verb = (action or "").strip().upper()
    if verb not in ("ACCEPT", "REJECT"):
        raise BadRequestError("Action must be ACCEPT or REJECT")

    with storage.open_database() as conn:
        guide = _require_approved_guide(conn, guide_user_id)
        request = _fetch_request(conn, request_id)
        if request.guide_id != guide.id:
            raise AuthorizationError("This request was sent to another guide")
        if request.status != "PENDING":
            raise ConflictError(f"Request is already {request.status.lower()}")

        note = (message or "").strip() or None
        stamp = storage.timestamp()
        if verb == "ACCEPT":
            place = (location or "").strip()
            errors: dict[str, list[str]] = {}
            if not place:
                errors["location"] = ["Location is required"]
            when = None
            try:
                when = parse_iso_date(scheduled_date, field="scheduledDate")
                if when < (today or date.today()):
                    errors["scheduledDate"] = ["Scheduled date cannot be in the past"]
            except ValidationError as exc:
                errors["scheduledDate"] = [str(exc)]
            if not TIME_PATTERN.match((scheduled_time or "").strip()):
                errors["scheduledTime"] = ["Scheduled time must be HH:MM"]
            try:
                items = parse_list(equipment, field="equipment")
            except ValidationError as exc:
                errors["equipment"] = [str(exc)]
                items = []
            if errors:
                raise BadRequestError("Invalid scheduling details", details=errors)

            otp = generate_otp()
            with conn:
                conn.execute(
                    """
                    UPDATE evaluation_requests
                    SET status = 'ACCEPTED', guide_message = ?, location = ?, scheduled_date = ?,
                        scheduled_time = ?, equipment = ?, otp = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (
                        note,
                        place,
                        when.isoformat() if when else None,
                        scheduled_time.strip() if scheduled_time else None,
                        storage.dump_json(items),
                        otp,
                        stamp,
                        request_id,
                    ),
                )
                insert_notification(
                    conn,
                    user_id=request.user_id,
                    actor_id=guide_user_id,
                    type="STAT_UPDATE_APPROVED",
                    title="Evaluation scheduled",
                    message=f"Your evaluation is scheduled for {when.isoformat() if when else ''} at {scheduled_time}",
                    data={"requestId": request_id, "scheduledDate": when.isoformat() if when else None, "otp": otp},
                )
        else:
            with conn:
                conn.execute(
                    "UPDATE evaluation_requests SET status = 'REJECTED', guide_message = ?, updated_at = ? WHERE id = ?",
                    (note, stamp, request_id),
                )
                insert_notification(
                    conn,
                    user_id=request.user_id,
                    actor_id=guide_user_id,
                    type="STAT_UPDATE_DENIED",
                    title="Evaluation request declined",
                    message=note or "The guide declined your evaluation request",
                    data={"requestId": request_id},
                )
        updated = _fetch_request(conn, request_id)
    LOGGER.info("Guide user %s responded %s to request %s", guide_user_id, verb, request_id)
    return updated


def verify_otp(guide_user_id: int, otp: Any, *, today: date | None = None) -> dict[str, Any]:
    """Match an athlete's OTP against the guide's accepted requests for today."""
    try:
        code = int(coerce_number(otp, field="otp", minimum=OTP_MIN, maximum=OTP_MAX, allow_float=False))
    except ValidationError as exc:
        raise BadRequestError("Please enter a valid 6-digit OTP.", code="VALIDATION_ERROR") from exc

    with storage.open_database() as conn:
        guide = _require_approved_guide(conn, guide_user_id)
        row = conn.execute(
            "SELECT * FROM evaluation_requests WHERE otp = ? AND guide_id = ? AND status = 'ACCEPTED'",
            (code, guide.id),
        ).fetchone()
        if row is None:
            raise NotFoundError("No matching evaluation found for this OTP", code="INVALID_OTP")
        request = storage.row_to_request(row)
        if request.scheduled_date is None:
            raise BadRequestError("This evaluation has no scheduled date", code="EXPIRED_REQUEST")
        current = today or date.today()
        if request.scheduled_date != current:
            raise BadRequestError(
                f"This evaluation is scheduled for {request.scheduled_date.isoformat()}; "
                "OTP verification is only allowed on the scheduled date.",
                code="DATE_MISMATCH",
                details={"scheduledDate": request.scheduled_date.isoformat(), "currentDate": current.isoformat()},
            )
        athlete = storage.fetch_user(conn, request.user_id)
        if athlete is None:
            raise NotFoundError("The athlete for this evaluation no longer exists", code="EXPIRED_REQUEST")
    return {
        "user": athlete.to_dict(),
        "requestId": request.id,
        "scheduledDate": request.scheduled_date.isoformat(),
    }


def find_verified_request(
    conn: sqlite3.Connection, guide_user_id: int, athlete_id: int, otp: Any, *, today: date | None = None
) -> EvaluationRequest | None:
    """The accepted request between this guide and athlete carrying `otp` that is scheduled for today."""
    guide = _fetch_guide_for_user(conn, guide_user_id)
    if guide is None or guide.status != "approved" or otp in (None, ""):
        return None
    try:
        code = int(otp)
    except (TypeError, ValueError):
        return None
    row = conn.execute(
        """
        SELECT * FROM evaluation_requests
        WHERE guide_id = ? AND user_id = ? AND otp = ? AND status = 'ACCEPTED'
        """,
        (guide.id, athlete_id, code),
    ).fetchone()
    if row is None:
        return None
    request = storage.row_to_request(row)
    if request.scheduled_date != (today or date.today()):
        return None
    return request


def complete_evaluation(conn: sqlite3.Connection, request: EvaluationRequest, guide_user_id: int) -> None:
    """Remove a fulfilled request and tell the athlete; runs inside the caller's transaction."""
    conn.execute("DELETE FROM evaluation_requests WHERE id = ?", (request.id,))
    insert_notification(
        conn,
        user_id=request.user_id,
        actor_id=guide_user_id,
        type="EVALUATION_COMPLETED",
        title="Evaluation completed",
        message="Your guide recorded your latest test results",
        data={"requestId": request.id},
    )


def _serialise(requests: Iterable[EvaluationRequest], *, include_otp: bool) -> list[dict[str, Any]]:
    return [request.to_dict(include_otp=include_otp) for request in requests]


def list_incoming_requests(guide_user_id: int, *, status: str | None = None) -> list[dict[str, Any]]:
    """Requests addressed to the caller's guide profile, newest first, with athlete details."""
    with storage.open_database() as conn:
        guide = _require_approved_guide(conn, guide_user_id)
        query = "SELECT * FROM evaluation_requests WHERE guide_id = ?"
        params: list[Any] = [guide.id]
        if status:
            query += " AND status = ?"
            params.append(status.strip().upper())
        query += " ORDER BY created_at DESC, id DESC"
        rows = conn.execute(query, params).fetchall()
        results = []
        for row in rows:
            request = storage.row_to_request(row)
            athlete = storage.fetch_user(conn, request.user_id)
            entry = request.to_dict()
            entry["athlete"] = athlete.to_dict() if athlete else None
            results.append(entry)
    return results


def list_my_requests(user_id: int) -> list[dict[str, Any]]:
    """The athlete's own requests; OTPs are visible to the athlete."""
    with storage.open_database() as conn:
        rows = conn.execute(
            "SELECT * FROM evaluation_requests WHERE user_id = ? ORDER BY created_at DESC, id DESC",
            (user_id,),
        ).fetchall()
    return _serialise((storage.row_to_request(row) for row in rows), include_otp=True)


def cancel_request(user_id: int, request_id: int) -> EvaluationRequest:
    with storage.open_database() as conn:
        request = _fetch_request(conn, request_id)
        if request.user_id != user_id:
            raise AuthorizationError("You can only cancel your own requests")
        if request.status not in ACTIVE_STATUSES:
            raise ConflictError(f"Request is already {request.status.lower()}")
        with conn:
            conn.execute(
                "UPDATE evaluation_requests SET status = 'CANCELLED', otp = NULL, updated_at = ? WHERE id = ?",
                (storage.timestamp(), request_id),
            )
        updated = _fetch_request(conn, request_id)
    LOGGER.info("User %s cancelled evaluation request %s", user_id, request_id)
    return updated
