from __future__ import annotations

import io
import logging
import os
import tempfile
from collections import defaultdict
from datetime import datetime, timedelta
from functools import wraps
from pathlib import Path
from typing import Any, Mapping

from flask import Flask, g, jsonify, request, send_file, session as flask_session
from werkzeug.exceptions import HTTPException

from ..config import get_config
from ..constants import ROLE_ADMIN, ROLE_GUIDE
from ..env import get_env
from ..errors import ApiError, AuthenticationError, AuthorizationError, BadRequestError, NotFoundError
from ..models import ValidationError
from ..services import accounts, guides, notifications, profiles, social
from ..services import stats as stats_service
from ..storage import now_utc
from ..wizard import STEP_TITLES, TOTAL_STEPS, validate_step

LOGGER = logging.getLogger(__name__)

FAILED_LOGINS: dict[str, list[datetime]] = defaultdict(list)
MAX_FAILED_ATTEMPTS = 5
FAILED_WINDOW_MINUTES = 10


def create_app() -> Flask:
    logging.basicConfig(level=get_env("LOG_LEVEL") or os.environ.get("LOG_LEVEL", "INFO"))
    app = Flask(__name__)
    env_secret = get_env("SECRET") or os.environ.get("SECRET_KEY")
    if not env_secret and os.environ.get("FLASK_ENV") == "production":
        raise RuntimeError("SECRET_KEY/ATHLETE_HUB_SECRET must be set in production.")
    app.secret_key = env_secret or "dev-secret"
    app.config.update(
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        SESSION_COOKIE_SECURE=os.environ.get("SESSION_COOKIE_SECURE", "0") == "1",
    )

    @app.before_request
    def load_user() -> None:
        user_id = flask_session.get("user_id")
        g.user = None
        if user_id:
            try:
                g.user = accounts.get_user(int(user_id))
            except NotFoundError:
                flask_session.clear()

    register_error_handlers(app)
    register_routes(app)
    register_api(app)
    return app


def login_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        if not getattr(g, "user", None):
            raise AuthenticationError()
        return view(*args, **kwargs)

    return wrapped


def require_role(*roles: str):
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            role = user.role if user else None
            if role not in roles:
                raise AuthorizationError()
            return func(*args, **kwargs)

        return wrapper

    return decorator


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def handle_api_error(exc: ApiError):
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        payload: dict[str, Any] = {"error": str(exc), "code": "VALIDATION_ERROR"}
        if exc.fields:
            payload["details"] = exc.fields
        return jsonify(payload), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        code = (exc.name or "error").upper().replace(" ", "_")
        return jsonify({"error": exc.description, "code": code}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        LOGGER.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "Internal server error", "code": "INTERNAL_ERROR"}), 500


def _payload() -> Mapping[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        return request.form.to_dict()
    if not isinstance(data, Mapping):
        raise BadRequestError("Request body must be a JSON object")
    return data


def _as_bool(value: Any, *, field: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    raise BadRequestError(f"{field} must be true or false")


def _current_user_id() -> int:
    return g.user.id


def register_routes(app: Flask) -> None:
    @app.post("/register")
    def register():
        payload = _payload()
        user = accounts.register_user(payload.get("email") or "", payload.get("password") or "")
        flask_session["user_id"] = user.id
        return jsonify({"user": user.to_dict(include_private=True)}), 201

    @app.post("/login")
    def login():
        payload = _payload()
        remote_addr = request.remote_addr or "unknown"
        if _is_rate_limited(remote_addr):
            return jsonify({"error": "Too many attempts. Try again in a few minutes.", "code": "RATE_LIMITED"}), 429
        try:
            user = accounts.authenticate(payload.get("email") or "", payload.get("password") or "")
        except AuthenticationError:
            _record_failed_login(remote_addr)
            raise
        _clear_failed_login(remote_addr)
        flask_session["user_id"] = user.id
        return jsonify({"user": user.to_dict(include_private=True), "hasProfile": profiles.has_profile(user.id)})

    @app.post("/logout")
    def logout():
        flask_session.clear()
        return jsonify({"status": "ok"})

    @app.route("/health")
    def health():
        return jsonify({"status": "ok"}), 200


def register_api(app: Flask) -> None:
    # Account & onboarding ----------------------------------------------------

    @app.get("/api/me")
    @login_required
    def api_me():
        return jsonify(
            {
                "user": g.user.to_dict(include_private=True),
                "hasProfile": profiles.has_profile(g.user.id),
                "unreadNotifications": notifications.unread_count(g.user.id),
            }
        )

    @app.get("/api/config")
    def api_config():
        config = get_config()
        return jsonify(
            {
                "allowedSports": list(config.allowed_sports),
                "wizardSteps": [{"step": step, "title": title} for step, title in STEP_TITLES.items()],
            }
        )

    @app.post("/api/onboarding/validate")
    @login_required
    def api_validate_step():
        payload = _payload()
        try:
            step = int(payload.get("step"))
        except (TypeError, ValueError):
            raise BadRequestError(f"step must be between 1 and {TOTAL_STEPS}") from None
        if step not in STEP_TITLES:
            raise BadRequestError(f"step must be between 1 and {TOTAL_STEPS}")
        data = payload.get("data") or {}
        if not isinstance(data, Mapping):
            raise BadRequestError("data must be an object")
        errors = validate_step(step, data)
        return jsonify({"step": step, "valid": not errors, "errors": errors})

    # Profile ---------------------------------------------------------------

    @app.post("/api/profile")
    @login_required
    def api_create_profile():
        return jsonify(profiles.create_profile(_current_user_id(), _payload())), 201

    @app.get("/api/profile")
    @login_required
    def api_get_profile():
        return jsonify(profiles.get_current_profile(_current_user_id()))

    @app.patch("/api/profile")
    @login_required
    def api_update_profile():
        return jsonify(profiles.update_profile(_current_user_id(), _payload()))

    @app.delete("/api/profile")
    @login_required
    def api_delete_profile():
        profiles.delete_profile(_current_user_id())
        flask_session.clear()
        return jsonify({"status": "deleted"})

    # Social ----------------------------------------------------------------

    @app.get("/api/users/search")
    @login_required
    def api_search_users():
        results = social.search_users(
            request.args.get("q", ""),
            limit=request.args.get("limit", type=int),
            exclude_user_id=_current_user_id(),
        )
        return jsonify({"users": results})

    @app.get("/api/users/<username>")
    @login_required
    def api_user_profile(username: str):
        return jsonify(social.get_user_profile(username, viewer_id=_current_user_id()))

    @app.post("/api/users/<int:user_id>/follow")
    @login_required
    def api_follow(user_id: int):
        return jsonify(social.follow_user(_current_user_id(), user_id))

    @app.delete("/api/users/<int:user_id>/follow")
    @login_required
    def api_unfollow(user_id: int):
        return jsonify(social.unfollow_user(_current_user_id(), user_id))

    @app.get("/api/users/<int:user_id>/followers")
    @login_required
    def api_followers(user_id: int):
        users = social.list_followers(
            user_id, limit=request.args.get("limit", type=int), offset=request.args.get("offset", 0, type=int)
        )
        return jsonify({"users": users})

    @app.get("/api/users/<int:user_id>/following")
    @login_required
    def api_following(user_id: int):
        users = social.list_following(
            user_id, limit=request.args.get("limit", type=int), offset=request.args.get("offset", 0, type=int)
        )
        return jsonify({"users": users})

    # Guides & evaluation requests -------------------------------------------

    @app.post("/api/guides")
    @login_required
    def api_register_guide():
        payload = _payload()
        guide = guides.register_guide(
            _current_user_id(),
            sport=payload.get("sport") or "",
            experience_years=payload.get("experienceYears"),
            city=payload.get("city"),
            state=payload.get("state"),
            country=payload.get("country"),
            lat=payload.get("lat"),
            lon=payload.get("lon"),
        )
        return jsonify({"guide": guide.to_dict()}), 201

    @app.get("/api/guides/me")
    @login_required
    def api_my_guide():
        guide = guides.get_guide_for_user(_current_user_id())
        if guide is None:
            raise NotFoundError("No guide application for this user")
        return jsonify({"guide": guide.to_dict()})

    @app.post("/api/guides/<int:guide_id>/approve")
    @login_required
    @require_role(ROLE_ADMIN)
    def api_approve_guide(guide_id: int):
        approved = _as_bool(_payload().get("approved", True), field="approved")
        return jsonify({"guide": guides.approve_guide(guide_id, approved=approved).to_dict()})

    @app.get("/api/guides/nearby")
    @login_required
    def api_nearby_guides():
        results = guides.find_nearby_guides(
            request.args.get("lat"),
            request.args.get("lon"),
            radius_km=request.args.get("radius"),
            sport=request.args.get("sport"),
            limit=request.args.get("limit", type=int),
            exclude_user_id=_current_user_id(),
        )
        return jsonify({"guides": results})

    @app.post("/api/guides/<int:guide_id>/requests")
    @login_required
    def api_create_request(guide_id: int):
        created = guides.create_evaluation_request(_current_user_id(), guide_id, _payload().get("message") or "")
        return jsonify({"request": created.to_dict()}), 201

    @app.get("/api/guides/requests/incoming")
    @login_required
    @require_role(ROLE_GUIDE, ROLE_ADMIN)
    def api_incoming_requests():
        return jsonify({"requests": guides.list_incoming_requests(_current_user_id(), status=request.args.get("status"))})

    @app.post("/api/guides/verify-otp")
    @login_required
    @require_role(ROLE_GUIDE, ROLE_ADMIN)
    def api_verify_otp():
        return jsonify(guides.verify_otp(_current_user_id(), _payload().get("otp")))

    @app.get("/api/requests")
    @login_required
    def api_my_requests():
        return jsonify({"requests": guides.list_my_requests(_current_user_id())})

    @app.post("/api/requests/<int:request_id>/respond")
    @login_required
    @require_role(ROLE_GUIDE, ROLE_ADMIN)
    def api_respond_request(request_id: int):
        payload = _payload()
        updated = guides.respond_to_request(
            _current_user_id(),
            request_id,
            payload.get("action") or "",
            location=payload.get("location"),
            scheduled_date=payload.get("scheduledDate"),
            scheduled_time=payload.get("scheduledTime"),
            equipment=payload.get("equipment"),
            message=payload.get("message"),
        )
        return jsonify({"request": updated.to_dict()})

    @app.post("/api/requests/<int:request_id>/cancel")
    @login_required
    def api_cancel_request(request_id: int):
        return jsonify({"request": guides.cancel_request(_current_user_id(), request_id).to_dict()})

    # Notifications -----------------------------------------------------------

    @app.get("/api/notifications")
    @login_required
    def api_notifications():
        unread_only = request.args.get("unread", "0").lower() in ("1", "true", "yes")
        items = notifications.list_notifications(
            _current_user_id(), unread_only=unread_only, limit=request.args.get("limit", type=int)
        )
        return jsonify({"notifications": [item.to_dict() for item in items]})

    @app.post("/api/notifications/<int:notification_id>/read")
    @login_required
    def api_mark_read(notification_id: int):
        return jsonify({"notification": notifications.mark_read(_current_user_id(), notification_id).to_dict()})

    @app.post("/api/notifications/read-all")
    @login_required
    def api_mark_all_read():
        return jsonify({"updated": notifications.mark_all_read(_current_user_id())})

    @app.delete("/api/notifications/<int:notification_id>")
    @login_required
    def api_delete_notification(notification_id: int):
        notifications.delete_notification(_current_user_id(), notification_id)
        return jsonify({"status": "deleted"})

    # Stats -------------------------------------------------------------------

    @app.get("/api/stats/<int:user_id>")
    @login_required
    def api_get_stats(user_id: int):
        return jsonify(stats_service.get_stats(user_id))

    @app.post("/api/stats/<int:user_id>")
    @login_required
    @require_role(ROLE_GUIDE, ROLE_ADMIN)
    def api_save_stats(user_id: int):
        payload = dict(_payload())
        otp = payload.pop("otp", None)
        snapshot = stats_service.save_stats(user_id, payload, _current_user_id(), otp=otp)
        return jsonify({"snapshot": snapshot}), 201

    @app.get("/api/stats/<int:user_id>/report")
    @login_required
    def api_stats_report(user_id: int):
        return jsonify(stats_service.latest_report(user_id).to_dict())

    @app.get("/api/stats/<int:user_id>/chart.png")
    @login_required
    def api_stats_chart(user_id: int):
        from ..stats.report import render_radar_chart

        report = stats_service.latest_report(user_id)
        with tempfile.TemporaryDirectory() as tmp:
            path = render_radar_chart(report.scores, Path(tmp) / "radar.png", reference=report.reference)
            data = path.read_bytes()
        return send_file(io.BytesIO(data), mimetype="image/png", download_name=f"stats-{user_id}.png")

    @app.get("/api/stats/<int:user_id>/report.pdf")
    @login_required
    def api_stats_report_pdf(user_id: int):
        from ..stats.report import build_report_pdf

        athlete = accounts.get_user(user_id)
        report = stats_service.latest_report(user_id)
        recommendations = stats_service.get_stats(user_id)["latest"]["recommendations"]
        with tempfile.TemporaryDirectory() as tmp:
            path = build_report_pdf(
                report,
                Path(tmp) / "report.pdf",
                athlete_name=athlete.display_name,
                recommendations=recommendations,
            )
            data = path.read_bytes()
        return send_file(
            io.BytesIO(data),
            mimetype="application/pdf",
            as_attachment=True,
            download_name=f"athlete-report-{user_id}.pdf",
        )

    return None


def _record_failed_login(ip: str) -> None:
    now = now_utc()
    FAILED_LOGINS[ip].append(now)
    cutoff = now - timedelta(minutes=FAILED_WINDOW_MINUTES)
    FAILED_LOGINS[ip] = [ts for ts in FAILED_LOGINS[ip] if ts >= cutoff]


def _clear_failed_login(ip: str) -> None:
    FAILED_LOGINS.pop(ip, None)


def _is_rate_limited(ip: str) -> bool:
    cutoff = now_utc() - timedelta(minutes=FAILED_WINDOW_MINUTES)
    recent = [ts for ts in FAILED_LOGINS.get(ip, []) if ts >= cutoff]
    if recent:
        FAILED_LOGINS[ip] = recent
    else:
        FAILED_LOGINS.pop(ip, None)
    return len(recent) >= MAX_FAILED_ATTEMPTS
