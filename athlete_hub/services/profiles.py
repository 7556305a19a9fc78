from __future__ import annotations

import logging
import sqlite3
from datetime import date
from typing import Any, Mapping

from .. import storage
from ..errors import BadRequestError, ConflictError, NotFoundError
from ..models import User, ValidationError
from ..wizard import normalise_field, validate_profile

LOGGER = logging.getLogger(__name__)

# Profile payload key -> users column.
USER_COLUMNS: dict[str, str] = {
    "username": "username",
    "firstName": "first_name",
    "lastName": "last_name",
    "dateOfBirth": "date_of_birth",
    "gender": "gender",
    "primarySport": "primary_sport",
    "city": "city",
    "state": "state",
    "country": "country",
    "profileImageUrl": "profile_image_url",
}
PROFILE_COLUMNS: dict[str, str] = {"bio": "bio", "avatarUrl": "avatar_url"}
LOCATION_FIELDS = ("lat", "lon")


def _require_user(conn: sqlite3.Connection, user_id: int) -> User:
    user = storage.fetch_user(conn, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def _column_value(value: Any) -> Any:
    return value.isoformat() if isinstance(value, date) else value


def _ensure_username_free(conn: sqlite3.Connection, username: str, user_id: int) -> None:
    owner = storage.fetch_user_by_username(conn, username)
    if owner is not None and owner.id != user_id:
        raise ConflictError("Username is already taken", details={"username": ["Username is already taken"]})


def _insert_location(conn: sqlite3.Connection, values: Mapping[str, Any]) -> int:
    cursor = conn.execute(
        "INSERT INTO locations (city, state, country, lat, lon) VALUES (?, ?, ?, ?, ?)",
        (values.get("city"), values.get("state"), values.get("country"), values["lat"], values["lon"]),
    )
    return int(cursor.lastrowid)


def _profile_location_id(conn: sqlite3.Connection, user_id: int) -> int | None:
    row = conn.execute("SELECT location_id FROM profiles WHERE user_id = ?", (user_id,)).fetchone()
    return row["location_id"] if row else None


def create_profile(user_id: int, payload: Mapping[str, Any], *, today: date | None = None) -> dict[str, Any]:
    """Persist the onboarding wizard result.

    Location coordinates are optional; a `locations` row is only written when
    both latitude and longitude are supplied.
    """
    cleaned = validate_profile(payload, today=today)
    with storage.open_database() as conn:
        _require_user(conn, user_id)
        if storage.fetch_profile(conn, user_id) is not None:
            raise ConflictError("Profile already exists")
        _ensure_username_free(conn, cleaned["username"], user_id)

        with conn:
            location_id = None
            if cleaned.get("lat") is not None and cleaned.get("lon") is not None:
                location_id = _insert_location(conn, cleaned)
            conn.execute(
                "INSERT INTO profiles (user_id, bio, avatar_url, location_id) VALUES (?, ?, ?, ?)",
                (user_id, cleaned["bio"], cleaned.get("profileImageUrl"), location_id),
            )
            assignments = ", ".join(f"{column} = ?" for column in USER_COLUMNS.values())
            conn.execute(
                f"UPDATE users SET {assignments} WHERE id = ?",
                [_column_value(cleaned.get(key)) for key in USER_COLUMNS] + [user_id],
            )
            storage.ensure_counters(conn, user_id)
    LOGGER.info("Created profile for user %s", user_id)
    return get_current_profile(user_id)


def get_current_profile(user_id: int) -> dict[str, Any]:
    with storage.open_database() as conn:
        user = _require_user(conn, user_id)
        profile = storage.fetch_profile(conn, user_id)
        if profile is None:
            raise NotFoundError("Profile not found")
        counters = storage.fetch_counters(conn, user_id)
    return {
        "user": user.to_dict(include_private=True),
        "profile": profile.to_dict(),
        "counters": counters.to_dict(),
    }


def has_profile(user_id: int) -> bool:
    with storage.open_database() as conn:
        return storage.fetch_profile(conn, user_id) is not None


def update_profile(user_id: int, changes: Mapping[str, Any], *, today: date | None = None) -> dict[str, Any]:
    """Apply a partial update; only the supplied fields are validated and written."""
    known = set(USER_COLUMNS) | set(PROFILE_COLUMNS) | set(LOCATION_FIELDS)
    unknown = sorted(set(changes) - known)
    if unknown:
        raise BadRequestError("Unknown profile fields", details={"fields": unknown})
    if not changes:
        raise BadRequestError("No profile changes supplied")

    cleaned: dict[str, Any] = {}
    errors: dict[str, list[str]] = {}
    for key, value in changes.items():
        if key == "avatarUrl":
            cleaned[key] = (str(value).strip() or None) if value is not None else None
            continue
        try:
            cleaned[key] = normalise_field(key, value, today=today)
        except ValidationError as exc:
            errors.setdefault(key, []).append(str(exc))
    touches_location = any(key in changes for key in LOCATION_FIELDS)
    if touches_location and not errors and (cleaned.get("lat") is None) != (cleaned.get("lon") is None):
        errors["lat" if cleaned.get("lat") is None else "lon"] = [
            "Both latitude and longitude are required when sharing a location."
        ]
    if errors:
        raise ValidationError("Profile update is invalid.", fields=errors)

    with storage.open_database() as conn:
        user = _require_user(conn, user_id)
        if storage.fetch_profile(conn, user_id) is None:
            raise NotFoundError("Profile not found")
        if "username" in cleaned:
            _ensure_username_free(conn, cleaned["username"], user_id)

        with conn:
            user_updates = {USER_COLUMNS[key]: _column_value(value) for key, value in cleaned.items() if key in USER_COLUMNS}
            if user_updates:
                assignments = ", ".join(f"{column} = ?" for column in user_updates)
                conn.execute(f"UPDATE users SET {assignments} WHERE id = ?", [*user_updates.values(), user_id])

            profile_updates = {PROFILE_COLUMNS[key]: value for key, value in cleaned.items() if key in PROFILE_COLUMNS}
            if profile_updates:
                assignments = ", ".join(f"{column} = ?" for column in profile_updates)
                conn.execute(f"UPDATE profiles SET {assignments} WHERE user_id = ?", [*profile_updates.values(), user_id])

            if touches_location:
                old_location = _profile_location_id(conn, user_id)
                new_location = None
                if cleaned.get("lat") is not None:
                    place = {
                        "city": cleaned.get("city", user.city),
                        "state": cleaned.get("state", user.state),
                        "country": cleaned.get("country", user.country),
                        "lat": cleaned["lat"],
                        "lon": cleaned["lon"],
                    }
                    new_location = _insert_location(conn, place)
                conn.execute("UPDATE profiles SET location_id = ? WHERE user_id = ?", (new_location, user_id))
                if old_location is not None:
                    conn.execute("DELETE FROM locations WHERE id = ?", (old_location,))
    LOGGER.info("Updated profile for user %s (%s)", user_id, ", ".join(sorted(cleaned)))
    return get_current_profile(user_id)


def delete_profile(user_id: int) -> None:
    """Soft-delete the user and remove the profile, its location, follows and counters.

    Counters of the users on the other side of each follow are decremented in the
    same transaction so they never drift from the follow rows.
    """
    with storage.open_database() as conn:
        _require_user(conn, user_id)
        followed = [row[0] for row in conn.execute("SELECT following_id FROM follows WHERE follower_id = ?", (user_id,))]
        followers = [row[0] for row in conn.execute("SELECT follower_id FROM follows WHERE following_id = ?", (user_id,))]
        location_id = _profile_location_id(conn, user_id)

        with conn:
            for other in followed:
                conn.execute(
                    "UPDATE user_counters SET followers_count = MAX(followers_count - 1, 0) WHERE user_id = ?",
                    (other,),
                )
            for other in followers:
                conn.execute(
                    "UPDATE user_counters SET following_count = MAX(following_count - 1, 0) WHERE user_id = ?",
                    (other,),
                )
            conn.execute("DELETE FROM follows WHERE follower_id = ? OR following_id = ?", (user_id, user_id))
            conn.execute("DELETE FROM profiles WHERE user_id = ?", (user_id,))
            if location_id is not None:
                conn.execute("DELETE FROM locations WHERE id = ?", (location_id,))
            conn.execute("DELETE FROM user_counters WHERE user_id = ?", (user_id,))
            conn.execute(
                "UPDATE users SET deleted_at = ?, username = NULL WHERE id = ?",
                (storage.timestamp(), user_id),
            )
    LOGGER.info("Deleted profile for user %s", user_id)
