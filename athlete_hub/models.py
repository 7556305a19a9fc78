from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from .constants import DEFAULT_CLASS, DEFAULT_RANK, GENDERS, ROLE_ATHLETE

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")
NAME_PATTERN = re.compile(r"^[a-zA-Z\s'-]+$")
MINIMUM_AGE = 13
MAXIMUM_AGE = 120

__all__ = [
    "parse_iso_date",
    "coerce_number",
    "optional_number",
    "parse_list",
    "normalise_username",
    "normalise_gender",
    "calculate_age",
    "User",
    "Location",
    "Profile",
    "UserCounters",
    "Guide",
    "EvaluationRequest",
    "Notification",
    "ValidationError",
]


class ValidationError(ValueError):
    """Raised when user-supplied data cannot be normalised safely.

    `fields` maps a field name to its list of messages when the failure can be
    attributed to specific inputs (wizard steps, stats forms).
    """

    def __init__(self, message: str, *, fields: Dict[str, List[str]] | None = None) -> None:
        super().__init__(message)
        self.fields: Dict[str, List[str]] = dict(fields or {})


def parse_iso_date(value: Any, *, field: str = "date") -> date:
    """
    Parse user-supplied ISO-8601 dates.

    Accepts `datetime.date`, `datetime.datetime`, or strings. Raises `ValidationError`
    with a friendlier message if the payload cannot be parsed.
    """
    if isinstance(value, date):
        return value if not isinstance(value, datetime) else value.date()

    if not isinstance(value, str):
        raise ValidationError(
            f"{field} must be provided as YYYY-MM-DD text; received {value!r}."
        )

    candidate = value.strip()
    if not candidate:
        raise ValidationError(f"{field} cannot be empty.")

    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError as exc:
        raise ValidationError(
            f"{field} must be a valid ISO date (YYYY-MM-DD); received {candidate!r}."
        ) from exc

    return parsed.date()


def coerce_number(
    value: Any,
    *,
    field: str = "value",
    minimum: float | None = None,
    maximum: float | None = None,
    allow_float: bool = True,
) -> float:
    """
    Convert arbitrary input into a float with guardrails.

    The `minimum` and `maximum` bounds (inclusive) trigger a ValidationError when
    breached. When `allow_float` is False, the coerced number must be whole.
    """
    if value is None:
        raise ValidationError(f"{field} is required.")

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number; received {value!r}.")

    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} is required.")
        try:
            number = float(stripped)
        except ValueError as exc:
            raise ValidationError(f"{field} must be a number; received {value!r}.") from exc
    else:
        raise ValidationError(f"{field} must be a number; received {value!r}.")

    if number != number:
        raise ValidationError(f"{field} must be a number; received {value!r}.")

    if not allow_float and number != round(number):
        raise ValidationError(f"{field} must be an integer; received {value!r}.")

    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be >= {minimum}; received {number}.")

    if maximum is not None and number > maximum:
        raise ValidationError(f"{field} must be <= {maximum}; received {number}.")

    return number


def optional_number(value: Any, **kwargs: Any) -> float | None:
    """Like `coerce_number` but returns None for missing/blank input."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return coerce_number(value, **kwargs)


def parse_list(payload: Any, *, field: str = "items") -> list[str]:
    """Normalise a comma-separated list (or sequence), dropping empty entries."""
    if payload is None:
        return []

    if isinstance(payload, str):
        tokens = [token.strip() for token in payload.split(",")]
    elif isinstance(payload, (list, tuple, set)):
        tokens = [str(token).strip() for token in payload]
    else:
        raise ValidationError(
            f"{field} must be a comma-separated list or sequence; received {payload!r}."
        )

    return [token for token in tokens if token]


def normalise_username(value: Any) -> str:
    text = str(value or "").strip()
    if len(text) < 3:
        raise ValidationError("Username must be at least 3 characters.")
    if len(text) > 130:
        raise ValidationError("Username must be less than 130 characters.")
    if not USERNAME_PATTERN.match(text):
        raise ValidationError("Username can only contain letters, numbers, and underscores.")
    return text


def normalise_gender(value: Any) -> str | None:
    if value is None or not str(value).strip():
        return None
    gender = str(value).strip().upper()
    if gender not in GENDERS:
        raise ValidationError("Please select a valid gender option.")
    return gender


def calculate_age(birth_date: date, *, today: date | None = None) -> int:
    """Whole years between `birth_date` and `today`."""
    today = today or date.today()
    years = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        years -= 1
    return years


def _iso(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


@dataclass
class User:
    """Account row; profile fields are filled in by the onboarding wizard."""

    id: int
    email: str
    password_hash: str = ""
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    primary_sport: Optional[str] = None
    role: str = ROLE_ATHLETE
    rank: str = DEFAULT_RANK
    tier_class: str = DEFAULT_CLASS
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    profile_image_url: Optional[str] = None
    created_at: Optional[str] = None
    deleted_at: Optional[str] = None

    @property
    def display_name(self) -> str:
        full = " ".join(part for part in (self.first_name, self.last_name) if part)
        return full or self.username or self.email

    def to_dict(self, *, include_private: bool = False) -> Dict[str, Any]:
        payload = {
            "id": self.id,
            "username": self.username,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "gender": self.gender,
            "primarySport": self.primary_sport,
            "role": self.role,
            "rank": self.rank,
            "class": self.tier_class,
            "city": self.city,
            "state": self.state,
            "country": self.country,
            "profileImageUrl": self.profile_image_url,
        }
        if include_private:
            payload["email"] = self.email
            payload["dateOfBirth"] = _iso(self.date_of_birth)
            payload["createdAt"] = self.created_at
        return payload


@dataclass
class Location:
    id: int
    city: Optional[str]
    state: Optional[str]
    country: Optional[str]
    lat: float
    lon: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Profile:
    id: int
    user_id: int
    bio: str = ""
    avatar_url: Optional[str] = None
    location: Optional[Location] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "bio": self.bio,
            "avatarUrl": self.avatar_url,
            "location": self.location.to_dict() if self.location else None,
        }


@dataclass
class UserCounters:
    user_id: int
    followers_count: int = 0
    following_count: int = 0
    posts_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "followers": self.followers_count,
            "following": self.following_count,
            "posts": self.posts_count,
        }


@dataclass
class Guide:
    id: int
    user_id: int
    status: str = "pending"
    sport: Optional[str] = None
    experience_years: Optional[int] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "status": self.status,
            "sport": self.sport,
            "experienceYears": self.experience_years,
            "city": self.city,
            "state": self.state,
            "country": self.country,
            "lat": self.lat,
            "lon": self.lon,
        }


@dataclass
class EvaluationRequest:
    id: int
    user_id: int
    guide_id: int
    message: str
    status: str = "PENDING"
    guide_message: Optional[str] = None
    location: Optional[str] = None
    scheduled_date: Optional[date] = None
    scheduled_time: Optional[str] = None
    equipment: List[str] = field(default_factory=list)
    otp: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self, *, include_otp: bool = False) -> Dict[str, Any]:
        payload = {
            "id": self.id,
            "userId": self.user_id,
            "guideId": self.guide_id,
            "message": self.message,
            "status": self.status,
            "guideMessage": self.guide_message,
            "location": self.location,
            "scheduledDate": _iso(self.scheduled_date),
            "scheduledTime": self.scheduled_time,
            "equipment": list(self.equipment),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if include_otp:
            payload["otp"] = self.otp
        return payload


@dataclass
class Notification:
    id: int
    user_id: int
    type: str
    title: str
    message: str
    actor_id: Optional[int] = None
    data: Dict[str, Any] = field(default_factory=dict)
    is_read: bool = False
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "actorId": self.actor_id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "data": dict(self.data),
            "isRead": self.is_read,
            "createdAt": self.created_at,
        }
