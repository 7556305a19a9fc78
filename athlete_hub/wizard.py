"""Five-step onboarding wizard that turns form input into a profile payload.

Steps run in a fixed order: 1 location, 2 personal details, 3 primary sport,
4 geolocation (optional coordinates) and 5 review. Moving forward is gated on
the current step validating; moving back is always allowed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, List, Mapping

from .config import AppConfig, get_config
from .models import (
    MAXIMUM_AGE,
    MINIMUM_AGE,
    NAME_PATTERN,
    ValidationError,
    calculate_age,
    coerce_number,
    normalise_gender,
    normalise_username,
    parse_iso_date,
)

TOTAL_STEPS = 5
STEP_LOCATION = 1
STEP_PERSONAL = 2
STEP_SPORT = 3
STEP_GEOLOCATION = 4
STEP_REVIEW = 5

STEP_TITLES: Dict[int, str] = {
    STEP_LOCATION: "Location",
    STEP_PERSONAL: "Personal Details",
    STEP_SPORT: "Primary Sport",
    STEP_GEOLOCATION: "Geolocation",
    STEP_REVIEW: "Review",
}

STEP_FIELDS: Dict[int, tuple[str, ...]] = {
    STEP_LOCATION: ("city", "state", "country"),
    STEP_PERSONAL: ("username", "firstName", "lastName", "dateOfBirth", "gender", "bio"),
    STEP_SPORT: ("primarySport",),
    STEP_GEOLOCATION: ("lat", "lon"),
    STEP_REVIEW: (),
}

OPTIONAL_FIELDS = frozenset({"gender", "lat", "lon", "profileImageUrl"})

PLACE_PATTERN = re.compile(r"^[a-zA-Z\s'-]+$")
PLACE_MIN_LENGTH = 2
PLACE_MAX_LENGTH = 50
FIRST_NAME_MAX_LENGTH = 150
LAST_NAME_MAX_LENGTH = 50
BIO_MIN_LENGTH = 10
BIO_MAX_LENGTH = 500

FieldErrors = Dict[str, List[str]]


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _place(label: str) -> Callable[[Any], str]:
    def check(value: Any) -> str:
        text = str(value).strip()
        if len(text) < PLACE_MIN_LENGTH:
            raise ValidationError(f"{label} must be at least {PLACE_MIN_LENGTH} characters.")
        if len(text) > PLACE_MAX_LENGTH:
            raise ValidationError(f"{label} must be less than {PLACE_MAX_LENGTH} characters.")
        if not PLACE_PATTERN.match(text):
            raise ValidationError(f"{label} can only contain letters, spaces, hyphens, and apostrophes.")
        return text

    return check


def _name(label: str, max_length: int) -> Callable[[Any], str]:
    def check(value: Any) -> str:
        text = str(value).strip()
        if not text:
            raise ValidationError(f"{label} is required.")
        if len(text) > max_length:
            raise ValidationError(f"{label} must be less than {max_length} characters.")
        if not NAME_PATTERN.match(text):
            raise ValidationError(f"{label} can only contain letters, spaces, hyphens, and apostrophes.")
        return text

    return check


def _date_of_birth(value: Any, today: date) -> date:
    born = parse_iso_date(value, field="dateOfBirth")
    if born > today:
        raise ValidationError("Date of birth cannot be in the future.")
    age = calculate_age(born, today=today)
    if age < MINIMUM_AGE:
        raise ValidationError(f"You must be at least {MINIMUM_AGE} years old.")
    if age > MAXIMUM_AGE:
        raise ValidationError("Please enter a valid date of birth.")
    return born


def _bio(value: Any) -> str:
    text = str(value).strip()
    if len(text) < BIO_MIN_LENGTH:
        raise ValidationError(f"Bio must be at least {BIO_MIN_LENGTH} characters.")
    if len(text) > BIO_MAX_LENGTH:
        raise ValidationError(f"Bio must be less than {BIO_MAX_LENGTH} characters.")
    if len(re.sub(r"\s", "", text)) < BIO_MIN_LENGTH:
        raise ValidationError(f"Bio must contain at least {BIO_MIN_LENGTH} non-whitespace characters.")
    return text


def _sport(value: Any, config: AppConfig) -> str:
    sport = str(value).strip().lower()
    if sport not in config.allowed_sports:
        raise ValidationError("Please select a valid sport from the list.")
    return sport


def normalise_field(name: str, value: Any, *, today: date | None = None, config: AppConfig | None = None) -> Any:
    """Validate and normalise a single profile field, raising `ValidationError`."""
    today = today or date.today()
    config = config or get_config()
    if _blank(value):
        if name in OPTIONAL_FIELDS:
            return None
        raise ValidationError(f"{name} is required.")

    if name == "city":
        return _place("City")(value)
    if name == "state":
        return _place("State")(value)
    if name == "country":
        return _place("Country")(value)
    if name == "username":
        return normalise_username(value)
    if name == "firstName":
        return _name("First name", FIRST_NAME_MAX_LENGTH)(value)
    if name == "lastName":
        return _name("Last name", LAST_NAME_MAX_LENGTH)(value)
    if name == "dateOfBirth":
        return _date_of_birth(value, today)
    if name == "gender":
        return normalise_gender(value)
    if name == "bio":
        return _bio(value)
    if name == "primarySport":
        return _sport(value, config)
    if name == "lat":
        return coerce_number(value, field="Latitude", minimum=-90, maximum=90)
    if name == "lon":
        return coerce_number(value, field="Longitude", minimum=-180, maximum=180)
    if name == "profileImageUrl":
        return str(value).strip()
    raise ValidationError(f"Unknown profile field: {name}.")


def _collect(
    fields: tuple[str, ...], data: Mapping[str, Any], *, today: date | None, config: AppConfig | None
) -> tuple[dict[str, Any], FieldErrors]:
    cleaned: dict[str, Any] = {}
    errors: FieldErrors = {}
    for name in fields:
        try:
            cleaned[name] = normalise_field(name, data.get(name), today=today, config=config)
        except ValidationError as exc:
            errors.setdefault(name, []).append(str(exc))
    return cleaned, errors


def validate_step(
    step: int,
    data: Mapping[str, Any],
    *,
    today: date | None = None,
    config: AppConfig | None = None,
) -> FieldErrors:
    """Return field errors for `step`; an empty mapping means the step is valid.

    The review step is valid only when every earlier step is.
    """
    if step not in STEP_TITLES:
        raise ValueError(f"Unknown wizard step: {step}")
    if step == STEP_REVIEW:
        errors: FieldErrors = {}
        for earlier in range(STEP_LOCATION, STEP_REVIEW):
            errors.update(validate_step(earlier, data, today=today, config=config))
        return errors

    cleaned, errors = _collect(STEP_FIELDS[step], data, today=today, config=config)
    if step == STEP_GEOLOCATION and not errors:
        # Coordinates come as a pair or not at all.
        if (cleaned.get("lat") is None) != (cleaned.get("lon") is None):
            missing = "lon" if cleaned.get("lon") is None else "lat"
            errors[missing] = ["Both latitude and longitude are required when sharing a location."]
    return errors


def validate_profile(
    data: Mapping[str, Any], *, today: date | None = None, config: AppConfig | None = None
) -> dict[str, Any]:
    """Validate every wizard field at once and return the normalised values."""
    errors = validate_step(STEP_REVIEW, data, today=today, config=config)
    if errors:
        raise ValidationError("Profile data is invalid.", fields=errors)
    fields = tuple(name for step in range(STEP_LOCATION, STEP_REVIEW) for name in STEP_FIELDS[step])
    cleaned, _ = _collect(fields + ("profileImageUrl",), data, today=today, config=config)
    return cleaned


@dataclass
class WizardState:
    """Navigation state for one onboarding session."""

    data: Dict[str, Any] = field(default_factory=dict)
    current_step: int = STEP_LOCATION
    completed_steps: set[int] = field(default_factory=set)
    errors: FieldErrors = field(default_factory=dict)
    today: date | None = None

    def update(self, values: Mapping[str, Any]) -> None:
        self.data.update(values)
        # Edits can invalidate a step that was already completed.
        for step in list(self.completed_steps):
            if not self.is_step_valid(step):
                self.completed_steps.discard(step)

    def step_errors(self, step: int) -> FieldErrors:
        return validate_step(step, self.data, today=self.today)

    def is_step_valid(self, step: int) -> bool:
        return not self.step_errors(step)

    @property
    def title(self) -> str:
        return STEP_TITLES[self.current_step]

    @property
    def can_go_previous(self) -> bool:
        return self.current_step > STEP_LOCATION

    @property
    def can_go_next(self) -> bool:
        return self.current_step < TOTAL_STEPS and self.is_step_valid(self.current_step)

    @property
    def progress(self) -> int:
        """Percentage of completed steps, rounded to a whole number."""
        return round(len(self.completed_steps) / TOTAL_STEPS * 100)

    @property
    def is_complete(self) -> bool:
        return STEP_REVIEW in self.completed_steps

    def next_step(self) -> bool:
        errors = self.step_errors(self.current_step)
        self.errors = errors
        if errors:
            return False
        self.completed_steps.add(self.current_step)
        if self.current_step < TOTAL_STEPS:
            self.current_step += 1
        return True

    def previous_step(self) -> bool:
        if not self.can_go_previous:
            return False
        self.current_step -= 1
        self.errors = {}
        return True

    def go_to_step(self, step: int) -> bool:
        """Jump backwards freely, or forwards only when every step before `step` is valid."""
        if step not in STEP_TITLES:
            return False
        if step > self.current_step:
            if any(not self.is_step_valid(earlier) for earlier in range(STEP_LOCATION, step)):
                return False
            self.completed_steps.update(range(STEP_LOCATION, step))
        self.current_step = step
        self.errors = {}
        return True

    def complete(self) -> dict[str, Any]:
        """Finish the review step and return the profile payload."""
        if self.current_step != STEP_REVIEW:
            raise ValidationError("Review every step before submitting.")
        payload = self.to_profile_payload()
        self.completed_steps.add(STEP_REVIEW)
        return payload

    def to_profile_payload(self) -> dict[str, Any]:
        cleaned = validate_profile(self.data, today=self.today)
        born = cleaned.get("dateOfBirth")
        return {
            "username": cleaned["username"],
            "firstName": cleaned["firstName"],
            "lastName": cleaned["lastName"],
            "dateOfBirth": born.isoformat() if born else None,
            "gender": cleaned.get("gender"),
            "bio": cleaned["bio"],
            "primarySport": cleaned["primarySport"],
            "city": cleaned["city"],
            "state": cleaned["state"],
            "country": cleaned["country"],
            "lat": cleaned.get("lat"),
            "lon": cleaned.get("lon"),
            "profileImageUrl": cleaned.get("profileImageUrl"),
        }
