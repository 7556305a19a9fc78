from __future__ import annotations

from datetime import date, datetime

import pytest

from athlete_hub.models import (
    EvaluationRequest,
    User,
    ValidationError,
    calculate_age,
    coerce_number,
    normalise_username,
    optional_number,
    parse_iso_date,
    parse_list,
)


def test_parse_iso_date_variants():
    assert parse_iso_date("2024-05-01") == date(2024, 5, 1)
    assert parse_iso_date(datetime(2024, 5, 1, 12, 30)) == date(2024, 5, 1)
    with pytest.raises(ValidationError):
        parse_iso_date("01/05/2024")
    with pytest.raises(ValidationError):
        parse_iso_date(20240501)


def test_coerce_number_bounds():
    assert coerce_number(" 4.5 ") == pytest.approx(4.5)
    with pytest.raises(ValidationError):
        coerce_number(True)
    with pytest.raises(ValidationError):
        coerce_number(3.5, allow_float=False)
    with pytest.raises(ValidationError):
        coerce_number(-1, minimum=0)
    assert optional_number("  ") is None


def test_parse_list_drops_blanks():
    assert parse_list("cones, stopwatch,, tape ") == ["cones", "stopwatch", "tape"]
    assert parse_list(None) == []
    with pytest.raises(ValidationError):
        parse_list(42)


def test_username_rules():
    assert normalise_username(" Jamie_01 ") == "Jamie_01"
    for bad in ("ab", "has space", "x" * 131):
        with pytest.raises(ValidationError):
            normalise_username(bad)


def test_calculate_age_before_birthday():
    assert calculate_age(date(2000, 6, 2), today=date(2024, 6, 1)) == 23
    assert calculate_age(date(2000, 6, 1), today=date(2024, 6, 1)) == 24


def test_user_public_and_private_views():
    user = User(id=1, email="jamie@example.com", username="jamie", first_name="Jamie", date_of_birth=date(2000, 1, 1))
    public = user.to_dict()
    assert "email" not in public
    assert public["rank"] == "PAWN"
    assert public["class"] == "E"
    private = user.to_dict(include_private=True)
    assert private["email"] == "jamie@example.com"
    assert private["dateOfBirth"] == "2000-01-01"
    assert user.display_name == "Jamie"


def test_request_hides_otp_by_default():
    request = EvaluationRequest(id=1, user_id=2, guide_id=3, message="Please evaluate me", otp=123456)
    assert "otp" not in request.to_dict()
    assert request.to_dict(include_otp=True)["otp"] == 123456
