from __future__ import annotations

from datetime import date

import pytest

from athlete_hub import storage
from athlete_hub.errors import BadRequestError, ConflictError, NotFoundError
from athlete_hub.models import ValidationError
from athlete_hub.services import accounts, profiles, social

PAYLOAD = {
    "username": "jamie_runs",
    "firstName": "Jamie",
    "lastName": "Runner",
    "dateOfBirth": "2000-01-01",
    "gender": "FEMALE",
    "bio": "Sprinter chasing a new personal best.",
    "primarySport": "running",
    "city": "Brno",
    "state": "South Moravia",
    "country": "Czechia",
}


def test_create_profile_without_coordinates():
    user = accounts.register_user("jamie@example.com", "password123")
    result = profiles.create_profile(user.id, PAYLOAD, today=date(2024, 6, 1))

    assert result["user"]["username"] == "jamie_runs"
    assert result["user"]["dateOfBirth"] == "2000-01-01"
    assert result["user"]["email"] == "jamie@example.com"
    assert result["profile"]["bio"] == PAYLOAD["bio"]
    assert result["profile"]["location"] is None
    assert result["counters"] == {"followers": 0, "following": 0, "posts": 0}
    assert profiles.has_profile(user.id)


def test_create_profile_with_coordinates_writes_location():
    user = accounts.register_user("jamie@example.com", "password123")
    result = profiles.create_profile(user.id, {**PAYLOAD, "lat": 49.19, "lon": 16.61})
    location = result["profile"]["location"]
    assert location["lat"] == pytest.approx(49.19)
    assert location["city"] == "Brno"


def test_create_profile_rejects_invalid_and_duplicates(make_user):
    make_user("jamie_runs")
    user = accounts.register_user("other@example.com", "password123")

    with pytest.raises(ValidationError) as excinfo:
        profiles.create_profile(user.id, {**PAYLOAD, "primarySport": "chess"})
    assert "primarySport" in excinfo.value.fields

    with pytest.raises(ConflictError) as conflict:
        profiles.create_profile(user.id, {**PAYLOAD, "username": "JAMIE_RUNS"})
    assert conflict.value.details == {"username": ["Username is already taken"]}

    profiles.create_profile(user.id, {**PAYLOAD, "username": "second"})
    with pytest.raises(ConflictError):
        profiles.create_profile(user.id, {**PAYLOAD, "username": "third"})


def test_get_profile_requires_onboarding():
    user = accounts.register_user("jamie@example.com", "password123")
    assert not profiles.has_profile(user.id)
    with pytest.raises(NotFoundError):
        profiles.get_current_profile(user.id)


def test_partial_update(make_user):
    user = make_user("jamie_runs")
    result = profiles.update_profile(user.id, {"bio": "Now focusing on the 400 metres.", "city": "Prague"})
    assert result["profile"]["bio"] == "Now focusing on the 400 metres."
    assert result["user"]["city"] == "Prague"
    assert result["user"]["username"] == "jamie_runs"


def test_update_validation(make_user):
    user = make_user("jamie_runs")
    make_user("taken_name")

    with pytest.raises(BadRequestError):
        profiles.update_profile(user.id, {})
    with pytest.raises(BadRequestError) as unknown:
        profiles.update_profile(user.id, {"email": "x@example.com"})
    assert unknown.value.details == {"fields": ["email"]}
    with pytest.raises(ValidationError) as invalid:
        profiles.update_profile(user.id, {"lat": 49.19})
    assert "lon" in invalid.value.fields
    with pytest.raises(ConflictError):
        profiles.update_profile(user.id, {"username": "taken_name"})


def test_update_replaces_location(make_user):
    user = make_user("jamie_runs", lat=49.19, lon=16.61)
    result = profiles.update_profile(user.id, {"lat": 50.08, "lon": 14.43})
    assert result["profile"]["location"]["lat"] == pytest.approx(50.08)

    with storage.open_database() as conn:
        count = conn.execute("SELECT COUNT(*) FROM locations").fetchone()[0]
    assert count == 1

    cleared = profiles.update_profile(user.id, {"lat": None, "lon": None})
    assert cleared["profile"]["location"] is None


def test_delete_profile_cleans_up_follow_graph(make_user):
    alice = make_user("alice")
    bob = make_user("bob")
    carol = make_user("carol")
    social.follow_user(alice.id, bob.id)
    social.follow_user(bob.id, carol.id)

    profiles.delete_profile(bob.id)

    assert social.get_user_profile("alice")["counters"]["following"] == 0
    assert social.get_user_profile("carol")["counters"]["followers"] == 0
    with pytest.raises(NotFoundError):
        social.get_user_profile("bob")
    with pytest.raises(NotFoundError):
        accounts.get_user(bob.id)
    with storage.open_database() as conn:
        assert conn.execute("SELECT COUNT(*) FROM follows").fetchone()[0] == 0
        assert storage.fetch_user(conn, bob.id, include_deleted=True).deleted_at is not None


def test_deleted_email_cannot_register_again(make_user):
    user = make_user("alice")
    profiles.delete_profile(user.id)
    with pytest.raises(ConflictError):
        accounts.register_user(user.email, "password123")


def test_register_user_reports_a_vanished_row(monkeypatch):
    monkeypatch.setattr(storage, "fetch_user", lambda conn, user_id, **kwargs: None)
    with pytest.raises(NotFoundError):
        accounts.register_user("jamie@example.com", "password123")
