from __future__ import annotations

import itertools

import pytest

from athlete_hub.config import get_config

PROFILE_DEFAULTS = {
    "city": "Brno",
    "state": "South Moravia",
    "country": "Czechia",
    "firstName": "Test",
    "lastName": "Athlete",
    "dateOfBirth": "2000-01-01",
    "bio": "Training hard every single day.",
    "primarySport": "running",
}


@pytest.fixture(autouse=True)
def isolated_data_dir(monkeypatch, tmp_path):
    data_dir = tmp_path / "data"
    monkeypatch.setenv("ATHLETE_HUB_DATA_DIR", str(data_dir))
    monkeypatch.delenv("ATHLETE_HUB_DB_FILE", raising=False)
    monkeypatch.delenv("ATHLETE_HUB_CONFIG", raising=False)
    get_config.cache_clear()
    yield data_dir
    get_config.cache_clear()


@pytest.fixture
def make_user():
    """Register a user and, unless `profile=False`, run them through onboarding."""
    from athlete_hub.services import accounts, profiles

    counter = itertools.count(1)

    def factory(username=None, *, role="athlete", profile=True, password="password123", **fields):
        index = next(counter)
        user = accounts.register_user(f"user{index}@example.com", password, role=role)
        if profile:
            payload = {**PROFILE_DEFAULTS, "username": username or f"user{index}", **fields}
            profiles.create_profile(user.id, payload)
        return accounts.get_user(user.id)

    return factory
