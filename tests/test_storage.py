from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone

import pytest

from athlete_hub import storage


def test_init_database_creates_schema(isolated_data_dir):
    path = storage.init_database()
    assert path == isolated_data_dir / storage.DEFAULT_DB_FILENAME
    assert path.exists()

    with storage.open_database(readonly=True) as conn:
        tables = {row["name"] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
    assert {
        "users",
        "locations",
        "profiles",
        "follows",
        "user_counters",
        "guides",
        "evaluation_requests",
        "notifications",
        "stats_snapshots",
    } <= tables


def test_db_file_override(monkeypatch, tmp_path):
    target = tmp_path / "custom" / "hub.db"
    monkeypatch.setenv("ATHLETE_HUB_DB_FILE", str(target))
    assert storage.init_database() == target
    assert target.exists()


def test_follow_constraints_are_enforced(make_user):
    alice = make_user("alice")
    bob = make_user("bob")
    with storage.open_database() as conn:
        with pytest.raises(sqlite3.IntegrityError):
            with conn:
                conn.execute(
                    "INSERT INTO follows (follower_id, following_id, created_at) VALUES (?, ?, ?)",
                    (alice.id, alice.id, storage.timestamp()),
                )
        with conn:
            conn.execute(
                "INSERT INTO follows (follower_id, following_id, created_at) VALUES (?, ?, ?)",
                (alice.id, bob.id, storage.timestamp()),
            )
        with pytest.raises(sqlite3.IntegrityError):
            with conn:
                conn.execute(
                    "INSERT INTO follows (follower_id, following_id, created_at) VALUES (?, ?, ?)",
                    (alice.id, bob.id, storage.timestamp()),
                )


def test_counters_cannot_go_negative(make_user):
    alice = make_user("alice")
    with storage.open_database() as conn:
        with pytest.raises(sqlite3.IntegrityError):
            with conn:
                conn.execute("UPDATE user_counters SET followers_count = -1 WHERE user_id = ?", (alice.id,))
        assert storage.fetch_counters(conn, alice.id).followers_count == 0


def test_username_lookup_is_case_insensitive(make_user):
    make_user("Alice_Runs")
    with storage.open_database() as conn:
        user = storage.fetch_user_by_username(conn, "alice_runs")
    assert user is not None
    assert user.username == "Alice_Runs"


def test_timestamp_is_utc_seconds():
    moment = datetime(2024, 5, 1, 12, 30, 15, 999, tzinfo=timezone.utc)
    assert storage.timestamp(moment) == "2024-05-01T12:30:15+00:00"


def test_load_json_ignores_malformed_values(caplog):
    assert storage.load_json('{"a": 1}', {}) == {"a": 1}
    assert storage.load_json(None, []) == []
    with caplog.at_level(logging.WARNING, logger="athlete_hub.storage"):
        assert storage.load_json("{not json", {}) == {}
    assert "malformed" in caplog.text
