from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Mapping

from .env import get_env
from .models import (
    EvaluationRequest,
    Guide,
    Location,
    Notification,
    Profile,
    User,
    UserCounters,
    parse_iso_date,
)

DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "data"
DEFAULT_DB_FILENAME = "athlete_hub.db"
_DB_INITIALISED_FOR: Path | None = None
LOGGER = logging.getLogger(__name__)


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def timestamp(moment: datetime | None = None) -> str:
    """ISO-8601 UTC timestamp used for every `created_at`/`updated_at` column."""
    return (moment or now_utc()).astimezone(timezone.utc).isoformat(timespec="seconds")


def _data_dir() -> Path:
    override = get_env("DATA_DIR")
    base = Path(override).expanduser() if override else DEFAULT_DATA_DIR
    base.mkdir(parents=True, exist_ok=True)
    return base


def _database_file() -> Path:
    override = get_env("DB_FILE")
    if override:
        path = Path(override).expanduser()
    else:
        path = _data_dir() / DEFAULT_DB_FILENAME
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def _ensure_database() -> None:
    global _DB_INITIALISED_FOR
    db_path = _database_file()
    if _DB_INITIALISED_FOR is not None and _DB_INITIALISED_FOR.resolve() == db_path.resolve() and db_path.exists():
        return
    conn = sqlite3.connect(db_path)
    try:
        conn.executescript(
            """
            PRAGMA foreign_keys = ON;

            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                email TEXT NOT NULL UNIQUE,
                password_hash TEXT NOT NULL,
                username TEXT UNIQUE,
                first_name TEXT,
                last_name TEXT,
                date_of_birth TEXT,
                gender TEXT,
                primary_sport TEXT,
                role TEXT NOT NULL DEFAULT 'athlete',
                rank TEXT NOT NULL DEFAULT 'PAWN',
                tier_class TEXT NOT NULL DEFAULT 'E',
                city TEXT,
                state TEXT,
                country TEXT,
                profile_image_url TEXT,
                created_at TEXT NOT NULL,
                deleted_at TEXT
            );

            CREATE TABLE IF NOT EXISTS locations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                city TEXT,
                state TEXT,
                country TEXT,
                lat REAL NOT NULL,
                lon REAL NOT NULL
            );

            CREATE TABLE IF NOT EXISTS profiles (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL UNIQUE,
                bio TEXT NOT NULL DEFAULT '',
                avatar_url TEXT,
                location_id INTEGER,
                FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
                FOREIGN KEY (location_id) REFERENCES locations(id) ON DELETE SET NULL
            );

            CREATE TABLE IF NOT EXISTS follows (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                follower_id INTEGER NOT NULL,
                following_id INTEGER NOT NULL,
                created_at TEXT NOT NULL,
                UNIQUE (follower_id, following_id),
                CHECK (follower_id != following_id),
                FOREIGN KEY (follower_id) REFERENCES users(id) ON DELETE CASCADE,
                FOREIGN KEY (following_id) REFERENCES users(id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS user_counters (
                user_id INTEGER PRIMARY KEY,
                followers_count INTEGER NOT NULL DEFAULT 0 CHECK (followers_count >= 0),
                following_count INTEGER NOT NULL DEFAULT 0 CHECK (following_count >= 0),
                posts_count INTEGER NOT NULL DEFAULT 0 CHECK (posts_count >= 0),
                FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS guides (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL UNIQUE,
                status TEXT NOT NULL DEFAULT 'pending',
                sport TEXT,
                experience_years INTEGER,
                city TEXT,
                state TEXT,
                country TEXT,
                lat REAL,
                lon REAL,
                created_at TEXT NOT NULL,
                FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS evaluation_requests (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                guide_id INTEGER NOT NULL,
                message TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'PENDING',
                guide_message TEXT,
                location TEXT,
                scheduled_date TEXT,
                scheduled_time TEXT,
                equipment TEXT NOT NULL DEFAULT '[]',
                otp INTEGER,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
                FOREIGN KEY (guide_id) REFERENCES guides(id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS notifications (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                actor_id INTEGER,
                type TEXT NOT NULL,
                title TEXT NOT NULL,
                message TEXT NOT NULL,
                data TEXT NOT NULL DEFAULT '{}',
                is_read INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
                FOREIGN KEY (actor_id) REFERENCES users(id) ON DELETE SET NULL
            );

            CREATE TABLE IF NOT EXISTS stats_snapshots (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                height REAL,
                weight REAL,
                age INTEGER,
                body_fat REAL,
                strength TEXT NOT NULL DEFAULT '{}',
                speed TEXT NOT NULL DEFAULT '{}',
                stamina TEXT NOT NULL DEFAULT '{}',
                injuries TEXT NOT NULL DEFAULT '[]',
                scores TEXT NOT NULL DEFAULT '{}',
                updated_by INTEGER,
                created_at TEXT NOT NULL,
                FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
                FOREIGN KEY (updated_by) REFERENCES users(id) ON DELETE SET NULL
            );

            CREATE INDEX IF NOT EXISTS idx_follows_following
                ON follows (following_id, created_at);

            CREATE INDEX IF NOT EXISTS idx_requests_guide_status
                ON evaluation_requests (guide_id, status);

            CREATE INDEX IF NOT EXISTS idx_notifications_user_read
                ON notifications (user_id, is_read, created_at);

            CREATE INDEX IF NOT EXISTS idx_snapshots_user_date
                ON stats_snapshots (user_id, created_at);
            """
        )
    finally:
        conn.close()
    LOGGER.debug("Database schema ensured at %s", db_path)
    _DB_INITIALISED_FOR = db_path


@contextmanager
def open_database(readonly: bool = False) -> Iterator[sqlite3.Connection]:
    """Context manager yielding a SQLite connection with ensured schema."""
    _ensure_database()
    db_path = _database_file()
    if readonly:
        uri = f"file:{db_path}?mode=ro"
        conn = sqlite3.connect(uri, uri=True)
    else:
        conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
    finally:
        conn.close()


def init_database() -> Path:
    """Create the schema if needed and return the database path."""
    with open_database():
        pass
    return _database_file()


def dump_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True)


def load_json(raw: Any, default: Any) -> Any:
    if raw in (None, ""):
        return default
    try:
        return json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        LOGGER.warning("Ignoring malformed JSON column value: %r", raw)
        return default


# Row mappers -----------------------------------------------------------------


def row_to_user(row: Mapping[str, Any]) -> User:
    dob = row["date_of_birth"]
    return User(
        id=row["id"],
        email=row["email"],
        password_hash=row["password_hash"],
        username=row["username"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        date_of_birth=parse_iso_date(dob, field="date_of_birth") if dob else None,
        gender=row["gender"],
        primary_sport=row["primary_sport"],
        role=row["role"],
        rank=row["rank"],
        tier_class=row["tier_class"],
        city=row["city"],
        state=row["state"],
        country=row["country"],
        profile_image_url=row["profile_image_url"],
        created_at=row["created_at"],
        deleted_at=row["deleted_at"],
    )


def row_to_counters(row: Mapping[str, Any] | None, user_id: int) -> UserCounters:
    if row is None:
        return UserCounters(user_id=user_id)
    return UserCounters(
        user_id=row["user_id"],
        followers_count=row["followers_count"],
        following_count=row["following_count"],
        posts_count=row["posts_count"],
    )


def row_to_guide(row: Mapping[str, Any]) -> Guide:
    return Guide(
        id=row["id"],
        user_id=row["user_id"],
        status=row["status"],
        sport=row["sport"],
        experience_years=row["experience_years"],
        city=row["city"],
        state=row["state"],
        country=row["country"],
        lat=row["lat"],
        lon=row["lon"],
    )


def row_to_request(row: Mapping[str, Any]) -> EvaluationRequest:
    scheduled = row["scheduled_date"]
    return EvaluationRequest(
        id=row["id"],
        user_id=row["user_id"],
        guide_id=row["guide_id"],
        message=row["message"],
        status=row["status"],
        guide_message=row["guide_message"],
        location=row["location"],
        scheduled_date=parse_iso_date(scheduled, field="scheduled_date") if scheduled else None,
        scheduled_time=row["scheduled_time"],
        equipment=list(load_json(row["equipment"], [])),
        otp=row["otp"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def row_to_notification(row: Mapping[str, Any]) -> Notification:
    return Notification(
        id=row["id"],
        user_id=row["user_id"],
        actor_id=row["actor_id"],
        type=row["type"],
        title=row["title"],
        message=row["message"],
        data=dict(load_json(row["data"], {})),
        is_read=bool(row["is_read"]),
        created_at=row["created_at"],
    )


def row_to_snapshot(row: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "id": row["id"],
        "userId": row["user_id"],
        "height": row["height"],
        "weight": row["weight"],
        "age": row["age"],
        "bodyFat": row["body_fat"],
        "strength": load_json(row["strength"], {}),
        "speed": load_json(row["speed"], {}),
        "stamina": load_json(row["stamina"], {}),
        "injuries": load_json(row["injuries"], []),
        "scores": load_json(row["scores"], {}),
        "updatedBy": row["updated_by"],
        "createdAt": row["created_at"],
    }


# Users -----------------------------------------------------------------------


def insert_user(conn: sqlite3.Connection, *, email: str, password_hash: str, role: str) -> int:
    cursor = conn.execute(
        "INSERT INTO users (email, password_hash, role, created_at) VALUES (?, ?, ?, ?)",
        (email, password_hash, role, timestamp()),
    )
    return int(cursor.lastrowid)


def fetch_user(conn: sqlite3.Connection, user_id: int, *, include_deleted: bool = False) -> User | None:
    query = "SELECT * FROM users WHERE id = ?"
    if not include_deleted:
        query += " AND deleted_at IS NULL"
    row = conn.execute(query, (user_id,)).fetchone()
    return row_to_user(row) if row else None


def fetch_user_by_email(conn: sqlite3.Connection, email: str, *, include_deleted: bool = False) -> User | None:
    query = "SELECT * FROM users WHERE email = ?"
    if not include_deleted:
        query += " AND deleted_at IS NULL"
    row = conn.execute(query, (email.strip().lower(),)).fetchone()
    return row_to_user(row) if row else None


def fetch_user_by_username(conn: sqlite3.Connection, username: str) -> User | None:
    row = conn.execute(
        "SELECT * FROM users WHERE username = ? COLLATE NOCASE AND deleted_at IS NULL",
        (username,),
    ).fetchone()
    return row_to_user(row) if row else None


def fetch_counters(conn: sqlite3.Connection, user_id: int) -> UserCounters:
    row = conn.execute("SELECT * FROM user_counters WHERE user_id = ?", (user_id,)).fetchone()
    return row_to_counters(row, user_id)


def ensure_counters(conn: sqlite3.Connection, user_id: int) -> None:
    conn.execute("INSERT OR IGNORE INTO user_counters (user_id) VALUES (?)", (user_id,))


def fetch_profile(conn: sqlite3.Connection, user_id: int) -> Profile | None:
    row = conn.execute(
        """
        SELECT p.id, p.user_id, p.bio, p.avatar_url, p.location_id,
               l.city AS loc_city, l.state AS loc_state, l.country AS loc_country,
               l.lat AS loc_lat, l.lon AS loc_lon
        FROM profiles p
        LEFT JOIN locations l ON l.id = p.location_id
        WHERE p.user_id = ?
        """,
        (user_id,),
    ).fetchone()
    if row is None:
        return None
    location = None
    if row["location_id"] is not None:
        location = Location(
            id=row["location_id"],
            city=row["loc_city"],
            state=row["loc_state"],
            country=row["loc_country"],
            lat=row["loc_lat"],
            lon=row["loc_lon"],
        )
    return Profile(
        id=row["id"],
        user_id=row["user_id"],
        bio=row["bio"],
        avatar_url=row["avatar_url"],
        location=location,
    )
