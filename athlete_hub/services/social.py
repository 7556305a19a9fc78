"""Follow graph, per-user counters and user search."""

from __future__ import annotations

import logging
import sqlite3
from typing import Any

from .. import storage
from ..config import get_config
from ..errors import BadRequestError, ConflictError, NotFoundError
from ..models import User
from .notifications import insert_notification

LOGGER = logging.getLogger(__name__)


def _require_user(conn: sqlite3.Connection, user_id: int) -> User:
    user = storage.fetch_user(conn, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def _following_exists(conn: sqlite3.Connection, follower_id: int, following_id: int) -> bool:
    row = conn.execute(
        "SELECT 1 FROM follows WHERE follower_id = ? AND following_id = ?",
        (follower_id, following_id),
    ).fetchone()
    return row is not None


def _adjust_counter(conn: sqlite3.Connection, user_id: int, column: str, delta: int) -> None:
    storage.ensure_counters(conn, user_id)
    conn.execute(
        f"UPDATE user_counters SET {column} = MAX({column} + ?, 0) WHERE user_id = ?",
        (delta, user_id),
    )


def follow_user(follower_id: int, target_id: int) -> dict[str, Any]:
    """Follow `target_id`; the follow row, both counters and the notification commit together."""
    with storage.open_database() as conn:
        target = _require_user(conn, target_id)
        if follower_id == target_id:
            raise BadRequestError("You cannot follow yourself")
        follower = _require_user(conn, follower_id)
        if _following_exists(conn, follower_id, target_id):
            raise ConflictError("Already following this user")

        with conn:
            conn.execute(
                "INSERT INTO follows (follower_id, following_id, created_at) VALUES (?, ?, ?)",
                (follower_id, target_id, storage.timestamp()),
            )
            _adjust_counter(conn, follower_id, "following_count", 1)
            _adjust_counter(conn, target_id, "followers_count", 1)
            insert_notification(
                conn,
                user_id=target_id,
                actor_id=follower_id,
                type="FOLLOW",
                title="New follower",
                message=f"{follower.display_name} started following you",
                data={"followerId": follower_id, "username": follower.username},
            )
        counters = storage.fetch_counters(conn, target.id)
    LOGGER.info("User %s followed %s", follower_id, target_id)
    return {"following": True, "counters": counters.to_dict()}


def unfollow_user(follower_id: int, target_id: int) -> dict[str, Any]:
    with storage.open_database() as conn:
        target = _require_user(conn, target_id)
        if follower_id == target_id:
            raise BadRequestError("You cannot unfollow yourself")
        if not _following_exists(conn, follower_id, target_id):
            raise ConflictError("Not following this user")

        with conn:
            conn.execute(
                "DELETE FROM follows WHERE follower_id = ? AND following_id = ?",
                (follower_id, target_id),
            )
            _adjust_counter(conn, follower_id, "following_count", -1)
            _adjust_counter(conn, target_id, "followers_count", -1)
        counters = storage.fetch_counters(conn, target.id)
    LOGGER.info("User %s unfollowed %s", follower_id, target_id)
    return {"following": False, "counters": counters.to_dict()}


def is_following(follower_id: int, target_id: int) -> bool:
    with storage.open_database() as conn:
        return _following_exists(conn, follower_id, target_id)


def _list_connections(user_id: int, *, join_column: str, filter_column: str, limit: int | None, offset: int) -> list[dict[str, Any]]:
    query = f"""
        SELECT u.* FROM follows f
        JOIN users u ON u.id = f.{join_column}
        WHERE f.{filter_column} = ? AND u.deleted_at IS NULL
        ORDER BY f.created_at DESC, f.id DESC
    """
    params: list[Any] = [user_id]
    if limit:
        query += " LIMIT ? OFFSET ?"
        params.extend([int(limit), int(offset)])
    with storage.open_database() as conn:
        _require_user(conn, user_id)
        rows = conn.execute(query, params).fetchall()
    return [storage.row_to_user(row).to_dict() for row in rows]


def list_followers(user_id: int, *, limit: int | None = None, offset: int = 0) -> list[dict[str, Any]]:
    """Users following `user_id`, most recent first."""
    return _list_connections(user_id, join_column="follower_id", filter_column="following_id", limit=limit, offset=offset)


def list_following(user_id: int, *, limit: int | None = None, offset: int = 0) -> list[dict[str, Any]]:
    """Users that `user_id` follows, most recent first."""
    return _list_connections(user_id, join_column="following_id", filter_column="follower_id", limit=limit, offset=offset)


def _like_pattern(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def search_users(query: str, *, limit: int | None = None, exclude_user_id: int | None = None) -> list[dict[str, Any]]:
    """Case-insensitive substring match on username, first name and last name."""
    settings = get_config().search
    text = (query or "").strip().lower()
    if len(text) < settings.min_query_length:
        raise BadRequestError(f"Search query must be at least {settings.min_query_length} characters")
    size = settings.limit if limit is None else max(1, min(int(limit), settings.max_limit))

    pattern = _like_pattern(text)
    sql = """
        SELECT * FROM users
        WHERE deleted_at IS NULL
          AND username IS NOT NULL
          AND (
            LOWER(username) LIKE ? ESCAPE '\\'
            OR LOWER(COALESCE(first_name, '')) LIKE ? ESCAPE '\\'
            OR LOWER(COALESCE(last_name, '')) LIKE ? ESCAPE '\\'
          )
    """
    params: list[Any] = [pattern, pattern, pattern]
    if exclude_user_id is not None:
        sql += " AND id != ?"
        params.append(exclude_user_id)
    sql += " ORDER BY LOWER(username) LIMIT ?"
    params.append(size)

    with storage.open_database() as conn:
        rows = conn.execute(sql, params).fetchall()
    return [storage.row_to_user(row).to_dict() for row in rows]


def get_user_profile(username: str, *, viewer_id: int | None = None) -> dict[str, Any]:
    """Public profile card for `username`, with the viewer's follow state."""
    with storage.open_database() as conn:
        user = storage.fetch_user_by_username(conn, (username or "").strip())
        if user is None:
            raise NotFoundError("User not found")
        profile = storage.fetch_profile(conn, user.id)
        counters = storage.fetch_counters(conn, user.id)
        following = False
        if viewer_id is not None and viewer_id != user.id:
            following = _following_exists(conn, viewer_id, user.id)
    return {
        "user": user.to_dict(),
        "profile": profile.to_dict() if profile else None,
        "counters": counters.to_dict(),
        "isFollowing": following,
        "isOwnProfile": viewer_id == user.id,
    }
