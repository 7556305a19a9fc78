from __future__ import annotations

import logging
import sqlite3
from typing import Any, Mapping

from .. import storage
from ..constants import NOTIFICATION_TYPES
from ..errors import BadRequestError, NotFoundError
from ..models import Notification

LOGGER = logging.getLogger(__name__)


def insert_notification(
    conn: sqlite3.Connection,
    *,
    user_id: int,
    type: str,
    title: str,
    message: str,
    actor_id: int | None = None,
    data: Mapping[str, Any] | None = None,
) -> int:
    """Write a notification row on an existing connection so callers can batch it with their own writes."""
    if type not in NOTIFICATION_TYPES:
        raise BadRequestError(f"Unknown notification type: {type}")
    cursor = conn.execute(
        """
        INSERT INTO notifications (user_id, actor_id, type, title, message, data, is_read, created_at)
        VALUES (?, ?, ?, ?, ?, ?, 0, ?)
        """,
        (user_id, actor_id, type, title, message, storage.dump_json(dict(data or {})), storage.timestamp()),
    )
    return int(cursor.lastrowid)


def create_notification(
    user_id: int,
    type: str,
    title: str,
    message: str,
    *,
    actor_id: int | None = None,
    data: Mapping[str, Any] | None = None,
) -> Notification:
    with storage.open_database() as conn:
        if storage.fetch_user(conn, user_id) is None:
            raise NotFoundError("User not found")
        with conn:
            notification_id = insert_notification(
                conn, user_id=user_id, type=type, title=title, message=message, actor_id=actor_id, data=data
            )
        row = conn.execute("SELECT * FROM notifications WHERE id = ?", (notification_id,)).fetchone()
    return storage.row_to_notification(row)


def list_notifications(user_id: int, *, unread_only: bool = False, limit: int | None = None) -> list[Notification]:
    """Newest first."""
    query = "SELECT * FROM notifications WHERE user_id = ?"
    params: list[Any] = [user_id]
    if unread_only:
        query += " AND is_read = 0"
    query += " ORDER BY created_at DESC, id DESC"
    if limit:
        query += " LIMIT ?"
        params.append(int(limit))
    with storage.open_database() as conn:
        rows = conn.execute(query, params).fetchall()
    return [storage.row_to_notification(row) for row in rows]


def unread_count(user_id: int) -> int:
    with storage.open_database() as conn:
        row = conn.execute(
            "SELECT COUNT(*) FROM notifications WHERE user_id = ? AND is_read = 0", (user_id,)
        ).fetchone()
    return int(row[0])


def mark_read(user_id: int, notification_id: int) -> Notification:
    with storage.open_database() as conn:
        with conn:
            cursor = conn.execute(
                "UPDATE notifications SET is_read = 1 WHERE id = ? AND user_id = ?",
                (notification_id, user_id),
            )
        if cursor.rowcount == 0:
            raise NotFoundError("Notification not found")
        row = conn.execute("SELECT * FROM notifications WHERE id = ?", (notification_id,)).fetchone()
    return storage.row_to_notification(row)


def mark_all_read(user_id: int) -> int:
    """Mark every unread notification as read and return how many changed."""
    with storage.open_database() as conn:
        with conn:
            cursor = conn.execute(
                "UPDATE notifications SET is_read = 1 WHERE user_id = ? AND is_read = 0", (user_id,)
            )
    return cursor.rowcount


def delete_notification(user_id: int, notification_id: int) -> None:
    with storage.open_database() as conn:
        with conn:
            cursor = conn.execute(
                "DELETE FROM notifications WHERE id = ? AND user_id = ?", (notification_id, user_id)
            )
    if cursor.rowcount == 0:
        raise NotFoundError("Notification not found")
    LOGGER.debug("Deleted notification %s for user %s", notification_id, user_id)
