"""Notifications repository - durable user notifications.

Uses raw SQL with psycopg2 (no ORM).

Rows with expires_at in the past are invisible to reads and unread counts;
cleanup removes them physically after the retention window.
"""

import json
from datetime import datetime
from typing import Any

from psycopg2.extensions import cursor as PgCursor

_COLUMNS = "id, user_id, type, title, message, priority, data, created_at, read_at, expires_at"

_NOT_EXPIRED = "(expires_at IS NULL OR expires_at > now())"


def _row_to_dict(row: tuple) -> dict[str, Any]:
    data = row[6]
    if isinstance(data, str):
        data = json.loads(data)
    return {
        "id": row[0],
        "user_id": row[1],
        "type": row[2],
        "title": row[3],
        "message": row[4],
        "priority": row[5],
        "data": data or {},
        "created_at": row[7],
        "read_at": row[8],
        "expires_at": row[9],
    }


def insert_notification(
    cur: PgCursor,
    *,
    user_id: int,
    type: str,
    title: str,
    message: str,
    priority: int,
    data: dict[str, Any],
    expires_at: datetime | None = None,
) -> dict[str, Any]:
    """Insert a notification and return the stored row."""
    cur.execute(
        f"""
        INSERT INTO user_notifications (user_id, type, title, message, priority, data, expires_at)
        VALUES (%s, %s, %s, %s, %s, %s::jsonb, %s)
        RETURNING {_COLUMNS}
        """,
        (
            user_id,
            type,
            title,
            message,
            priority,
            json.dumps(data, ensure_ascii=False, default=str),
            expires_at,
        ),
    )
    return _row_to_dict(cur.fetchone())


def count_unread(cur: PgCursor, *, user_id: int) -> int:
    cur.execute(
        f"""
        SELECT COUNT(*) FROM user_notifications
        WHERE user_id = %s AND read_at IS NULL AND {_NOT_EXPIRED}
        """,
        (user_id,),
    )
    row = cur.fetchone()
    return int(row[0]) if row else 0


def list_notifications(
    cur: PgCursor,
    *,
    user_id: int,
    limit: int,
    offset: int,
    unread_only: bool = False,
) -> tuple[list[dict[str, Any]], int]:
    """Page through a user's notifications, newest first.

    Returns:
        Tuple of (rows, total matching rows).
    """
    unread_clause = "AND read_at IS NULL" if unread_only else ""

    cur.execute(
        f"""
        SELECT COUNT(*) FROM user_notifications
        WHERE user_id = %s AND {_NOT_EXPIRED} {unread_clause}
        """,
        (user_id,),
    )
    total = int(cur.fetchone()[0])

    cur.execute(
        f"""
        SELECT {_COLUMNS} FROM user_notifications
        WHERE user_id = %s AND {_NOT_EXPIRED} {unread_clause}
        ORDER BY created_at DESC, id DESC
        LIMIT %s OFFSET %s
        """,
        (user_id, limit, offset),
    )
    return [_row_to_dict(row) for row in cur.fetchall()], total


def mark_read(cur: PgCursor, *, notification_id: int, user_id: int) -> datetime | None:
    """Stamp read_at on one notification owned by user_id.

    Returns:
        The read_at timestamp, or None if no unread row matched.
    """
    cur.execute(
        """
        UPDATE user_notifications
        SET read_at = now()
        WHERE id = %s AND user_id = %s AND read_at IS NULL
        RETURNING read_at
        """,
        (notification_id, user_id),
    )
    row = cur.fetchone()
    return row[0] if row else None


def mark_all_read(cur: PgCursor, *, user_id: int) -> int:
    """Stamp read_at on every unread notification of a user; returns count."""
    cur.execute(
        """
        UPDATE user_notifications
        SET read_at = now()
        WHERE user_id = %s AND read_at IS NULL
        """,
        (user_id,),
    )
    return cur.rowcount


def delete_notification(cur: PgCursor, *, notification_id: int, user_id: int) -> bool:
    cur.execute(
        "DELETE FROM user_notifications WHERE id = %s AND user_id = %s",
        (notification_id, user_id),
    )
    return cur.rowcount > 0


def delete_older_than(cur: PgCursor, *, days: int) -> int:
    """Remove notifications created more than `days` ago or already expired."""
    cur.execute(
        """
        DELETE FROM user_notifications
        WHERE created_at < now() - make_interval(days => %s)
           OR (expires_at IS NOT NULL AND expires_at < now())
        """,
        (days,),
    )
    return cur.rowcount
