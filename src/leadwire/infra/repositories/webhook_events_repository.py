"""Webhook events repository - append-only audit log of processed messages.

Uses raw SQL with psycopg2 (no ORM). Rows are never updated or deleted by
this service.
"""

from typing import Any

from psycopg2.extensions import cursor as PgCursor


def insert_event(
    cur: PgCursor,
    *,
    event_type: str,
    message_id: str | None,
    session_id: str | None,
    sender_phone: str | None,
    intent: str | None = None,
    confidence: float | None = None,
    lead_created: bool = False,
    lead_id: int | None = None,
    alert_sent: bool = False,
    skipped_reason: str | None = None,
    error: str | None = None,
    correlation_id: str | None = None,
) -> int:
    """Append one audit event and return its id."""
    cur.execute(
        """
        INSERT INTO webhook_events (
            event_type, message_id, session_id, sender_phone,
            intent, confidence, lead_created, lead_id, alert_sent,
            skipped_reason, error, correlation_id
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        RETURNING id
        """,
        (
            event_type,
            message_id,
            session_id,
            sender_phone,
            intent,
            confidence,
            lead_created,
            lead_id,
            alert_sent,
            skipped_reason,
            error,
            correlation_id,
        ),
    )
    row = cur.fetchone()
    return int(row[0])


def find_lead_for_message(
    cur: PgCursor,
    *,
    message_id: str,
    sender_phone: str,
) -> int | None:
    """Return the lead already created for (message_id, sender_phone), if any."""
    cur.execute(
        """
        SELECT lead_id FROM webhook_events
        WHERE message_id = %s AND sender_phone = %s
          AND lead_created = TRUE AND lead_id IS NOT NULL
        ORDER BY id
        LIMIT 1
        """,
        (message_id, sender_phone),
    )
    row = cur.fetchone()
    return int(row[0]) if row else None


def count_events_by_type(cur: PgCursor, *, hours: int = 24) -> dict[str, Any]:
    """Event counts per type over the last `hours` hours."""
    cur.execute(
        """
        SELECT event_type, COUNT(*)
        FROM webhook_events
        WHERE created_at >= now() - make_interval(hours => %s)
        GROUP BY event_type
        """,
        (hours,),
    )
    return {row[0]: int(row[1]) for row in cur.fetchall()}
