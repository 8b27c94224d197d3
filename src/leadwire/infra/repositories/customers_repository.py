"""Customers repository - read-only lookups over platform-owned tables.

Uses raw SQL with psycopg2 (no ORM).

Phone matching
──────────────
Chat customers are stored with whatever phone format the gateway delivered,
so lookups match on the last 9 digits (see domain.phone.phone_suffix) with a
LIKE '%<suffix>' predicate. Messages are matched the same way on either
sender_phone or recipient_phone.
"""

from typing import Any

from psycopg2.extensions import cursor as PgCursor


def find_linked_customer(cur: PgCursor, *, phone_suffix: str) -> dict[str, Any] | None:
    """Find the chat customer for a phone and its best CRM link.

    Verified links win, then the highest link confidence.

    Returns:
        Dict with chat_customer_id, chat_name, customer_id, customer_name,
        seller_id, seller_name (CRM fields None when unlinked), or None when
        no chat customer matches.
    """
    cur.execute(
        """
        SELECT sc.id,
               COALESCE(sc.name, sc.push_name),
               c.id,
               c.name,
               c.seller_id,
               u.nick
        FROM superbot_customers sc
        LEFT JOIN LATERAL (
            SELECT l.leads_customer_id
            FROM superbot_customer_links l
            WHERE l.superbot_customer_id = sc.id
            ORDER BY l.verified DESC, l.confidence_score DESC
            LIMIT 1
        ) link ON TRUE
        LEFT JOIN customers c ON c.id = link.leads_customer_id
        LEFT JOIN users u ON u.id = c.seller_id
        WHERE sc.phone_number LIKE %s
           OR sc.jid LIKE %s
        ORDER BY sc.updated_at DESC NULLS LAST
        LIMIT 1
        """,
        (f"%{phone_suffix}", f"%{phone_suffix}@%"),
    )
    row = cur.fetchone()
    if row is None:
        return None

    return {
        "chat_customer_id": row[0],
        "chat_name": row[1],
        "customer_id": row[2],
        "customer_name": row[3],
        "seller_id": row[4],
        "seller_name": row[5],
    }


def list_recent_messages(
    cur: PgCursor,
    *,
    phone_suffix: str,
    days: int = 7,
    limit: int = 20,
    direction: str | None = None,
) -> list[dict[str, Any]]:
    """List recent 1:1 messages for a phone, newest first.

    Text falls back to the audio transcription when the message has none.
    """
    direction_clause = "AND m.direction = %s" if direction else ""
    params: list[Any] = [f"%{phone_suffix}", f"%{phone_suffix}", days]
    if direction:
        params.append(direction)
    params.append(limit)

    cur.execute(
        f"""
        SELECT m.direction,
               COALESCE(m.message_text, mt.transcription_text),
               m.received_at
        FROM messages m
        LEFT JOIN message_media mm ON mm.message_id = m.id
        LEFT JOIN message_transcriptions mt ON mt.media_id = mm.id
        WHERE (m.sender_phone LIKE %s OR m.recipient_phone LIKE %s)
          AND m.received_at >= now() - make_interval(days => %s)
          AND m.is_group = FALSE
          {direction_clause}
        ORDER BY m.received_at DESC
        LIMIT %s
        """,
        params,
    )
    return [
        {"direction": row[0], "text": row[1], "received_at": row[2]}
        for row in cur.fetchall()
    ]


def get_message_stats(cur: PgCursor, *, phone_suffix: str) -> dict[str, Any]:
    """Aggregate conversation statistics for a phone."""
    cur.execute(
        """
        SELECT COUNT(*),
               COUNT(DISTINCT session_id),
               COUNT(*) FILTER (WHERE direction = 'incoming'),
               COUNT(*) FILTER (WHERE direction = 'outgoing'),
               MIN(received_at),
               MAX(received_at)
        FROM messages
        WHERE (sender_phone LIKE %s OR recipient_phone LIKE %s)
          AND is_group = FALSE
        """,
        (f"%{phone_suffix}", f"%{phone_suffix}"),
    )
    row = cur.fetchone() or (0, 0, 0, 0, None, None)
    return {
        "total_messages": row[0] or 0,
        "total_sessions": row[1] or 0,
        "incoming_count": row[2] or 0,
        "outgoing_count": row[3] or 0,
        "first_message_at": row[4].isoformat() if row[4] else None,
        "last_message_at": row[5].isoformat() if row[5] else None,
    }
