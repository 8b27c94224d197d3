"""Leads repository - lead rows, line items and origin metadata.

Uses raw SQL with psycopg2 (no ORM). The leads, lead_items and products
tables belong to the sales platform; lead_origins is owned by this service.
"""

import json
from decimal import Decimal
from typing import Any

from psycopg2.extensions import cursor as PgCursor


def insert_lead(
    cur: PgCursor,
    *,
    customer_id: int,
    seller_id: int,
    note: str,
    origin: str = "whatsapp",
) -> int:
    """Insert a lead and return its id."""
    cur.execute(
        """
        INSERT INTO leads (customer_id, seller_id, type, note, origin, created_at)
        VALUES (%s, %s, 'lead', %s, %s, now())
        RETURNING id
        """,
        (customer_id, seller_id, note, origin),
    )
    row = cur.fetchone()
    return int(row[0])


def find_product(cur: PgCursor, *, query: str, code: str | None = None) -> dict[str, Any] | None:
    """Best match for a free-text product mention.

    Matches the store description or the manufacturer code (ILIKE).
    """
    cur.execute(
        """
        SELECT id, description, sale_price
        FROM products
        WHERE description ILIKE %s
           OR (%s <> '' AND manufacturer_code ILIKE %s)
        ORDER BY (manufacturer_code ILIKE %s) DESC, id
        LIMIT 1
        """,
        (f"%{query}%", code or "", f"%{code or ''}%", f"%{code or query}%"),
    )
    row = cur.fetchone()
    if row is None:
        return None

    return {
        "product_id": row[0],
        "description": row[1],
        "unit_price": row[2] if row[2] is not None else Decimal("0"),
    }


def insert_lead_item(
    cur: PgCursor,
    *,
    lead_id: int,
    product_id: int | None,
    quantity: int,
    unit_price: Decimal | None,
    description: str,
) -> None:
    """Insert a line item; product_id None marks an unresolved mention."""
    total = unit_price * quantity if unit_price is not None else None
    cur.execute(
        """
        INSERT INTO lead_items (lead_id, product_id, quantity, unit_price, total, description)
        VALUES (%s, %s, %s, %s, %s, %s)
        """,
        (lead_id, product_id, quantity, unit_price, total, description),
    )


def insert_lead_origin(
    cur: PgCursor,
    *,
    lead_id: int,
    session_id: str,
    message_id: str,
    sender_phone: str,
    intent: str,
    confidence: float,
    entities: dict[str, Any],
    auto_created: bool = True,
) -> None:
    """Record which WhatsApp message produced a lead."""
    cur.execute(
        """
        INSERT INTO lead_origins (
            lead_id, session_id, message_id, sender_phone,
            intent_detected, confidence, entities_json, auto_created
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s::jsonb, %s)
        """,
        (
            lead_id,
            session_id,
            message_id,
            sender_phone,
            intent,
            confidence,
            json.dumps(entities, ensure_ascii=False),
            auto_created,
        ),
    )
