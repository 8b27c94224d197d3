"""Partial index for lead idempotency lookups on webhook_events.

Revision ID: 002_webhook_events_lead_index
Revises: 001_pipeline_tables
Create Date: 2026-10-17
"""
from __future__ import annotations

from pathlib import Path

from alembic import op

revision = "002_webhook_events_lead_index"
down_revision = "001_pipeline_tables"
branch_labels = None
depends_on = None

_SQL_FILE = Path(__file__).resolve().parent.parent / "sql" / "002_webhook_events_lead_index.sql"


def upgrade() -> None:
    op.execute(_SQL_FILE.read_text())


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS idx_webhook_events_lead_created")
