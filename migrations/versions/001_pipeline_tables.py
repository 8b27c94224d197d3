"""Pipeline tables: user_notifications, webhook_events, lead_origins.

Revision ID: 001_pipeline_tables
Revises:
Create Date: 2026-10-17
"""

from __future__ import annotations

from pathlib import Path

from alembic import op


# revision identifiers, used by Alembic.
revision = "001_pipeline_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    sql_path = Path(__file__).resolve().parents[1] / "sql" / "001_pipeline_tables.sql"
    sql = sql_path.read_text(encoding="utf-8")
    conn = op.get_bind()
    conn.exec_driver_sql(sql)


def downgrade() -> None:
    conn = op.get_bind()
    conn.exec_driver_sql(
        "DROP TABLE IF EXISTS lead_origins; "
        "DROP TABLE IF EXISTS webhook_events; "
        "DROP TABLE IF EXISTS user_notifications"
    )
