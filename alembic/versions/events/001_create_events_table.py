"""create_events_table

Revision ID: events_001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from __future__ import annotations

from alembic import op

# revision identifiers, used by Alembic.
revision = "events_001"
down_revision = None
branch_labels = ("events",)
depends_on = None


def upgrade() -> None:
    # event_pid is never NULL: 0 marks a row without a parent series
    op.execute("""
        CREATE TABLE IF NOT EXISTS events (
            id SERIAL PRIMARY KEY,
            start_date TIMESTAMP NOT NULL,
            end_date TIMESTAMP NOT NULL,
            text TEXT,
            event_pid INTEGER NOT NULL DEFAULT 0,
            event_length BIGINT NOT NULL DEFAULT 0,
            rec_type TEXT NOT NULL
        )
    """)

    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_events_event_pid ON events (event_pid)
    """)

    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_events_window ON events (start_date, end_date)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS events")
