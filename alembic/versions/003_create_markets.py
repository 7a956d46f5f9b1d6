"""003: create markets table

Revision ID: 003
Revises: 002
Create Date: 2026-10-12
"""
from typing import Sequence, Union

from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE markets (
            id              VARCHAR(64)     PRIMARY KEY,
            question        TEXT            NOT NULL,
            category        VARCHAR(64)     NOT NULL DEFAULT 'General',
            status          VARCHAR(16)     NOT NULL DEFAULT 'Open',
            outcome         VARCHAR(8),
            image           JSONB,
            history         JSONB           NOT NULL DEFAULT '[]'::jsonb,
            is_daily        BOOLEAN         NOT NULL DEFAULT FALSE,
            start_date      TIMESTAMPTZ     NOT NULL,
            end_date        TIMESTAMPTZ     NOT NULL,
            resolved_at     TIMESTAMPTZ,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_markets_status  CHECK (status IN ('Open', 'closed', 'archived')),
            CONSTRAINT ck_markets_outcome CHECK (outcome IS NULL OR outcome IN ('yes', 'no')),
            CONSTRAINT ck_markets_window  CHECK (end_date > start_date),
            CONSTRAINT ck_markets_resolved CHECK (
                (status = 'Open' AND outcome IS NULL) OR
                (status IN ('closed', 'archived') AND outcome IS NOT NULL)
            )
        );
    """)
    op.execute("CREATE INDEX idx_markets_status ON markets (status, created_at DESC, id DESC);")
    op.execute("CREATE INDEX idx_markets_category ON markets (category);")
    op.execute("""
        CREATE TRIGGER trg_markets_updated_at
            BEFORE UPDATE ON markets
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS markets CASCADE;")
