"""007: create withdrawals table

Revision ID: 007
Revises: 006
Create Date: 2026-10-12
"""
from typing import Sequence, Union

from alembic import op

revision: str = "007"
down_revision: Union[str, None] = "006"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE withdrawals (
            id                      VARCHAR(32)     PRIMARY KEY,
            user_id                 VARCHAR(64)     NOT NULL,
            amount                  BIGINT          NOT NULL,
            currency                VARCHAR(3)      NOT NULL,
            account_bank            VARCHAR(16)     NOT NULL,
            account_number          VARCHAR(20)     NOT NULL,
            status                  VARCHAR(20)     NOT NULL DEFAULT 'PENDING',
            narration               VARCHAR(100),
            provider_transfer_id    VARCHAR(64),
            failure_reason          VARCHAR(255),
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            completed_at            TIMESTAMPTZ,
            CONSTRAINT ck_withdrawals_amount CHECK (amount > 0),
            CONSTRAINT ck_withdrawals_status CHECK (status IN ('PENDING', 'COMPLETED', 'FAILED'))
        );
    """)
    op.execute("CREATE INDEX idx_withdrawals_user ON withdrawals (user_id, id DESC);")
    op.execute("""
        CREATE TRIGGER trg_withdrawals_updated_at
            BEFORE UPDATE ON withdrawals
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS withdrawals CASCADE;")
