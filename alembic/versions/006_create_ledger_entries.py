"""006: create ledger_entries table

Revision ID: 006
Revises: 005
Create Date: 2026-10-12
"""
from typing import Sequence, Union

from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE ledger_entries (
            id              BIGSERIAL       PRIMARY KEY,
            user_id         VARCHAR(64)     NOT NULL,
            entry_type      VARCHAR(30)     NOT NULL,
            status          VARCHAR(20)     NOT NULL DEFAULT 'COMPLETED',
            amount          BIGINT          NOT NULL,
            balance_after   BIGINT          NOT NULL,
            reference_type  VARCHAR(30),
            reference_id    VARCHAR(64),
            description     VARCHAR(500),
            metadata        JSONB           NOT NULL DEFAULT '{}'::jsonb,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_ledger_entry_type CHECK (
                entry_type IN ('DEPOSIT', 'WITHDRAWAL', 'WITHDRAWAL_REVERSAL',
                               'ORDER_STAKE', 'REFUND', 'TRADE')
            ),
            CONSTRAINT ck_ledger_status CHECK (status IN ('COMPLETED'))
        );
    """)
    op.execute("CREATE INDEX idx_ledger_user ON ledger_entries (user_id, id DESC);")
    op.execute("CREATE INDEX idx_ledger_reference ON ledger_entries (reference_type, reference_id);")
    # A provider charge credits at most once
    op.execute("""
        CREATE UNIQUE INDEX uq_ledger_deposit_reference
        ON ledger_entries (reference_id)
        WHERE entry_type = 'DEPOSIT' AND reference_id IS NOT NULL;
    """)
    op.execute("""
        CREATE TRIGGER trg_ledger_entries_append_only
            BEFORE UPDATE OR DELETE ON ledger_entries
            FOR EACH ROW EXECUTE FUNCTION fn_reject_mutation();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS ledger_entries CASCADE;")
