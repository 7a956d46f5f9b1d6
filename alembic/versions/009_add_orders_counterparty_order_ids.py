"""009: orders.counterparty_order_ids

Revision ID: 009
Revises: 008
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op

revision: str = "009"
down_revision: Union[str, None] = "008"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Order-level fill links; pairing groups at resolution are built from these
    op.execute("""
        ALTER TABLE orders
        ADD COLUMN counterparty_order_ids VARCHAR(32)[] NOT NULL DEFAULT '{}';
    """)


def downgrade() -> None:
    op.execute("ALTER TABLE orders DROP COLUMN IF EXISTS counterparty_order_ids;")
