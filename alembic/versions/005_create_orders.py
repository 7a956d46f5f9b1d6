"""005: create orders table

Revision ID: 005
Revises: 004
Create Date: 2026-10-12
"""
from typing import Sequence, Union

from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE orders (
            id                      VARCHAR(32)     PRIMARY KEY,
            market_id               VARCHAR(64)     NOT NULL REFERENCES markets (id),
            user_id                 VARCHAR(64)     NOT NULL,
            side                    VARCHAR(4)      NOT NULL,
            limit_price             BIGINT          NOT NULL,
            quantity                INT             NOT NULL,
            filled_quantity         INT             NOT NULL DEFAULT 0,
            status                  VARCHAR(20)     NOT NULL DEFAULT 'Open',
            counterparty_user_ids   VARCHAR(64)[]   NOT NULL DEFAULT '{}',
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_orders_side        CHECK (side IN ('BUY', 'SELL')),
            CONSTRAINT ck_orders_limit_price CHECK (limit_price > 0),
            CONSTRAINT ck_orders_quantity    CHECK (quantity > 0),
            CONSTRAINT ck_orders_filled      CHECK (filled_quantity >= 0 AND filled_quantity <= quantity),
            CONSTRAINT ck_orders_status      CHECK (
                status IN ('Open', 'PartiallyPaired', 'Paired', 'Filled', 'Cancelled')
            )
        );
    """)
    op.execute("CREATE INDEX idx_orders_user ON orders (user_id, id DESC);")
    # Counter-order lookup: same market, side and price, oldest first
    op.execute("""
        CREATE INDEX idx_orders_pairing
        ON orders (market_id, side, limit_price, created_at, id)
        WHERE status IN ('Open', 'PartiallyPaired');
    """)
    # One live order per (user, market, side, price)
    op.execute("""
        CREATE UNIQUE INDEX uq_orders_active_terms
        ON orders (user_id, market_id, side, limit_price)
        WHERE status <> 'Cancelled';
    """)
    op.execute("""
        CREATE TRIGGER trg_orders_updated_at
            BEFORE UPDATE ON orders
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS orders CASCADE;")
