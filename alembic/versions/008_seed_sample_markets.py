"""008: seed sample markets

Revision ID: 008
Revises: 007
Create Date: 2026-10-12
"""
from typing import Sequence, Union

from alembic import op

revision: str = "008"
down_revision: Union[str, None] = "007"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        INSERT INTO markets (id, question, category, status, image, history, is_daily,
                             start_date, end_date)
        VALUES
            ('MKT-NGN-USD-1500',
             'Will the naira trade below 1,500 per US dollar at the end of the quarter?',
             'Economy', 'Open',
             '{"url": "https://images.example.com/ngn-usd.png", "hint": "currency chart"}',
             '[]', FALSE,
             '2026-10-01T00:00:00Z', '2026-12-31T23:59:59Z'),
            ('MKT-SUPER-EAGLES-AFCON',
             'Will the Super Eagles reach the AFCON semi-finals?',
             'Sports', 'Open',
             '{"url": "https://images.example.com/afcon.png", "hint": "football"}',
             '[]', FALSE,
             '2026-10-01T00:00:00Z', '2027-02-15T23:59:59Z');
    """)


def downgrade() -> None:
    op.execute(
        "DELETE FROM markets WHERE id IN ('MKT-NGN-USD-1500', 'MKT-SUPER-EAGLES-AFCON');"
    )
