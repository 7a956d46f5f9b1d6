"""WithdrawalRepository: raw SQL over the withdrawals table.

Transaction ownership: the caller commits or rolls back.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.errors import InternalError
from src.pm_payment.domain.models import Withdrawal

_COLUMNS = """
    id, user_id, amount, currency, account_bank, account_number, status,
    narration, provider_transfer_id, failure_reason,
    created_at, updated_at, completed_at
"""

_INSERT_SQL = text(f"""
    INSERT INTO withdrawals
        (id, user_id, amount, currency, account_bank, account_number, status, narration)
    VALUES
        (:id, :user_id, :amount, :currency, :account_bank, :account_number, :status, :narration)
    RETURNING {_COLUMNS}
""")

_GET_FOR_UPDATE_SQL = text(f"""
    SELECT {_COLUMNS} FROM withdrawals WHERE id = :id FOR UPDATE
""")

_SET_TRANSFER_ID_SQL = text("""
    UPDATE withdrawals SET provider_transfer_id = :transfer_id, updated_at = NOW()
    WHERE id = :id
""")

_UPDATE_STATUS_SQL = text("""
    UPDATE withdrawals
    SET status = :status,
        failure_reason = COALESCE(:failure_reason, failure_reason),
        completed_at = COALESCE(:completed_at, completed_at),
        updated_at = NOW()
    WHERE id = :id
""")

_LIST_BY_USER_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM withdrawals
    WHERE user_id = :user_id
      AND (CAST(:cursor_id AS TEXT) IS NULL OR id < :cursor_id)
    ORDER BY id DESC
    LIMIT :limit
""")


def _row_to_withdrawal(row: Any) -> Withdrawal:
    return Withdrawal(
        id=row.id,
        user_id=row.user_id,
        amount=int(row.amount),
        currency=row.currency,
        account_bank=row.account_bank,
        account_number=row.account_number,
        status=row.status,
        narration=row.narration,
        provider_transfer_id=row.provider_transfer_id,
        failure_reason=row.failure_reason,
        created_at=row.created_at,
        updated_at=row.updated_at,
        completed_at=row.completed_at,
    )


class WithdrawalRepository:
    async def insert(self, db: AsyncSession, withdrawal: Withdrawal) -> Withdrawal:
        result = await db.execute(
            _INSERT_SQL,
            {
                "id": withdrawal.id,
                "user_id": withdrawal.user_id,
                "amount": withdrawal.amount,
                "currency": withdrawal.currency,
                "account_bank": withdrawal.account_bank,
                "account_number": withdrawal.account_number,
                "status": withdrawal.status,
                "narration": withdrawal.narration,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Withdrawal insert returned no rows")
        return _row_to_withdrawal(row)

    async def get_for_update(self, db: AsyncSession, reference: str) -> Withdrawal | None:
        row = (await db.execute(_GET_FOR_UPDATE_SQL, {"id": reference})).fetchone()
        return _row_to_withdrawal(row) if row else None

    async def set_transfer_id(
        self, db: AsyncSession, reference: str, transfer_id: str
    ) -> None:
        await db.execute(_SET_TRANSFER_ID_SQL, {"id": reference, "transfer_id": transfer_id})

    async def update_status(
        self,
        db: AsyncSession,
        reference: str,
        status: str,
        failure_reason: str | None = None,
        completed_at: datetime | None = None,
    ) -> None:
        await db.execute(
            _UPDATE_STATUS_SQL,
            {
                "id": reference,
                "status": status,
                "failure_reason": failure_reason,
                "completed_at": completed_at,
            },
        )

    async def list_by_user(
        self, db: AsyncSession, user_id: str, cursor_id: str | None, limit: int
    ) -> list[Withdrawal]:
        result = await db.execute(
            _LIST_BY_USER_SQL, {"user_id": user_id, "cursor_id": cursor_id, "limit": limit}
        )
        return [_row_to_withdrawal(row) for row in result.fetchall()]
