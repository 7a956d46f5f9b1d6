"""AccountRepository: concrete implementation of AccountRepositoryProtocol.

Balance mutations are single atomic UPDATE ... RETURNING statements, so two
concurrent credits to the same user (e.g. two pairing groups settling in one
market) cannot lose an update. A debit that returns 0 rows means the balance
was insufficient.

Transaction ownership: the CALLER (application service) commits or rolls back.
"""

import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_account.domain.models import Account, LedgerEntry
from src.pm_common.enums import LedgerEntryStatus
from src.pm_common.errors import AccountNotFoundError, InsufficientBalanceError, InternalError

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_ACCOUNT_COLUMNS = "id, user_id, balance, version, created_at, updated_at"

_GET_ACCOUNT_SQL = text(f"""
    SELECT {_ACCOUNT_COLUMNS}
    FROM accounts
    WHERE user_id = :user_id
""")

_DEBIT_SQL = text(f"""
    UPDATE accounts
    SET balance = balance - :amount,
        version = version + 1,
        updated_at = NOW()
    WHERE user_id = :user_id AND balance >= :amount
    RETURNING {_ACCOUNT_COLUMNS}
""")

_CREDIT_SQL = text(f"""
    UPDATE accounts
    SET balance = balance + :amount,
        version = version + 1,
        updated_at = NOW()
    WHERE user_id = :user_id
    RETURNING {_ACCOUNT_COLUMNS}
""")

_LEDGER_COLUMNS = """
    id, user_id, entry_type, status, amount, balance_after,
    reference_type, reference_id, description, metadata, created_at
"""

_INSERT_LEDGER_SQL = text(f"""
    INSERT INTO ledger_entries
        (user_id, entry_type, status, amount, balance_after,
         reference_type, reference_id, description, metadata)
    VALUES
        (:user_id, :entry_type, :status, :amount, :balance_after,
         :reference_type, :reference_id, :description, CAST(:metadata AS JSONB))
    RETURNING {_LEDGER_COLUMNS}
""")

_FIND_LEDGER_SQL = text(f"""
    SELECT {_LEDGER_COLUMNS}
    FROM ledger_entries
    WHERE entry_type = :entry_type AND reference_id = :reference_id
    ORDER BY id
    LIMIT 1
""")

_LIST_LEDGER_SQL = text(f"""
    SELECT {_LEDGER_COLUMNS}
    FROM ledger_entries
    WHERE user_id = :user_id
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < CAST(:cursor_id AS BIGINT))
      AND (CAST(:entry_type AS TEXT) IS NULL OR entry_type = CAST(:entry_type AS TEXT))
    ORDER BY id DESC
    LIMIT :limit
""")


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_account(row: Any) -> Account:
    return Account(
        id=str(row.id),
        user_id=row.user_id,
        balance=row.balance,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_ledger(row: Any) -> LedgerEntry:
    raw_meta = row.metadata
    if isinstance(raw_meta, str):
        raw_meta = json.loads(raw_meta)
    return LedgerEntry(
        id=row.id,
        user_id=row.user_id,
        entry_type=row.entry_type,
        status=row.status,
        amount=row.amount,
        balance_after=row.balance_after,
        reference_type=row.reference_type,
        reference_id=row.reference_id,
        description=row.description,
        metadata=raw_meta or {},
        created_at=row.created_at,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountRepository:
    """Concrete repository: all balance operations atomic at the SQL level."""

    async def get_account_by_user_id(
        self, db: AsyncSession, user_id: str
    ) -> Account | None:
        result = await db.execute(_GET_ACCOUNT_SQL, {"user_id": user_id})
        row = result.fetchone()
        return _row_to_account(row) if row else None

    async def get_balance(self, db: AsyncSession, user_id: str) -> int:
        account = await self.get_account_by_user_id(db, user_id)
        if account is None:
            raise AccountNotFoundError(user_id)
        return account.balance

    async def debit(self, db: AsyncSession, user_id: str, amount: int) -> Account:
        result = await db.execute(_DEBIT_SQL, {"user_id": user_id, "amount": amount})
        row = result.fetchone()
        if row is None:
            account = await self.get_account_by_user_id(db, user_id)
            if account is None:
                raise AccountNotFoundError(user_id)
            raise InsufficientBalanceError(amount, account.balance)
        return _row_to_account(row)

    async def credit(self, db: AsyncSession, user_id: str, amount: int) -> Account:
        result = await db.execute(_CREDIT_SQL, {"user_id": user_id, "amount": amount})
        row = result.fetchone()
        if row is None:
            raise AccountNotFoundError(user_id)
        return _row_to_account(row)

    async def record_ledger_entry(
        self,
        db: AsyncSession,
        user_id: str,
        entry_type: str,
        amount: int,
        balance_after: int,
        *,
        status: str = LedgerEntryStatus.COMPLETED.value,
        reference_type: str | None = None,
        reference_id: str | None = None,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> LedgerEntry:
        result = await db.execute(
            _INSERT_LEDGER_SQL,
            {
                "user_id": user_id,
                "entry_type": entry_type,
                "status": status,
                "amount": amount,
                "balance_after": balance_after,
                "reference_type": reference_type,
                "reference_id": reference_id,
                "description": description,
                "metadata": json.dumps(metadata or {}),
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Ledger insert returned no rows")
        return _row_to_ledger(row)

    async def find_ledger_entry(
        self, db: AsyncSession, entry_type: str, reference_id: str
    ) -> LedgerEntry | None:
        result = await db.execute(
            _FIND_LEDGER_SQL, {"entry_type": entry_type, "reference_id": reference_id}
        )
        row = result.fetchone()
        return _row_to_ledger(row) if row else None

    async def list_ledger_entries(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        entry_type: str | None,
    ) -> list[LedgerEntry]:
        result = await db.execute(
            _LIST_LEDGER_SQL,
            {
                "user_id": user_id,
                "cursor_id": cursor_id,
                "entry_type": entry_type,
                "limit": limit,
            },
        )
        return [_row_to_ledger(row) for row in result.fetchall()]
