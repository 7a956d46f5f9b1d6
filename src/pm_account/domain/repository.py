"""Account/Ledger store contract.

Every method runs inside the caller's transaction so balance changes commit
or roll back together with the order/market mutations that caused them.
Unit tests inject an in-memory fake that conforms to this Protocol.
"""

from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_account.domain.models import Account, LedgerEntry


class AccountRepositoryProtocol(Protocol):
    async def get_account_by_user_id(
        self, db: AsyncSession, user_id: str
    ) -> Account | None: ...

    async def get_balance(self, db: AsyncSession, user_id: str) -> int: ...

    async def debit(self, db: AsyncSession, user_id: str, amount: int) -> Account: ...

    async def credit(self, db: AsyncSession, user_id: str, amount: int) -> Account: ...

    async def record_ledger_entry(
        self,
        db: AsyncSession,
        user_id: str,
        entry_type: str,
        amount: int,
        balance_after: int,
        *,
        status: str = "COMPLETED",
        reference_type: str | None = None,
        reference_id: str | None = None,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> LedgerEntry: ...

    async def find_ledger_entry(
        self, db: AsyncSession, entry_type: str, reference_id: str
    ) -> LedgerEntry | None: ...

    async def list_ledger_entries(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        entry_type: str | None,
    ) -> list[LedgerEntry]: ...
