"""AccountApplicationService: thin composition layer over the ledger store.

get_balance / list_ledger are read-only. deposit (simulated, dev only) owns
its transaction: commit on success, rollback and re-raise on failure.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.pm_account.application.schemas import (
    BalanceResponse,
    DepositResponse,
    LedgerEntryItem,
    LedgerResponse,
    cursor_decode,
    cursor_encode,
)
from src.pm_account.domain.repository import AccountRepositoryProtocol
from src.pm_account.infrastructure.persistence import AccountRepository
from src.pm_common.enums import LedgerEntryType
from src.pm_common.errors import SimulatedDepositDisabledError
from src.pm_common.money import minor_to_display

logger = logging.getLogger(__name__)


class AccountApplicationService:
    def __init__(self, repo: AccountRepositoryProtocol | None = None) -> None:
        self._repo: AccountRepositoryProtocol = repo or AccountRepository()

    async def get_balance(self, db: AsyncSession, user_id: str) -> BalanceResponse:
        balance = await self._repo.get_balance(db, user_id)
        return BalanceResponse.from_minor(user_id, balance)

    async def deposit(
        self, db: AsyncSession, user_id: str, amount_minor: int
    ) -> DepositResponse:
        if not settings.ALLOW_SIMULATED_DEPOSITS:
            raise SimulatedDepositDisabledError()
        try:
            account = await self._repo.credit(db, user_id, amount_minor)
            entry = await self._repo.record_ledger_entry(
                db,
                user_id,
                LedgerEntryType.DEPOSIT.value,
                amount_minor,
                account.balance,
                reference_type="SIMULATED",
                description="Simulated deposit",
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Simulated deposit user=%s amount=%d", user_id, amount_minor)
        return DepositResponse(
            balance_minor=account.balance,
            balance_display=minor_to_display(account.balance, settings.CURRENCY),
            deposited_minor=amount_minor,
            ledger_entry_id=entry.id,
        )

    async def list_ledger(
        self,
        db: AsyncSession,
        user_id: str,
        cursor: str | None,
        limit: int,
        entry_type: str | None,
    ) -> LedgerResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        entries = await self._repo.list_ledger_entries(
            db, user_id, cursor_id, limit + 1, entry_type
        )
        has_more = len(entries) > limit
        page = entries[:limit]

        items = [
            LedgerEntryItem(
                id=e.id,
                entry_type=e.entry_type,
                status=e.status,
                amount_minor=e.amount,
                amount_display=minor_to_display(e.amount, settings.CURRENCY),
                balance_after_minor=e.balance_after,
                reference_type=e.reference_type,
                reference_id=e.reference_id,
                description=e.description,
                metadata=e.metadata,
                created_at=e.created_at.isoformat() if e.created_at else "",
            )
            for e in page
        ]

        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return LedgerResponse(items=items, next_cursor=next_cursor, has_more=has_more)
