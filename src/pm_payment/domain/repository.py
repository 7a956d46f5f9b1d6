"""Withdrawal store contract."""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_payment.domain.models import Withdrawal


class WithdrawalRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, withdrawal: Withdrawal) -> Withdrawal: ...

    async def get_for_update(self, db: AsyncSession, reference: str) -> Withdrawal | None: ...

    async def set_transfer_id(
        self, db: AsyncSession, reference: str, transfer_id: str
    ) -> None: ...

    async def update_status(
        self,
        db: AsyncSession,
        reference: str,
        status: str,
        failure_reason: str | None = None,
        completed_at: datetime | None = None,
    ) -> None: ...

    async def list_by_user(
        self, db: AsyncSession, user_id: str, cursor_id: str | None, limit: int
    ) -> list[Withdrawal]: ...
