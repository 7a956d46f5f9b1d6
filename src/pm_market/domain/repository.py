"""Market store contract. Unit tests inject an in-memory fake."""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_market.domain.models import Market


class MarketRepositoryProtocol(Protocol):
    async def get_market_by_id(self, db: AsyncSession, market_id: str) -> Market | None: ...

    async def get_market_for_update(
        self, db: AsyncSession, market_id: str
    ) -> Market | None:
        """Row-locked read; the lock is held until the caller's transaction ends."""
        ...

    async def list_markets(
        self,
        db: AsyncSession,
        status: str | None,
        category: str | None,
        cursor_ts: str | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Market]: ...

    async def create_market(self, db: AsyncSession, market: Market) -> Market: ...

    async def update_status_and_outcome(
        self,
        db: AsyncSession,
        market_id: str,
        status: str,
        outcome: str | None,
        resolved_at: datetime | None,
    ) -> None: ...

    async def update_market(self, db: AsyncSession, market: Market) -> Market:
        """Write back the editable fields: question, category, image, history and dates."""
        ...

    async def list_categories(self, db: AsyncSession) -> list[tuple[str, int]]:
        """(category, market count) over non-archived markets, ordered by name."""
        ...
