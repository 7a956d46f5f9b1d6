# src/pm_order/domain/repository.py
"""OrderRepository Protocol: interface contract for persistence layer."""
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_order.domain.models import Order


class OrderRepositoryProtocol(Protocol):
    async def save(self, order: Order, db: AsyncSession) -> None: ...

    async def get_by_id(self, order_id: str, db: AsyncSession) -> Order | None: ...

    async def get_by_id_for_update(
        self, order_id: str, db: AsyncSession
    ) -> Order | None: ...

    async def find_active_duplicate(
        self, user_id: str, market_id: str, side: str, limit_price: int, db: AsyncSession
    ) -> Order | None: ...

    async def find_counter_orders_for_update(
        self, market_id: str, side: str, limit_price: int, exclude_user_id: str, db: AsyncSession
    ) -> list[Order]:
        """Active opposite-side orders at limit_price, oldest first, row-locked."""
        ...

    async def list_by_market_for_update(
        self, market_id: str, db: AsyncSession
    ) -> list[Order]: ...

    async def update_fill(self, order: Order, db: AsyncSession) -> None: ...

    async def update_status(self, order: Order, db: AsyncSession) -> None: ...

    async def mark_market_orders_filled(self, market_id: str, db: AsyncSession) -> int:
        """Move every non-cancelled order of the market to Filled; returns row count."""
        ...

    async def list_by_user(
        self,
        user_id: str,
        market_id: str | None,
        statuses: list[str] | None,
        limit: int,
        cursor_id: str | None,
        db: AsyncSession,
    ) -> list[Order]: ...
