# src/pm_order/infrastructure/persistence.py
"""OrderRepository: raw SQL persistence implementation."""
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.enums import OrderStatus
from src.pm_order.domain.models import Order

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_INSERT_ORDER_SQL = text("""
    INSERT INTO orders (id, market_id, user_id, side, limit_price,
        quantity, filled_quantity, status, counterparty_user_ids,
        counterparty_order_ids)
    VALUES (:id, :market_id, :user_id, :side, :limit_price,
        :quantity, :filled_quantity, :status,
        CAST(:counterparty_user_ids AS VARCHAR[]),
        CAST(:counterparty_order_ids AS VARCHAR[]))
""")

_UPDATE_FILL_SQL = text("""
    UPDATE orders
    SET filled_quantity = :filled_quantity, status = :status,
        counterparty_user_ids = CAST(:counterparty_user_ids AS VARCHAR[]),
        counterparty_order_ids = CAST(:counterparty_order_ids AS VARCHAR[]),
        updated_at = NOW()
    WHERE id = :id
""")

_UPDATE_STATUS_SQL = text("""
    UPDATE orders SET status = :status, updated_at = NOW()
    WHERE id = :id
""")

_MARK_MARKET_FILLED_SQL = text("""
    UPDATE orders SET status = :filled, updated_at = NOW()
    WHERE market_id = :market_id AND status <> :cancelled
""")

_SELECT_COLUMNS = """
    id, market_id, user_id, side, limit_price, quantity, filled_quantity,
    status, counterparty_user_ids, counterparty_order_ids, created_at, updated_at
"""

_GET_ORDER_BY_ID_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders WHERE id = :id
""")

_GET_ORDER_FOR_UPDATE_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders WHERE id = :id
    FOR UPDATE
""")

_FIND_DUPLICATE_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders
    WHERE user_id = :user_id AND market_id = :market_id
      AND side = :side AND limit_price = :limit_price
      AND status <> :cancelled
    LIMIT 1
""")

# FIFO: oldest first, id breaks created_at ties
_FIND_COUNTER_ORDERS_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders
    WHERE market_id = :market_id AND side = :side AND limit_price = :limit_price
      AND status IN (:open, :partially_paired)
      AND user_id <> :exclude_user_id
    ORDER BY created_at ASC, id ASC
    FOR UPDATE
""")

_LIST_BY_MARKET_FOR_UPDATE_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders WHERE market_id = :market_id
    ORDER BY created_at ASC, id ASC
    FOR UPDATE
""")

_LIST_ORDERS_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders
    WHERE user_id = :user_id
      AND (CAST(:market_id AS TEXT) IS NULL OR market_id = :market_id)
      AND (CAST(:cursor_id AS TEXT) IS NULL OR id < :cursor_id)
      AND (CAST(:statuses_csv AS TEXT) IS NULL
           OR status = ANY(string_to_array(CAST(:statuses_csv AS TEXT), ',')))
    ORDER BY id DESC
    LIMIT :limit
""")


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_order(row: Any) -> Order:
    """Convert a DB result row to an Order domain object."""
    return Order(
        id=row.id,
        market_id=row.market_id,
        user_id=row.user_id,
        side=row.side,
        limit_price=int(row.limit_price),
        quantity=row.quantity,
        filled_quantity=row.filled_quantity,
        status=row.status,
        counterparty_user_ids=list(row.counterparty_user_ids or []),
        counterparty_order_ids=list(row.counterparty_order_ids or []),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class OrderRepository:
    """Concrete implementation of OrderRepositoryProtocol using raw SQL."""

    async def save(self, order: Order, db: AsyncSession) -> None:
        await db.execute(
            _INSERT_ORDER_SQL,
            {
                "id": order.id,
                "market_id": order.market_id,
                "user_id": order.user_id,
                "side": order.side,
                "limit_price": order.limit_price,
                "quantity": order.quantity,
                "filled_quantity": order.filled_quantity,
                "status": order.status,
                "counterparty_user_ids": order.counterparty_user_ids,
                "counterparty_order_ids": order.counterparty_order_ids,
            },
        )

    async def get_by_id(self, order_id: str, db: AsyncSession) -> Order | None:
        result = await db.execute(_GET_ORDER_BY_ID_SQL, {"id": order_id})
        row = result.fetchone()
        return _row_to_order(row) if row else None

    async def get_by_id_for_update(
        self, order_id: str, db: AsyncSession
    ) -> Order | None:
        result = await db.execute(_GET_ORDER_FOR_UPDATE_SQL, {"id": order_id})
        row = result.fetchone()
        return _row_to_order(row) if row else None

    async def find_active_duplicate(
        self, user_id: str, market_id: str, side: str, limit_price: int, db: AsyncSession
    ) -> Order | None:
        result = await db.execute(
            _FIND_DUPLICATE_SQL,
            {
                "user_id": user_id,
                "market_id": market_id,
                "side": side,
                "limit_price": limit_price,
                "cancelled": OrderStatus.CANCELLED.value,
            },
        )
        row = result.fetchone()
        return _row_to_order(row) if row else None

    async def find_counter_orders_for_update(
        self, market_id: str, side: str, limit_price: int, exclude_user_id: str, db: AsyncSession
    ) -> list[Order]:
        result = await db.execute(
            _FIND_COUNTER_ORDERS_SQL,
            {
                "market_id": market_id,
                "side": side,
                "limit_price": limit_price,
                "open": OrderStatus.OPEN.value,
                "partially_paired": OrderStatus.PARTIALLY_PAIRED.value,
                "exclude_user_id": exclude_user_id,
            },
        )
        return [_row_to_order(row) for row in result.fetchall()]

    async def list_by_market_for_update(
        self, market_id: str, db: AsyncSession
    ) -> list[Order]:
        result = await db.execute(_LIST_BY_MARKET_FOR_UPDATE_SQL, {"market_id": market_id})
        return [_row_to_order(row) for row in result.fetchall()]

    async def update_fill(self, order: Order, db: AsyncSession) -> None:
        await db.execute(
            _UPDATE_FILL_SQL,
            {
                "id": order.id,
                "filled_quantity": order.filled_quantity,
                "status": order.status,
                "counterparty_user_ids": order.counterparty_user_ids,
                "counterparty_order_ids": order.counterparty_order_ids,
            },
        )

    async def update_status(self, order: Order, db: AsyncSession) -> None:
        await db.execute(_UPDATE_STATUS_SQL, {"id": order.id, "status": order.status})

    async def mark_market_orders_filled(self, market_id: str, db: AsyncSession) -> int:
        result = await db.execute(
            _MARK_MARKET_FILLED_SQL,
            {
                "market_id": market_id,
                "filled": OrderStatus.FILLED.value,
                "cancelled": OrderStatus.CANCELLED.value,
            },
        )
        return result.rowcount or 0

    async def list_by_user(
        self,
        user_id: str,
        market_id: str | None,
        statuses: list[str] | None,
        limit: int,
        cursor_id: str | None,
        db: AsyncSession,
    ) -> list[Order]:
        statuses_csv = ",".join(statuses) if statuses else None
        result = await db.execute(
            _LIST_ORDERS_SQL,
            {
                "user_id": user_id,
                "market_id": market_id,
                "cursor_id": cursor_id,
                "limit": limit,
                "statuses_csv": statuses_csv,
            },
        )
        rows = result.fetchall()
        return [_row_to_order(row) for row in rows]
