"""MatchingEngine: stateful orchestrator for per-market order placement.

Placement and cancellation run inside the caller's transaction; the
application service commits or rolls back. Within one process an asyncio
lock per market queues placements, and across processes the market row
lock (SELECT ... FOR UPDATE) does the same job.
"""
import asyncio
import logging
from collections import defaultdict

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_account.domain.repository import AccountRepositoryProtocol
from src.pm_account.infrastructure.persistence import AccountRepository
from src.pm_common.database import set_lock_timeout
from src.pm_common.datetime_utils import utc_now
from src.pm_common.enums import LedgerEntryType, OrderSide, OrderStatus
from src.pm_common.errors import (
    DuplicateOrderError,
    ForbiddenError,
    MarketClosedError,
    MarketNotFoundError,
    OrderNotCancellableError,
    OrderNotFoundError,
    OrderValidationError,
)
from src.pm_market.domain.repository import MarketRepositoryProtocol
from src.pm_market.infrastructure.persistence import MarketRepository
from src.pm_matching.domain.models import PairingSummary
from src.pm_matching.engine.matching_algo import allocate_fills
from src.pm_order.domain.models import Order
from src.pm_order.domain.repository import OrderRepositoryProtocol
from src.pm_order.domain.state_machine import apply_fill, derive_status, transition

logger = logging.getLogger(__name__)


def validate_order(order: Order) -> None:
    """Shape checks that need no I/O."""
    if order.side not in (OrderSide.BUY.value, OrderSide.SELL.value):
        raise OrderValidationError(f"side must be BUY or SELL, got {order.side!r}")
    if order.limit_price <= 0:
        raise OrderValidationError("price must be positive")
    if order.quantity <= 0:
        raise OrderValidationError("quantity must be positive")
    if order.filled_quantity != 0 or order.status != OrderStatus.OPEN.value:
        raise OrderValidationError("new orders start Open with nothing filled")


class MatchingEngine:
    def __init__(
        self,
        account_repo: AccountRepositoryProtocol | None = None,
        market_repo: MarketRepositoryProtocol | None = None,
    ) -> None:
        self._accounts: AccountRepositoryProtocol = account_repo or AccountRepository()
        self._markets: MarketRepositoryProtocol = market_repo or MarketRepository()
        self._market_locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def _get_or_create_lock(self, market_id: str) -> asyncio.Lock:
        return self._market_locks[market_id]

    async def place_order(
        self, order: Order, repo: OrderRepositoryProtocol, db: AsyncSession
    ) -> tuple[Order, PairingSummary]:
        """Main entry point. Returns (order, pairing summary)."""
        validate_order(order)
        lock = self._get_or_create_lock(order.market_id)
        async with lock:
            return await self._place_order_inner(order, repo, db)

    async def _place_order_inner(
        self, order: Order, repo: OrderRepositoryProtocol, db: AsyncSession
    ) -> tuple[Order, PairingSummary]:
        await set_lock_timeout(db)

        # Market row lock: serializes against other placements and resolution
        market = await self._markets.get_market_for_update(db, order.market_id)
        if market is None:
            raise MarketNotFoundError(order.market_id)
        reason = market.trading_window_error(utc_now())
        if reason is not None:
            raise MarketClosedError(market.id, reason)

        duplicate = await repo.find_active_duplicate(
            order.user_id, order.market_id, order.side, order.limit_price, db
        )
        if duplicate is not None:
            raise DuplicateOrderError(order.market_id, order.side, order.limit_price)

        # Stake is the limit price, independent of quantity
        account = await self._accounts.debit(db, order.user_id, order.stake)
        await self._accounts.record_ledger_entry(
            db,
            order.user_id,
            LedgerEntryType.ORDER_STAKE.value,
            -order.stake,
            account.balance,
            reference_type="ORDER",
            reference_id=order.id,
            description=f"Stake for {order.side} order in market {order.market_id}",
            metadata={
                "order_id": order.id,
                "market_id": order.market_id,
                "side": order.side,
                "price": order.limit_price,
                "quantity": order.quantity,
            },
        )

        counters = await repo.find_counter_orders_for_update(
            order.market_id, order.opposite_side, order.limit_price, order.user_id, db
        )
        fills = allocate_fills(order.quantity, counters)
        by_id = {c.id: c for c in counters}
        for fill in fills:
            counter = by_id[fill.counter_order_id]
            apply_fill(counter, fill.quantity)
            counter.record_match(order)
            await repo.update_fill(counter, db)
            order.record_match(counter)

        matched = sum(f.quantity for f in fills)
        order.filled_quantity = matched
        order.status = derive_status(matched, order.quantity)
        await repo.save(order, db)

        summary = PairingSummary(
            matched_quantity=matched,
            remaining_quantity=order.remaining_quantity,
            counter_order_ids=[f.counter_order_id for f in fills],
            fills=fills,
        )
        logger.info(
            "Order placed id=%s market=%s user=%s side=%s price=%d qty=%d matched=%d status=%s",
            order.id,
            order.market_id,
            order.user_id,
            order.side,
            order.limit_price,
            order.quantity,
            matched,
            order.status,
        )
        return order, summary

    async def cancel_order(
        self, order_id: str, user_id: str, repo: OrderRepositoryProtocol, db: AsyncSession
    ) -> tuple[Order, int]:
        """Cancel an Open/PartiallyPaired order and refund its stake.

        Returns (order, refunded amount).
        """
        existing = await repo.get_by_id(order_id, db)
        if existing is None:
            raise OrderNotFoundError(order_id)
        if existing.user_id != user_id:
            raise ForbiddenError("Order belongs to another user")

        lock = self._get_or_create_lock(existing.market_id)
        async with lock:
            await set_lock_timeout(db)
            # Same lock order as placement: market row first, then the order
            await self._markets.get_market_for_update(db, existing.market_id)
            order = await repo.get_by_id_for_update(order_id, db)
            if order is None:
                raise OrderNotFoundError(order_id)
            if not order.is_cancellable:
                raise OrderNotCancellableError(order.id, order.status)

            transition(order, OrderStatus.CANCELLED.value)
            await repo.update_status(order, db)

            account = await self._accounts.credit(db, order.user_id, order.stake)
            await self._accounts.record_ledger_entry(
                db,
                order.user_id,
                LedgerEntryType.REFUND.value,
                order.stake,
                account.balance,
                reference_type="ORDER",
                reference_id=order.id,
                description="Stake refund on cancel",
                metadata={
                    "order_id": order.id,
                    "market_id": order.market_id,
                    "filled_quantity": order.filled_quantity,
                },
            )

        logger.info(
            "Order cancelled id=%s market=%s user=%s filled=%d refund=%d",
            order.id,
            order.market_id,
            order.user_id,
            order.filled_quantity,
            order.stake,
        )
        return order, order.stake
