# src/pm_order/application/service.py
"""Order use cases. Each write owns its transaction and retries lock conflicts."""
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.pm_common.database import is_retryable_db_error
from src.pm_common.datetime_utils import utc_now
from src.pm_common.enums import OrderStatus
from src.pm_common.errors import ConcurrencyConflictError, ForbiddenError, OrderNotFoundError
from src.pm_common.id_generator import generate_id
from src.pm_matching.application.service import get_matching_engine
from src.pm_order.application.schemas import (
    CancelOrderResponse,
    FillResponse,
    OrderListResponse,
    OrderResponse,
    PairingResponse,
    PlaceOrderRequest,
    PlaceOrderResponse,
)
from src.pm_order.domain.models import Order
from src.pm_order.infrastructure.persistence import OrderRepository

logger = logging.getLogger(__name__)

_repo = OrderRepository()

T = TypeVar("T")


async def _run_with_retry(
    db: AsyncSession, op_name: str, op: Callable[[], Awaitable[T]]
) -> T:
    """Commit op's work, retrying lock timeouts and deadlocks from scratch."""
    attempts = max(1, settings.PLACEMENT_MAX_RETRIES)
    for attempt in range(1, attempts + 1):
        try:
            result = await op()
            await db.commit()
            return result
        except Exception as exc:
            await db.rollback()
            if not is_retryable_db_error(exc):
                raise
            logger.warning("%s lock conflict attempt=%d/%d", op_name, attempt, attempts)
            if attempt == attempts:
                raise ConcurrencyConflictError() from exc
    raise ConcurrencyConflictError()  # unreachable


async def place_order(
    req: PlaceOrderRequest, user_id: str, db: AsyncSession
) -> PlaceOrderResponse:
    engine = get_matching_engine()
    price_minor = req.price_minor

    async def _attempt() -> PlaceOrderResponse:
        # Fresh order per attempt: a rolled-back attempt must leave no trace
        now = utc_now()
        order = Order(
            id=generate_id(),
            market_id=req.market_id,
            user_id=user_id,
            side=req.side,
            limit_price=price_minor,
            quantity=req.quantity,
            status=OrderStatus.OPEN.value,
            created_at=now,
            updated_at=now,
        )
        placed, summary = await engine.place_order(order, _repo, db)
        return PlaceOrderResponse(
            order=OrderResponse.from_domain(placed),
            pairing=PairingResponse(
                matched_quantity=summary.matched_quantity,
                remaining_quantity=summary.remaining_quantity,
                counter_order_ids=summary.counter_order_ids,
                fills=[
                    FillResponse(
                        counter_order_id=f.counter_order_id,
                        counter_user_id=f.counter_user_id,
                        quantity=f.quantity,
                    )
                    for f in summary.fills
                ],
            ),
        )

    return await _run_with_retry(db, "place_order", _attempt)


async def cancel_order(
    order_id: str, user_id: str, db: AsyncSession
) -> CancelOrderResponse:
    engine = get_matching_engine()

    async def _attempt() -> CancelOrderResponse:
        order, refunded = await engine.cancel_order(order_id, user_id, _repo, db)
        return CancelOrderResponse(
            order_id=order.id, status=order.status, refunded_minor=refunded
        )

    return await _run_with_retry(db, "cancel_order", _attempt)


async def get_order(
    order_id: str, user_id: str, db: AsyncSession
) -> OrderResponse:
    order = await _repo.get_by_id(order_id, db)
    if order is None:
        raise OrderNotFoundError(order_id)
    if order.user_id != user_id:
        raise ForbiddenError("Order belongs to another user")
    return OrderResponse.from_domain(order)


async def list_orders(
    user_id: str,
    market_id: str | None,
    status: str | None,
    limit: int,
    cursor: str | None,
    db: AsyncSession,
) -> OrderListResponse:
    statuses = [status] if status else None
    orders = await _repo.list_by_user(
        user_id=user_id,
        market_id=market_id,
        statuses=statuses,
        limit=limit + 1,
        cursor_id=cursor,
        db=db,
    )
    has_more = len(orders) > limit
    if has_more:
        orders = orders[:limit]
    next_cursor = orders[-1].id if has_more else None
    return OrderListResponse(
        items=[OrderResponse.from_domain(o) for o in orders],
        next_cursor=next_cursor,
        has_more=has_more,
    )
