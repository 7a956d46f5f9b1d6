"""Order status rules.

    Open ──fill──▶ PartiallyPaired ──fill──▶ Paired ──resolve──▶ Filled
      │                 │
      └────cancel───────┴──▶ Cancelled

Status is never set directly by pairing code: it is derived from
filled_quantity vs quantity. Resolution and cancellation are the only
explicit transitions.
"""

from src.pm_common.enums import OrderStatus
from src.pm_common.errors import InvalidStateTransitionError
from src.pm_order.domain.models import Order

_ALLOWED: dict[str, frozenset[str]] = {
    OrderStatus.OPEN.value: frozenset(
        {
            OrderStatus.PARTIALLY_PAIRED.value,
            OrderStatus.PAIRED.value,
            OrderStatus.FILLED.value,
            OrderStatus.CANCELLED.value,
        }
    ),
    OrderStatus.PARTIALLY_PAIRED.value: frozenset(
        {
            OrderStatus.PARTIALLY_PAIRED.value,
            OrderStatus.PAIRED.value,
            OrderStatus.FILLED.value,
            OrderStatus.CANCELLED.value,
        }
    ),
    OrderStatus.PAIRED.value: frozenset({OrderStatus.FILLED.value}),
    OrderStatus.FILLED.value: frozenset(),
    OrderStatus.CANCELLED.value: frozenset(),
}


def derive_status(filled_quantity: int, quantity: int) -> str:
    """Pre-resolution status from fill progress."""
    if filled_quantity < 0 or filled_quantity > quantity:
        raise ValueError(f"filled_quantity {filled_quantity} outside [0, {quantity}]")
    if filled_quantity == 0:
        return OrderStatus.OPEN.value
    if filled_quantity < quantity:
        return OrderStatus.PARTIALLY_PAIRED.value
    return OrderStatus.PAIRED.value


def can_transition(current: str, target: str) -> bool:
    return target in _ALLOWED.get(current, frozenset())


def transition(order: Order, target: str) -> None:
    """Move order to target status or raise InvalidStateTransitionError."""
    if not can_transition(order.status, target):
        raise InvalidStateTransitionError(order.id, order.status, target)
    order.status = target


def apply_fill(order: Order, quantity: int) -> None:
    """Add quantity to filled_quantity and re-derive the status."""
    if not order.is_active:
        raise InvalidStateTransitionError(
            order.id, order.status, OrderStatus.PARTIALLY_PAIRED.value
        )
    if quantity <= 0 or quantity > order.remaining_quantity:
        raise ValueError(
            f"fill {quantity} invalid for order {order.id} "
            f"with remaining {order.remaining_quantity}"
        )
    order.filled_quantity += quantity
    order.status = derive_status(order.filled_quantity, order.quantity)
