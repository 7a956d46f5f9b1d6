"""FIFO pairing allocation at a single price level.

Pure function, no I/O: the engine loads and locks the candidates, this
module only decides how much each one receives.
"""
from collections.abc import Sequence

from src.pm_matching.domain.models import FillAllocation
from src.pm_order.domain.models import Order


def allocate_fills(quantity: int, counter_orders: Sequence[Order]) -> list[FillAllocation]:
    """Greedily hand out `quantity` across counter_orders in the given order.

    counter_orders must already be same-market, same-price, opposite-side,
    active and sorted oldest first. Orders with nothing remaining are skipped.
    """
    if quantity <= 0:
        raise ValueError(f"quantity must be positive, got {quantity}")
    fills: list[FillAllocation] = []
    remaining = quantity
    for counter in counter_orders:
        if remaining == 0:
            break
        take = min(remaining, counter.remaining_quantity)
        if take <= 0:
            continue
        fills.append(
            FillAllocation(
                counter_order_id=counter.id,
                counter_user_id=counter.user_id,
                quantity=take,
            )
        )
        remaining -= take
    return fills
