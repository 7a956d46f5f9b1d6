"""Pairing groups: which Paired orders settle against each other.

Every fill links the two orders involved through counterparty_order_ids.
Groups are the connected components of those order-to-order links among
Paired orders, so a BUY paired against two SELLs forms one three-order
group. An order only shares a group with orders reachable through its own
fills; user ids only name the group.
"""

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from src.pm_common.enums import OrderStatus
from src.pm_order.domain.models import Order


def group_key(user_ids: Iterable[str]) -> str:
    """Stable identifier: sorted, de-duplicated user ids joined by '-'."""
    return "-".join(sorted(set(user_ids)))


@dataclass
class PairingGroup:
    key: str
    limit_price: int
    orders: list[Order]

    def by_side(self, side: str) -> list[Order]:
        return [o for o in self.orders if o.side == side]


class _DisjointSet:
    def __init__(self, items: Iterable[str]) -> None:
        self._parent = {item: item for item in items}

    def find(self, item: str) -> str:
        root = item
        while self._parent[root] != root:
            root = self._parent[root]
        while self._parent[item] != root:  # path compression
            self._parent[item], item = root, self._parent[item]
        return root

    def union(self, a: str, b: str) -> None:
        ra, rb = self.find(a), self.find(b)
        if ra != rb:
            # Smaller id becomes root so the result does not depend on input order
            if rb < ra:
                ra, rb = rb, ra
            self._parent[rb] = ra


def group_paired_orders(orders: Sequence[Order]) -> list[PairingGroup]:
    """Partition the Paired orders of one market into pairing groups.

    Orders in any other status are ignored. Groups come back sorted by
    (limit_price, key); orders within a group keep FIFO order.
    """
    paired = [o for o in orders if o.status == OrderStatus.PAIRED.value]
    if not paired:
        return []

    dsu = _DisjointSet(o.id for o in paired)
    paired_ids = {o.id for o in paired}
    for o in paired:
        for counter_id in o.counterparty_order_ids:
            # Links to cancelled or still-partial orders do not join groups
            if counter_id in paired_ids:
                dsu.union(o.id, counter_id)

    components: dict[str, list[Order]] = defaultdict(list)
    for o in paired:
        components[dsu.find(o.id)].append(o)

    groups = []
    for members in components.values():
        members.sort(key=_fifo_key)
        groups.append(
            PairingGroup(
                key=group_key(o.user_id for o in members),
                limit_price=members[0].limit_price,
                orders=members,
            )
        )
    groups.sort(key=lambda g: (g.limit_price, g.key, g.orders[0].id))
    return groups


def _fifo_key(order: Order) -> tuple[float, str]:
    ts = order.created_at.timestamp() if order.created_at else 0.0
    return ts, order.id
