"""Order domain model: pure dataclass, no SQLAlchemy dependency."""
from dataclasses import dataclass, field
from datetime import datetime

from src.pm_common.enums import OrderSide, OrderStatus

ACTIVE_STATUSES = (OrderStatus.OPEN.value, OrderStatus.PARTIALLY_PAIRED.value)


@dataclass
class Order:
    id: str
    market_id: str
    user_id: str
    side: str  # BUY / SELL
    # Stake per order in minor units; also the pairing key (same price only)
    limit_price: int
    quantity: int
    filled_quantity: int = 0
    status: str = OrderStatus.OPEN.value
    # Every other user ever paired against this order (deduplicated)
    counterparty_user_ids: list[str] = field(default_factory=list)
    # The exact orders it was filled against; resolution groups follow these
    counterparty_order_ids: list[str] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def remaining_quantity(self) -> int:
        return self.quantity - self.filled_quantity

    @property
    def stake(self) -> int:
        return self.limit_price

    @property
    def opposite_side(self) -> str:
        return OrderSide(self.side).opposite.value

    @property
    def is_active(self) -> bool:
        """Still accepting fills."""
        return self.status in ACTIVE_STATUSES

    @property
    def is_cancellable(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def add_counterparty(self, user_id: str) -> None:
        if user_id != self.user_id and user_id not in self.counterparty_user_ids:
            self.counterparty_user_ids.append(user_id)

    def record_match(self, counter: "Order") -> None:
        """Link this order to a counter-order it was just filled against."""
        self.add_counterparty(counter.user_id)
        if counter.id not in self.counterparty_order_ids:
            self.counterparty_order_ids.append(counter.id)
