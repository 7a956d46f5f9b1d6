from dataclasses import dataclass, field


@dataclass(frozen=True)
class FillAllocation:
    """Quantity assigned from one incoming order to one resting counter-order."""

    counter_order_id: str
    counter_user_id: str
    quantity: int


@dataclass
class PairingSummary:
    """Result of one placement, returned alongside the new order."""

    matched_quantity: int
    remaining_quantity: int
    counter_order_ids: list[str] = field(default_factory=list)
    fills: list[FillAllocation] = field(default_factory=list)
