"""Global enums: must match DB CHECK constraints exactly.

Market and order status values keep the casing of the public API
('Open', 'closed', 'archived', 'PartiallyPaired', ...).
"""

from enum import Enum


class MarketStatus(str, Enum):
    OPEN = "Open"
    CLOSED = "closed"
    ARCHIVED = "archived"


class MarketOutcome(str, Enum):
    """Resolution result. The winning order side is derived from it."""

    YES = "yes"
    NO = "no"

    @property
    def winning_side(self) -> "OrderSide":
        return OrderSide.BUY if self is MarketOutcome.YES else OrderSide.SELL


class OrderSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"

    @property
    def opposite(self) -> "OrderSide":
        return OrderSide.SELL if self is OrderSide.BUY else OrderSide.BUY


class OrderStatus(str, Enum):
    OPEN = "Open"
    PARTIALLY_PAIRED = "PartiallyPaired"
    PAIRED = "Paired"
    FILLED = "Filled"
    CANCELLED = "Cancelled"


class LedgerEntryType(str, Enum):
    # Payments provider
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    WITHDRAWAL_REVERSAL = "WITHDRAWAL_REVERSAL"
    # Order lifecycle
    ORDER_STAKE = "ORDER_STAKE"
    REFUND = "REFUND"
    # Resolution (winners credited, losers recorded with amount 0)
    TRADE = "TRADE"


class LedgerEntryStatus(str, Enum):
    """Entries are append-only; a reversal is a new entry, never an update."""

    COMPLETED = "COMPLETED"


class WithdrawalStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
