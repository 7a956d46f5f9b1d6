from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from src.pm_common.money import to_minor_units
from src.pm_order.domain.models import Order


class PlaceOrderRequest(BaseModel):
    market_id: str = Field(..., min_length=1, max_length=64)
    side: Literal["BUY", "SELL"]
    # Per-order stake in major units (e.g. 100.00 NGN); converted to minor units
    price: Decimal = Field(..., gt=0, max_digits=14, decimal_places=2)
    quantity: int = Field(..., gt=0, le=1_000_000)

    @field_validator("market_id")
    @classmethod
    def no_whitespace(cls, v: str) -> str:
        if v != v.strip() or " " in v:
            raise ValueError("market_id must not contain whitespace")
        return v

    @property
    def price_minor(self) -> int:
        return to_minor_units(self.price)


class OrderResponse(BaseModel):
    id: str
    market_id: str
    side: str
    price_minor: int
    quantity: int
    filled_quantity: int
    remaining_quantity: int
    status: str
    counterparty_user_ids: list[str]
    counterparty_order_ids: list[str]
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_domain(cls, order: Order) -> "OrderResponse":
        return cls(
            id=order.id,
            market_id=order.market_id,
            side=order.side,
            price_minor=order.limit_price,
            quantity=order.quantity,
            filled_quantity=order.filled_quantity,
            remaining_quantity=order.remaining_quantity,
            status=order.status,
            counterparty_user_ids=list(order.counterparty_user_ids),
            counterparty_order_ids=list(order.counterparty_order_ids),
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class FillResponse(BaseModel):
    counter_order_id: str
    counter_user_id: str
    quantity: int


class PairingResponse(BaseModel):
    matched_quantity: int
    remaining_quantity: int
    counter_order_ids: list[str]
    fills: list[FillResponse] = Field(default_factory=list)


class PlaceOrderResponse(BaseModel):
    order: OrderResponse
    pairing: PairingResponse


class CancelOrderResponse(BaseModel):
    order_id: str
    status: str
    refunded_minor: int


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    next_cursor: str | None
    has_more: bool
