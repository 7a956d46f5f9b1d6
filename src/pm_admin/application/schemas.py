from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ResolveMarketRequest(BaseModel):
    """Body of POST /markets/resolve: {"marketId": "...", "result": "yes"}."""

    model_config = ConfigDict(populate_by_name=True)

    market_id: str = Field(..., alias="marketId", min_length=1, max_length=64)
    result: Literal["yes", "no"]


class ResolutionResponse(BaseModel):
    market_id: str
    outcome: str
    groups: int
    winners: int
    losers: int
    refunds: int
    orders_filled: int
    total_staked: int
    total_credited: int
    total_refunded: int
    fee_retained: int


class MarketStatsResponse(BaseModel):
    market_id: str
    status: str
    outcome: str | None
    orders_by_status: dict[str, int]
    total_orders: int
    total_staked: int
    total_matched_quantity: int
    unique_traders: int
