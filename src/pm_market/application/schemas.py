"""Pydantic schemas for pm_market API.

Cursor format for markets (VARCHAR PK, not sequential):
  {"ts": "<created_at ISO>", "id": "<market_id>"}
  Encoded as Base64 JSON string.
"""

import base64
import json
from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from src.pm_common.datetime_utils import ensure_utc
from src.pm_market.domain.models import Market

# ---------------------------------------------------------------------------
# Cursor utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_market: Market) -> str:
    """Encode composite cursor from last market in page."""
    created_at = last_market.created_at.isoformat() if last_market.created_at else ""
    payload = {"ts": created_at, "id": last_market.id}
    return base64.b64encode(json.dumps(payload).encode()).decode()


def cursor_decode(cursor: str | None) -> tuple[str | None, str | None]:
    """Decode composite cursor -> (ts_iso, market_id), or (None, None) on error."""
    if cursor is None:
        return None, None
    try:
        data = json.loads(base64.b64decode(cursor.encode()).decode())
        return data["ts"], data["id"]
    except (ValueError, KeyError, TypeError):
        return None, None


# ---------------------------------------------------------------------------
# Structured blobs (validated here, stored as JSONB)
# ---------------------------------------------------------------------------


class MarketImageIn(BaseModel):
    url: str = Field(..., min_length=1, max_length=2048)
    hint: str = Field("", max_length=128)


class HistoryPointIn(BaseModel):
    date: str
    volume: int = Field(..., ge=0)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class CreateMarketRequest(BaseModel):
    question: str = Field(..., min_length=5, max_length=500)
    category: str = Field("General", min_length=1, max_length=64)
    image: MarketImageIn | None = None
    history: list[HistoryPointIn] = Field(default_factory=list)
    is_daily: bool = False
    start_date: datetime
    end_date: datetime

    @field_validator("start_date", "end_date")
    @classmethod
    def as_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @model_validator(mode="after")
    def window_is_ordered(self) -> "CreateMarketRequest":
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class UpdateMarketRequest(BaseModel):
    """Partial edit of an Open market. Omitted fields keep their stored value."""

    question: str | None = Field(None, min_length=5, max_length=500)
    category: str | None = Field(None, min_length=1, max_length=64)
    image: MarketImageIn | None = None
    history: list[HistoryPointIn] | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None

    @field_validator("start_date", "end_date")
    @classmethod
    def as_utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v) if v is not None else None

    @model_validator(mode="after")
    def window_is_ordered(self) -> "UpdateMarketRequest":
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class MarketDetail(BaseModel):
    id: str
    question: str
    category: str
    status: str
    outcome: str | None
    image: MarketImageIn | None
    history: list[HistoryPointIn]
    is_daily: bool
    start_date: str
    end_date: str
    resolved_at: str | None
    created_at: str | None

    @classmethod
    def from_domain(cls, m: Market) -> "MarketDetail":
        return cls(
            id=m.id,
            question=m.question,
            category=m.category,
            status=m.status,
            outcome=m.outcome,
            image=MarketImageIn(url=m.image.url, hint=m.image.hint) if m.image else None,
            history=[HistoryPointIn(date=p.date, volume=p.volume) for p in m.history],
            is_daily=m.is_daily,
            start_date=m.start_date.isoformat(),
            end_date=m.end_date.isoformat(),
            resolved_at=m.resolved_at.isoformat() if m.resolved_at else None,
            created_at=m.created_at.isoformat() if m.created_at else None,
        )


class MarketListResponse(BaseModel):
    items: list[MarketDetail]
    next_cursor: str | None
    has_more: bool


class CategoryCount(BaseModel):
    category: str
    market_count: int
