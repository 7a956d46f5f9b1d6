"""Pydantic schemas and cursor utilities for pm_account API."""

import base64
import json
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from config.settings import settings
from src.pm_common.money import minor_to_display

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: int) -> str:
    """Encode a BIGINT primary key into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> int | None:
    """Decode a cursor string back to the last seen id. Returns None on error."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode()).decode())
        return int(payload["id"])
    except (ValueError, KeyError, TypeError):
        return None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class DepositRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=14, decimal_places=2)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    user_id: str
    currency: str
    balance_minor: int
    balance_display: str

    @classmethod
    def from_minor(cls, user_id: str, balance: int) -> "BalanceResponse":
        return cls(
            user_id=user_id,
            currency=settings.CURRENCY,
            balance_minor=balance,
            balance_display=minor_to_display(balance, settings.CURRENCY),
        )


class DepositResponse(BaseModel):
    balance_minor: int
    balance_display: str
    deposited_minor: int
    ledger_entry_id: int


class LedgerEntryItem(BaseModel):
    id: int
    entry_type: str
    status: str
    amount_minor: int
    amount_display: str
    balance_after_minor: int
    reference_type: str | None
    reference_id: str | None
    description: str | None
    metadata: dict[str, Any]
    created_at: str  # ISO8601 string


class LedgerResponse(BaseModel):
    items: list[LedgerEntryItem]
    next_cursor: str | None
    has_more: bool
