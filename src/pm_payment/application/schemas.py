"""Pydantic schemas for the wallet and webhook endpoints."""

from decimal import Decimal

from pydantic import BaseModel, Field

from src.pm_common.money import minor_to_display
from src.pm_payment.domain.models import Withdrawal


class WithdrawRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=14, decimal_places=2)
    account_bank: str = Field(..., min_length=3, max_length=16, pattern=r"^[0-9A-Za-z]+$")
    account_number: str = Field(..., pattern=r"^\d{10}$")
    narration: str | None = Field(None, max_length=100)


class WithdrawalItem(BaseModel):
    reference: str
    amount_minor: int
    amount_display: str
    currency: str
    status: str
    account_bank: str
    account_number_last4: str
    provider_transfer_id: str | None
    failure_reason: str | None
    created_at: str | None
    completed_at: str | None

    @classmethod
    def from_domain(cls, w: Withdrawal) -> "WithdrawalItem":
        return cls(
            reference=w.id,
            amount_minor=w.amount,
            amount_display=minor_to_display(w.amount, w.currency),
            currency=w.currency,
            status=w.status,
            account_bank=w.account_bank,
            account_number_last4=w.account_number[-4:],
            provider_transfer_id=w.provider_transfer_id,
            failure_reason=w.failure_reason,
            created_at=w.created_at.isoformat() if w.created_at else None,
            completed_at=w.completed_at.isoformat() if w.completed_at else None,
        )


class WithdrawalListResponse(BaseModel):
    items: list[WithdrawalItem]
    next_cursor: str | None
    has_more: bool


class WebhookAck(BaseModel):
    event: str | None
    result: str  # processed / duplicate / ignored
