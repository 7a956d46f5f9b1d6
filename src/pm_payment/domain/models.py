"""Domain models for pm_payment: pure dataclasses."""

from dataclasses import dataclass
from datetime import datetime

from src.pm_common.enums import WithdrawalStatus


@dataclass
class Withdrawal:
    id: str                    # our reference, sent to the provider as `reference`
    user_id: str
    amount: int                # minor units
    currency: str
    account_bank: str
    account_number: str
    status: str = WithdrawalStatus.PENDING.value
    narration: str | None = None
    provider_transfer_id: str | None = None
    failure_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == WithdrawalStatus.PENDING.value
