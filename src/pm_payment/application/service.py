"""PaymentService: withdrawals out to banks, deposits and transfer outcomes in.

Money moves only inside DB transactions owned here. A withdrawal is debited
and committed before the provider is asked to pay it out; a rejected
transfer is then reversed with a WITHDRAWAL_REVERSAL entry. Webhook handlers are idempotent twice
over: Redis drops repeated deliveries, and the ledger/withdrawal state
makes a second application a no-op.
"""

import json
import logging
import uuid
from collections.abc import Awaitable, Callable
from decimal import Decimal, InvalidOperation
from typing import Any

import redis.asyncio as aioredis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.pm_account.domain.repository import AccountRepositoryProtocol
from src.pm_account.infrastructure.persistence import AccountRepository
from src.pm_common.datetime_utils import utc_now
from src.pm_common.enums import LedgerEntryType, WithdrawalStatus
from src.pm_common.errors import (
    InvalidWebhookSignatureError,
    PaymentGatewayError,
    PaymentOutcomeUnknownError,
)
from src.pm_common.id_generator import generate_reference
from src.pm_common.money import to_minor_units
from src.pm_common.redis_client import claim_once, get_redis
from src.pm_gateway.user.db_models import UserModel
from src.pm_payment.application.schemas import (
    WebhookAck,
    WithdrawalItem,
    WithdrawalListResponse,
    WithdrawRequest,
)
from src.pm_payment.application.signature import verify_webhook_signature
from src.pm_payment.domain.models import Withdrawal
from src.pm_payment.domain.repository import WithdrawalRepositoryProtocol
from src.pm_payment.infrastructure.flutterwave_client import FlutterwaveClient
from src.pm_payment.infrastructure.persistence import WithdrawalRepository

logger = logging.getLogger(__name__)

_DEDUP_KEY = "webhook:flutterwave:{event}:{id}"


class PaymentService:
    def __init__(
        self,
        withdrawals: WithdrawalRepositoryProtocol | None = None,
        accounts: AccountRepositoryProtocol | None = None,
        client: FlutterwaveClient | None = None,
        redis_factory: Callable[[], Awaitable[aioredis.Redis]] = get_redis,
    ) -> None:
        self._withdrawals: WithdrawalRepositoryProtocol = withdrawals or WithdrawalRepository()
        self._accounts: AccountRepositoryProtocol = accounts or AccountRepository()
        self._client = client or FlutterwaveClient()
        self._redis_factory = redis_factory

    # ------------------------------------------------------------------
    # Withdrawals
    # ------------------------------------------------------------------

    async def withdraw(
        self, db: AsyncSession, user_id: str, req: WithdrawRequest
    ) -> WithdrawalItem:
        """Debit and record the payout, then ask the provider to send it.

        The debit, WITHDRAWAL entry and PENDING row commit before the provider
        is called, so money never leaves without a matching debit. A definite
        rejection then fails the withdrawal and refunds it. When the provider
        may have acted (timeout after sending, 5xx) the row stays PENDING and
        the transfer webhook settles it.
        """
        amount = to_minor_units(req.amount)
        reference = generate_reference("WDR")
        narration = req.narration or "Wallet withdrawal"
        try:
            account = await self._accounts.debit(db, user_id, amount)
            await self._accounts.record_ledger_entry(
                db,
                user_id,
                LedgerEntryType.WITHDRAWAL.value,
                -amount,
                account.balance,
                reference_type="WITHDRAWAL",
                reference_id=reference,
                description=narration,
            )
            withdrawal = await self._withdrawals.insert(
                db,
                Withdrawal(
                    id=reference,
                    user_id=user_id,
                    amount=amount,
                    currency=settings.CURRENCY,
                    account_bank=req.account_bank,
                    account_number=req.account_number,
                    narration=narration,
                ),
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        try:
            transfer = await self._client.create_transfer(
                reference=reference,
                account_bank=req.account_bank,
                account_number=req.account_number,
                amount=amount,
                currency=settings.CURRENCY,
                narration=narration,
                callback_url=f"{settings.WEBHOOK_BASE_URL}/api/v1/webhooks/flutterwave",
            )
        except PaymentOutcomeUnknownError:
            logger.warning("Withdrawal outcome unknown ref=%s, awaiting webhook", reference)
            return WithdrawalItem.from_domain(withdrawal)
        except PaymentGatewayError as exc:
            await self._fail_submitted(db, reference, exc.message)
            raise

        transfer_id = transfer.get("id")
        if transfer_id is not None:
            try:
                await self._withdrawals.set_transfer_id(db, reference, str(transfer_id))
                await db.commit()
            except Exception:
                await db.rollback()
                raise
            withdrawal.provider_transfer_id = str(transfer_id)
        logger.info(
            "Withdrawal submitted ref=%s user=%s amount=%d transfer=%s",
            reference,
            user_id,
            amount,
            withdrawal.provider_transfer_id,
        )
        return WithdrawalItem.from_domain(withdrawal)

    async def _fail_submitted(self, db: AsyncSession, reference: str, reason: str) -> None:
        """Provider refused the transfer outright: mark FAILED and refund."""
        try:
            withdrawal = await self._withdrawals.get_for_update(db, reference)
            # A webhook may already have settled it
            if withdrawal is not None and withdrawal.is_pending:
                await self._reverse(db, withdrawal, reason)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    async def list_withdrawals(
        self, db: AsyncSession, user_id: str, cursor: str | None, limit: int
    ) -> WithdrawalListResponse:
        rows = await self._withdrawals.list_by_user(db, user_id, cursor, limit + 1)
        has_more = len(rows) > limit
        page = rows[:limit]
        return WithdrawalListResponse(
            items=[WithdrawalItem.from_domain(w) for w in page],
            next_cursor=page[-1].id if has_more and page else None,
            has_more=has_more,
        )

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    async def handle_webhook(
        self, db: AsyncSession, raw_body: bytes, headers: dict[str, str]
    ) -> WebhookAck:
        if not verify_webhook_signature(raw_body, headers, settings.FLUTTERWAVE_SECRET_HASH):
            logger.warning("Rejected Flutterwave webhook with bad signature")
            raise InvalidWebhookSignatureError()

        # Decimal keeps provider amounts exact until converted to minor units
        try:
            payload = json.loads(raw_body, parse_float=Decimal)
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            logger.warning("Unparseable Flutterwave webhook body")
            return WebhookAck(event=None, result="ignored")
        event = payload.get("event") or payload.get("type")
        data = payload.get("data")
        if not isinstance(data, dict):
            data = {}

        # Charges are keyed by transaction id, transfers by our reference
        event_id = data.get("id") or data.get("reference")
        if not event_id:
            logger.warning("Flutterwave webhook without id or reference event=%s", event)
            return WebhookAck(event=event, result="ignored")

        redis = await self._redis_factory()
        key = _DEDUP_KEY.format(event=event, id=event_id)
        if not await claim_once(redis, key, settings.WEBHOOK_DEDUP_TTL_SECONDS):
            logger.info("Duplicate Flutterwave webhook dropped key=%s", key)
            return WebhookAck(event=event, result="duplicate")

        try:
            result = await self._dispatch(db, event, data)
            await db.commit()
        except Exception:
            await db.rollback()
            # Let the provider's retry through
            await redis.delete(key)
            raise
        logger.info("Flutterwave webhook event=%s result=%s", event, result)
        return WebhookAck(event=event, result=result)

    async def _dispatch(self, db: AsyncSession, event: str | None, data: dict[str, Any]) -> str:
        if event == "charge.completed":
            return await self._on_charge_completed(db, data)
        if event == "transfer.completed":
            status = str(data.get("status", "")).upper()
            if status in ("FAILED", "REVERSED"):
                return await self._on_transfer_failed(db, data)
            return await self._on_transfer_completed(db, data)
        if event in ("transfer.failed", "transfer.reversed"):
            return await self._on_transfer_failed(db, data)
        if event == "charge.failed":
            logger.info("Charge failed tx_ref=%s", data.get("tx_ref"))
            return "ignored"
        logger.info("Unhandled Flutterwave event=%s", event)
        return "ignored"

    async def _on_charge_completed(self, db: AsyncSession, data: dict[str, Any]) -> str:
        tx_ref = data.get("tx_ref")
        if data.get("status") != "successful" or not tx_ref:
            return "ignored"
        if data.get("currency") != settings.CURRENCY:
            logger.warning("Charge in unsupported currency tx_ref=%s", tx_ref)
            return "ignored"

        if await self._accounts.find_ledger_entry(db, LedgerEntryType.DEPOSIT.value, tx_ref):
            return "duplicate"

        transaction_id = data.get("id")
        if not transaction_id:
            # Only the provider's transaction id can be verified
            logger.warning("Charge without transaction id tx_ref=%s", tx_ref)
            return "ignored"
        verified = await self._client.verify_transaction(transaction_id)
        if verified.get("status") != "successful" or verified.get("tx_ref", tx_ref) != tx_ref:
            logger.warning("Charge failed verification tx_ref=%s", tx_ref)
            return "ignored"

        user_id = await self._resolve_user_id(db, data)
        if user_id is None:
            logger.warning("No user for charge tx_ref=%s", tx_ref)
            return "ignored"

        try:
            amount = to_minor_units(Decimal(str(verified.get("amount", data.get("amount")))))
        except (InvalidOperation, ValueError):
            logger.warning("Charge with unusable amount tx_ref=%s", tx_ref)
            return "ignored"
        if amount <= 0:
            return "ignored"

        account = await self._accounts.credit(db, user_id, amount)
        await self._accounts.record_ledger_entry(
            db,
            user_id,
            LedgerEntryType.DEPOSIT.value,
            amount,
            account.balance,
            reference_type="FLUTTERWAVE",
            reference_id=tx_ref,
            description="Wallet deposit via Flutterwave",
            metadata={
                "transaction_id": data.get("id"),
                "payment_type": data.get("payment_type"),
                "currency": data.get("currency"),
            },
        )
        logger.info("Deposit credited user=%s amount=%d tx_ref=%s", user_id, amount, tx_ref)
        return "processed"

    async def _resolve_user_id(self, db: AsyncSession, data: dict[str, Any]) -> str | None:
        """meta.user_id when the checkout set it, otherwise the customer's email."""
        meta = data.get("meta") or data.get("meta_data") or {}
        candidate = meta.get("user_id") if isinstance(meta, dict) else None
        if candidate:
            try:
                query = select(UserModel.id).where(UserModel.id == uuid.UUID(str(candidate)))
            except ValueError:
                return None
        else:
            email = (data.get("customer") or {}).get("email")
            if not email:
                return None
            query = select(UserModel.id).where(UserModel.email == email)
        found = (await db.execute(query)).scalar_one_or_none()
        return str(found) if found is not None else None

    async def _on_transfer_completed(self, db: AsyncSession, data: dict[str, Any]) -> str:
        withdrawal = await self._withdrawal_for(db, data)
        if withdrawal is None or not withdrawal.is_pending:
            return "ignored"
        await self._withdrawals.update_status(
            db, withdrawal.id, WithdrawalStatus.COMPLETED.value, completed_at=utc_now()
        )
        logger.info("Withdrawal completed ref=%s", withdrawal.id)
        return "processed"

    async def _on_transfer_failed(self, db: AsyncSession, data: dict[str, Any]) -> str:
        withdrawal = await self._withdrawal_for(db, data)
        if withdrawal is None or withdrawal.status == WithdrawalStatus.FAILED.value:
            return "ignored"
        await self._reverse(db, withdrawal, str(data.get("complete_message") or "Transfer failed"))
        return "processed"

    async def _reverse(self, db: AsyncSession, withdrawal: Withdrawal, reason: str) -> None:
        await self._withdrawals.update_status(
            db, withdrawal.id, WithdrawalStatus.FAILED.value, failure_reason=reason
        )
        account = await self._accounts.credit(db, withdrawal.user_id, withdrawal.amount)
        await self._accounts.record_ledger_entry(
            db,
            withdrawal.user_id,
            LedgerEntryType.WITHDRAWAL_REVERSAL.value,
            withdrawal.amount,
            account.balance,
            reference_type="WITHDRAWAL",
            reference_id=withdrawal.id,
            description=f"Withdrawal reversed: {reason}",
        )
        logger.info("Withdrawal failed ref=%s refunded=%d", withdrawal.id, withdrawal.amount)

    async def _withdrawal_for(self, db: AsyncSession, data: dict[str, Any]) -> Withdrawal | None:
        reference = data.get("reference")
        if not reference:
            return None
        withdrawal = await self._withdrawals.get_for_update(db, str(reference))
        if withdrawal is None:
            logger.warning("Transfer webhook for unknown reference=%s", reference)
        return withdrawal
