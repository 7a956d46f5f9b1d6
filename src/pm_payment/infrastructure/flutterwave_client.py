"""Thin async client for the Flutterwave v3 REST API (httpx).

Only the two calls the service needs: create a bank transfer (payout) and
verify a charge reported by webhook. Failures surface as PaymentGatewayError;
PaymentOutcomeUnknownError marks the ones where the request may already
have been acted on.
"""

import logging
from typing import Any

import httpx

from config.settings import settings
from src.pm_common.errors import PaymentGatewayError, PaymentOutcomeUnknownError
from src.pm_common.money import to_major_units

logger = logging.getLogger(__name__)


class FlutterwaveClient:
    def __init__(
        self,
        base_url: str | None = None,
        secret_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or settings.FLUTTERWAVE_BASE_URL).rstrip("/")
        self._secret_key = secret_key if secret_key is not None else settings.FLUTTERWAVE_SECRET_KEY
        self._timeout = timeout or settings.FLUTTERWAVE_TIMEOUT_SECONDS
        self._transport = transport

    async def _request(
        self, method: str, path: str, json: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {self._secret_key}"}
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                headers=headers,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                resp = await client.request(method, path, json=json)
        except (httpx.ConnectError, httpx.ConnectTimeout) as exc:
            logger.warning("Flutterwave %s %s unreachable: %s", method, path, exc)
            raise PaymentGatewayError(f"{method} {path}: {exc}") from exc
        except httpx.HTTPError as exc:
            # Sent but unanswered: the provider may have acted on it
            logger.warning("Flutterwave %s %s failed after sending: %s", method, path, exc)
            raise PaymentOutcomeUnknownError(f"{method} {path}: {exc}") from exc

        try:
            body: dict[str, Any] = resp.json()
        except ValueError:
            body = {}
        if resp.status_code >= 400 or body.get("status") != "success":
            message = body.get("message") or f"HTTP {resp.status_code}"
            logger.warning(
                "Flutterwave %s %s rejected status=%d message=%s",
                method,
                path,
                resp.status_code,
                message,
            )
            if resp.status_code >= 500:
                raise PaymentOutcomeUnknownError(str(message))
            raise PaymentGatewayError(str(message))
        data = body.get("data")
        return data if isinstance(data, dict) else {}

    async def create_transfer(
        self,
        *,
        reference: str,
        account_bank: str,
        account_number: str,
        amount: int,
        currency: str,
        narration: str,
        callback_url: str | None = None,
    ) -> dict[str, Any]:
        """POST /transfers. amount is minor units; the API takes major units."""
        payload: dict[str, Any] = {
            "account_bank": account_bank,
            "account_number": account_number,
            # JSON number on the wire only; ledger math never sees it
            "amount": float(to_major_units(amount)),
            "currency": currency,
            "narration": narration,
            "reference": reference,
            "debit_currency": currency,
        }
        if callback_url:
            payload["callback_url"] = callback_url
        return await self._request("POST", "/transfers", json=payload)

    async def verify_transaction(self, transaction_id: str | int) -> dict[str, Any]:
        """GET /transactions/{id}/verify: authoritative status of a charge."""
        return await self._request("GET", f"/transactions/{transaction_id}/verify")
