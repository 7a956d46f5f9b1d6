"""pm_common: errors, response envelope, enums, ids, db error classification."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import DBAPIError

from src.pm_common.database import is_retryable_db_error, set_lock_timeout
from src.pm_common.datetime_utils import ensure_utc
from src.pm_common.enums import MarketOutcome, OrderSide
from src.pm_common.errors import (
    AppError,
    ConcurrencyConflictError,
    DuplicateOrderError,
    InsufficientBalanceError,
    MarketAlreadyResolvedError,
    MarketClosedError,
    PaymentGatewayError,
)
from src.pm_common.id_generator import SnowflakeIdGenerator, generate_reference
from src.pm_common.redis_client import claim_once, hit_window
from src.pm_common.response import error_response, success_response
from tests.unit.fakes import FakeRedis


class TestErrors:
    def test_base_defaults_to_500(self) -> None:
        err = AppError(9002, "boom")
        assert (err.code, err.message, err.http_status) == (9002, "boom", 500)
        assert str(err) == "boom"

    @pytest.mark.parametrize(
        ("err", "code", "status"),
        [
            (InsufficientBalanceError(5000, 1200), 2001, 422),
            (MarketClosedError("MKT-1", "trading window has ended"), 3002, 422),
            (MarketAlreadyResolvedError("MKT-1"), 3003, 409),
            (DuplicateOrderError("MKT-1", "BUY", 5000), 4005, 409),
            (PaymentGatewayError("timeout"), 7001, 502),
            (ConcurrencyConflictError(), 9003, 409),
        ],
    )
    def test_codes_and_statuses(self, err: AppError, code: int, status: int) -> None:
        assert (err.code, err.http_status) == (code, status)

    def test_messages_carry_context(self) -> None:
        assert "5000" in InsufficientBalanceError(5000, 1200).message
        assert "trading window has ended" in MarketClosedError("MKT-1", "trading window has ended").message


class TestResponse:
    def test_success_envelope(self) -> None:
        resp = success_response({"balance": 100})
        assert resp.code == 0
        assert resp.message == "success"
        assert resp.data == {"balance": 100}
        assert resp.request_id.startswith("req_")

    def test_success_reuses_request_id(self) -> None:
        request = MagicMock()
        request.state.request_id = "req_fixed"
        assert success_response(None, request).request_id == "req_fixed"

    def test_error_envelope(self) -> None:
        resp = error_response(3001, "Market not found: X")
        assert resp.code == 3001
        assert resp.data is None

    def test_error_reuses_request_id(self) -> None:
        request = MagicMock()
        request.state.request_id = "req_err"
        assert error_response(4001, "x", request).request_id == "req_err"


class TestEnums:
    def test_outcome_maps_to_winning_side(self) -> None:
        assert MarketOutcome.YES.winning_side is OrderSide.BUY
        assert MarketOutcome.NO.winning_side is OrderSide.SELL

    def test_opposite_side(self) -> None:
        assert OrderSide.BUY.opposite is OrderSide.SELL
        assert OrderSide.SELL.opposite is OrderSide.BUY


class TestIdGenerator:
    def test_ids_are_increasing_and_fixed_width(self) -> None:
        gen = SnowflakeIdGenerator(node_id=3)
        ids = [gen.next_id() for _ in range(5000)]
        assert ids == sorted(ids)
        assert len(set(ids)) == len(ids)
        assert all(len(i) == 19 for i in ids)

    def test_node_id_range(self) -> None:
        with pytest.raises(ValueError):
            SnowflakeIdGenerator(node_id=1024)

    def test_clock_step_back_keeps_order(self) -> None:
        gen = SnowflakeIdGenerator()
        first = gen.next_int()
        gen._now_ms = lambda: 0  # type: ignore[method-assign]
        assert gen.next_int() > first

    def test_reference_prefix(self) -> None:
        ref = generate_reference("WDR")
        assert ref.startswith("WDR-")
        assert len(ref) == len("WDR-") + 19


class TestDatabaseHelpers:
    async def test_lock_timeout_is_transaction_local(self) -> None:
        db = AsyncMock()
        await set_lock_timeout(db, 250)
        assert str(db.execute.await_args.args[0]) == "SET LOCAL lock_timeout = 250"

    @pytest.mark.parametrize(("sqlstate", "expected"), [("55P03", True), ("40P01", True), ("23505", False)])
    def test_retryable_sqlstates(self, sqlstate: str, expected: bool) -> None:
        orig = MagicMock(sqlstate=sqlstate)
        exc = DBAPIError("SELECT 1", {}, orig)
        assert is_retryable_db_error(exc) is expected

    def test_other_exceptions_not_retryable(self) -> None:
        assert is_retryable_db_error(RuntimeError("x")) is False


def test_ensure_utc_treats_naive_as_utc() -> None:
    from datetime import datetime, timedelta, timezone

    naive = datetime(2026, 1, 1, 12, 0)
    assert ensure_utc(naive).tzinfo is timezone.utc
    lagos = datetime(2026, 1, 1, 13, 0, tzinfo=timezone(timedelta(hours=1)))
    assert ensure_utc(lagos).hour == 12


class TestRedisPrimitives:
    async def test_window_key_gets_ttl_before_first_increment(self) -> None:
        redis = FakeRedis()

        counts = [await hit_window(redis, "ratelimit:k", 60) for _ in range(3)]

        assert counts == [1, 2, 3]
        assert redis.log[:2] == [("set", "ratelimit:k"), ("incr", "ratelimit:k")]
        assert redis.expiries == {"ratelimit:k": 60}

    async def test_existing_window_is_not_reset(self) -> None:
        redis = FakeRedis()
        redis.store["ratelimit:k"] = "5"
        assert await hit_window(redis, "ratelimit:k", 60) == 6

    async def test_claim_once(self) -> None:
        redis = FakeRedis()
        assert await claim_once(redis, "webhook:1", 3600)
        assert not await claim_once(redis, "webhook:1", 3600)
