"""Order application service: transaction ownership, retries, reads."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from src.pm_common.errors import (
    ConcurrencyConflictError,
    ForbiddenError,
    InsufficientBalanceError,
    OrderNotFoundError,
)
from src.pm_matching.domain.models import FillAllocation, PairingSummary
from src.pm_order.application import service as order_service
from src.pm_order.application.schemas import PlaceOrderRequest
from tests.unit.fakes import FakeOrderRepository


def _lock_timeout() -> OperationalError:
    return OperationalError("SELECT ... FOR UPDATE", {}, MagicMock(sqlstate="55P03"))


def _echo_engine(*failures: Exception) -> MagicMock:
    """Engine whose place_order raises each failure once, then succeeds."""
    calls = list(failures)

    async def _place(order, repo, db):
        if calls:
            raise calls.pop(0)
        order.status = "Open"
        return order, PairingSummary(matched_quantity=0, remaining_quantity=order.quantity)

    engine = MagicMock()
    engine.place_order = AsyncMock(side_effect=_place)
    return engine


@pytest.fixture
def req() -> PlaceOrderRequest:
    return PlaceOrderRequest(market_id="MKT-1", side="BUY", price="50.00", quantity=2)


class TestPlaceOrder:
    async def test_commits_once(self, req: PlaceOrderRequest) -> None:
        db = AsyncMock()
        engine = _echo_engine()
        with patch.object(order_service, "get_matching_engine", return_value=engine):
            resp = await order_service.place_order(req, "alice", db)

        assert resp.order.price_minor == 5000
        assert resp.order.status == "Open"
        assert resp.pairing.remaining_quantity == 2
        db.commit.assert_awaited_once()
        db.rollback.assert_not_awaited()

    async def test_fills_reported_per_counter_order(self, req: PlaceOrderRequest) -> None:
        async def _place(order, repo, db):
            order.filled_quantity, order.status = 2, "Paired"
            return order, PairingSummary(
                matched_quantity=2,
                remaining_quantity=0,
                counter_order_ids=["901", "902"],
                fills=[FillAllocation("901", "bob", 1), FillAllocation("902", "carol", 1)],
            )

        engine = MagicMock()
        engine.place_order = AsyncMock(side_effect=_place)
        with patch.object(order_service, "get_matching_engine", return_value=engine):
            resp = await order_service.place_order(req, "alice", AsyncMock())

        assert [(f.counter_order_id, f.counter_user_id, f.quantity) for f in resp.pairing.fills] == [
            ("901", "bob", 1),
            ("902", "carol", 1),
        ]

    async def test_retries_lock_conflict_with_fresh_order(self, req: PlaceOrderRequest) -> None:
        db = AsyncMock()
        engine = _echo_engine(_lock_timeout())
        with patch.object(order_service, "get_matching_engine", return_value=engine):
            await order_service.place_order(req, "alice", db)

        assert engine.place_order.await_count == 2
        first, second = (c.args[0] for c in engine.place_order.await_args_list)
        assert first.id != second.id
        assert db.rollback.await_count == 1
        db.commit.assert_awaited_once()

    async def test_gives_up_after_max_retries(self, req: PlaceOrderRequest) -> None:
        db = AsyncMock()
        engine = _echo_engine(*(_lock_timeout() for _ in range(10)))
        with (
            patch.object(order_service.settings, "PLACEMENT_MAX_RETRIES", 3),
            patch.object(order_service, "get_matching_engine", return_value=engine),
            pytest.raises(ConcurrencyConflictError),
        ):
            await order_service.place_order(req, "alice", db)

        assert engine.place_order.await_count == 3
        assert db.rollback.await_count == 3
        db.commit.assert_not_awaited()

    async def test_business_errors_are_not_retried(self, req: PlaceOrderRequest) -> None:
        db = AsyncMock()
        engine = _echo_engine(InsufficientBalanceError(5000, 10))
        with (
            patch.object(order_service, "get_matching_engine", return_value=engine),
            pytest.raises(InsufficientBalanceError),
        ):
            await order_service.place_order(req, "alice", db)

        assert engine.place_order.await_count == 1
        db.rollback.assert_awaited_once()


class TestCancelOrder:
    async def test_reports_refund(self, new_order) -> None:
        cancelled = new_order("alice", "BUY", 5000, status="Cancelled")
        engine = MagicMock()
        engine.cancel_order = AsyncMock(return_value=(cancelled, 5000))
        db = AsyncMock()
        with patch.object(order_service, "get_matching_engine", return_value=engine):
            resp = await order_service.cancel_order(cancelled.id, "alice", db)

        assert (resp.status, resp.refunded_minor) == ("Cancelled", 5000)
        db.commit.assert_awaited_once()


class TestReads:
    @pytest.fixture
    def repo(self, new_order) -> FakeOrderRepository:
        repo = FakeOrderRepository()
        for i in range(5):
            repo.orders[f"{i:019d}"] = new_order("alice", "BUY", 100 + i, id=f"{i:019d}")
        repo.orders["0000000000000000099"] = new_order("bob", "SELL", 100, id="0000000000000000099")
        return repo

    async def test_get_own_order(self, repo: FakeOrderRepository) -> None:
        with patch.object(order_service, "_repo", repo):
            resp = await order_service.get_order("0000000000000000002", "alice", AsyncMock())
        assert resp.price_minor == 102

    async def test_get_someone_elses_order(self, repo: FakeOrderRepository) -> None:
        with patch.object(order_service, "_repo", repo), pytest.raises(ForbiddenError):
            await order_service.get_order("0000000000000000099", "alice", AsyncMock())

    async def test_get_missing(self, repo: FakeOrderRepository) -> None:
        with patch.object(order_service, "_repo", repo), pytest.raises(OrderNotFoundError):
            await order_service.get_order("0000000000000000404", "alice", AsyncMock())

    async def test_list_pages_newest_first(self, repo: FakeOrderRepository) -> None:
        with patch.object(order_service, "_repo", repo):
            page1 = await order_service.list_orders("alice", None, None, 3, None, AsyncMock())
            page2 = await order_service.list_orders(
                "alice", None, None, 3, page1.next_cursor, AsyncMock()
            )

        assert [o.price_minor for o in page1.items] == [104, 103, 102]
        assert page1.has_more is True
        assert [o.price_minor for o in page2.items] == [101, 100]
        assert page2.has_more is False
        assert page2.next_cursor is None

    async def test_list_filters_status(self, repo: FakeOrderRepository) -> None:
        repo.orders["0000000000000000003"].status = "Cancelled"
        with patch.object(order_service, "_repo", repo):
            page = await order_service.list_orders("alice", "MKT-1", "Cancelled", 10, None, AsyncMock())
        assert [o.id for o in page.items] == ["0000000000000000003"]
