"""ResolutionEngine end to end over in-memory stores, plus AdminService."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from src.pm_admin.application.schemas import ResolveMarketRequest
from src.pm_admin.application.service import AdminService
from src.pm_clearing.domain.service import ResolutionEngine, ResolutionSummary
from src.pm_common.enums import MarketOutcome
from src.pm_common.errors import (
    ConcurrencyConflictError,
    MarketAlreadyResolvedError,
    MarketClosedError,
    MarketNotFoundError,
)
from src.pm_matching.engine.engine import MatchingEngine
from tests.unit.fakes import (
    FakeAccountRepository,
    FakeMarketRepository,
    FakeOrderRepository,
    make_market,
)

START = 100_000


@pytest.fixture
def matcher(accounts: FakeAccountRepository, markets: FakeMarketRepository) -> MatchingEngine:
    for user in ("alice", "bob", "carol", "dave"):
        accounts.open(user, START)
    return MatchingEngine(accounts, markets)


@pytest.fixture
def resolver(accounts, markets, orders) -> ResolutionEngine:
    return ResolutionEngine(accounts, markets, orders)


async def _book(matcher: MatchingEngine, orders: FakeOrderRepository, new_order, db) -> dict:
    """bob SELL 1 + carol SELL 2 paired with alice BUY 3 at 50; dave rests alone."""
    placed = {}
    for user, side, price, qty in (
        ("bob", "SELL", 50, 1),
        ("carol", "SELL", 50, 2),
        ("alice", "BUY", 50, 3),
        ("dave", "BUY", 75, 4),
    ):
        placed[user], _ = await matcher.place_order(new_order(user, side, price, qty), orders, db)
    return placed


class TestResolutionEngine:
    async def test_no_outcome_pays_sell_side(
        self, matcher, resolver, orders, accounts, markets, new_order, db
    ) -> None:
        placed = await _book(matcher, orders, new_order, db)

        summary = await resolver.resolve("MKT-1", MarketOutcome.NO, 1000, db)

        assert accounts.balances["bob"] == START - 50 + 65
        assert accounts.balances["carol"] == START - 50 + 80
        assert accounts.balances["alice"] == START - 50
        assert accounts.balances["dave"] == START
        assert summary == ResolutionSummary(
            market_id="MKT-1",
            outcome="no",
            groups=1,
            winners=2,
            losers=1,
            refunds=1,
            orders_filled=4,
            total_staked=225,
            total_credited=145,
            total_refunded=75,
            fee_retained=5,
        )
        market = markets.markets["MKT-1"]
        assert (market.status, market.outcome) == ("closed", "no")
        assert market.resolved_at is not None
        assert {o.status for o in orders.orders.values()} == {"Filled"}

        loser_entry = accounts.entries("alice", "TRADE")[0]
        assert loser_entry.amount == 0
        assert loser_entry.balance_after == START - 50
        assert loser_entry.reference_id == placed["alice"].id
        assert loser_entry.metadata["group_key"] == "alice-bob-carol"
        carol_entry = accounts.entries("carol", "TRADE")[0]
        assert carol_entry.metadata["winnings"] == 30
        assert carol_entry.metadata["share"] == "2/3"
        assert accounts.entries("dave", "REFUND")[0].metadata["reason"] == "unpaired"

    async def test_total_money_conserved(
        self, matcher, resolver, orders, accounts, new_order, db
    ) -> None:
        await _book(matcher, orders, new_order, db)
        summary = await resolver.resolve("MKT-1", MarketOutcome.YES, 1000, db)
        assert sum(accounts.balances.values()) + summary.fee_retained == 4 * START

    async def test_cancelled_orders_are_left_alone(
        self, matcher, resolver, orders, accounts, new_order, db
    ) -> None:
        placed, _ = await matcher.place_order(new_order("alice", "BUY", 50), orders, db)
        await matcher.cancel_order(placed.id, "alice", orders, db)

        summary = await resolver.resolve("MKT-1", MarketOutcome.YES, 1000, db)

        assert summary.orders_filled == 0
        assert orders.orders[placed.id].status == "Cancelled"
        assert accounts.balances["alice"] == START
        assert accounts.entries("alice", "TRADE") == []

    async def test_counterparty_of_a_cancelled_order_is_not_regrouped(
        self, matcher, resolver, orders, accounts, new_order, db
    ) -> None:
        first, _ = await matcher.place_order(new_order("alice", "BUY", 50, 2), orders, db)
        bob, _ = await matcher.place_order(new_order("bob", "SELL", 50, 1), orders, db)
        await matcher.cancel_order(first.id, "alice", orders, db)
        again, _ = await matcher.place_order(new_order("alice", "BUY", 50, 1), orders, db)
        carol, _ = await matcher.place_order(new_order("carol", "SELL", 50, 1), orders, db)
        assert orders.orders[again.id].counterparty_order_ids == [carol.id]

        summary = await resolver.resolve("MKT-1", MarketOutcome.YES, 1000, db)

        # bob only ever traded with the cancelled order, so he is made whole
        assert accounts.balances["bob"] == START
        assert accounts.entries("bob", "REFUND")[0].metadata["reason"] == "no_winning_counterparty"
        assert accounts.balances["alice"] == START - 50 + 95
        assert accounts.balances["carol"] == START - 50
        assert (summary.groups, summary.winners, summary.losers) == (2, 1, 1)
        assert sum(accounts.balances.values()) + summary.fee_retained == 4 * START

    async def test_double_resolution_rejected(
        self, matcher, resolver, orders, accounts, new_order, db
    ) -> None:
        await _book(matcher, orders, new_order, db)
        await resolver.resolve("MKT-1", MarketOutcome.YES, 1000, db)
        balances = dict(accounts.balances)

        with pytest.raises(MarketAlreadyResolvedError):
            await resolver.resolve("MKT-1", MarketOutcome.NO, 1000, db)
        assert accounts.balances == balances

    async def test_archived_market(self, resolver, markets, db) -> None:
        markets.add(make_market(id="MKT-ARCH", status="archived"))
        with pytest.raises(MarketClosedError):
            await resolver.resolve("MKT-ARCH", MarketOutcome.YES, 1000, db)

    async def test_unknown_market(self, resolver, db) -> None:
        with pytest.raises(MarketNotFoundError):
            await resolver.resolve("MKT-NOPE", MarketOutcome.YES, 1000, db)

    async def test_empty_market_just_closes(self, resolver, markets, db) -> None:
        summary = await resolver.resolve("MKT-1", MarketOutcome.YES, 1000, db)
        assert (summary.groups, summary.total_staked) == (0, 0)
        assert markets.markets["MKT-1"].status == "closed"

    async def test_closed_market_rejects_new_orders(
        self, matcher, resolver, orders, new_order, db
    ) -> None:
        await resolver.resolve("MKT-1", MarketOutcome.YES, 1000, db)
        with pytest.raises(MarketClosedError):
            await matcher.place_order(new_order("alice", "BUY", 50), orders, db)


class TestAdminService:
    def _summary(self) -> ResolutionSummary:
        return ResolutionSummary("MKT-1", "yes", 1, 1, 1, 0, 2, 200, 190, 0, 10)

    async def test_resolve_commits_and_uses_default_fee(self) -> None:
        engine = MagicMock()
        engine.resolve = AsyncMock(return_value=self._summary())
        db = AsyncMock()

        resp = await AdminService(engine).resolve_market("MKT-1", MarketOutcome.YES, db)

        assert resp.fee_retained == 10
        assert engine.resolve.await_args.args[2] == 1000
        db.commit.assert_awaited_once()

    async def test_resolve_rolls_back_on_error(self) -> None:
        engine = MagicMock()
        engine.resolve = AsyncMock(side_effect=MarketAlreadyResolvedError("MKT-1"))
        db = AsyncMock()

        with pytest.raises(MarketAlreadyResolvedError):
            await AdminService(engine).resolve_market("MKT-1", MarketOutcome.NO, db, fee_bps=0)
        db.rollback.assert_awaited_once()
        db.commit.assert_not_awaited()

    async def test_lock_timeout_becomes_conflict(self) -> None:
        engine = MagicMock()
        engine.resolve = AsyncMock(
            side_effect=OperationalError("SELECT", {}, MagicMock(sqlstate="55P03"))
        )
        with pytest.raises(ConcurrencyConflictError):
            await AdminService(engine).resolve_market("MKT-1", MarketOutcome.YES, AsyncMock())

    async def test_stats(self) -> None:
        market_row = SimpleNamespace(status="Open", outcome=None)
        counts = [SimpleNamespace(status="Open", n=2), SimpleNamespace(status="Paired", n=3)]
        stats_row = SimpleNamespace(total_staked=450, total_matched=6, unique_traders=4)
        results = [MagicMock(), MagicMock(), MagicMock()]
        results[0].fetchone.return_value = market_row
        results[1].fetchall.return_value = counts
        results[2].fetchone.return_value = stats_row
        db = AsyncMock()
        db.execute = AsyncMock(side_effect=results)

        stats = await AdminService(MagicMock()).get_market_stats("MKT-1", db)

        assert stats.total_orders == 5
        assert stats.orders_by_status["Paired"] == 3
        assert stats.orders_by_status["Cancelled"] == 0
        assert (stats.total_staked, stats.unique_traders) == (450, 4)

    async def test_stats_unknown_market(self) -> None:
        result = MagicMock()
        result.fetchone.return_value = None
        db = AsyncMock()
        db.execute = AsyncMock(return_value=result)
        with pytest.raises(MarketNotFoundError):
            await AdminService(MagicMock()).get_market_stats("MKT-X", db)


def test_resolve_request_accepts_camel_case_alias() -> None:
    req = ResolveMarketRequest.model_validate({"marketId": "MKT-1", "result": "yes"})
    assert req.market_id == "MKT-1"
    assert ResolveMarketRequest(market_id="MKT-2", result="no").result == "no"
