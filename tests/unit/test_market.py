"""Market lifecycle, schemas and MarketApplicationService."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from pydantic import ValidationError

from src.pm_common.enums import MarketStatus
from src.pm_common.database import get_db_session
from src.pm_common.errors import (
    InvalidMarketTransitionError,
    InvalidMarketWindowError,
    MarketClosedError,
    MarketNotFoundError,
)
from src.pm_gateway.auth.dependencies import get_current_user
from src.pm_market.api import router as market_router
from src.pm_market.application.schemas import (
    CreateMarketRequest,
    UpdateMarketRequest,
    cursor_decode,
    cursor_encode,
)
from src.pm_market.application.service import MarketApplicationService
from src.pm_market.domain.models import can_transition
from tests.unit.fakes import T0, FakeMarketRepository, make_market


class TestLifecycle:
    @pytest.mark.parametrize(
        ("current", "target", "allowed"),
        [
            ("Open", "closed", True),
            ("closed", "archived", True),
            ("Open", "archived", False),
            ("closed", "Open", False),
            ("archived", "closed", False),
        ],
    )
    def test_transitions(self, current: str, target: str, allowed: bool) -> None:
        assert can_transition(current, target) is allowed

    def test_trading_window(self) -> None:
        m = make_market(start_date=T0, end_date=T0 + timedelta(hours=1))
        assert m.trading_window_error(T0 - timedelta(seconds=1)) == "trading has not started"
        assert m.trading_window_error(T0) is None
        assert m.trading_window_error(T0 + timedelta(hours=1)) == "trading window has ended"

    def test_closed_market_rejects_regardless_of_window(self) -> None:
        m = make_market(status=MarketStatus.CLOSED.value)
        assert m.trading_window_error(T0) == "status is closed"


class TestSchemas:
    def test_create_request_defaults(self) -> None:
        req = CreateMarketRequest(
            question="Will NGN/USD close above 1500 on Friday?",
            start_date=T0,
            end_date=T0 + timedelta(days=5),
        )
        assert req.category == "General"
        assert req.history == []

    def test_window_must_be_ordered(self) -> None:
        with pytest.raises(ValidationError):
            CreateMarketRequest(question="Backwards window?", start_date=T0, end_date=T0)

    def test_negative_history_volume_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CreateMarketRequest(
                question="Bad history point?",
                start_date=T0,
                end_date=T0 + timedelta(days=1),
                history=[{"date": "2026-10-01", "volume": -1}],
            )

    def test_naive_dates_read_as_utc(self) -> None:
        req = CreateMarketRequest(
            question="Will it rain in Abuja on Monday?",
            start_date=datetime(2026, 10, 1, 12, 0),
            end_date="2026-10-02T13:00:00+01:00",
        )
        assert req.start_date == T0
        assert req.end_date.tzinfo is timezone.utc
        assert req.end_date.hour == 12

    def test_update_request_all_optional(self) -> None:
        assert UpdateMarketRequest().model_dump(exclude_none=True) == {}

    def test_update_window_checked_when_both_given(self) -> None:
        with pytest.raises(ValidationError):
            UpdateMarketRequest(start_date=T0, end_date=T0 - timedelta(hours=1))

    def test_cursor_round_trip(self) -> None:
        m = make_market(id="MKT-9")
        assert cursor_decode(cursor_encode(m)) == (T0.isoformat(), "MKT-9")

    def test_garbage_cursor_starts_from_top(self) -> None:
        assert cursor_decode("%%%") == (None, None)
        assert cursor_decode(None) == (None, None)


class TestService:
    async def test_list_paginates(self, markets: FakeMarketRepository, db) -> None:
        for i in range(2, 5):
            markets.add(make_market(id=f"MKT-{i}"))
        service = MarketApplicationService(markets)

        page = await service.list_markets(db, None, None, None, limit=3)

        assert [m.id for m in page.items] == ["MKT-4", "MKT-3", "MKT-2"]
        assert page.has_more is True
        assert page.next_cursor is not None

    async def test_list_hides_archived_by_default(
        self, markets: FakeMarketRepository, db
    ) -> None:
        markets.add(make_market(id="MKT-OLD", status=MarketStatus.ARCHIVED.value))
        page = await MarketApplicationService(markets).list_markets(db, None, None, None, 20)
        assert [m.id for m in page.items] == ["MKT-1"]
        assert page.has_more is False
        assert page.next_cursor is None

    async def test_get_unknown(self, markets: FakeMarketRepository, db) -> None:
        with pytest.raises(MarketNotFoundError):
            await MarketApplicationService(markets).get_market(db, "MKT-NOPE")

    async def test_create_commits(self, markets: FakeMarketRepository, db) -> None:
        req = CreateMarketRequest(
            question="Will the Super Eagles qualify?",
            category="Sports",
            image={"url": "https://img.example/eagles.png", "hint": "football"},
            start_date=T0,
            end_date=T0 + timedelta(days=30),
        )
        detail = await MarketApplicationService(markets).create_market(db, req)

        assert detail.id.startswith("MKT-")
        assert detail.status == "Open"
        assert detail.image is not None and detail.image.hint == "football"
        assert detail.id in markets.markets
        db.commit.assert_awaited_once()

    async def test_archive_closed_market(self, markets: FakeMarketRepository, db) -> None:
        markets.add(make_market(id="MKT-2", status="closed", outcome="yes"))
        detail = await MarketApplicationService(markets).archive_market(db, "MKT-2")
        assert detail.status == "archived"
        assert detail.outcome == "yes"
        assert markets.markets["MKT-2"].status == "archived"
        db.commit.assert_awaited_once()

    async def test_archive_open_market_rejected(
        self, markets: FakeMarketRepository, db
    ) -> None:
        with pytest.raises(InvalidMarketTransitionError):
            await MarketApplicationService(markets).archive_market(db, "MKT-1")
        db.rollback.assert_awaited_once()
        assert markets.markets["MKT-1"].status == "Open"

    async def test_update_open_market(self, markets: FakeMarketRepository, db) -> None:
        req = UpdateMarketRequest(
            question="Will the naira strengthen this week?",
            category="FX",
            history=[{"date": "2026-10-01", "volume": 12}],
            end_date=T0 + timedelta(days=3),
        )
        detail = await MarketApplicationService(markets).update_market(db, "MKT-1", req)

        assert detail.question == "Will the naira strengthen this week?"
        assert detail.category == "FX"
        assert detail.end_date == (T0 + timedelta(days=3)).isoformat()
        assert detail.status == "Open"
        stored = markets.markets["MKT-1"]
        assert [(p.date, p.volume) for p in stored.history] == [("2026-10-01", 12)]
        db.commit.assert_awaited_once()

    async def test_update_keeps_omitted_fields(self, markets: FakeMarketRepository, db) -> None:
        before = markets.markets["MKT-1"]
        detail = await MarketApplicationService(markets).update_market(
            db, "MKT-1", UpdateMarketRequest(category="Politics")
        )
        assert detail.question == before.question
        assert detail.start_date == before.start_date.isoformat()

    async def test_update_window_against_stored_start(
        self, markets: FakeMarketRepository, db
    ) -> None:
        start = markets.markets["MKT-1"].start_date
        with pytest.raises(InvalidMarketWindowError):
            await MarketApplicationService(markets).update_market(
                db, "MKT-1", UpdateMarketRequest(end_date=start)
            )
        db.rollback.assert_awaited_once()
        db.commit.assert_not_awaited()

    @pytest.mark.parametrize("status", ["closed", "archived"])
    async def test_update_rejected_once_not_open(
        self, markets: FakeMarketRepository, db, status: str
    ) -> None:
        markets.add(make_market(id="MKT-2", status=status, outcome="no"))
        with pytest.raises(MarketClosedError):
            await MarketApplicationService(markets).update_market(
                db, "MKT-2", UpdateMarketRequest(question="Edited after close?")
            )
        assert markets.markets["MKT-2"].question != "Edited after close?"
        db.rollback.assert_awaited_once()

    async def test_update_unknown(self, markets: FakeMarketRepository, db) -> None:
        with pytest.raises(MarketNotFoundError):
            await MarketApplicationService(markets).update_market(
                db, "MKT-NOPE", UpdateMarketRequest(category="FX")
            )

    async def test_categories_count_non_archived(
        self, markets: FakeMarketRepository, db
    ) -> None:
        markets.add(make_market(id="MKT-2", category="Sports"))
        markets.add(make_market(id="MKT-3", category="Sports", status="closed"))
        markets.add(make_market(id="MKT-4", category="Weather", status="archived"))

        cats = await MarketApplicationService(markets).list_categories(db)

        assert [(c.category, c.market_count) for c in cats] == [("Sports", 2), ("Weather", 1)]


class TestRoutes:
    @pytest.fixture
    async def http(self, markets: FakeMarketRepository):
        app = FastAPI()
        app.include_router(market_router.router, prefix="/api/v1")
        app.dependency_overrides[get_current_user] = lambda: object()
        app.dependency_overrides[get_db_session] = lambda: AsyncMock()
        with patch.object(market_router, "_service", MarketApplicationService(markets)):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as ac:
                yield ac

    async def test_categories_path_is_not_a_market_id(self, http: AsyncClient) -> None:
        resp = await http.get("/api/v1/markets/categories")
        assert resp.status_code == 200
        body = resp.json()
        assert body["code"] == 0
        assert [c["market_count"] for c in body["data"]] == [1]

    async def test_detail_still_routed(self, http: AsyncClient) -> None:
        resp = await http.get("/api/v1/markets/MKT-1")
        assert resp.json()["data"]["id"] == "MKT-1"
