"""MarketRepository: concrete implementation of MarketRepositoryProtocol.

All queries use raw text() SQL (no ORM).
asyncpg NULL parameter pattern: CAST(:param AS TYPE) IS NULL required for None values.
image/history JSONB columns are decoded into MarketImage / HistoryPoint here,
so a malformed blob fails loudly at the store boundary.
"""

import json
from dataclasses import asdict
from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.enums import MarketStatus
from src.pm_common.errors import InternalError
from src.pm_market.domain.models import HistoryPoint, Market, MarketImage

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_MARKET_COLUMNS = """
    id, question, category, status, outcome, image, history, is_daily,
    start_date, end_date, resolved_at, created_at, updated_at
"""

_GET_MARKET_SQL = text(f"""
    SELECT {_MARKET_COLUMNS}
    FROM markets
    WHERE id = :market_id
""")

_GET_MARKET_FOR_UPDATE_SQL = text(f"""
    SELECT {_MARKET_COLUMNS}
    FROM markets
    WHERE id = :market_id
    FOR UPDATE
""")

_LIST_MARKETS_SQL = text(f"""
    SELECT {_MARKET_COLUMNS}
    FROM markets
    WHERE
        (
            (CAST(:status AS TEXT) IS NULL AND status <> :archived)
            OR status = CAST(:status AS TEXT)
        )
        AND (CAST(:category AS TEXT) IS NULL OR category = CAST(:category AS TEXT))
        AND (
            CAST(:cursor_ts AS TIMESTAMPTZ) IS NULL
            OR created_at < CAST(:cursor_ts AS TIMESTAMPTZ)
            OR (
                created_at = CAST(:cursor_ts AS TIMESTAMPTZ)
                AND id < CAST(:cursor_id AS TEXT)
            )
        )
    ORDER BY created_at DESC, id DESC
    LIMIT :limit
""")

_INSERT_MARKET_SQL = text(f"""
    INSERT INTO markets
        (id, question, category, status, image, history, is_daily, start_date, end_date)
    VALUES
        (:id, :question, :category, :status, CAST(:image AS JSONB),
         CAST(:history AS JSONB), :is_daily, :start_date, :end_date)
    RETURNING {_MARKET_COLUMNS}
""")

_UPDATE_STATUS_SQL = text("""
    UPDATE markets
    SET status = :status,
        outcome = COALESCE(CAST(:outcome AS TEXT), outcome),
        resolved_at = COALESCE(CAST(:resolved_at AS TIMESTAMPTZ), resolved_at),
        updated_at = NOW()
    WHERE id = :market_id
""")

_UPDATE_MARKET_SQL = text(f"""
    UPDATE markets
    SET question = :question,
        category = :category,
        image = CAST(:image AS JSONB),
        history = CAST(:history AS JSONB),
        start_date = :start_date,
        end_date = :end_date,
        updated_at = NOW()
    WHERE id = :market_id
    RETURNING {_MARKET_COLUMNS}
""")

_LIST_CATEGORIES_SQL = text("""
    SELECT category, COUNT(*) AS market_count
    FROM markets
    WHERE status <> :archived
    GROUP BY category
    ORDER BY category
""")

# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _load_json(raw: Any) -> Any:
    return json.loads(raw) if isinstance(raw, str) else raw


def _parse_image(raw: Any) -> MarketImage | None:
    data = _load_json(raw)
    if not data:
        return None
    return MarketImage(url=str(data["url"]), hint=str(data.get("hint", "")))


def _parse_history(raw: Any) -> list[HistoryPoint]:
    data = _load_json(raw) or []
    return [HistoryPoint(date=str(p["date"]), volume=int(p["volume"])) for p in data]


def _row_to_market(row: Any) -> Market:
    return Market(
        id=row.id,
        question=row.question,
        category=row.category,
        status=row.status,
        outcome=row.outcome,
        image=_parse_image(row.image),
        history=_parse_history(row.history),
        is_daily=row.is_daily,
        start_date=row.start_date,
        end_date=row.end_date,
        resolved_at=row.resolved_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class MarketRepository:
    async def get_market_by_id(
        self, db: AsyncSession, market_id: str
    ) -> Market | None:
        result = await db.execute(_GET_MARKET_SQL, {"market_id": market_id})
        row = result.fetchone()
        return _row_to_market(row) if row else None

    async def get_market_for_update(
        self, db: AsyncSession, market_id: str
    ) -> Market | None:
        result = await db.execute(_GET_MARKET_FOR_UPDATE_SQL, {"market_id": market_id})
        row = result.fetchone()
        return _row_to_market(row) if row else None

    async def list_markets(
        self,
        db: AsyncSession,
        status: str | None,
        category: str | None,
        cursor_ts: str | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Market]:
        # asyncpg requires a real datetime object for TIMESTAMPTZ parameters,
        # not an ISO string.
        cursor_ts_dt: datetime | None = None
        if cursor_ts is not None:
            cursor_ts_dt = datetime.fromisoformat(cursor_ts)

        result = await db.execute(
            _LIST_MARKETS_SQL,
            {
                "status": status,
                "archived": MarketStatus.ARCHIVED.value,
                "category": category,
                "cursor_ts": cursor_ts_dt,
                "cursor_id": cursor_id,
                "limit": limit,
            },
        )
        return [_row_to_market(row) for row in result.fetchall()]

    async def create_market(self, db: AsyncSession, market: Market) -> Market:
        result = await db.execute(
            _INSERT_MARKET_SQL,
            {
                "id": market.id,
                "question": market.question,
                "category": market.category,
                "status": market.status,
                "image": json.dumps(asdict(market.image)) if market.image else None,
                "history": json.dumps([asdict(p) for p in market.history]),
                "is_daily": market.is_daily,
                "start_date": market.start_date,
                "end_date": market.end_date,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Market insert returned no rows")
        return _row_to_market(row)

    async def update_status_and_outcome(
        self,
        db: AsyncSession,
        market_id: str,
        status: str,
        outcome: str | None,
        resolved_at: datetime | None,
    ) -> None:
        await db.execute(
            _UPDATE_STATUS_SQL,
            {
                "market_id": market_id,
                "status": status,
                "outcome": outcome,
                "resolved_at": resolved_at,
            },
        )

    async def update_market(self, db: AsyncSession, market: Market) -> Market:
        result = await db.execute(
            _UPDATE_MARKET_SQL,
            {
                "market_id": market.id,
                "question": market.question,
                "category": market.category,
                "image": json.dumps(asdict(market.image)) if market.image else None,
                "history": json.dumps([asdict(p) for p in market.history]),
                "start_date": market.start_date,
                "end_date": market.end_date,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError(f"Market update matched no rows: {market.id}")
        return _row_to_market(row)

    async def list_categories(self, db: AsyncSession) -> list[tuple[str, int]]:
        result = await db.execute(
            _LIST_CATEGORIES_SQL, {"archived": MarketStatus.ARCHIVED.value}
        )
        return [(row.category, row.market_count) for row in result.fetchall()]
