"""MarketApplicationService: market catalogue reads plus admin create/update/archive.

Reads need no transaction. The admin writes commit on success and roll
back on any failure. Only Open markets can be edited; status and outcome
are never touched here except by archive.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_common.enums import MarketStatus
from src.pm_common.errors import (
    InvalidMarketTransitionError,
    InvalidMarketWindowError,
    MarketClosedError,
    MarketNotFoundError,
)
from src.pm_common.id_generator import generate_reference
from src.pm_market.application.schemas import (
    CategoryCount,
    CreateMarketRequest,
    MarketDetail,
    MarketListResponse,
    UpdateMarketRequest,
    cursor_decode,
    cursor_encode,
)
from src.pm_market.domain.models import HistoryPoint, Market, MarketImage, can_transition
from src.pm_market.domain.repository import MarketRepositoryProtocol
from src.pm_market.infrastructure.persistence import MarketRepository

logger = logging.getLogger(__name__)


class MarketApplicationService:
    def __init__(self, repo: MarketRepositoryProtocol | None = None) -> None:
        self._repo: MarketRepositoryProtocol = repo or MarketRepository()

    async def list_markets(
        self,
        db: AsyncSession,
        status: str | None,
        category: str | None,
        cursor: str | None,
        limit: int,
    ) -> MarketListResponse:
        # status=None → everything except archived
        cursor_ts, cursor_id = cursor_decode(cursor)

        # Fetch limit+1 to detect has_more without COUNT(*)
        markets = await self._repo.list_markets(
            db, status, category, cursor_ts, cursor_id, limit + 1
        )
        has_more = len(markets) > limit
        page = markets[:limit]

        items = [MarketDetail.from_domain(m) for m in page]
        next_cursor = cursor_encode(page[-1]) if has_more and page else None
        return MarketListResponse(items=items, next_cursor=next_cursor, has_more=has_more)

    async def get_market(self, db: AsyncSession, market_id: str) -> MarketDetail:
        market = await self._repo.get_market_by_id(db, market_id)
        if market is None:
            raise MarketNotFoundError(market_id)
        return MarketDetail.from_domain(market)

    async def create_market(
        self, db: AsyncSession, req: CreateMarketRequest
    ) -> MarketDetail:
        market = Market(
            id=generate_reference("MKT"),
            question=req.question,
            category=req.category,
            status=MarketStatus.OPEN.value,
            image=MarketImage(url=req.image.url, hint=req.image.hint) if req.image else None,
            history=[HistoryPoint(date=p.date, volume=p.volume) for p in req.history],
            is_daily=req.is_daily,
            start_date=req.start_date,
            end_date=req.end_date,
        )
        try:
            created = await self._repo.create_market(db, market)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Market created id=%s category=%s", created.id, created.category)
        return MarketDetail.from_domain(created)

    async def list_categories(self, db: AsyncSession) -> list[CategoryCount]:
        rows = await self._repo.list_categories(db)
        return [CategoryCount(category=c, market_count=n) for c, n in rows]

    async def update_market(
        self, db: AsyncSession, market_id: str, req: UpdateMarketRequest
    ) -> MarketDetail:
        try:
            market = await self._repo.get_market_for_update(db, market_id)
            if market is None:
                raise MarketNotFoundError(market_id)
            if not market.is_open:
                raise MarketClosedError(market_id, f"cannot edit a {market.status} market")

            if req.question is not None:
                market.question = req.question
            if req.category is not None:
                market.category = req.category
            if req.image is not None:
                market.image = MarketImage(url=req.image.url, hint=req.image.hint)
            if req.history is not None:
                market.history = [HistoryPoint(date=p.date, volume=p.volume) for p in req.history]
            if req.start_date is not None:
                market.start_date = req.start_date
            if req.end_date is not None:
                market.end_date = req.end_date
            # one side of the window may come from the stored row
            if market.end_date <= market.start_date:
                raise InvalidMarketWindowError(market_id)

            updated = await self._repo.update_market(db, market)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Market updated id=%s fields=%s",
            market_id,
            sorted(req.model_dump(exclude_none=True)),
        )
        return MarketDetail.from_domain(updated)

    async def archive_market(self, db: AsyncSession, market_id: str) -> MarketDetail:
        """closed → archived. Archived markets keep their data but leave listings."""
        try:
            market = await self._repo.get_market_for_update(db, market_id)
            if market is None:
                raise MarketNotFoundError(market_id)
            target = MarketStatus.ARCHIVED.value
            if not can_transition(market.status, target):
                raise InvalidMarketTransitionError(market_id, market.status, target)
            await self._repo.update_status_and_outcome(db, market_id, target, None, None)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        market.status = target
        logger.info("Market archived id=%s", market_id)
        return MarketDetail.from_domain(market)
