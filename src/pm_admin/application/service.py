# src/pm_admin/application/service.py
"""Admin application service: market resolution and per-market stats."""
import logging
from dataclasses import asdict

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.pm_admin.application.schemas import MarketStatsResponse, ResolutionResponse
from src.pm_clearing.domain.service import ResolutionEngine
from src.pm_common.database import is_retryable_db_error
from src.pm_common.enums import MarketOutcome, OrderStatus
from src.pm_common.errors import ConcurrencyConflictError, MarketNotFoundError

logger = logging.getLogger(__name__)

_GET_MARKET_SQL = text("SELECT id, status, outcome FROM markets WHERE id = :market_id")
_ORDER_COUNTS_SQL = text("""
    SELECT status, COUNT(*) AS n
    FROM orders
    WHERE market_id = :market_id
    GROUP BY status
""")
_STATS_SQL = text("""
    SELECT
        COALESCE(SUM(limit_price) FILTER (WHERE status <> :cancelled), 0) AS total_staked,
        COALESCE(SUM(filled_quantity), 0) AS total_matched,
        COUNT(DISTINCT user_id) AS unique_traders
    FROM orders
    WHERE market_id = :market_id
""")


class AdminService:
    def __init__(self, engine: ResolutionEngine | None = None) -> None:
        self._engine = engine or ResolutionEngine()

    async def resolve_market(
        self,
        market_id: str,
        outcome: MarketOutcome,
        db: AsyncSession,
        fee_bps: int | None = None,
    ) -> ResolutionResponse:
        """Settle every order of the market in one transaction."""
        bps = settings.PLATFORM_FEE_BPS if fee_bps is None else fee_bps
        try:
            summary = await self._engine.resolve(market_id, outcome, bps, db)
            await db.commit()
        except Exception as exc:
            await db.rollback()
            if is_retryable_db_error(exc):
                logger.warning("Resolution lock conflict market=%s", market_id)
                raise ConcurrencyConflictError() from exc
            raise
        return ResolutionResponse(**asdict(summary))

    async def get_market_stats(self, market_id: str, db: AsyncSession) -> MarketStatsResponse:
        market = (await db.execute(_GET_MARKET_SQL, {"market_id": market_id})).fetchone()
        if market is None:
            raise MarketNotFoundError(market_id)
        counts = {
            row.status: int(row.n)
            for row in (
                await db.execute(_ORDER_COUNTS_SQL, {"market_id": market_id})
            ).fetchall()
        }
        stats = (
            await db.execute(
                _STATS_SQL,
                {"market_id": market_id, "cancelled": OrderStatus.CANCELLED.value},
            )
        ).fetchone()
        return MarketStatsResponse(
            market_id=market_id,
            status=market.status,
            outcome=market.outcome,
            orders_by_status={s.value: counts.get(s.value, 0) for s in OrderStatus},
            total_orders=sum(counts.values()),
            total_staked=int(stats.total_staked) if stats else 0,
            total_matched_quantity=int(stats.total_matched) if stats else 0,
            unique_traders=int(stats.unique_traders) if stats else 0,
        )
