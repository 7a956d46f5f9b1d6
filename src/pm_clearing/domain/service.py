"""ResolutionEngine: settles a market in the caller's transaction.

Lock order matches placement (market row, then order rows), so a
resolution and a placement on the same market serialize instead of
deadlocking. Nothing is written until the whole plan has been computed
and checked for conservation.
"""
import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from src.pm_account.domain.repository import AccountRepositoryProtocol
from src.pm_account.infrastructure.persistence import AccountRepository
from src.pm_clearing.domain.invariants import verify_conservation
from src.pm_clearing.domain.settlement import (
    GroupSettlement,
    Refund,
    ResolutionPlan,
    TradeSettlement,
    plan_resolution,
)
from src.pm_common.database import set_lock_timeout
from src.pm_common.datetime_utils import utc_now
from src.pm_common.enums import LedgerEntryType, MarketOutcome, MarketStatus
from src.pm_common.errors import (
    MarketAlreadyResolvedError,
    MarketClosedError,
    MarketNotFoundError,
)
from src.pm_market.domain.repository import MarketRepositoryProtocol
from src.pm_market.infrastructure.persistence import MarketRepository
from src.pm_order.domain.repository import OrderRepositoryProtocol
from src.pm_order.infrastructure.persistence import OrderRepository

logger = logging.getLogger(__name__)


@dataclass
class ResolutionSummary:
    market_id: str
    outcome: str
    groups: int
    winners: int
    losers: int
    refunds: int
    orders_filled: int
    total_staked: int
    total_credited: int
    total_refunded: int
    fee_retained: int


class ResolutionEngine:
    def __init__(
        self,
        account_repo: AccountRepositoryProtocol | None = None,
        market_repo: MarketRepositoryProtocol | None = None,
        order_repo: OrderRepositoryProtocol | None = None,
    ) -> None:
        self._accounts: AccountRepositoryProtocol = account_repo or AccountRepository()
        self._markets: MarketRepositoryProtocol = market_repo or MarketRepository()
        self._orders: OrderRepositoryProtocol = order_repo or OrderRepository()

    async def resolve(
        self, market_id: str, outcome: MarketOutcome, fee_bps: int, db: AsyncSession
    ) -> ResolutionSummary:
        await set_lock_timeout(db)
        market = await self._markets.get_market_for_update(db, market_id)
        if market is None:
            raise MarketNotFoundError(market_id)
        if market.status == MarketStatus.CLOSED.value:
            raise MarketAlreadyResolvedError(market_id)
        if not market.is_open:
            raise MarketClosedError(market_id, f"status is {market.status}")

        orders = await self._orders.list_by_market_for_update(market_id, db)
        plan = plan_resolution(orders, outcome, fee_bps)
        verify_conservation(market_id, plan)

        for group in plan.groups:
            for trade in group.trades:
                await self._record_trade(market_id, outcome, group, trade, db)
        for refund in plan.all_refunds:
            await self._refund(market_id, refund, db)

        filled = await self._orders.mark_market_orders_filled(market_id, db)
        await self._markets.update_status_and_outcome(
            db, market_id, MarketStatus.CLOSED.value, outcome.value, utc_now()
        )

        summary = _summarize(market_id, plan, filled)
        logger.info(
            "Market resolved id=%s outcome=%s groups=%d winners=%d losers=%d refunds=%d "
            "staked=%d credited=%d refunded=%d retained=%d",
            market_id,
            outcome.value,
            summary.groups,
            summary.winners,
            summary.losers,
            summary.refunds,
            summary.total_staked,
            summary.total_credited,
            summary.total_refunded,
            summary.fee_retained,
        )
        return summary

    async def _record_trade(
        self,
        market_id: str,
        outcome: MarketOutcome,
        group: GroupSettlement,
        trade: TradeSettlement,
        db: AsyncSession,
    ) -> None:
        if trade.amount > 0:
            balance_after = (await self._accounts.credit(db, trade.user_id, trade.amount)).balance
        else:
            balance_after = await self._accounts.get_balance(db, trade.user_id)
        await self._accounts.record_ledger_entry(
            db,
            trade.user_id,
            LedgerEntryType.TRADE.value,
            trade.amount,
            balance_after,
            reference_type="ORDER",
            reference_id=trade.order_id,
            description=(
                f"{'Won' if trade.won else 'Lost'} market {market_id} ({outcome.value})"
            ),
            metadata={
                "order_id": trade.order_id,
                "market_id": market_id,
                "outcome": outcome.value,
                "stake": trade.stake,
                "winnings": trade.winnings,
                "share": str(trade.share),
                "group_key": group.key,
            },
        )

    async def _refund(self, market_id: str, refund: Refund, db: AsyncSession) -> None:
        account = await self._accounts.credit(db, refund.user_id, refund.amount)
        await self._accounts.record_ledger_entry(
            db,
            refund.user_id,
            LedgerEntryType.REFUND.value,
            refund.amount,
            account.balance,
            reference_type="ORDER",
            reference_id=refund.order_id,
            description=f"Stake refund on resolution of market {market_id}",
            metadata={
                "order_id": refund.order_id,
                "market_id": market_id,
                "reason": refund.reason,
            },
        )


def _summarize(market_id: str, plan: ResolutionPlan, orders_filled: int) -> ResolutionSummary:
    trades = [t for g in plan.groups for t in g.trades]
    return ResolutionSummary(
        market_id=market_id,
        outcome=plan.outcome.value,
        groups=len(plan.groups),
        winners=sum(1 for t in trades if t.won),
        losers=sum(1 for t in trades if not t.won),
        refunds=len(plan.all_refunds),
        orders_filled=orders_filled,
        total_staked=plan.total_staked,
        total_credited=plan.total_credited,
        total_refunded=plan.total_refunded,
        fee_retained=plan.fee_retained,
    )
