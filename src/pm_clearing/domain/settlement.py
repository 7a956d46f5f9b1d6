"""Resolution payout arithmetic. Pure functions over in-memory orders.

Per pairing group, with W the winning side:

    losing_stake = sum(stake of orders not on W)
    fee          = floor(losing_stake * fee_bps / 10000)
    pool         = losing_stake - fee
    payout(w)    = stake(w) + floor(pool * filled(w) / sum(filled of winners))

Winners share the pool in proportion to filled quantity. Flooring leaves a
residue of at most (#winners - 1) minor units per group, kept by the
platform with the fee. Orders that never became Paired get their whole
stake back. Cancelled orders were refunded at cancel time and are skipped.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from fractions import Fraction

from src.pm_clearing.domain.pairing import PairingGroup, group_paired_orders
from src.pm_common.enums import MarketOutcome, OrderStatus
from src.pm_common.money import fee_from_bps, pro_rata
from src.pm_order.domain.models import Order


@dataclass(frozen=True)
class TradeSettlement:
    """One order's result inside a pairing group. Losers carry amount 0."""

    order_id: str
    user_id: str
    stake: int
    winnings: int
    share: Fraction
    amount: int
    won: bool


@dataclass(frozen=True)
class Refund:
    order_id: str
    user_id: str
    amount: int
    reason: str


@dataclass
class GroupSettlement:
    key: str
    limit_price: int
    losing_stake: int
    fee: int
    pool: int
    trades: list[TradeSettlement] = field(default_factory=list)
    refunds: list[Refund] = field(default_factory=list)

    @property
    def credited(self) -> int:
        return sum(t.amount for t in self.trades)

    @property
    def retained(self) -> int:
        """Fee plus rounding residue."""
        return self.pool - sum(t.winnings for t in self.trades) + self.fee


@dataclass
class ResolutionPlan:
    outcome: MarketOutcome
    fee_bps: int
    groups: list[GroupSettlement]
    refunds: list[Refund]
    total_staked: int

    @property
    def total_credited(self) -> int:
        return sum(g.credited for g in self.groups)

    @property
    def total_refunded(self) -> int:
        return sum(r.amount for r in self.refunds) + sum(
            r.amount for g in self.groups for r in g.refunds
        )

    @property
    def fee_retained(self) -> int:
        return sum(g.retained for g in self.groups if g.trades)

    @property
    def all_refunds(self) -> list[Refund]:
        return [r for g in self.groups for r in g.refunds] + list(self.refunds)


def settle_group(group: PairingGroup, outcome: MarketOutcome, fee_bps: int) -> GroupSettlement:
    winning_side = outcome.winning_side.value
    winners = group.by_side(winning_side)
    losers = [o for o in group.orders if o.side != winning_side]

    if not winners:
        # Every counterparty left before pairing completed; nothing to win against
        return GroupSettlement(
            key=group.key,
            limit_price=group.limit_price,
            losing_stake=0,
            fee=0,
            pool=0,
            refunds=[
                Refund(o.id, o.user_id, o.stake, "no_winning_counterparty") for o in losers
            ],
        )

    losing_stake = sum(o.stake for o in losers)
    fee = fee_from_bps(losing_stake, fee_bps)
    pool = losing_stake - fee
    total_filled = sum(o.filled_quantity for o in winners)

    trades: list[TradeSettlement] = []
    for o in winners:
        winnings = pro_rata(pool, o.filled_quantity, total_filled)
        share = Fraction(o.filled_quantity, total_filled) if total_filled else Fraction(0)
        trades.append(
            TradeSettlement(
                order_id=o.id,
                user_id=o.user_id,
                stake=o.stake,
                winnings=winnings,
                share=share,
                amount=o.stake + winnings,
                won=True,
            )
        )
    for o in losers:
        trades.append(
            TradeSettlement(
                order_id=o.id,
                user_id=o.user_id,
                stake=o.stake,
                winnings=0,
                share=Fraction(0),
                amount=0,
                won=False,
            )
        )
    return GroupSettlement(
        key=group.key,
        limit_price=group.limit_price,
        losing_stake=losing_stake,
        fee=fee,
        pool=pool,
        trades=trades,
    )


def refund_unpaired(orders: Sequence[Order]) -> list[Refund]:
    """Full-stake refunds for Open and PartiallyPaired orders."""
    unpaired = (OrderStatus.OPEN.value, OrderStatus.PARTIALLY_PAIRED.value)
    return [
        Refund(o.id, o.user_id, o.stake, "unpaired")
        for o in orders
        if o.status in unpaired
    ]


def plan_resolution(
    orders: Sequence[Order], outcome: MarketOutcome, fee_bps: int
) -> ResolutionPlan:
    """Everything a resolution will credit, refund and retain, computed up front."""
    if not 0 <= fee_bps <= 10000:
        raise ValueError(f"fee_bps must be within 0..10000, got {fee_bps}")
    groups = [settle_group(g, outcome, fee_bps) for g in group_paired_orders(orders)]
    refunds = refund_unpaired(orders)
    total_staked = sum(
        o.stake for o in orders if o.status != OrderStatus.CANCELLED.value
    )
    return ResolutionPlan(
        outcome=outcome,
        fee_bps=fee_bps,
        groups=groups,
        refunds=refunds,
        total_staked=total_staked,
    )
