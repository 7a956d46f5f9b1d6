"""Money conservation for a resolution plan.

Every stake debited for a non-cancelled order leaves the market exactly
once: as a winner credit, a refund, or platform retention (fee plus
rounding residue). Cancelled orders were refunded on cancel.
"""

import logging

from src.pm_clearing.domain.settlement import ResolutionPlan
from src.pm_common.errors import InternalError

logger = logging.getLogger(__name__)


def verify_conservation(market_id: str, plan: ResolutionPlan) -> None:
    """Raise InternalError if the plan creates or destroys money."""
    credited = plan.total_credited
    refunded = plan.total_refunded
    retained = plan.fee_retained
    if retained < 0 or credited + refunded + retained != plan.total_staked:
        logger.error(
            "Conservation violated market=%s staked=%d credited=%d refunded=%d retained=%d",
            market_id,
            plan.total_staked,
            credited,
            refunded,
            retained,
        )
        raise InternalError(f"Settlement for market {market_id} does not conserve funds")
    logger.debug(
        "Conservation OK market=%s staked=%d retained=%d", market_id, plan.total_staked, retained
    )
