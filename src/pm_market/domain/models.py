"""Domain models for pm_market: pure dataclasses plus the market lifecycle rules."""

from dataclasses import dataclass, field
from datetime import datetime

from src.pm_common.enums import MarketStatus

# Open --resolve--> closed --archive--> archived. Nothing moves backward.
_ALLOWED_TRANSITIONS: dict[MarketStatus, frozenset[MarketStatus]] = {
    MarketStatus.OPEN: frozenset({MarketStatus.CLOSED}),
    MarketStatus.CLOSED: frozenset({MarketStatus.ARCHIVED}),
    MarketStatus.ARCHIVED: frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    return MarketStatus(target) in _ALLOWED_TRANSITIONS[MarketStatus(current)]


@dataclass
class MarketImage:
    url: str
    hint: str = ""


@dataclass
class HistoryPoint:
    """One point of the market's volume history chart."""

    date: str    # ISO date
    volume: int


@dataclass
class Market:
    id: str
    question: str
    category: str
    status: str
    start_date: datetime
    end_date: datetime
    outcome: str | None = None          # set exactly once, at resolution
    image: MarketImage | None = None
    history: list[HistoryPoint] = field(default_factory=list)
    is_daily: bool = False
    resolved_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.status == MarketStatus.OPEN.value

    def trading_window_error(self, now: datetime) -> str | None:
        """Why an order cannot be placed right now, or None if it can."""
        if not self.is_open:
            return f"status is {self.status}"
        if now < self.start_date:
            return "trading has not started"
        if now >= self.end_date:
            return "trading window has ended"
        return None
