"""Accessor for the MatchingEngine shared by order placement and cancellation."""

from src.pm_matching.engine.engine import MatchingEngine

_engine: MatchingEngine | None = None


def get_matching_engine() -> MatchingEngine:
    """Per-market locks only serialize placements that go through the same instance."""
    global _engine  # noqa: PLW0603
    if _engine is None:
        _engine = MatchingEngine()
    return _engine
