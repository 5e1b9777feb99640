"""Oracle resolution loop and backtesting."""

from matchoracle.oracle.scheduler import (
    CycleReport,
    MarketResult,
    ResolutionDecision,
    ResolutionOutcome,
    ResolutionScheduler,
    ResolvedCache,
)

__all__ = [
    "CycleReport",
    "MarketResult",
    "ResolutionDecision",
    "ResolutionOutcome",
    "ResolutionScheduler",
    "ResolvedCache",
]
