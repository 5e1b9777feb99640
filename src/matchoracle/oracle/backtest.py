"""Backtest: replay resolved markets through a strategy and compare verdicts."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field

import structlog

from matchoracle.decision.base import DecisionStrategy, Verdict
from matchoracle.ledger.base import Ledger, list_all_markets
from matchoracle.markets.naming import market_question
from matchoracle.markets.threads import group_by_event
from matchoracle.matchdata.base import EventFinished, MatchDataClient

log = structlog.get_logger(__name__)


@dataclass
class BacktestRow:
    """One resolved market replayed through the strategy."""

    market_id: int
    event_id: str
    question: str
    recorded_outcome: int
    predicted_outcome: int | None = None
    detail: str = ""

    @property
    def correct(self) -> bool | None:
        if self.predicted_outcome is None:
            return None
        return self.predicted_outcome == self.recorded_outcome


@dataclass
class BacktestResult:
    """Result of a backtest run."""

    run_id: str
    strategy_name: str
    created_at: int
    rows: list[BacktestRow] = field(default_factory=list)

    @property
    def total(self) -> int:
        """Markets the strategy produced an answer for."""
        return sum(1 for r in self.rows if r.predicted_outcome is not None)

    @property
    def correct(self) -> int:
        return sum(1 for r in self.rows if r.correct)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.rows if r.predicted_outcome is None)

    @property
    def accuracy(self) -> float:
        return self.correct / self.total if self.total else 0.0


async def run_backtest(
    ledger: Ledger,
    match_data: MatchDataClient,
    strategy: DecisionStrategy,
    page_size: int = 100,
) -> BacktestResult:
    """Compare strategy verdicts with the ledger's recorded winning outcomes."""
    markets = await list_all_markets(ledger, page_size)
    resolved = [m for m in markets if m.is_resolved and not m.is_cancelled]
    groups, _ = group_by_event(resolved)
    result = BacktestResult(
        run_id=str(uuid.uuid4())[:8],
        strategy_name=strategy.name or type(strategy).__name__,
        created_at=int(time.time() * 1000),
    )
    for event_id, group in groups.items():
        fetched = await match_data.fetch(event_id)
        if not isinstance(fetched, EventFinished):
            log.info("backtest_event_unavailable", event_id=event_id, result=type(fetched).__name__)
            for m in group:
                result.rows.append(
                    BacktestRow(
                        market_id=m.id,
                        event_id=event_id,
                        question=market_question(m.name),
                        recorded_outcome=m.winning_outcome,
                        detail=f"event unavailable: {type(fetched).__name__}",
                    )
                )
            continue
        for m in group:
            question = market_question(m.name)
            verdict = await strategy.decide(question, m.outcomes, fetched.record)
            row = BacktestRow(
                market_id=m.id,
                event_id=event_id,
                question=question,
                recorded_outcome=m.winning_outcome,
            )
            if isinstance(verdict, Verdict):
                row.predicted_outcome = verdict.outcome_index
                row.detail = verdict.rationale
            else:
                row.detail = verdict.reason
            result.rows.append(row)
    log.info(
        "backtest_complete",
        run_id=result.run_id,
        correct=result.correct,
        total=result.total,
        failed=result.failed,
    )
    return result
