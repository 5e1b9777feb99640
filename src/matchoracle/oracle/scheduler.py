"""Resolution scheduler - the oracle polling loop.

One cycle:

1. list every market; keep those this identity resolves that are neither
   resolved, cancelled, already resolved by this process, nor awaiting a
   resolve write that outlived its timeout
2. group by external event id; unparseable names are reported and skipped
3. fetch each event once; unfinished or unknown events skip the whole group
4. per market (sequential within a group): skip before the deadline, ask the
   strategy, submit the resolve, remember the id on success

Every transient failure becomes a MarketResult and is retried next cycle.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from threading import Lock
from typing import Callable, Iterable

import structlog

from matchoracle.decision.base import DecisionResult, DecisionStrategy, Unavailable, Verdict
from matchoracle.ledger.base import Ledger, LedgerError, list_all_markets
from matchoracle.markets.naming import market_question
from matchoracle.markets.threads import group_by_event
from matchoracle.matchdata.base import (
    FetchFailed,
    FetchResult,
    MatchDataClient,
    NotFinished,
    NotFound,
)
from matchoracle.models import EventRecord, Market

log = structlog.get_logger(__name__)


class ResolutionOutcome(str, Enum):
    RESOLVED = "resolved"
    UNPARSEABLE = "unparseable"
    EVENT_NOT_FINISHED = "event_not_finished"
    EVENT_NOT_FOUND = "event_not_found"
    EVENT_BACKOFF = "event_backoff"
    EVENT_FETCH_FAILED = "event_fetch_failed"
    BEFORE_DEADLINE = "before_deadline"
    NO_VERDICT = "no_verdict"
    SUBMIT_FAILED = "submit_failed"


@dataclass(frozen=True)
class ResolutionDecision:
    """Consumed once to emit a resolve; never stored on its own."""

    market_id: int
    outcome_index: int
    rationale: str


@dataclass(frozen=True)
class MarketResult:
    market_id: int
    outcome: ResolutionOutcome
    event_id: str | None = None
    detail: str = ""
    decision: ResolutionDecision | None = None


@dataclass
class CycleReport:
    """What one polling cycle did, market by market."""

    started_at: float
    candidates: int = 0
    listing_failed: bool = False
    results: list[MarketResult] = field(default_factory=list)

    def count(self, outcome: ResolutionOutcome) -> int:
        return sum(1 for r in self.results if r.outcome is outcome)

    @property
    def resolved(self) -> list[ResolutionDecision]:
        return [r.decision for r in self.results if r.outcome is ResolutionOutcome.RESOLVED and r.decision]


class ResolvedCache:
    """Market ids this process has resolved. Safe for concurrent insertion."""

    def __init__(self) -> None:
        self._ids: set[int] = set()
        self._lock = Lock()

    def add(self, market_id: int) -> None:
        with self._lock:
            self._ids.add(market_id)

    def __contains__(self, market_id: object) -> bool:
        with self._lock:
            return market_id in self._ids

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)


@dataclass
class _NotFoundState:
    first_seen: float
    attempts: int = 0
    next_attempt_at: float = 0.0


class NotFoundBackoff:
    """Exponential retry spacing for events upstream does not know yet."""

    def __init__(self, base_delay_sec: float, max_delay_sec: float, stale_after_sec: float) -> None:
        self.base_delay_sec = base_delay_sec
        self.max_delay_sec = max_delay_sec
        self.stale_after_sec = stale_after_sec
        self._events: dict[str, _NotFoundState] = {}

    def should_fetch(self, event_id: str, now: float) -> bool:
        state = self._events.get(event_id)
        return state is None or now >= state.next_attempt_at

    def record(self, event_id: str, now: float) -> _NotFoundState:
        state = self._events.setdefault(event_id, _NotFoundState(first_seen=now))
        state.attempts += 1
        delay = min(self.base_delay_sec * (2 ** (state.attempts - 1)), self.max_delay_sec)
        state.next_attempt_at = now + delay
        return state

    def is_stale(self, event_id: str, now: float) -> bool:
        state = self._events.get(event_id)
        return state is not None and now - state.first_seen >= self.stale_after_sec

    def clear(self, event_id: str) -> None:
        self._events.pop(event_id, None)


class ResolutionScheduler:
    """Polls the ledger and resolves markets whose events have concluded."""

    def __init__(
        self,
        ledger: Ledger,
        match_data: MatchDataClient,
        strategy: DecisionStrategy,
        identity: str,
        *,
        poll_interval_sec: float = 30.0,
        page_size: int = 100,
        max_concurrent_events: int = 8,
        match_data_timeout_sec: float = 15.0,
        adviser_timeout_sec: float = 30.0,
        ledger_timeout_sec: float = 60.0,
        not_found_stale_after_sec: float = 1800.0,
        not_found_backoff_max_sec: float = 600.0,
        clock: Callable[[], float] = time.time,
    ):
        self.ledger = ledger
        self.match_data = match_data
        self.strategy = strategy
        self.identity = identity
        self.poll_interval_sec = poll_interval_sec
        self.page_size = page_size
        self.match_data_timeout_sec = match_data_timeout_sec
        self.adviser_timeout_sec = adviser_timeout_sec
        self.ledger_timeout_sec = ledger_timeout_sec
        self.clock = clock
        self.resolved_cache = ResolvedCache()
        self.not_found = NotFoundBackoff(
            base_delay_sec=poll_interval_sec,
            max_delay_sec=not_found_backoff_max_sec,
            stale_after_sec=not_found_stale_after_sec,
        )
        self._semaphore = asyncio.Semaphore(max(1, max_concurrent_events))
        # resolve writes that outlived ledger_timeout_sec, by market id
        self._pending_writes: dict[int, asyncio.Future] = {}
        self._cycles = 0

    def _is_candidate(self, market: Market) -> bool:
        return (
            market.is_oracle(self.identity)
            and not market.is_resolved
            and not market.is_cancelled
            and market.id not in self.resolved_cache
            and market.id not in self._pending_writes
        )

    async def run_cycle(self) -> CycleReport:
        """One pass over the ledger. Never raises for transient failures."""
        report = CycleReport(started_at=self.clock())
        self._cycles += 1
        try:
            markets = await asyncio.wait_for(
                list_all_markets(self.ledger, self.page_size), timeout=self.ledger_timeout_sec
            )
        except (LedgerError, TimeoutError, OSError) as e:
            log.warning("market_listing_failed", error=str(e) or type(e).__name__)
            report.listing_failed = True
            return report

        pending = [m for m in markets if self._is_candidate(m)]
        report.candidates = len(pending)
        if not pending:
            return report
        log.info("markets_to_check", count=len(pending))

        groups, unparseable = group_by_event(pending)
        for market in unparseable:
            log.warning("market_name_unparseable", market_id=market.id, name=market.name)
            report.results.append(
                MarketResult(market.id, ResolutionOutcome.UNPARSEABLE, detail="no event id in name")
            )

        group_results = await asyncio.gather(
            *(self._process_group(event_id, group) for event_id, group in groups.items())
        )
        for results in group_results:
            report.results.extend(results)
        log.info(
            "cycle_complete",
            cycle=self._cycles,
            candidates=report.candidates,
            resolved=report.count(ResolutionOutcome.RESOLVED),
        )
        return report

    async def _fetch_event(self, event_id: str) -> FetchResult:
        try:
            return await asyncio.wait_for(self.match_data.fetch(event_id), timeout=self.match_data_timeout_sec)
        except TimeoutError:
            return FetchFailed(event_id, reason="timeout")

    def _skip_group(
        self, markets: Iterable[Market], outcome: ResolutionOutcome, event_id: str, detail: str
    ) -> list[MarketResult]:
        return [MarketResult(m.id, outcome, event_id=event_id, detail=detail) for m in markets]

    async def _process_group(self, event_id: str, markets: list[Market]) -> list[MarketResult]:
        async with self._semaphore:
            now = self.clock()
            if not self.not_found.should_fetch(event_id, now):
                return self._skip_group(markets, ResolutionOutcome.EVENT_BACKOFF, event_id, "waiting to retry")

            log.info("fetching_event", event_id=event_id, markets=len(markets))
            fetched = await self._fetch_event(event_id)

            if isinstance(fetched, NotFound):
                state = self.not_found.record(event_id, now)
                if self.not_found.is_stale(event_id, now):
                    log.warning(
                        "event_stale",
                        event_id=event_id,
                        attempts=state.attempts,
                        missing_for_sec=round(now - state.first_seen),
                    )
                else:
                    log.info("event_not_found", event_id=event_id, reason=fetched.reason)
                return self._skip_group(markets, ResolutionOutcome.EVENT_NOT_FOUND, event_id, fetched.reason)
            self.not_found.clear(event_id)
            if isinstance(fetched, NotFinished):
                log.info("event_not_finished", event_id=event_id)
                return self._skip_group(markets, ResolutionOutcome.EVENT_NOT_FINISHED, event_id, "no duration yet")
            if isinstance(fetched, FetchFailed):
                log.warning("event_fetch_failed", event_id=event_id, reason=fetched.reason)
                return self._skip_group(markets, ResolutionOutcome.EVENT_FETCH_FAILED, event_id, fetched.reason)

            event = fetched.record
            log.info(
                "event_finished",
                event_id=event_id,
                duration_min=event.duration // 60,
                radiant_win=event.radiant_win,
                kills=event.total_kills,
            )
            results = []
            for market in markets:
                results.append(await self._process_market(event_id, market, event))
            return results

    async def _decide(self, market: Market, event: EventRecord) -> DecisionResult:
        question = market_question(market.name)
        try:
            return await asyncio.wait_for(
                self.strategy.decide(question, market.outcomes, event), timeout=self.adviser_timeout_sec
            )
        except TimeoutError:
            return Unavailable("decision timeout")
        except Exception as e:
            log.error("decision_error", market_id=market.id, error=str(e), error_type=type(e).__name__)
            return Unavailable(f"decision error: {type(e).__name__}")

    async def _process_market(self, event_id: str, market: Market, event: EventRecord) -> MarketResult:
        now = self.clock()
        if now < market.prediction_deadline:
            left = int(market.prediction_deadline - now)
            log.info("deadline_not_reached", market_id=market.id, seconds_left=left)
            return MarketResult(market.id, ResolutionOutcome.BEFORE_DEADLINE, event_id, f"{left}s left")

        verdict = await self._decide(market, event)
        if not isinstance(verdict, Verdict):
            log.info("no_verdict", market_id=market.id, event_id=event_id, reason=verdict.reason)
            return MarketResult(market.id, ResolutionOutcome.NO_VERDICT, event_id, verdict.reason)
        if not 0 <= verdict.outcome_index < len(market.outcomes):
            log.warning("verdict_out_of_range", market_id=market.id, outcome=verdict.outcome_index)
            return MarketResult(market.id, ResolutionOutcome.NO_VERDICT, event_id, "outcome out of range")

        decision = ResolutionDecision(market.id, verdict.outcome_index, verdict.rationale)
        return await self._submit(event_id, market, decision)

    async def _submit(self, event_id: str, market: Market, decision: ResolutionDecision) -> MarketResult:
        label = market.outcomes[decision.outcome_index]
        log.info(
            "resolving_market",
            market_id=market.id,
            event_id=event_id,
            outcome=decision.outcome_index,
            label=label,
            rationale=decision.rationale,
        )
        # A submitted write is never cancelled; a timeout only stops waiting for it.
        write = asyncio.ensure_future(self.ledger.resolve(self.identity, market.id, decision.outcome_index))
        try:
            await asyncio.wait_for(asyncio.shield(write), timeout=self.ledger_timeout_sec)
        except TimeoutError:
            self._pending_writes[market.id] = write
            write.add_done_callback(self._late_write_done(market.id))
            log.error("resolve_timeout", market_id=market.id, event_id=event_id)
            return MarketResult(market.id, ResolutionOutcome.SUBMIT_FAILED, event_id, "timeout", decision)
        except (LedgerError, OSError) as e:
            reason = str(e) or type(e).__name__
            log.error("resolve_failed", market_id=market.id, event_id=event_id, error=reason)
            return MarketResult(market.id, ResolutionOutcome.SUBMIT_FAILED, event_id, reason, decision)
        self.resolved_cache.add(market.id)
        log.info("market_resolved", market_id=market.id, outcome=decision.outcome_index, label=label)
        return MarketResult(market.id, ResolutionOutcome.RESOLVED, event_id, label, decision)

    def _late_write_done(self, market_id: int) -> Callable[[asyncio.Future], None]:
        """Done-callback for a resolve that outlived its timeout."""

        def _done(fut: asyncio.Future) -> None:
            self._pending_writes.pop(market_id, None)
            if fut.cancelled():
                log.warning("late_resolve_cancelled", market_id=market_id)
                return
            error = fut.exception()
            if error is not None:
                log.warning("late_resolve_failed", market_id=market_id, error=str(error))
                return
            self.resolved_cache.add(market_id)
            log.info("late_resolve_landed", market_id=market_id)

        return _done

    async def drain_pending_writes(self) -> None:
        """Wait for resolve writes still in flight from earlier cycles."""
        if self._pending_writes:
            await asyncio.gather(*list(self._pending_writes.values()), return_exceptions=True)

    async def run(self, stop_event: asyncio.Event | None = None) -> None:
        """Poll until stop_event is set. A cycle in progress always completes."""
        stop = stop_event or asyncio.Event()
        log.info(
            "oracle_started",
            identity=self.identity,
            strategy=self.strategy.name,
            poll_interval_sec=self.poll_interval_sec,
        )
        while not stop.is_set():
            try:
                await self.run_cycle()
            except Exception as e:
                log.error("poll_error", error=str(e), error_type=type(e).__name__)
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.poll_interval_sec)
            except TimeoutError:
                pass
        await self.drain_pending_writes()
        log.info("oracle_stopped", resolved=len(self.resolved_cache))

    def get_status(self) -> dict[str, int | str]:
        return {
            "identity": self.identity,
            "strategy": self.strategy.name,
            "cycles": self._cycles,
            "resolved": len(self.resolved_cache),
        }
