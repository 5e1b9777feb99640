"""Thread builder: derived grouping of markets that share an external event.

Threads are never stored; they are rebuilt from the market set on every read.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from matchoracle.markets.naming import EventName, parse_market_name
from matchoracle.models import Market


@dataclass
class Thread:
    """Markets sharing (subject, event id), or a single standalone market."""

    key: str
    title: str
    event_id: str | None
    stream_url: str | None = None
    markets: list[Market] = field(default_factory=list)

    @property
    def is_standalone(self) -> bool:
        return self.event_id is None

    @property
    def total_pool(self) -> int:
        return sum(m.total_pool_amount for m in self.markets)

    @property
    def created_at(self) -> int:
        """Earliest creation timestamp among constituent markets."""
        return min((m.creation_timestamp for m in self.markets), default=0)

    def is_open(self, now: float) -> bool:
        """Open iff at least one market is still taking stakes (deadlines are per market)."""
        return any(m.is_open_at(now) for m in self.markets)


def thread_key(market: Market) -> str:
    parsed = parse_market_name(market.name)
    if isinstance(parsed, EventName):
        return f"e{parsed.event_id}:{parsed.subject}"
    return f"m{market.id}"


def build_threads(markets: Iterable[Market]) -> list[Thread]:
    """Group markets into threads, newest thread first.

    Order is descending by each thread's earliest creation timestamp, then
    by key, which makes it total and stable across reads.
    """
    threads: dict[str, Thread] = {}
    for market in sorted(markets, key=lambda m: m.id):
        parsed = parse_market_name(market.name)
        key = thread_key(market)
        thread = threads.get(key)
        if thread is None:
            if isinstance(parsed, EventName):
                thread = Thread(key=key, title=parsed.subject, event_id=parsed.event_id)
            else:
                thread = Thread(key=key, title=parsed.question, event_id=None)
            threads[key] = thread
        if isinstance(parsed, EventName) and thread.stream_url is None:
            thread.stream_url = parsed.stream_url
        thread.markets.append(market)
    ordered = sorted(threads.values(), key=lambda t: t.key)
    ordered.sort(key=lambda t: t.created_at, reverse=True)
    return ordered


def group_by_event(markets: Iterable[Market]) -> tuple[dict[str, list[Market]], list[Market]]:
    """Group markets by external event id regardless of subject.

    Returns (event_id -> markets in id order, markets with no parseable event id).
    Used by the oracle so each event is fetched once per cycle.
    """
    groups: dict[str, list[Market]] = {}
    unparseable: list[Market] = []
    for market in sorted(markets, key=lambda m: m.id):
        parsed = parse_market_name(market.name)
        if isinstance(parsed, EventName):
            groups.setdefault(parsed.event_id, []).append(market)
        else:
            unparseable.append(market)
    return groups, unparseable
