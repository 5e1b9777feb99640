"""Match data client protocol and typed fetch results.

None of the non-finished results is an error: the caller skips the event
and asks again on a later cycle.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from matchoracle.models import EventRecord


@dataclass(frozen=True)
class EventFinished:
    record: EventRecord


@dataclass(frozen=True)
class NotFinished:
    """Event exists but has no duration yet."""

    event_id: str


@dataclass(frozen=True)
class NotFound:
    """Unknown id, commonly a match too recent to be indexed upstream."""

    event_id: str
    reason: str = "not_found"


@dataclass(frozen=True)
class FetchFailed:
    """Timeout, transport error, 5xx or an undecodable body."""

    event_id: str
    reason: str


FetchResult = EventFinished | NotFinished | NotFound | FetchFailed


class MatchDataClient(Protocol):
    """Read-only source of finished-match records."""

    async def fetch(self, event_id: str) -> FetchResult: ...
