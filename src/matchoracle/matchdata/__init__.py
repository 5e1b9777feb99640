"""External match data: finished-match records for resolution."""

from matchoracle.matchdata.base import (
    EventFinished,
    FetchFailed,
    FetchResult,
    MatchDataClient,
    NotFinished,
    NotFound,
)

__all__ = [
    "EventFinished",
    "FetchFailed",
    "FetchResult",
    "MatchDataClient",
    "NotFinished",
    "NotFound",
]
