"""Ledger interface: the narrow read/write surface this engine consumes.

The ledger is authoritative for markets, pools and stakes, and enforces its
own guards (oracle-only, after deadline, once). Writes raise LedgerError
subclasses when a guard rejects them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator, Sequence

from matchoracle.models import Market, MarketPage


class LedgerError(Exception):
    """A ledger call failed or a ledger guard rejected a write."""


class MarketNotFound(LedgerError):
    pass


class NotOracle(LedgerError):
    pass


class NotAuthorized(LedgerError):
    pass


class DeadlineNotReached(LedgerError):
    pass


class BettingClosed(LedgerError):
    pass


class AlreadyFinalized(LedgerError):
    """Market already resolved or cancelled."""


class NotFinalized(LedgerError):
    pass


class InvalidOutcome(LedgerError):
    pass


class InvalidAmount(LedgerError):
    pass


class AlreadyClaimed(LedgerError):
    pass


class NothingToClaim(LedgerError):
    pass


class Ledger(ABC):
    """Read/write interface to the market ledger. Implement per backend."""

    # Reads

    @abstractmethod
    async def list_markets(self, offset: int = 0, limit: int = 100) -> MarketPage:
        """One page of markets ordered by id."""
        ...

    @abstractmethod
    async def get_market(self, market_id: int) -> Market:
        ...

    @abstractmethod
    async def get_pool_amount(self, market_id: int, outcome_index: int) -> int:
        ...

    @abstractmethod
    async def get_stake(self, market_id: int, user: str, outcome_index: int) -> int:
        ...

    @abstractmethod
    async def has_claimed(self, market_id: int, user: str) -> bool:
        ...

    # Writes

    @abstractmethod
    async def create_market(
        self,
        sender: str,
        name: str,
        outcomes: Sequence[str],
        prediction_duration_sec: int,
        oracle: str,
        seed_outcome_index: int,
        seed_amount: int,
    ) -> int:
        """Create a market and stake the seed on one outcome. Returns the market id."""
        ...

    @abstractmethod
    async def place_stake(self, sender: str, market_id: int, outcome_index: int, amount: int) -> None:
        ...

    @abstractmethod
    async def resolve(self, sender: str, market_id: int, outcome_index: int) -> None:
        """Oracle only, after the deadline, once."""
        ...

    @abstractmethod
    async def cancel_market(self, sender: str, market_id: int) -> None:
        ...

    @abstractmethod
    async def claim_payout(self, sender: str, market_id: int) -> int:
        """Pay out (or refund) the sender's position. Returns units paid."""
        ...

    async def close(self) -> None:
        pass


async def iter_markets(ledger: Ledger, page_size: int = 100) -> AsyncIterator[Market]:
    """Walk every page of the market listing."""
    offset = 0
    while True:
        page = await ledger.list_markets(offset=offset, limit=page_size)
        for market in page.markets:
            yield market
        offset += len(page.markets)
        if not page.markets or offset >= page.total_markets:
            break


async def list_all_markets(ledger: Ledger, page_size: int = 100) -> list[Market]:
    return [m async for m in iter_markets(ledger, page_size)]
