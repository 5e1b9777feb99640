"""In-process reference ledger for tests, paper runs and the read API.

Enforces the same guards the oracle relies on from a real ledger. State
lives only in this process.
"""

from __future__ import annotations

import json
import time
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Sequence

import structlog

from matchoracle.accounting.parimutuel import claim_amount, refund_amount
from matchoracle.ledger.base import (
    AlreadyClaimed,
    AlreadyFinalized,
    BettingClosed,
    DeadlineNotReached,
    InvalidAmount,
    InvalidOutcome,
    Ledger,
    LedgerError,
    MarketNotFound,
    NotAuthorized,
    NotFinalized,
    NothingToClaim,
    NotOracle,
)
from matchoracle.models import Market, MarketPage

log = structlog.get_logger(__name__)


class MemoryLedger(Ledger):
    """Dict-backed ledger. Identities compare case-insensitively."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self.clock = clock
        self._markets: dict[int, Market] = {}
        self._stakes: dict[tuple[int, str], list[int]] = {}
        self._claimed: set[tuple[int, str]] = set()
        self._frozen_pools: dict[int, tuple[int, ...]] = {}
        self._paid_out: dict[int, int] = {}
        self._next_id = 0
        self._lock = Lock()
        self.resolve_calls = 0

    def _now(self) -> int:
        return int(self.clock())

    def _market(self, market_id: int) -> Market:
        market = self._markets.get(market_id)
        if market is None:
            raise MarketNotFound(f"market {market_id} does not exist")
        return market

    def _check_outcome(self, market: Market, outcome_index: int) -> None:
        if not 0 <= outcome_index < len(market.outcomes):
            raise InvalidOutcome(f"outcome {outcome_index} out of range for market {market.id}")

    def _user_stakes(self, market_id: int, user: str) -> list[int]:
        market = self._market(market_id)
        return self._stakes.setdefault((market_id, user.lower()), [0] * len(market.outcomes))

    # Reads

    async def list_markets(self, offset: int = 0, limit: int = 100) -> MarketPage:
        with self._lock:
            ids = sorted(self._markets)
            page = [self._markets[i].model_copy(deep=True) for i in ids[offset : offset + limit]]
            return MarketPage(total_markets=len(ids), markets=page)

    async def get_market(self, market_id: int) -> Market:
        with self._lock:
            return self._market(market_id).model_copy(deep=True)

    async def get_pool_amount(self, market_id: int, outcome_index: int) -> int:
        with self._lock:
            market = self._market(market_id)
            self._check_outcome(market, outcome_index)
            return market.pool_amounts[outcome_index]

    async def get_stake(self, market_id: int, user: str, outcome_index: int) -> int:
        with self._lock:
            market = self._market(market_id)
            self._check_outcome(market, outcome_index)
            return self._stakes.get((market_id, user.lower()), [0] * len(market.outcomes))[outcome_index]

    async def has_claimed(self, market_id: int, user: str) -> bool:
        with self._lock:
            self._market(market_id)
            return (market_id, user.lower()) in self._claimed

    # Writes

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
        return self._create_market(
            sender, name, outcomes, prediction_duration_sec, oracle, seed_outcome_index, seed_amount
        )

    def _create_market(
        self,
        sender: str,
        name: str,
        outcomes: Sequence[str],
        prediction_duration_sec: int,
        oracle: str,
        seed_outcome_index: int,
        seed_amount: int,
    ) -> int:
        if len(outcomes) < 2:
            raise InvalidOutcome("a market needs at least two outcomes")
        if prediction_duration_sec <= 0:
            raise LedgerError("prediction duration must be positive")
        if not 0 <= seed_outcome_index < len(outcomes):
            raise InvalidOutcome(f"seed outcome {seed_outcome_index} out of range")
        if seed_amount < 0:
            raise InvalidAmount("seed amount must be non-negative")
        with self._lock:
            now = self._now()
            market_id = self._next_id
            self._next_id += 1
            pools = [0] * len(outcomes)
            pools[seed_outcome_index] = seed_amount
            self._markets[market_id] = Market(
                id=market_id,
                name=name,
                outcomes=list(outcomes),
                creator=sender,
                oracle=oracle,
                prediction_deadline=now + prediction_duration_sec,
                pool_amounts=pools,
                creation_timestamp=now,
            )
            if seed_amount:
                self._user_stakes(market_id, sender)[seed_outcome_index] += seed_amount
        log.info("market_created", market_id=market_id, name=name, seed_amount=seed_amount)
        return market_id

    async def place_stake(self, sender: str, market_id: int, outcome_index: int, amount: int) -> None:
        self._place_stake(sender, market_id, outcome_index, amount)

    def _place_stake(self, sender: str, market_id: int, outcome_index: int, amount: int) -> None:
        if amount <= 0:
            raise InvalidAmount("stake must be positive")
        with self._lock:
            market = self._market(market_id)
            self._check_outcome(market, outcome_index)
            if market.is_terminal:
                raise AlreadyFinalized(f"market {market_id} is finalized")
            if self._now() >= market.prediction_deadline:
                raise BettingClosed(f"market {market_id} deadline has passed")
            market.pool_amounts[outcome_index] += amount
            self._user_stakes(market_id, sender)[outcome_index] += amount

    async def resolve(self, sender: str, market_id: int, outcome_index: int) -> None:
        with self._lock:
            self.resolve_calls += 1
            market = self._market(market_id)
            if not market.is_oracle(sender):
                raise NotOracle(f"{sender} is not the oracle for market {market_id}")
            if market.is_terminal:
                raise AlreadyFinalized(f"market {market_id} is already finalized")
            now = self._now()
            if now < market.prediction_deadline:
                raise DeadlineNotReached(f"market {market_id} deadline not reached")
            self._check_outcome(market, outcome_index)
            self._frozen_pools[market_id] = tuple(market.pool_amounts)
            market.is_resolved = True
            market.winning_outcome = outcome_index
            market.resolved_timestamp = now

    async def cancel_market(self, sender: str, market_id: int) -> None:
        with self._lock:
            market = self._market(market_id)
            if not (market.is_oracle(sender) or market.creator.lower() == sender.lower()):
                raise NotAuthorized(f"{sender} may not cancel market {market_id}")
            if market.is_terminal:
                raise AlreadyFinalized(f"market {market_id} is already finalized")
            self._frozen_pools[market_id] = tuple(market.pool_amounts)
            market.is_cancelled = True

    async def claim_payout(self, sender: str, market_id: int) -> int:
        with self._lock:
            market = self._market(market_id)
            if not market.is_terminal:
                raise NotFinalized(f"market {market_id} is not resolved or cancelled")
            key = (market_id, sender.lower())
            if key in self._claimed:
                raise AlreadyClaimed(f"{sender} already claimed market {market_id}")
            stakes = self._stakes.get(key, [0] * len(market.outcomes))
            frozen = self._frozen_pools[market_id]
            if market.is_cancelled:
                amount = refund_amount(stakes)
            else:
                amount = claim_amount(frozen, market.winning_outcome, stakes[market.winning_outcome])
            if amount == 0:
                raise NothingToClaim(f"{sender} has nothing to claim on market {market_id}")
            paid = self._paid_out.get(market_id, 0) + amount
            if paid > sum(frozen):
                raise LedgerError(f"payouts on market {market_id} would exceed its pool")
            self._paid_out[market_id] = paid
            self._claimed.add(key)
            return amount

    # Seeding

    @classmethod
    def from_seed(cls, seed: dict[str, Any], clock: Callable[[], float] = time.time) -> MemoryLedger:
        """Build a ledger from a seed document: {"markets": [...]} with optional "stakes"."""
        ledger = cls(clock=clock)
        for spec in seed.get("markets", []):
            market_id = ledger._create_market(
                sender=spec.get("creator", ""),
                name=spec["name"],
                outcomes=spec["outcomes"],
                prediction_duration_sec=int(spec.get("prediction_duration_sec", 600)),
                oracle=spec["oracle"],
                seed_outcome_index=int(spec.get("seed_outcome_index", 0)),
                seed_amount=int(spec.get("seed_amount", 0)),
            )
            for stake in spec.get("stakes", []):
                ledger._place_stake(stake["user"], market_id, int(stake["outcome_index"]), int(stake["amount"]))
        return ledger

    @classmethod
    def from_seed_file(cls, path: str | Path, clock: Callable[[], float] = time.time) -> MemoryLedger:
        with open(path, encoding="utf-8") as f:
            return cls.from_seed(json.load(f), clock=clock)
