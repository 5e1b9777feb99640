"""Ledger interface and the in-process reference ledger."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

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
    iter_markets,
    list_all_markets,
)
from matchoracle.ledger.memory import MemoryLedger

if TYPE_CHECKING:
    from matchoracle.config import Settings

__all__ = [
    "AlreadyClaimed",
    "AlreadyFinalized",
    "BettingClosed",
    "DeadlineNotReached",
    "InvalidAmount",
    "InvalidOutcome",
    "Ledger",
    "LedgerError",
    "MarketNotFound",
    "MemoryLedger",
    "NotAuthorized",
    "NotFinalized",
    "NothingToClaim",
    "NotOracle",
    "build_ledger",
    "iter_markets",
    "list_all_markets",
]

log = structlog.get_logger(__name__)


def build_ledger(settings: Settings) -> Ledger:
    """Ledger for this process: the reference ledger, seeded from config when a seed file exists."""
    seed_path = settings.ledger_seed_path
    if seed_path:
        try:
            return MemoryLedger.from_seed_file(seed_path)
        except FileNotFoundError:
            log.warning("ledger_seed_missing", path=seed_path)
    return MemoryLedger()
