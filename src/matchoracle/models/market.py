"""Market and MarketPage - ledger-side entities as read by this engine."""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator


class Market(BaseModel):
    """A single proposition with enumerated outcomes and a staking pool.

    Amounts are integers in the smallest accounting unit. Timestamps are
    unix seconds, as the ledger stores them.
    """

    id: int
    name: str
    outcomes: list[str] = Field(..., min_length=2)
    creator: str = ""
    oracle: str
    prediction_deadline: int
    is_resolved: bool = False
    is_cancelled: bool = False
    winning_outcome: int = 0  # meaningful only when is_resolved
    pool_amounts: list[int] = Field(default_factory=list)
    resolved_timestamp: int = 0
    creation_timestamp: int = 0
    unclaimed_winnings_collected: bool = False

    @model_validator(mode="after")
    def _check_state(self) -> Market:
        if self.is_resolved and self.is_cancelled:
            raise ValueError("market cannot be both resolved and cancelled")
        if not self.pool_amounts:
            self.pool_amounts = [0] * len(self.outcomes)
        if len(self.pool_amounts) != len(self.outcomes):
            raise ValueError("pool_amounts must align with outcomes")
        return self

    @property
    def total_pool_amount(self) -> int:
        return sum(self.pool_amounts)

    @property
    def is_terminal(self) -> bool:
        return self.is_resolved or self.is_cancelled

    def is_open_at(self, now: float) -> bool:
        """Accepting stakes: not terminal and before its own deadline."""
        return not self.is_terminal and now < self.prediction_deadline

    def is_oracle(self, identity: str) -> bool:
        return self.oracle.lower() == identity.lower()


class MarketPage(BaseModel):
    """One page of the ledger's market listing."""

    total_markets: int
    markets: list[Market] = Field(default_factory=list)
