"""Pari-mutuel accounting: pure functions over pool state, no I/O.

All amounts are integers in the smallest accounting unit (e.g. 1e-6 USDC).
Payouts truncate toward zero, so the sum of every claim against a pool can
never exceed that pool; the residual stays unclaimed.
"""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Sequence

DEFAULT_DECIMALS = 6


def _check_index(pool_amounts: Sequence[int], outcome_index: int) -> None:
    if not 0 <= outcome_index < len(pool_amounts):
        raise ValueError(f"outcome index {outcome_index} out of range for {len(pool_amounts)} outcomes")


def _check_amount(amount: int, what: str) -> None:
    if amount < 0:
        raise ValueError(f"{what} must be non-negative, got {amount}")


def total_pool(pool_amounts: Sequence[int]) -> int:
    return sum(pool_amounts)


def implied_probability(pool_amounts: Sequence[int], outcome_index: int) -> float:
    """Share of the pool staked on outcome_index, in [0, 1]. 0 for an empty pool."""
    _check_index(pool_amounts, outcome_index)
    total = total_pool(pool_amounts)
    if total == 0:
        return 0.0
    return pool_amounts[outcome_index] / total


def display_percentages(pool_amounts: Sequence[int]) -> list[float]:
    """Per-outcome percentages for display; an empty pool shows an equal split."""
    n = len(pool_amounts)
    if n == 0:
        return []
    if total_pool(pool_amounts) == 0:
        return [100.0 / n] * n
    return [implied_probability(pool_amounts, i) * 100.0 for i in range(n)]


def payout_multiplier(pool_amounts: Sequence[int], outcome_index: int, stake: int) -> float:
    """Marginal multiplier a new stake on outcome_index would receive if it wins.

    (total + stake) / (outcome_pool + stake), computed before the trade.
    Returns 0.0 when both the outcome pool and the stake are zero.
    """
    _check_index(pool_amounts, outcome_index)
    _check_amount(stake, "stake")
    denominator = pool_amounts[outcome_index] + stake
    if denominator == 0:
        return 0.0
    return (total_pool(pool_amounts) + stake) / denominator


def projected_payout(pool_amounts: Sequence[int], outcome_index: int, stake: int) -> int:
    """Units a new stake would pay out if outcome_index wins and no one else stakes."""
    _check_index(pool_amounts, outcome_index)
    _check_amount(stake, "stake")
    denominator = pool_amounts[outcome_index] + stake
    if denominator == 0:
        return 0
    return stake * (total_pool(pool_amounts) + stake) // denominator


def claim_amount(frozen_pool_amounts: Sequence[int], winning_outcome: int, user_stake: int) -> int:
    """Pro-rata share of the pool frozen at resolution for a winning stake.

    user_stake / pool[winning] * total, truncated toward zero. Callers must
    pass the pool as it stood when the market resolved, never live values.
    """
    _check_index(frozen_pool_amounts, winning_outcome)
    _check_amount(user_stake, "user_stake")
    winning_pool = frozen_pool_amounts[winning_outcome]
    if user_stake == 0 or winning_pool == 0:
        return 0
    if user_stake > winning_pool:
        raise ValueError("user_stake exceeds the winning pool")
    return user_stake * total_pool(frozen_pool_amounts) // winning_pool


def refund_amount(user_stakes: Sequence[int]) -> int:
    """Cancelled market: every stake is returned in full."""
    for amount in user_stakes:
        _check_amount(amount, "stake")
    return sum(user_stakes)


def to_units(amount: Decimal | str | int | float, decimals: int = DEFAULT_DECIMALS) -> int:
    """Decimal display amount -> integer units, truncating sub-unit dust."""
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise ValueError(f"not a decimal amount: {amount!r}") from None
    if not value.is_finite():
        raise ValueError(f"not a finite amount: {amount!r}")
    scaled = (value * (Decimal(10) ** decimals)).quantize(Decimal(1), rounding=ROUND_DOWN)
    return int(scaled)


def from_units(units: int, decimals: int = DEFAULT_DECIMALS) -> Decimal:
    """Integer units -> Decimal display amount."""
    return Decimal(units) / (Decimal(10) ** decimals)
