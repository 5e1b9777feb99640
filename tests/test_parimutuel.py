"""Pari-mutuel accounting tests."""

from decimal import Decimal

import pytest

from matchoracle.accounting.parimutuel import (
    claim_amount,
    display_percentages,
    from_units,
    implied_probability,
    payout_multiplier,
    projected_payout,
    refund_amount,
    to_units,
    total_pool,
)


def test_claim_amount_truncates():
    assert claim_amount([70, 30], 0, 10) == 14
    pools = [to_units(70), to_units(30)]
    assert claim_amount(pools, 0, to_units(10)) == 14_285_714


def test_claims_never_exceed_pool():
    pools = [70, 30]
    stakes = [10, 25, 35]
    assert sum(stakes) == pools[0]
    payouts = [claim_amount(pools, 0, s) for s in stakes]
    assert payouts == [14, 35, 50]
    assert sum(payouts) <= total_pool(pools)


def test_claim_amount_zero_cases():
    assert claim_amount([0, 30], 0, 0) == 0
    assert claim_amount([70, 30], 1, 0) == 0


def test_claim_amount_rejects_stake_above_pool():
    with pytest.raises(ValueError):
        claim_amount([70, 30], 1, 31)


def test_refund_amount():
    assert refund_amount([5, 0, 7]) == 12
    with pytest.raises(ValueError):
        refund_amount([5, -1])


def test_implied_probability_and_percentages():
    assert implied_probability([70, 30], 0) == pytest.approx(0.7)
    assert implied_probability([0, 0], 1) == 0.0
    assert display_percentages([70, 30]) == pytest.approx([70.0, 30.0])
    assert display_percentages([0, 0, 0]) == pytest.approx([100 / 3] * 3)


def test_implied_probability_bad_index():
    with pytest.raises(ValueError):
        implied_probability([1, 2], 2)


def test_payout_multiplier_includes_own_stake():
    assert payout_multiplier([70, 30], 1, 10) == pytest.approx(110 / 40)
    assert payout_multiplier([70, 30], 0, 0) == pytest.approx(100 / 70)
    assert payout_multiplier([0, 0], 0, 0) == 0.0


def test_projected_payout():
    assert projected_payout([70, 30], 1, 10) == 10 * 110 // 40


def test_unit_conversion():
    assert to_units("1.5") == 1_500_000
    assert to_units("0.0000019") == 1
    assert from_units(14_285_714) == Decimal("14.285714")
    with pytest.raises(ValueError):
        to_units("abc")
