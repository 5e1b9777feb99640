"""In-process ledger tests: lifecycle guards and payouts."""

import asyncio

import pytest

from matchoracle.accounting.parimutuel import to_units
from matchoracle.ledger import (
    AlreadyClaimed,
    AlreadyFinalized,
    BettingClosed,
    DeadlineNotReached,
    InvalidOutcome,
    MarketNotFound,
    MemoryLedger,
    NotAuthorized,
    NotFinalized,
    NothingToClaim,
    NotOracle,
    list_all_markets,
)

ORACLE = "0xAbC0000000000000000000000000000000000001"
CREATOR = "0xcreator"


class Clock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _ledger_with_market(clock: Clock) -> tuple[MemoryLedger, int]:
    ledger = MemoryLedger(clock=clock)
    market_id = asyncio.run(
        ledger.create_market(CREATOR, "Topson [1]: Which team wins?", ["Radiant", "Dire"], 600, ORACLE, 0, 60)
    )
    return ledger, market_id


def test_create_and_stake():
    clock = Clock()
    ledger, market_id = _ledger_with_market(clock)

    async def go():
        await ledger.place_stake("alice", market_id, 0, 10)
        await ledger.place_stake("bob", market_id, 1, 30)
        return await ledger.get_market(market_id), await ledger.get_stake(market_id, "ALICE", 0)

    market, alice_stake = asyncio.run(go())
    assert market_id == 0
    assert market.pool_amounts == [70, 30]
    assert market.prediction_deadline == 1_600
    assert market.creation_timestamp == 1_000
    assert alice_stake == 10


def test_reads_return_copies():
    clock = Clock()
    ledger, market_id = _ledger_with_market(clock)
    market = asyncio.run(ledger.get_market(market_id))
    market.pool_amounts[0] = 999
    assert asyncio.run(ledger.get_pool_amount(market_id, 0)) == 60


def test_stake_after_deadline_rejected():
    clock = Clock()
    ledger, market_id = _ledger_with_market(clock)
    clock.now = 1_600
    with pytest.raises(BettingClosed):
        asyncio.run(ledger.place_stake("alice", market_id, 0, 10))


def test_resolve_guards():
    clock = Clock()
    ledger, market_id = _ledger_with_market(clock)
    with pytest.raises(NotOracle):
        asyncio.run(ledger.resolve("0xsomeoneelse", market_id, 0))
    with pytest.raises(DeadlineNotReached):
        asyncio.run(ledger.resolve(ORACLE, market_id, 0))
    clock.now = 1_600
    with pytest.raises(InvalidOutcome):
        asyncio.run(ledger.resolve(ORACLE, market_id, 2))
    with pytest.raises(MarketNotFound):
        asyncio.run(ledger.resolve(ORACLE, 42, 0))


def test_resolve_is_final():
    clock = Clock()
    ledger, market_id = _ledger_with_market(clock)
    clock.now = 2_000
    asyncio.run(ledger.resolve(ORACLE.lower(), market_id, 1))
    with pytest.raises(AlreadyFinalized):
        asyncio.run(ledger.resolve(ORACLE, market_id, 0))
    market = asyncio.run(ledger.get_market(market_id))
    assert market.is_resolved
    assert market.winning_outcome == 1
    assert market.resolved_timestamp == 2_000
    assert ledger.resolve_calls == 2


def test_claim_uses_frozen_pool():
    clock = Clock()
    ledger = MemoryLedger(clock=clock)

    async def go():
        market_id = await ledger.create_market(
            CREATOR, "Topson [1]: Which team wins?", ["Radiant", "Dire"], 600, ORACLE, 0, to_units(60)
        )
        await ledger.place_stake("alice", market_id, 0, to_units(10))
        await ledger.place_stake("bob", market_id, 1, to_units(30))
        clock.now = 1_700
        await ledger.resolve(ORACLE, market_id, 0)
        with pytest.raises(NothingToClaim):
            await ledger.claim_payout("bob", market_id)
        alice = await ledger.claim_payout("alice", market_id)
        creator = await ledger.claim_payout(CREATOR, market_id)
        with pytest.raises(AlreadyClaimed):
            await ledger.claim_payout("alice", market_id)
        return alice, creator, await ledger.has_claimed(market_id, "Alice")

    alice, creator, claimed = asyncio.run(go())
    assert alice == 14_285_714
    assert creator == 85_714_285
    assert alice + creator <= to_units(100)
    assert claimed


def test_claim_before_resolution():
    clock = Clock()
    ledger, market_id = _ledger_with_market(clock)
    with pytest.raises(NotFinalized):
        asyncio.run(ledger.claim_payout(CREATOR, market_id))


def test_cancel_refunds_everything():
    clock = Clock()
    ledger, market_id = _ledger_with_market(clock)

    async def go():
        await ledger.place_stake("alice", market_id, 1, 25)
        with pytest.raises(NotAuthorized):
            await ledger.cancel_market("alice", market_id)
        await ledger.cancel_market(CREATOR, market_id)
        with pytest.raises(AlreadyFinalized):
            await ledger.resolve(ORACLE, market_id, 0)
        return await ledger.claim_payout("alice", market_id)

    assert asyncio.run(go()) == 25


def test_from_seed_and_pagination():
    seed = {
        "markets": [
            {
                "name": f"Match {i}: Who wins?",
                "outcomes": ["Radiant", "Dire"],
                "creator": CREATOR,
                "oracle": ORACLE,
                "seed_amount": 5,
                "stakes": [{"user": "alice", "outcome_index": 1, "amount": 3}],
            }
            for i in range(5)
        ]
    }
    ledger = MemoryLedger.from_seed(seed, clock=Clock())

    async def go():
        page = await ledger.list_markets(offset=2, limit=2)
        everything = await list_all_markets(ledger, page_size=2)
        return page, everything

    page, everything = asyncio.run(go())
    assert page.total_markets == 5
    assert [m.id for m in page.markets] == [2, 3]
    assert [m.id for m in everything] == [0, 1, 2, 3, 4]
    assert everything[0].pool_amounts == [5, 3]
