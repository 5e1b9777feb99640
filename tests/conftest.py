"""Shared fixtures: event records and market builders."""

from __future__ import annotations

import pytest

from matchoracle.models import EventRecord, Market, Objective, Side

ORACLE = "0xOracle00000000000000000000000000000000001"


def make_market(
    market_id: int,
    name: str,
    outcomes: list[str] | None = None,
    *,
    deadline: int = 1_000,
    pools: list[int] | None = None,
    created: int = 0,
    oracle: str = ORACLE,
    **kwargs,
) -> Market:
    outcomes = outcomes or ["Yes", "No"]
    return Market(
        id=market_id,
        name=name,
        outcomes=outcomes,
        oracle=oracle,
        prediction_deadline=deadline,
        pool_amounts=pools or [0] * len(outcomes),
        creation_timestamp=created,
        **kwargs,
    )


@pytest.fixture
def finished_event() -> EventRecord:
    """Radiant win at 38 minutes, 62 kills, first blood at 240s, dire takes the first tower."""
    return EventRecord(
        match_id="7913368966",
        duration=38 * 60,
        radiant_score=35,
        dire_score=27,
        radiant_win=True,
        first_blood_time=240,
        objectives=(
            Objective(time=240, type="CHAT_MESSAGE_FIRSTBLOOD", side=Side.RADIANT),
            Objective(time=900, type="building_kill", key="npc_dota_goodguys_tower1_mid", side=Side.DIRE),
            Objective(time=1100, type="building_kill", key="npc_dota_badguys_tower1_bot", side=Side.RADIANT),
        ),
    )
