"""Rule engine tests."""

import asyncio

import pytest

from matchoracle.decision import RuleEngine, Undecidable, Verdict
from matchoracle.decision.rules import evaluate, match_rule, parse_minutes
from matchoracle.models import EventRecord, Objective, Side

KILL_LABELS = ["10+", "30+", "50+", "100+", "150+"]


def _event(**kwargs) -> EventRecord:
    base = dict(match_id="1", duration=2400, radiant_score=20, dire_score=10, radiant_win=True, first_blood_time=100)
    base.update(kwargs)
    return EventRecord(**base)


@pytest.mark.parametrize("fb_time,expected", [(240, 0), (360, 1), (300, 1)])
def test_first_blood_threshold(fb_time, expected):
    result = evaluate("First blood before 5 minutes?", ["Yes", "No"], _event(first_blood_time=fb_time))
    assert isinstance(result, Verdict)
    assert result.outcome_index == expected
    assert result.rationale.startswith("first_blood:")


def test_first_blood_missing_time_is_undecidable():
    result = evaluate("First blood before 5 minutes?", ["Yes", "No"], _event(first_blood_time=None))
    assert isinstance(result, Undecidable)


@pytest.mark.parametrize("kills,expected", [(62, 2), (9, 0), (10, 0), (30, 1), (150, 4), (149, 3)])
def test_total_kills_picks_highest_satisfied_threshold(kills, expected):
    result = evaluate("Total kills in the match?", KILL_LABELS, _event(radiant_score=kills, dire_score=0))
    assert isinstance(result, Verdict)
    assert result.outcome_index == expected


def test_total_kills_sums_both_sides():
    result = evaluate("Total kills?", KILL_LABELS, _event(radiant_score=35, dire_score=27))
    assert result.outcome_index == 2


def test_total_kills_unparseable_labels():
    result = evaluate("Total kills?", ["lots", "few"], _event())
    assert isinstance(result, Undecidable)


@pytest.mark.parametrize("duration_min,expected", [(38, 0), (45, 1), (52, 1)])
def test_duration_rule(duration_min, expected):
    result = evaluate("Game ends before 45 minutes?", ["Yes", "No"], _event(duration=duration_min * 60))
    assert result.outcome_index == expected


def test_duration_rule_with_before_and_minutes():
    result = evaluate("Over before 30 minutes?", ["Yes", "No"], _event(duration=29 * 60))
    assert result.outcome_index == 0


def test_winner_rule():
    assert evaluate("Which team wins?", ["Radiant", "Dire"], _event(radiant_win=True)).outcome_index == 0
    assert evaluate("Who wins the game?", ["Radiant", "Dire"], _event(radiant_win=False)).outcome_index == 1


def test_first_tower_uses_earliest_tower_side():
    event = _event(
        radiant_win=True,
        objectives=(
            Objective(time=1100, type="building_kill", key="npc_dota_badguys_tower1_bot", side=Side.RADIANT),
            Objective(time=900, type="building_kill", key="npc_dota_goodguys_tower1_mid", side=Side.DIRE),
            Objective(time=500, type="building_kill", key="npc_dota_goodguys_rax_melee_mid", side=Side.RADIANT),
        ),
    )
    result = evaluate("Which team takes first tower?", ["Radiant", "Dire"], event)
    assert isinstance(result, Verdict)
    assert result.outcome_index == 1


def test_first_tower_falls_back_to_winner():
    result = evaluate("First tower?", ["Radiant", "Dire"], _event(radiant_win=False))
    assert result.outcome_index == 1
    assert "proxy" in result.rationale


def test_priority_first_blood_over_duration():
    assert match_rule("First blood before 5 minutes?").name == "first_blood"


def test_priority_duration_over_winner():
    assert match_rule("Who wins before 30 minutes?").name == "duration"


def test_priority_first_tower_over_winner():
    assert match_rule("Which team wins first tower?").name == "first_tower"


def test_claimed_rule_never_falls_through():
    # first_blood claims the question; a winner answer must not be substituted
    result = evaluate("First blood: which team wins?", ["Yes", "No"], _event(first_blood_time=None))
    assert isinstance(result, Undecidable)
    assert result.reason.startswith("first_blood:")


def test_boolean_rules_require_two_labels():
    result = evaluate("Which team wins?", ["Radiant", "Dire", "Draw"], _event())
    assert isinstance(result, Undecidable)


def test_no_matching_rule():
    result = evaluate("Will Topson pick Monkey King?", ["Yes", "No"], _event())
    assert isinstance(result, Undecidable)


def test_parse_minutes():
    assert parse_minutes("Game ends before 32.5 minutes?", 45) == 32.5
    assert parse_minutes("first blood before 3 min", 5) == 3
    assert parse_minutes("First blood early?", 5) == 5


def test_rule_engine_is_deterministic(finished_event):
    engine = RuleEngine()

    async def decide_twice():
        a = await engine.decide("Total kills?", KILL_LABELS, finished_event)
        b = await engine.decide("Total kills?", KILL_LABELS, finished_event)
        return a, b

    first, second = asyncio.run(decide_twice())
    assert first == second
    assert first.outcome_index == 2


def test_first_tower_without_side_is_undecidable():
    event = _event(
        objectives=(
            Objective(time=600, type="building_kill", key="npc_dota_goodguys_tower1_mid", side=None),
            Objective(time=900, type="building_kill", key="npc_dota_goodguys_tower1_top", side=Side.DIRE),
        ),
    )
    result = evaluate("Which team takes first tower?", ["Radiant", "Dire"], event)
    assert isinstance(result, Undecidable)
    assert "tower1_mid" in result.reason


@pytest.mark.parametrize("labels", [["10+", "3²+"], ["10+", "+"], ["10+", "٣٠+"]])
def test_total_kills_malformed_labels_are_undecidable(labels):
    result = evaluate("Total kills?", labels, _event())
    assert isinstance(result, Undecidable)


def test_total_kills_label_whitespace():
    result = evaluate("Total kills?", [" 10 + ", "30"], _event(radiant_score=31, dire_score=0))
    assert result.outcome_index == 1
