"""Deterministic keyword rule engine.

Rules are checked in a fixed priority order and the first rule whose
keywords appear in the (lower-cased) question decides. Once a rule has
claimed a question its answer is final, even if it is Undecidable; lower
rules are never consulted as a fallback.

Priority (most specific subject first):

1. first_blood  "first blood"
2. first_tower  "first tower"
3. total_kills  "total kills"
4. duration     "ends before", or "before" together with "minutes"
5. winner       "which team wins" / "who wins"

So "First blood before 5 minutes?" is a first-blood question, not a
duration question, and "Who wins before 30 minutes?" is a duration question.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Sequence

from matchoracle.decision.base import DecisionResult, DecisionStrategy, Undecidable, Verdict
from matchoracle.models import EventRecord

DEFAULT_FIRST_BLOOD_MINUTES = 5.0
DEFAULT_DURATION_MINUTES = 45.0

_BEFORE_MINUTES = re.compile(r"before\s+(\d+(?:\.\d+)?)\s*min")
_KILL_THRESHOLD = re.compile(r"\s*(\d+)\s*\+?\s*", re.ASCII)


def parse_minutes(question: str, default: float) -> float:
    """Threshold from ``before N minutes``; default when absent."""
    m = _BEFORE_MINUTES.search(question.lower())
    return float(m.group(1)) if m else default


def _require_binary(labels: Sequence[str]) -> Undecidable | None:
    if len(labels) != 2:
        return Undecidable(f"expected 2 outcomes, got {len(labels)}")
    return None


def _first_blood(q: str, labels: Sequence[str], event: EventRecord) -> DecisionResult:
    if err := _require_binary(labels):
        return err
    if event.first_blood_time is None:
        return Undecidable("event has no first blood time")
    minutes = parse_minutes(q, DEFAULT_FIRST_BLOOD_MINUTES)
    under = event.first_blood_time < minutes * 60
    return Verdict(
        0 if under else 1,
        f"first blood at {event.first_blood_time}s vs threshold {minutes:g}m",
    )


def _first_tower(q: str, labels: Sequence[str], event: EventRecord) -> DecisionResult:
    if err := _require_binary(labels):
        return err
    towers = event.tower_kills()
    if towers:
        first = towers[0]
        if first.side is None:
            return Undecidable(f"first tower {first.key} at {first.time}s has no side")
        return Verdict(
            first.side.outcome_index,
            f"first tower {first.key} at {first.time}s by {first.side.value}",
        )
    if event.radiant_win is None:
        return Undecidable("no tower kills and no winner recorded")
    return Verdict(
        0 if event.radiant_win else 1,
        "no tower kill recorded; using match winner as proxy",
    )


def _parse_threshold(label: str) -> int | None:
    m = _KILL_THRESHOLD.fullmatch(label)
    return int(m.group(1)) if m else None


def _total_kills(q: str, labels: Sequence[str], event: EventRecord) -> DecisionResult:
    thresholds = [_parse_threshold(label) for label in labels]
    if any(t is None for t in thresholds):
        return Undecidable(f"outcome labels are not kill thresholds: {list(labels)}")
    kills = event.total_kills
    # Highest satisfied threshold wins; scan high to low.
    for index in sorted(range(len(thresholds)), key=lambda i: (thresholds[i], i), reverse=True):
        if kills >= thresholds[index]:
            return Verdict(index, f"total kills {kills} >= {labels[index]}")
    return Verdict(0, f"total kills {kills} below every threshold; defaulting to {labels[0]}")


def _duration(q: str, labels: Sequence[str], event: EventRecord) -> DecisionResult:
    if err := _require_binary(labels):
        return err
    minutes = parse_minutes(q, DEFAULT_DURATION_MINUTES)
    under = event.duration_minutes < minutes
    return Verdict(
        0 if under else 1,
        f"duration {event.duration_minutes:.1f}m vs threshold {minutes:g}m",
    )


def _winner(q: str, labels: Sequence[str], event: EventRecord) -> DecisionResult:
    if err := _require_binary(labels):
        return err
    if event.radiant_win is None:
        return Undecidable("event has no winner")
    return Verdict(0 if event.radiant_win else 1, "radiant won" if event.radiant_win else "dire won")


@dataclass(frozen=True)
class Rule:
    name: str
    matches: Callable[[str], bool]
    apply: Callable[[str, Sequence[str], EventRecord], DecisionResult]


RULES: tuple[Rule, ...] = (
    Rule("first_blood", lambda q: "first blood" in q, _first_blood),
    Rule("first_tower", lambda q: "first tower" in q, _first_tower),
    Rule("total_kills", lambda q: "total kills" in q, _total_kills),
    Rule("duration", lambda q: "ends before" in q or ("before" in q and "minutes" in q), _duration),
    Rule("winner", lambda q: "which team wins" in q or "who wins" in q, _winner),
)


def match_rule(question: str, rules: Sequence[Rule] = RULES) -> Rule | None:
    q = question.lower()
    for rule in rules:
        if rule.matches(q):
            return rule
    return None


def evaluate(question: str, labels: Sequence[str], event: EventRecord, rules: Sequence[Rule] = RULES) -> DecisionResult:
    """Pure, synchronous rule evaluation."""
    rule = match_rule(question, rules)
    if rule is None:
        return Undecidable(f"no rule matches question {question!r}")
    result = rule.apply(question.lower(), labels, event)
    if isinstance(result, Verdict):
        return Verdict(result.outcome_index, f"{rule.name}: {result.rationale}")
    return Undecidable(f"{rule.name}: {result.reason}")


class RuleEngine(DecisionStrategy):
    """Deterministic keyword dispatch over the question text."""

    name = "rules"

    def __init__(self, rules: Sequence[Rule] = RULES) -> None:
        self.rules = tuple(rules)

    async def decide(self, question: str, labels: Sequence[str], event: EventRecord) -> DecisionResult:
        return evaluate(question, labels, event, self.rules)
