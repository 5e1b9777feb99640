"""Decision strategy protocol - one capability, one method."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

from matchoracle.models import EventRecord


@dataclass(frozen=True)
class Verdict:
    """Winning outcome index plus a human-readable rationale."""

    outcome_index: int
    rationale: str


@dataclass(frozen=True)
class Undecidable:
    """No rule applies, or the event lacks the data the rule needs."""

    reason: str


@dataclass(frozen=True)
class Unavailable:
    """Adviser errored or returned output that failed validation."""

    reason: str


NoVerdict = Undecidable | Unavailable
DecisionResult = Verdict | Undecidable | Unavailable


class DecisionStrategy(ABC):
    """Maps (question, outcome labels, finished event) to a verdict.

    A deployment holds exactly one strategy. Anything other than a Verdict
    means "skip this market this cycle"; strategies never invent a default.
    """

    name: str = ""

    @abstractmethod
    async def decide(
        self,
        question: str,
        labels: Sequence[str],
        event: EventRecord,
    ) -> DecisionResult:
        ...

    async def close(self) -> None:
        """Release network resources, if any."""
        pass
