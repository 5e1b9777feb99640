"""Outcome decision strategies: deterministic rules or an LLM adviser."""

from __future__ import annotations

from typing import TYPE_CHECKING

from matchoracle.decision.base import (
    DecisionResult,
    DecisionStrategy,
    NoVerdict,
    Unavailable,
    Undecidable,
    Verdict,
)
from matchoracle.decision.llm import LLMAdviser
from matchoracle.decision.rules import RuleEngine

from matchoracle.config.settings import ConfigError

if TYPE_CHECKING:
    from matchoracle.config import Settings

__all__ = [
    "DecisionResult",
    "DecisionStrategy",
    "LLMAdviser",
    "NoVerdict",
    "RuleEngine",
    "Unavailable",
    "Undecidable",
    "Verdict",
    "build_strategy",
]


def build_strategy(settings: Settings, name: str | None = None) -> DecisionStrategy:
    """Construct the single strategy a deployment uses."""
    name = (name or settings.strategy).lower()
    if name == "rules":
        return RuleEngine()
    if name == "llm":
        if not settings.adviser_api_key:
            raise ConfigError("adviser API key is not set; required for the llm strategy")
        return LLMAdviser(
            api_key=settings.adviser_api_key,
            endpoint=settings.adviser_endpoint,
            model=settings.adviser_model,
            max_tokens=settings.adviser_max_tokens,
            timeout=settings.adviser_timeout_sec,
        )
    raise ConfigError(f"Unknown strategy: {name}")
