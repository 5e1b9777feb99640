"""Canonical schema (Pydantic) - Market, EventRecord."""

from matchoracle.models.event import EventRecord, Objective, Side
from matchoracle.models.market import Market, MarketPage

__all__ = [
    "Market",
    "MarketPage",
    "EventRecord",
    "Objective",
    "Side",
]
