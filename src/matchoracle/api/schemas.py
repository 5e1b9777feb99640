"""Pydantic schemas for API request/response consistency and OpenAPI docs."""

from __future__ import annotations

from pydantic import BaseModel, Field


# --- Health ---
class HealthResponse(BaseModel):
    status: str = "ok"


# --- Error (consistent shape for 4xx/5xx) ---
class ErrorResponse(BaseModel):
    detail: str = Field(..., description="Human-readable message")
    code: str | None = Field(None, description="Machine-readable code, e.g. not_found, invalid_outcome")


# --- Markets ---
class OutcomeView(BaseModel):
    index: int
    label: str
    pool: int = Field(..., description="Units staked on this outcome")
    percent: float = Field(..., description="Display share of the pool; equal split when empty")


class MarketView(BaseModel):
    id: int
    name: str
    subject: str | None = None
    event_id: str | None = None
    question: str
    stream_url: str | None = None
    embed_url: str | None = None
    outcomes: list[OutcomeView]
    total_pool: int
    oracle: str
    prediction_deadline: int
    status: str = Field(..., description="open, closed, resolved or cancelled")
    winning_outcome: int | None = None
    creation_timestamp: int = 0


class MarketsListResponse(BaseModel):
    markets: list[MarketView]
    total: int


class QuoteResponse(BaseModel):
    market_id: int
    outcome_index: int
    stake: int
    implied_probability: float
    multiplier: float = Field(..., description="(total + stake) / (outcome pool + stake)")
    projected_payout: int


# --- Threads ---
class ThreadView(BaseModel):
    key: str
    title: str
    event_id: str | None = None
    stream_url: str | None = None
    embed_url: str | None = None
    is_open: bool
    total_pool: int
    created_at: int
    markets: list[MarketView]


class ThreadsListResponse(BaseModel):
    threads: list[ThreadView]
    total: int


# --- Oracle ---
class OracleStatusResponse(BaseModel):
    running: bool
    identity: str | None = None
    strategy: str | None = None
    cycles: int = 0
    resolved: int = 0
