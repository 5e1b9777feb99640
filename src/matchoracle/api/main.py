"""FastAPI read API: markets, quotes and threads over the ledger."""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from matchoracle.accounting.parimutuel import (
    display_percentages,
    implied_probability,
    payout_multiplier,
    projected_payout,
)
from matchoracle.api.schemas import (
    HealthResponse,
    MarketsListResponse,
    MarketView,
    OracleStatusResponse,
    OutcomeView,
    QuoteResponse,
    ThreadsListResponse,
    ThreadView,
)
from matchoracle.config import get_settings
from matchoracle.ledger import Ledger, MarketNotFound, build_ledger, list_all_markets
from matchoracle.markets.naming import EventName, embed_url, parse_market_name
from matchoracle.markets.threads import Thread, build_threads
from matchoracle.models import Market

# Set by run_api() so lifespan can start the oracle loop in the same process.
_run_with_oracle = False
_config_profile: str | None = None
_embed_parent = "localhost"


def _build_ledger() -> Ledger:
    return build_ledger(get_settings(_config_profile))


@asynccontextmanager
async def lifespan(app: FastAPI):
    if getattr(app.state, "ledger", None) is None:
        app.state.ledger = _build_ledger()
    app.state.scheduler = None

    oracle_task = None
    oracle_stop = None
    closers = []
    if _run_with_oracle:
        from matchoracle.cli.oracle import build_scheduler

        settings = get_settings(_config_profile)
        scheduler, closers = build_scheduler(settings, app.state.ledger)
        app.state.scheduler = scheduler
        oracle_stop = asyncio.Event()
        oracle_task = asyncio.create_task(scheduler.run(stop_event=oracle_stop))

    yield

    if oracle_task is not None and oracle_stop is not None:
        oracle_stop.set()
        await oracle_task
        for close in closers:
            await close()


app = FastAPI(title="MatchOracle API", version="0.1.0", lifespan=lifespan)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])


def _get_ledger() -> Ledger:
    ledger = getattr(app.state, "ledger", None)
    if ledger is None:
        ledger = app.state.ledger = _build_ledger()
    return ledger


def _error_json(code: str, message: str, status_code: int = 404) -> JSONResponse:
    """Return consistent error JSON: { detail, code }."""
    return JSONResponse(
        status_code=status_code,
        content={"detail": message, "code": code},
    )


def _status(market: Market, now: float) -> str:
    if market.is_cancelled:
        return "cancelled"
    if market.is_resolved:
        return "resolved"
    return "open" if market.is_open_at(now) else "closed"


def market_view(market: Market, now: float) -> MarketView:
    parsed = parse_market_name(market.name)
    percents = display_percentages(market.pool_amounts)
    stream = parsed.stream_url if isinstance(parsed, EventName) else None
    return MarketView(
        id=market.id,
        name=market.name,
        subject=parsed.subject if isinstance(parsed, EventName) else None,
        event_id=parsed.event_id if isinstance(parsed, EventName) else None,
        question=parsed.question,
        stream_url=stream,
        embed_url=embed_url(stream, _embed_parent) if stream else None,
        outcomes=[
            OutcomeView(index=i, label=label, pool=market.pool_amounts[i], percent=round(percents[i], 2))
            for i, label in enumerate(market.outcomes)
        ],
        total_pool=market.total_pool_amount,
        oracle=market.oracle,
        prediction_deadline=market.prediction_deadline,
        status=_status(market, now),
        winning_outcome=market.winning_outcome if market.is_resolved else None,
        creation_timestamp=market.creation_timestamp,
    )


def thread_view(thread: Thread, now: float) -> ThreadView:
    return ThreadView(
        key=thread.key,
        title=thread.title,
        event_id=thread.event_id,
        stream_url=thread.stream_url,
        embed_url=embed_url(thread.stream_url, _embed_parent) if thread.stream_url else None,
        is_open=thread.is_open(now),
        total_pool=thread.total_pool,
        created_at=thread.created_at,
        markets=[market_view(m, now) for m in thread.markets],
    )


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="ok")


@app.get("/markets", response_model=MarketsListResponse)
async def markets_list(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
) -> MarketsListResponse:
    """List markets with optional limit/offset."""
    page = await _get_ledger().list_markets(offset=offset, limit=limit)
    now = time.time()
    return MarketsListResponse(markets=[market_view(m, now) for m in page.markets], total=page.total_markets)


@app.get("/markets/{market_id}", response_model=MarketView)
async def market_detail(market_id: int):
    try:
        market = await _get_ledger().get_market(market_id)
    except MarketNotFound:
        return _error_json("not_found", f"Market {market_id} not found")
    return market_view(market, time.time())


@app.get("/markets/{market_id}/quote", response_model=QuoteResponse)
async def market_quote(
    market_id: int,
    outcome: int = Query(..., ge=0, description="Outcome index"),
    stake: int = Query(..., ge=0, description="Stake in accounting units"),
):
    """Pre-trade pari-mutuel multiplier for a prospective stake."""
    try:
        market = await _get_ledger().get_market(market_id)
    except MarketNotFound:
        return _error_json("not_found", f"Market {market_id} not found")
    if outcome >= len(market.outcomes):
        return _error_json("invalid_outcome", f"Outcome {outcome} out of range", status_code=400)
    return QuoteResponse(
        market_id=market_id,
        outcome_index=outcome,
        stake=stake,
        implied_probability=implied_probability(market.pool_amounts, outcome),
        multiplier=payout_multiplier(market.pool_amounts, outcome, stake),
        projected_payout=projected_payout(market.pool_amounts, outcome, stake),
    )


@app.get("/threads", response_model=ThreadsListResponse)
async def threads_list(open_only: bool = False) -> ThreadsListResponse:
    """Markets grouped by event, newest thread first."""
    markets = await list_all_markets(_get_ledger())
    now = time.time()
    threads = [t for t in build_threads(markets) if not open_only or t.is_open(now)]
    return ThreadsListResponse(threads=[thread_view(t, now) for t in threads], total=len(threads))


@app.get("/threads/{key}", response_model=ThreadView)
async def thread_detail(key: str):
    markets = await list_all_markets(_get_ledger())
    for thread in build_threads(markets):
        if thread.key == key:
            return thread_view(thread, time.time())
    return _error_json("not_found", f"Thread {key} not found")


@app.get("/oracle/status", response_model=OracleStatusResponse)
def oracle_status() -> OracleStatusResponse:
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler is None:
        return OracleStatusResponse(running=False)
    return OracleStatusResponse(running=True, **scheduler.get_status())


def run_api(
    host: str = "127.0.0.1",
    port: int = 8000,
    with_oracle: bool = False,
    profile: str | None = None,
    embed_parent: str = "localhost",
) -> None:
    global _run_with_oracle, _config_profile, _embed_parent
    _run_with_oracle = with_oracle
    _config_profile = profile
    _embed_parent = embed_parent
    import uvicorn

    uvicorn.run("matchoracle.api.main:app", host=host, port=port, reload=False)
