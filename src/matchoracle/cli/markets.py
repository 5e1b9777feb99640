"""Markets subcommand: list, threads, quote."""

from __future__ import annotations

import asyncio
import time

import typer

from matchoracle.accounting.parimutuel import (
    display_percentages,
    from_units,
    implied_probability,
    payout_multiplier,
    projected_payout,
    to_units,
)
from matchoracle.ledger import MarketNotFound, build_ledger, list_all_markets
from matchoracle.markets.naming import market_question
from matchoracle.markets.threads import build_threads

app = typer.Typer(help="Market listing, event threads and quotes")


def _state(market, now: float) -> str:
    if market.is_cancelled:
        return "cancelled"
    if market.is_resolved:
        return f"resolved:{market.winning_outcome}"
    return "open" if market.is_open_at(now) else "closed"


@app.command("list")
def list_markets(
    ctx: typer.Context,
    unresolved: bool = typer.Option(False, "--unresolved", help="Hide resolved and cancelled markets"),
) -> None:
    """List markets on the ledger."""
    ledger = build_ledger(ctx.obj["settings"])
    markets = asyncio.run(list_all_markets(ledger))
    if unresolved:
        markets = [m for m in markets if not m.is_terminal]
    if not markets:
        typer.echo("No markets.")
        return
    now = time.time()
    for m in markets:
        pool = from_units(m.total_pool_amount)
        typer.echo(f"{m.id:<6} {_state(m, now):<12} pool={pool:<12} {m.name[:70]}")


@app.command("threads")
def threads(
    ctx: typer.Context,
    open_only: bool = typer.Option(False, "--open", help="Only threads still taking stakes"),
) -> None:
    """Show markets grouped by event, newest first."""
    ledger = build_ledger(ctx.obj["settings"])
    now = time.time()
    found = [t for t in build_threads(asyncio.run(list_all_markets(ledger))) if not open_only or t.is_open(now)]
    if not found:
        typer.echo("No threads.")
        return
    for t in found:
        typer.echo(f"{t.key}  {t.title}  pool={from_units(t.total_pool)}")
        if t.stream_url:
            typer.echo(f"    stream: {t.stream_url}")
        for m in t.markets:
            pcts = display_percentages(m.pool_amounts)
            odds = "  ".join(f"{label} {p:.1f}%" for label, p in zip(m.outcomes, pcts))
            typer.echo(f"    [{m.id}] {market_question(m.name)}  ({_state(m, now)})  {odds}")


@app.command("quote")
def quote(
    ctx: typer.Context,
    market_id: int = typer.Argument(..., help="Market ID"),
    outcome: int = typer.Option(..., "--outcome", "-o", help="Outcome index"),
    stake: str = typer.Option("1", "--stake", help="Stake in whole tokens (e.g. 2.5)"),
) -> None:
    """Pre-trade multiplier and projected payout for a stake."""
    ledger = build_ledger(ctx.obj["settings"])
    try:
        market = asyncio.run(ledger.get_market(market_id))
    except MarketNotFound:
        typer.echo(f"Market not found: {market_id}")
        raise typer.Exit(1)
    if not 0 <= outcome < len(market.outcomes):
        typer.echo(f"Outcome {outcome} out of range (0..{len(market.outcomes) - 1})")
        raise typer.Exit(1)
    try:
        units = to_units(stake)
    except ValueError as e:
        typer.echo(f"Invalid stake: {e}")
        raise typer.Exit(1)
    pools = market.pool_amounts
    typer.echo(f"Market {market.id}: {market_question(market.name)}")
    typer.echo(f"Outcome: {market.outcomes[outcome]}  Implied: {implied_probability(pools, outcome) * 100:.1f}%")
    typer.echo(f"Multiplier: {payout_multiplier(pools, outcome, units):.2f}x")
    typer.echo(f"Projected payout: {from_units(projected_payout(pools, outcome, units))}")
