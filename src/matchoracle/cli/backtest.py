"""Backtest subcommand: run, report, list."""

from __future__ import annotations

import asyncio

import typer

from matchoracle.config import ConfigError
from matchoracle.decision import build_strategy
from matchoracle.ledger import build_ledger
from matchoracle.matchdata.opendota import OpenDotaClient
from matchoracle.oracle.backtest import BacktestResult, run_backtest
from matchoracle.storage.backtests import get_backtest, list_backtests, save_backtest
from matchoracle.storage.db import get_connection, init_schema

app = typer.Typer(help="Replay resolved markets through a decision strategy")


def _print_summary(result: BacktestResult) -> None:
    typer.echo(f"Run: {result.run_id}  Strategy: {result.strategy_name}")
    typer.echo(f"Correct: {result.correct}/{result.total}  Failed: {result.failed}  Accuracy: {result.accuracy * 100:.1f}%")


@app.command("run")
def run_bt(
    ctx: typer.Context,
    strategy: str | None = typer.Option(None, "--strategy", "-s", help="rules or llm (default: oracle.strategy)"),
) -> None:
    """Compare strategy verdicts with recorded outcomes and save the run."""
    settings = ctx.obj["settings"]
    try:
        strat = build_strategy(settings, strategy)
    except ConfigError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(1)
    ledger = build_ledger(settings)

    async def main() -> BacktestResult:
        client = OpenDotaClient(settings.opendota_base_url, settings.match_data_timeout_sec)
        try:
            return await run_backtest(ledger, client, strat, page_size=settings.page_size)
        finally:
            await client.close()
            await strat.close()

    result = asyncio.run(main())
    conn = get_connection(settings.db_path)
    init_schema(conn)
    try:
        save_backtest(conn, result)
    finally:
        conn.close()
    _print_summary(result)


@app.command("report")
def report(
    ctx: typer.Context,
    run_id: str = typer.Option(..., "--run-id", help="Backtest run ID"),
) -> None:
    """Show per-market rows of a backtest run."""
    settings = ctx.obj["settings"]
    conn = get_connection(settings.db_path)
    init_schema(conn)
    try:
        result = get_backtest(conn, run_id)
        if not result:
            typer.echo(f"Run not found: {run_id}")
            raise typer.Exit(1)
        _print_summary(result)
        for row in result.rows:
            mark = "?" if row.correct is None else ("ok" if row.correct else "MISS")
            predicted = "-" if row.predicted_outcome is None else row.predicted_outcome
            typer.echo(
                f"  {row.market_id:<6} {mark:<4} recorded={row.recorded_outcome} predicted={predicted}  "
                f"{row.question[:50]}  {row.detail[:60]}"
            )
    finally:
        conn.close()


@app.command("list")
def list_runs(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", "-n", help="Max runs to show"),
) -> None:
    """List recent backtest runs."""
    settings = ctx.obj["settings"]
    conn = get_connection(settings.db_path)
    init_schema(conn)
    try:
        runs = list_backtests(conn, limit=limit)
    finally:
        conn.close()
    if not runs:
        typer.echo("No backtest runs.")
        return
    for r in runs:
        typer.echo(f"{r['run_id']}  {r['strategy_name']:<6} {r['correct']}/{r['total']} failed={r['failed']}")
