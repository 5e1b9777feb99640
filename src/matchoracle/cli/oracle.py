"""Oracle subcommand: run, once."""

from __future__ import annotations

import asyncio
import signal
import sys
from typing import Awaitable, Callable

import typer

from matchoracle.config import ConfigError, Settings, validate_oracle_settings
from matchoracle.decision import build_strategy
from matchoracle.ledger import Ledger, build_ledger
from matchoracle.matchdata.opendota import OpenDotaClient
from matchoracle.oracle.scheduler import CycleReport, ResolutionScheduler

app = typer.Typer(help="Run the market resolution loop")


def build_scheduler(
    settings: Settings, ledger: Ledger
) -> tuple[ResolutionScheduler, list[Callable[[], Awaitable[None]]]]:
    """Wire the scheduler from settings. Returns it with the close hooks of its clients."""
    match_data = OpenDotaClient(
        base_url=settings.opendota_base_url,
        timeout=settings.match_data_timeout_sec,
    )
    strategy = build_strategy(settings)
    scheduler = ResolutionScheduler(
        ledger,
        match_data,
        strategy,
        settings.oracle_address,
        poll_interval_sec=settings.poll_interval_sec,
        page_size=settings.page_size,
        max_concurrent_events=settings.max_concurrent_events,
        match_data_timeout_sec=settings.match_data_timeout_sec,
        adviser_timeout_sec=settings.adviser_timeout_sec,
        ledger_timeout_sec=settings.ledger_timeout_sec,
        not_found_stale_after_sec=settings.not_found_stale_after_sec,
        not_found_backoff_max_sec=settings.not_found_backoff_max_sec,
    )
    return scheduler, [match_data.close, strategy.close]


def _validated_settings(ctx: typer.Context, strategy: str | None) -> Settings:
    settings: Settings = ctx.obj["settings"]
    if strategy:
        settings.oracle["strategy"] = strategy
    try:
        validate_oracle_settings(settings)
    except ConfigError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(1)
    return settings


def print_report(report: CycleReport) -> None:
    if report.listing_failed:
        typer.echo("Market listing failed; see logs.")
        return
    typer.echo(f"Candidates: {report.candidates}  Resolved: {len(report.resolved)}")
    for r in report.results:
        event = r.event_id or "-"
        typer.echo(f"  market {r.market_id:<6} event {event:<12} {r.outcome.value:<20} {r.detail}")


@app.command("run")
def run(
    ctx: typer.Context,
    strategy: str | None = typer.Option(None, "--strategy", "-s", help="Override oracle.strategy (rules|llm)"),
) -> None:
    """Poll forever, resolving markets whose matches have finished (Ctrl+C to stop)."""
    settings = _validated_settings(ctx, strategy)
    ledger = build_ledger(settings)
    stop_event = asyncio.Event()

    async def main() -> None:
        scheduler, closers = build_scheduler(settings, ledger)
        try:
            await scheduler.run(stop_event=stop_event)
        finally:
            for close in closers:
                await close()
            await ledger.close()

    def shutdown() -> None:
        stop_event.set()

    loop = asyncio.new_event_loop()
    if sys.platform != "win32":
        loop.add_signal_handler(signal.SIGINT, shutdown)
        loop.add_signal_handler(signal.SIGTERM, shutdown)
    try:
        typer.echo(f"Oracle {settings.oracle_address} polling every {settings.poll_interval_sec:g}s (Ctrl+C to stop)...")
        loop.run_until_complete(main())
    except KeyboardInterrupt:
        pass
    finally:
        loop.close()
    typer.echo("Stopped.")


@app.command("once")
def once(
    ctx: typer.Context,
    strategy: str | None = typer.Option(None, "--strategy", "-s", help="Override oracle.strategy (rules|llm)"),
) -> None:
    """Run a single resolution cycle and print what happened to each market."""
    settings = _validated_settings(ctx, strategy)
    ledger = build_ledger(settings)

    async def main() -> CycleReport:
        scheduler, closers = build_scheduler(settings, ledger)
        try:
            report = await scheduler.run_cycle()
            await scheduler.drain_pending_writes()
            return report
        finally:
            for close in closers:
                await close()
            await ledger.close()

    print_report(asyncio.run(main()))
