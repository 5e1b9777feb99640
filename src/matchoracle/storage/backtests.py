"""Backtest result persistence."""

from __future__ import annotations

from typing import TYPE_CHECKING

from matchoracle.oracle.backtest import BacktestResult, BacktestRow

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection


def save_backtest(conn: DuckDBPyConnection, result: BacktestResult) -> None:
    """Persist a BacktestResult and its rows."""
    conn.execute(
        """
        INSERT INTO backtest_runs (run_id, strategy_name, total, correct, failed, created_at)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        [result.run_id, result.strategy_name, result.total, result.correct, result.failed, result.created_at],
    )
    for row in result.rows:
        conn.execute(
            """
            INSERT INTO backtest_rows (run_id, market_id, event_id, question, recorded_outcome, predicted_outcome, detail)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                result.run_id,
                row.market_id,
                row.event_id,
                row.question,
                row.recorded_outcome,
                row.predicted_outcome,
                row.detail,
            ],
        )


def get_backtest(conn: DuckDBPyConnection, run_id: str) -> BacktestResult | None:
    """Load a BacktestResult by run_id."""
    run = conn.execute(
        "SELECT run_id, strategy_name, created_at FROM backtest_runs WHERE run_id = ?",
        [run_id],
    ).fetchone()
    if not run:
        return None
    rows = conn.execute(
        """
        SELECT market_id, event_id, question, recorded_outcome, predicted_outcome, detail
        FROM backtest_rows WHERE run_id = ? ORDER BY market_id
        """,
        [run_id],
    ).fetchall()
    return BacktestResult(
        run_id=run[0],
        strategy_name=run[1],
        created_at=run[2],
        rows=[
            BacktestRow(
                market_id=r[0],
                event_id=r[1],
                question=r[2] or "",
                recorded_outcome=r[3],
                predicted_outcome=r[4],
                detail=r[5] or "",
            )
            for r in rows
        ],
    )


def list_backtests(conn: DuckDBPyConnection, limit: int = 50) -> list[dict]:
    """Most recent runs first."""
    rows = conn.execute(
        "SELECT run_id, strategy_name, total, correct, failed, created_at FROM backtest_runs ORDER BY created_at DESC LIMIT ?",
        [limit],
    ).fetchall()
    columns = ["run_id", "strategy_name", "total", "correct", "failed", "created_at"]
    return [dict(zip(columns, r)) for r in rows]
