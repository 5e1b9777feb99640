"""DuckDB connection and schema init."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import duckdb

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

SCHEMA_SQL = """
-- Backtest runs (strategy vs recorded resolutions)
CREATE TABLE IF NOT EXISTS backtest_runs (
    run_id          VARCHAR PRIMARY KEY,
    strategy_name   VARCHAR NOT NULL,
    total           INTEGER,
    correct         INTEGER,
    failed          INTEGER,
    created_at      BIGINT
);

-- Per-market rows of a backtest run
CREATE TABLE IF NOT EXISTS backtest_rows (
    run_id              VARCHAR NOT NULL,
    market_id           BIGINT NOT NULL,
    event_id            VARCHAR NOT NULL,
    question            VARCHAR,
    recorded_outcome    INTEGER NOT NULL,
    predicted_outcome   INTEGER,
    detail              VARCHAR,
    PRIMARY KEY (run_id, market_id)
);
"""


def get_connection(db_path: str | Path, read_only: bool = False) -> DuckDBPyConnection:
    """Return a DuckDB connection. Caller must close or use as context manager."""
    path = Path(db_path)
    if not read_only:
        path.parent.mkdir(parents=True, exist_ok=True)
    return duckdb.connect(str(path), read_only=read_only)


def init_schema(conn: DuckDBPyConnection) -> None:
    """Create tables if they do not exist."""
    for stmt in SCHEMA_SQL.split(";"):
        stmt = stmt.strip()
        if stmt:
            try:
                conn.execute(stmt)
            except duckdb.Error as e:
                if "already exists" not in str(e).lower():
                    raise
