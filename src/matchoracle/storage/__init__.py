"""DuckDB persistence for backtest runs."""
