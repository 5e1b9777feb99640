"""CLI smoke tests against a temporary config directory."""

import json

import pytest
from typer.testing import CliRunner

from matchoracle.cli.app import app

runner = CliRunner()


@pytest.fixture
def config_dir(tmp_path):
    seed = {
        "markets": [
            {
                "name": "Topson [7913368966]{https://twitch.tv/topson}: Which team wins?",
                "outcomes": ["Radiant", "Dire"],
                "creator": "0xc",
                "oracle": "0xOracle",
                "prediction_duration_sec": 3600,
                "seed_outcome_index": 0,
                "seed_amount": 70_000_000,
                "stakes": [{"user": "alice", "outcome_index": 1, "amount": 30_000_000}],
            }
        ]
    }
    (tmp_path / "seed.json").write_text(json.dumps(seed))
    (tmp_path / "default.toml").write_text(
        f'[ledger]\nseed_path = "{(tmp_path / "seed.json").as_posix()}"\n\n'
        f'[storage]\ndb_path = "{(tmp_path / "bt.duckdb").as_posix()}"\n\n'
        '[logging]\nlevel = "WARNING"\n'
    )
    return tmp_path


def test_markets_list(config_dir):
    result = runner.invoke(app, ["-C", str(config_dir), "markets", "list"])
    assert result.exit_code == 0, result.output
    assert "Topson [7913368966]" in result.output
    assert "open" in result.output


def test_markets_threads(config_dir):
    result = runner.invoke(app, ["-C", str(config_dir), "markets", "threads"])
    assert result.exit_code == 0, result.output
    assert "e7913368966:Topson" in result.output
    assert "Radiant 70.0%" in result.output


def test_markets_quote(config_dir):
    result = runner.invoke(app, ["-C", str(config_dir), "markets", "quote", "0", "--outcome", "1", "--stake", "10"])
    assert result.exit_code == 0, result.output
    assert "Multiplier: 2.75x" in result.output
    bad = runner.invoke(app, ["-C", str(config_dir), "markets", "quote", "0", "--outcome", "5"])
    assert bad.exit_code == 1


def test_oracle_once_requires_address(config_dir):
    result = runner.invoke(app, ["-C", str(config_dir), "oracle", "once"])
    assert result.exit_code == 1
    assert "oracle.address" in result.output


def test_backtest_report_unknown_run(config_dir):
    result = runner.invoke(app, ["-C", str(config_dir), "backtest", "report", "--run-id", "nope"])
    assert result.exit_code == 1
    assert "Run not found" in result.output


def test_oracle_once_closes_ledger(config_dir, monkeypatch):
    from matchoracle.cli import oracle as oracle_cmd
    from matchoracle.ledger import MemoryLedger

    class ClosingLedger(MemoryLedger):
        closed = False

        async def close(self) -> None:
            self.closed = True

    ledger = ClosingLedger()
    monkeypatch.setenv("ORACLE_ADDRESS", "0xNotTheSeedOracle")
    monkeypatch.setattr(oracle_cmd, "build_ledger", lambda settings: ledger)
    result = runner.invoke(app, ["-C", str(config_dir), "oracle", "once"])
    assert result.exit_code == 0, result.output
    assert "Candidates: 0" in result.output
    assert ledger.closed
