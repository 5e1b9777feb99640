"""TOML config loading, profiles and structlog setup."""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

# Default config search path (project root or cwd)
_CONFIG_DIR = Path(__file__).resolve().parent.parent.parent.parent / "config"
_CWD_CONFIG = Path.cwd() / "config"

STRATEGIES = ("rules", "llm")


class ConfigError(Exception):
    """Raised at startup when required configuration is missing or invalid."""


def _load_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return tomllib.load(f)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base. Override values take precedence."""
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _find_config_dir(config_dir: Path | None = None) -> Path:
    if config_dir is not None:
        return config_dir
    if _CWD_CONFIG.exists():
        return _CWD_CONFIG
    return _CONFIG_DIR


def load_config(profile: str | None = None, config_dir: Path | None = None) -> dict[str, Any]:
    """Load merged config from default.toml and optional profile overlay."""
    directory = _find_config_dir(config_dir)
    default_path = directory / "default.toml"
    if not default_path.exists():
        return {}
    base = _load_toml(default_path)
    if profile:
        profile_path = directory / f"{profile}.toml"
        if profile_path.exists():
            overlay = _load_toml(profile_path)
            base = _deep_merge(base, overlay)
    return base


def get_settings(profile: str | None = None, config_dir: Path | None = None) -> Settings:
    """Return Settings instance from merged config."""
    raw = load_config(profile, config_dir)
    return Settings.from_dict(raw)


class Settings:
    """Application settings from TOML config."""

    def __init__(
        self,
        *,
        oracle: dict[str, Any] | None = None,
        timeouts: dict[str, Any] | None = None,
        opendota: dict[str, Any] | None = None,
        adviser: dict[str, Any] | None = None,
        ledger: dict[str, Any] | None = None,
        storage: dict[str, Any] | None = None,
        logging: dict[str, Any] | None = None,
        environ: dict[str, str] | None = None,
    ):
        self.oracle = oracle or {}
        self.timeouts = timeouts or {}
        self.opendota = opendota or {}
        self.adviser = adviser or {}
        self.ledger = ledger or {}
        self.storage = storage or {}
        self.logging = logging or {}
        self._environ = environ if environ is not None else os.environ

    @classmethod
    def from_dict(cls, raw: dict[str, Any], environ: dict[str, str] | None = None) -> Settings:
        return cls(
            oracle=raw.get("oracle"),
            timeouts=raw.get("timeouts"),
            opendota=raw.get("opendota"),
            adviser=raw.get("adviser"),
            ledger=raw.get("ledger"),
            storage=raw.get("storage"),
            logging=raw.get("logging"),
            environ=environ,
        )

    # Convenience accessors with defaults
    @property
    def oracle_address(self) -> str:
        return str(self.oracle.get("address") or self._environ.get("ORACLE_ADDRESS", "")).strip()

    @property
    def strategy(self) -> str:
        return str(self.oracle.get("strategy", "rules")).lower()

    @property
    def poll_interval_sec(self) -> float:
        return float(self.oracle.get("poll_interval_sec", 30))

    @property
    def page_size(self) -> int:
        return int(self.oracle.get("page_size", 100))

    @property
    def max_concurrent_events(self) -> int:
        return int(self.oracle.get("max_concurrent_events", 8))

    @property
    def not_found_stale_after_sec(self) -> float:
        return float(self.oracle.get("not_found_stale_after_sec", 1800))

    @property
    def not_found_backoff_max_sec(self) -> float:
        return float(self.oracle.get("not_found_backoff_max_sec", 600))

    @property
    def match_data_timeout_sec(self) -> float:
        return float(self.timeouts.get("match_data_sec", 15))

    @property
    def adviser_timeout_sec(self) -> float:
        return float(self.timeouts.get("adviser_sec", 30))

    @property
    def ledger_timeout_sec(self) -> float:
        return float(self.timeouts.get("ledger_sec", 60))

    @property
    def opendota_base_url(self) -> str:
        return self.opendota.get("base_url", "https://api.opendota.com/api")

    @property
    def adviser_endpoint(self) -> str:
        return self.adviser.get("endpoint", "https://openrouter.ai/api/v1/chat/completions")

    @property
    def adviser_model(self) -> str:
        return self.adviser.get("model", "google/gemini-2.0-flash-001")

    @property
    def adviser_max_tokens(self) -> int:
        return int(self.adviser.get("max_tokens", 150))

    @property
    def adviser_api_key(self) -> str:
        env_name = self.adviser.get("api_key_env", "OPENROUTER_API_KEY")
        return self._environ.get(env_name, "")

    @property
    def ledger_seed_path(self) -> str | None:
        return self.ledger.get("seed_path")

    @property
    def db_path(self) -> str:
        return self.storage.get("db_path", "data/matchoracle.duckdb")

    @property
    def logging_level(self) -> str:
        return self.logging.get("level", "INFO").upper()

    @property
    def logging_format(self) -> str:
        return self.logging.get("format", "console")

    @property
    def logging_level_num(self) -> int:
        return getattr(logging, self.logging_level, logging.INFO)


def validate_oracle_settings(settings: Settings) -> None:
    """Fail fast on configuration the oracle loop cannot run without."""
    if not settings.oracle_address:
        raise ConfigError("oracle.address is not set (or ORACLE_ADDRESS env var)")
    if settings.strategy not in STRATEGIES:
        raise ConfigError(f"oracle.strategy must be one of {STRATEGIES}, got {settings.strategy!r}")
    if settings.strategy == "llm" and not settings.adviser_api_key:
        env_name = settings.adviser.get("api_key_env", "OPENROUTER_API_KEY")
        raise ConfigError(f"{env_name} not set; required for the llm strategy")
    if settings.poll_interval_sec <= 0:
        raise ConfigError("oracle.poll_interval_sec must be positive")


def configure_logging(settings: Settings) -> None:
    """Configure structlog with settings. Call once at application entry."""
    import structlog

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.logging_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(settings.logging_level_num),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
