"""Configuration loading and logging setup."""

from matchoracle.config.settings import (
    ConfigError,
    Settings,
    configure_logging,
    get_settings,
    load_config,
    validate_oracle_settings,
)

__all__ = [
    "ConfigError",
    "Settings",
    "configure_logging",
    "get_settings",
    "load_config",
    "validate_oracle_settings",
]
