"""Configuration management using pydantic-settings.

This module provides configuration loading with the following precedence:
1. CLI arguments (highest priority)
2. Environment variables (QUICKFIX_* prefix)
3. Global config file (~/.config/quickfix/config.toml)
4. Built-in defaults (lowest priority)
"""

import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_config_path() -> Path:
    """Get the global config file path (XDG compliant).

    Returns:
        Path to config file:
        - Linux/macOS: ~/.config/quickfix/config.toml
        - Windows: %APPDATA%/quickfix/config.toml
    """
    if os.name == "nt":  # Windows
        base = Path(os.environ.get("APPDATA", Path.home()))
    else:  # Linux/macOS
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return base / "quickfix" / "config.toml"


def get_default_database_path() -> Path:
    """Get the default database file path (XDG data directory)."""
    if os.name == "nt":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home()))
    else:
        base = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))
    return base / "quickfix" / "quickfix.db"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Environment variables use QUICKFIX_ prefix:
    - QUICKFIX_DATABASE_PATH
    - QUICKFIX_SAVE_DELAY_SECONDS
    - QUICKFIX_LOG_LEVEL
    etc.
    """

    model_config = SettingsConfigDict(
        env_prefix="QUICKFIX_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage Configuration
    database_path: str = Field(
        default_factory=lambda: str(get_default_database_path()),
        description="SQLite database file path",
    )
    in_memory: bool = Field(default=False, description="Keep the store in memory only (nothing is written to disk)")

    # Store behaviour
    save_delay_seconds: float = Field(
        default=3.0,
        gt=0.0,
        description="Quiet period before a queued save is written",
    )
    recent_days: int = Field(default=7, ge=1, description="Window of the Recent Issues filter in days")
    remote_poll_interval_seconds: float = Field(
        default=2.0,
        gt=0.0,
        description="Interval between checks for changes made by other connections",
    )

    # Logging Configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING",
        description="Logging level",
    )
    log_format: Literal["json", "console"] = Field(
        default="json",
        description="Log output format",
    )
    log_file: str | None = Field(default=None, description="Log file path (optional)")

    # Metrics Configuration
    metrics_enabled: bool = Field(default=False, description="Expose Prometheus metrics while watching the store")
    metrics_host: str = Field(default="127.0.0.1", description="Metrics HTTP server bind address")
    metrics_port: int = Field(default=9090, description="Metrics HTTP server port")


def load_toml_config(path: Path | None = None) -> dict[str, Any]:
    """Load configuration from TOML file.

    Args:
        path: Path to config file (uses default if None)

    Returns:
        Configuration dictionary (empty if file doesn't exist)
    """
    config_path = path or get_config_path()
    if config_path.exists():
        with open(config_path, "rb") as f:
            return tomllib.load(f)
    return {}


def flatten_toml_config(toml_config: dict[str, Any]) -> dict[str, Any]:
    """Flatten nested TOML config to flat dictionary for Settings.

    Args:
        toml_config: Nested TOML configuration

    Returns:
        Flattened configuration dictionary
    """
    overrides: dict[str, Any] = {}

    if "storage" in toml_config:
        if "database_path" in toml_config["storage"]:
            overrides["database_path"] = toml_config["storage"]["database_path"]
        if "in_memory" in toml_config["storage"]:
            overrides["in_memory"] = toml_config["storage"]["in_memory"]
        if "remote_poll_interval_seconds" in toml_config["storage"]:
            overrides["remote_poll_interval_seconds"] = toml_config["storage"]["remote_poll_interval_seconds"]

    if "store" in toml_config:
        if "save_delay_seconds" in toml_config["store"]:
            overrides["save_delay_seconds"] = toml_config["store"]["save_delay_seconds"]
        if "recent_days" in toml_config["store"]:
            overrides["recent_days"] = toml_config["store"]["recent_days"]

    if "logging" in toml_config:
        for key in ["level", "format", "file"]:
            if key in toml_config["logging"]:
                overrides[f"log_{key}"] = toml_config["logging"][key]

    if "metrics" in toml_config:
        for key in ["enabled", "host", "port"]:
            if key in toml_config["metrics"]:
                overrides[f"metrics_{key}"] = toml_config["metrics"][key]

    return overrides


def load_settings_with_toml(config_path: Path | None = None, **cli_overrides: Any) -> Settings:
    """Load settings with TOML config as base, env vars and CLI flags as override.

    Args:
        config_path: Optional path to TOML config file
        **cli_overrides: Values given on the command line; None values are ignored

    Returns:
        Settings instance with merged configuration
    """
    toml_config = load_toml_config(config_path)
    overrides = flatten_toml_config(toml_config)

    # pydantic-settings gives init kwargs priority over env vars, so TOML
    # values are dropped wherever the environment defines the same field.
    env_names = {key.upper() for key in os.environ}
    overrides = {
        key: value
        for key, value in overrides.items()
        if f"{Settings.model_config['env_prefix']}{key}".upper() not in env_names
    }

    overrides.update({key: value for key, value in cli_overrides.items() if value is not None})
    return Settings(**overrides)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings instance (cached)
    """
    return load_settings_with_toml()
