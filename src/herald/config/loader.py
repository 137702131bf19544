"""Configuration loading from TOML files and environment variables."""

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

import pydantic
from pydantic import SecretStr

from herald.config.models import ConfigError, HeraldConfig
from herald.config.paths import get_config_path

logger = logging.getLogger(__name__)


def _get_default_config_paths() -> list[Path]:
    """Get ordered list of default config file locations."""
    return [
        Path("config.toml"),  # Current directory
        get_config_path(),  # ~/.herald/config.toml (or HERALD_HOME)
        Path("/etc/herald/config.toml"),  # System-wide
    ]


def _set_from_env(
    section: dict[str, Any], key: str, env_var: str, *, secret: bool = False
) -> None:
    """Set a value from environment if not already set."""
    if section.get(key) is not None:
        return
    value = os.environ.get(env_var)
    if value:
        section[key] = SecretStr(value) if secret else value


def _resolve_env(config: dict[str, Any]) -> dict[str, Any]:
    """Fill unset values from environment variables."""
    mappings = [
        ("slack", "client_id", "SLACK_CLIENT_ID", False),
        ("slack", "client_secret", "SLACK_CLIENT_SECRET", True),
        ("slack", "redirect_uri", "SLACK_REDIRECT_URI", False),
        ("slack", "webhook_url", "SLACK_WEBHOOK_URL", True),
        ("database", "url", "DATABASE_URL", False),
        ("server", "port", "PORT", False),
        ("server", "frontend_url", "FRONTEND_URL", False),
    ]
    for parent_key, key, env_var, secret in mappings:
        section = config.setdefault(parent_key, {})
        if section is None:
            section = config[parent_key] = {}
        _set_from_env(section, key, env_var, secret=secret)

    # Heroku/Render style URLs need the async driver spelled out.
    db_url = config["database"].get("url")
    if isinstance(db_url, str) and db_url.startswith("postgres://"):
        config["database"]["url"] = db_url.replace(
            "postgres://", "postgresql+asyncpg://", 1
        )

    return config


def load_config(path: Path | None = None) -> HeraldConfig:
    """Load configuration from a TOML file plus environment.

    Args:
        path: Explicit path to config file. If None, searches default
            locations and falls back to defaults when none exists.

    Returns:
        Validated HeraldConfig instance.

    Raises:
        FileNotFoundError: If an explicit path does not exist.
        ConfigError: If the config file is invalid.
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path).expanduser()
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        for default_path in _get_default_config_paths():
            expanded = default_path.expanduser()
            if expanded.exists():
                config_path = expanded
                break

    raw_config: dict[str, Any] = {}
    if config_path is not None:
        try:
            with config_path.open("rb") as f:
                raw_config = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e
        logger.debug("config_loaded", extra={"file.path": str(config_path)})
    else:
        logger.debug("config_defaults_used")

    raw_config = _resolve_env(raw_config)

    try:
        return HeraldConfig.model_validate(raw_config)
    except pydantic.ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
