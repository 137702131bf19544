"""Configuration module."""

from herald.config.loader import load_config
from herald.config.models import (
    ConfigError,
    DatabaseConfig,
    HeraldConfig,
    SchedulerConfig,
    ServerConfig,
    SlackConfig,
)
from herald.config.paths import get_config_path, get_database_path, get_herald_home

__all__ = [
    "ConfigError",
    "DatabaseConfig",
    "HeraldConfig",
    "SchedulerConfig",
    "ServerConfig",
    "SlackConfig",
    "get_config_path",
    "get_database_path",
    "get_herald_home",
    "load_config",
]
