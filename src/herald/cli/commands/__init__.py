"""CLI command modules."""

from herald.cli.commands import config, schedule, serve, users

__all__ = [
    "config",
    "schedule",
    "serve",
    "users",
]
