"""Database layer."""

from herald.db.engine import Database
from herald.db.models import Base, ScheduledMessageRow, UserRow

__all__ = [
    "Base",
    "Database",
    "ScheduledMessageRow",
    "UserRow",
]
