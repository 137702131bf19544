"""Scheduling subsystem: deferred Slack message delivery.

Public API:
- MessageStore: SQLAlchemy-backed CRUD for scheduled messages
- Dispatcher: Polling loop that delivers due messages and purges old ones
- MessageLifecycle: Owner-facing create/edit/cancel/list operations

Types:
- ScheduledMessage: A queued message and its delivery state
- UserChannel, FixedWebhook: Where a message goes
- OperationResult: Value-or-error returned by lifecycle operations
"""

from herald.scheduling.dispatcher import Dispatcher, DispatcherStatus, TickReport
from herald.scheduling.lifecycle import MessageLifecycle, OperationResult
from herald.scheduling.store import MessageStore
from herald.scheduling.types import (
    WEBHOOK_OWNER,
    Destination,
    FixedWebhook,
    MessageStatus,
    ScheduledMessage,
    UserChannel,
)

__all__ = [
    "WEBHOOK_OWNER",
    "Destination",
    "Dispatcher",
    "DispatcherStatus",
    "FixedWebhook",
    "MessageLifecycle",
    "MessageStatus",
    "MessageStore",
    "OperationResult",
    "ScheduledMessage",
    "TickReport",
    "UserChannel",
]
