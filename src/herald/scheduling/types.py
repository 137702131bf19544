"""Scheduling types.

Public types:
- ScheduledMessage: A queued message and its delivery state
- Destination: UserChannel (OAuth flow) or FixedWebhook (webhook flow)
- MessageStatus: pending -> sent | failed | cancelled
- Clock: Callable returning the current epoch second
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, ClassVar

# Reserved owner id stored on webhook-flow rows. Webhook-flow callers are
# unauthenticated, so every one of them acts as this owner.
WEBHOOK_OWNER = "webhook"

MAX_BODY_LENGTH = 4000

Clock = Callable[[], int]


def utc_timestamp() -> int:
    """Current time as integer epoch seconds."""
    return int(time.time())


def format_timestamp(timestamp: int | None) -> str | None:
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, UTC).isoformat()


class MessageStatus(StrEnum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not MessageStatus.PENDING


TERMINAL_STATUSES = frozenset(s for s in MessageStatus if s.is_terminal)


class DestinationKind(StrEnum):
    CHANNEL = "channel"
    WEBHOOK = "webhook"


@dataclass(frozen=True)
class UserChannel:
    """A channel posted to with the owner's own Slack credential."""

    owner_id: str
    channel_id: str
    channel_name: str

    kind: ClassVar[DestinationKind] = DestinationKind.CHANNEL


@dataclass(frozen=True)
class FixedWebhook:
    """The single incoming webhook configured for this deployment."""

    kind: ClassVar[DestinationKind] = DestinationKind.WEBHOOK
    owner_id: ClassVar[str] = WEBHOOK_OWNER
    channel_id: ClassVar[str] = "webhook"
    channel_name: ClassVar[str] = "Incoming webhook"


Destination = UserChannel | FixedWebhook


@dataclass
class ScheduledMessage:
    """A message queued for delivery at `scheduled_for` (epoch seconds)."""

    id: str
    destination: Destination
    body: str
    scheduled_for: int
    status: MessageStatus = MessageStatus.PENDING
    created_at: int = field(default_factory=utc_timestamp)
    sent_at: int | None = None
    error_message: str | None = None

    @property
    def owner_id(self) -> str:
        return self.destination.owner_id

    @property
    def is_pending(self) -> bool:
        return self.status is MessageStatus.PENDING

    def is_due(self, now: int) -> bool:
        return self.is_pending and self.scheduled_for <= now

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the JSON shape returned by the HTTP API."""
        return {
            "id": self.id,
            "destination": self.destination.kind.value,
            "channel_id": self.destination.channel_id,
            "channel_name": self.destination.channel_name,
            "message": self.body,
            "scheduled_for": self.scheduled_for,
            "status": self.status.value,
            "created_at": self.created_at,
            "sent_at": self.sent_at,
            "error_message": self.error_message,
            "scheduled_for_readable": format_timestamp(self.scheduled_for),
            "created_at_readable": format_timestamp(self.created_at),
            "sent_at_readable": format_timestamp(self.sent_at),
        }
