"""Create, edit, cancel and inspect scheduled messages.

Every public operation returns an OperationResult instead of raising, so
the HTTP and CLI layers only translate results. Operations that change a
row are conditioned on it still being pending, which keeps them safe to
run concurrently with the dispatcher.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from herald.config.models import SchedulerConfig
from herald.errors import (
    ConfigurationError,
    HeraldError,
    InternalError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from herald.scheduling.dispatcher import (
    SECONDS_PER_DAY,
    WEBHOOK_NOT_CONFIGURED,
    CredentialResolver,
)
from herald.scheduling.store import MessageStore
from herald.scheduling.types import (
    MAX_BODY_LENGTH,
    Clock,
    Destination,
    FixedWebhook,
    MessageStatus,
    ScheduledMessage,
    UserChannel,
    utc_timestamp,
)
from herald.slack.channels import ChannelLister, ChannelListing
from herald.slack.client import DeliveryClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class OperationResult(Generic[T]):
    """Outcome of a lifecycle operation: a value, or the error that stopped it."""

    ok: bool
    value: T | None = None
    error: HeraldError | None = None

    @classmethod
    def success(cls, value: T) -> "OperationResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: HeraldError) -> "OperationResult[T]":
        return cls(ok=False, error=error)

    def unwrap(self) -> T:
        """Return the value, or raise the captured error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


def validate_body(body: Any) -> str:
    if not isinstance(body, str):
        raise ValidationError("Message is required")
    if not body.strip():
        raise ValidationError("Message cannot be empty")
    if len(body) > MAX_BODY_LENGTH:
        raise ValidationError(f"Message cannot exceed {MAX_BODY_LENGTH} characters")
    return body


def validate_scheduled_for(value: Any, now: int, max_days: int = 0) -> int:
    """Check a delivery time is an integer epoch second in the future.

    Args:
        value: Candidate timestamp.
        now: Current epoch second.
        max_days: Furthest allowed distance into the future; 0 disables.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("Scheduled time must be an integer")
    if value <= now:
        raise ValidationError("Scheduled time must be in the future")
    if max_days and value > now + max_days * SECONDS_PER_DAY:
        raise ValidationError(
            f"Scheduled time cannot be more than {max_days} days in the future"
        )
    return value


class MessageLifecycle:
    """Owner-facing operations on scheduled messages."""

    def __init__(
        self,
        store: MessageStore,
        client: DeliveryClient,
        credentials: CredentialResolver,
        channels: ChannelLister,
        config: SchedulerConfig | None = None,
        *,
        webhook_url: str | None = None,
        clock: Clock = utc_timestamp,
    ):
        self._store = store
        self._client = client
        self._credentials = credentials
        self._channels = channels
        self._config = config or SchedulerConfig()
        self._webhook_url = webhook_url
        self._clock = clock

    @property
    def webhook_configured(self) -> bool:
        return bool(self._webhook_url)

    async def _capture(
        self, operation: str, work: Awaitable[T]
    ) -> OperationResult[T]:
        try:
            value = await work
        except HeraldError as e:
            logger.info(
                "lifecycle_operation_rejected",
                extra={
                    "lifecycle.operation": operation,
                    "error.code": e.code,
                    "error.message": e.message,
                },
            )
            return OperationResult.failure(e)
        except Exception:
            logger.exception(
                "lifecycle_operation_failed",
                extra={"lifecycle.operation": operation},
            )
            return OperationResult.failure(
                InternalError(f"Could not complete {operation.replace('_', ' ')}")
            )
        return OperationResult.success(value)

    def _check_destination(self, destination: Destination) -> None:
        match destination:
            case FixedWebhook():
                if not self._webhook_url:
                    raise ConfigurationError(WEBHOOK_NOT_CONFIGURED)
            case UserChannel(channel_id=channel_id):
                if not channel_id:
                    raise ValidationError("Channel ID cannot be empty")

    async def _get_owned(self, message_id: str, owner_id: str) -> ScheduledMessage:
        message = await self._store.get_for_owner(message_id, owner_id)
        if message is None:
            raise NotFoundError("Scheduled message not found")
        return message

    @staticmethod
    def _require_pending(message: ScheduledMessage, action: str) -> None:
        if not message.is_pending:
            raise InvalidStateError(
                f"Cannot {action} a message that is {message.status.value}"
            )

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create(
        self, destination: Destination, body: Any, scheduled_for: Any
    ) -> OperationResult[ScheduledMessage]:
        return await self._capture(
            "create", self._create(destination, body, scheduled_for)
        )

    async def _create(
        self, destination: Destination, body: Any, scheduled_for: Any
    ) -> ScheduledMessage:
        self._check_destination(destination)
        now = self._clock()
        message = ScheduledMessage(
            id=uuid.uuid4().hex,
            destination=destination,
            body=validate_body(body),
            scheduled_for=validate_scheduled_for(
                scheduled_for, now, self._config.max_schedule_days
            ),
            created_at=now,
        )
        await self._store.insert(message)
        logger.info(
            "scheduled_message_created",
            extra={
                "message.id": message.id,
                "message.destination": destination.kind.value,
                "message.scheduled_for": message.scheduled_for,
            },
        )
        return message

    # ------------------------------------------------------------------
    # Cancel / edit / delete
    # ------------------------------------------------------------------

    async def cancel(
        self, message_id: str, owner_id: str
    ) -> OperationResult[ScheduledMessage]:
        return await self._capture("cancel", self._cancel(message_id, owner_id))

    async def _cancel(self, message_id: str, owner_id: str) -> ScheduledMessage:
        message = await self._get_owned(message_id, owner_id)
        self._require_pending(message, "cancel")
        cancelled = await self._store.update(
            message_id,
            {"status": MessageStatus.CANCELLED},
            owner_id=owner_id,
            expected_status=MessageStatus.PENDING,
        )
        if not cancelled:
            raise InvalidStateError("Message is no longer pending")
        logger.info("scheduled_message_cancelled", extra={"message.id": message_id})
        message.status = MessageStatus.CANCELLED
        return message

    async def edit(
        self,
        message_id: str,
        owner_id: str,
        body: Any = None,
        scheduled_for: Any = None,
    ) -> OperationResult[ScheduledMessage]:
        return await self._capture(
            "edit", self._edit(message_id, owner_id, body, scheduled_for)
        )

    async def _edit(
        self, message_id: str, owner_id: str, body: Any, scheduled_for: Any
    ) -> ScheduledMessage:
        message = await self._get_owned(message_id, owner_id)
        self._require_pending(message, "edit")

        fields: dict[str, Any] = {}
        if body is not None:
            fields["body"] = validate_body(body)
        if scheduled_for is not None:
            fields["scheduled_for"] = validate_scheduled_for(
                scheduled_for, self._clock(), self._config.max_schedule_days
            )
        if not fields:
            raise ValidationError("Provide a message or a scheduled time to update")

        updated = await self._store.update(
            message_id,
            fields,
            owner_id=owner_id,
            expected_status=MessageStatus.PENDING,
        )
        if not updated:
            raise InvalidStateError("Message is no longer pending")
        logger.info(
            "scheduled_message_edited",
            extra={"message.id": message_id, "message.fields": sorted(fields)},
        )
        return await self._get_owned(message_id, owner_id)

    async def delete(
        self, message_id: str, owner_id: str
    ) -> OperationResult[ScheduledMessage]:
        """Physically remove a pending message."""
        return await self._capture("delete", self._delete(message_id, owner_id))

    async def _delete(self, message_id: str, owner_id: str) -> ScheduledMessage:
        message = await self._get_owned(message_id, owner_id)
        self._require_pending(message, "delete")
        deleted = await self._store.delete_by_id_and_owner(
            message_id, owner_id, expected_status=MessageStatus.PENDING
        )
        if not deleted:
            raise InvalidStateError("Message is no longer pending")
        logger.info("scheduled_message_deleted", extra={"message.id": message_id})
        return message

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list(self, owner_id: str) -> OperationResult[list[ScheduledMessage]]:
        return await self._capture("list", self._store.list_by_owner(owner_id))

    async def get(
        self, message_id: str, owner_id: str
    ) -> OperationResult[ScheduledMessage]:
        return await self._capture("get", self._get_owned(message_id, owner_id))

    # ------------------------------------------------------------------
    # Immediate delivery and channels
    # ------------------------------------------------------------------

    async def send_now(
        self, destination: Destination, body: Any
    ) -> OperationResult[None]:
        """Deliver immediately without creating a row."""
        return await self._capture("send_now", self._send_now(destination, body))

    async def _send_now(self, destination: Destination, body: Any) -> None:
        self._check_destination(destination)
        text = validate_body(body)
        match destination:
            case FixedWebhook():
                assert self._webhook_url is not None
                await self._client.send_to_webhook(self._webhook_url, text)
            case UserChannel(owner_id=owner_id, channel_id=channel_id):
                credential = await self._credentials.get_credential_for_owner(owner_id)
                await self._client.send_to_channel(credential, channel_id, text)
        logger.info(
            "message_sent_now",
            extra={"message.destination": destination.kind.value},
        )

    async def get_channels(self, credential: str) -> OperationResult[ChannelListing]:
        """Channels the credential can post to; degraded rather than failed."""
        return await self._capture("get_channels", self._channels.list_for(credential))
