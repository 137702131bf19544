"""Scheduled message store backed by SQLAlchemy."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy import delete, func, select, update

from herald.db import Database, ScheduledMessageRow
from herald.scheduling.types import (
    TERMINAL_STATUSES,
    DestinationKind,
    FixedWebhook,
    MessageStatus,
    ScheduledMessage,
    UserChannel,
)

logger = logging.getLogger(__name__)

# Fields a partial update may touch. id, owner and created_at never change.
UPDATABLE_FIELDS = frozenset(
    {
        "body",
        "scheduled_for",
        "status",
        "sent_at",
        "error_message",
        "channel_id",
        "channel_name",
    }
)


def row_to_message(row: ScheduledMessageRow) -> ScheduledMessage:
    """Convert an ORM row to a ScheduledMessage."""
    if row.destination_kind == DestinationKind.WEBHOOK:
        destination: UserChannel | FixedWebhook = FixedWebhook()
    else:
        destination = UserChannel(
            owner_id=row.owner_id,
            channel_id=row.channel_id or "",
            channel_name=row.channel_name or "",
        )
    return ScheduledMessage(
        id=row.id,
        destination=destination,
        body=row.body,
        scheduled_for=row.scheduled_for,
        status=MessageStatus(row.status),
        created_at=row.created_at,
        sent_at=row.sent_at,
        error_message=row.error_message,
    )


def message_to_row(message: ScheduledMessage) -> ScheduledMessageRow:
    destination = message.destination
    is_channel = isinstance(destination, UserChannel)
    return ScheduledMessageRow(
        id=message.id,
        owner_id=destination.owner_id,
        destination_kind=destination.kind.value,
        channel_id=destination.channel_id if is_channel else None,
        channel_name=destination.channel_name if is_channel else None,
        body=message.body,
        scheduled_for=message.scheduled_for,
        status=message.status.value,
        created_at=message.created_at,
        sent_at=message.sent_at,
        error_message=message.error_message,
    )


class MessageStore:
    """Durable storage for scheduled messages.

    Every write is a single-row statement. Updates can be conditioned on
    the row's current status, which is how the lifecycle API and the
    dispatcher resolve races without locks.
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    async def get_by_id(self, message_id: str) -> ScheduledMessage | None:
        async with self._db.session() as session:
            row = await session.get(ScheduledMessageRow, message_id)
            return row_to_message(row) if row else None

    async def get_for_owner(
        self, message_id: str, owner_id: str
    ) -> ScheduledMessage | None:
        """Owner-scoped point lookup. A foreign row reads as missing."""
        async with self._db.session() as session:
            result = await session.execute(
                select(ScheduledMessageRow).where(
                    ScheduledMessageRow.id == message_id,
                    ScheduledMessageRow.owner_id == owner_id,
                )
            )
            row = result.scalar_one_or_none()
            return row_to_message(row) if row else None

    async def list_by_owner(self, owner_id: str) -> list[ScheduledMessage]:
        async with self._db.session() as session:
            result = await session.execute(
                select(ScheduledMessageRow)
                .where(ScheduledMessageRow.owner_id == owner_id)
                .order_by(
                    ScheduledMessageRow.scheduled_for.asc(),
                    ScheduledMessageRow.created_at.asc(),
                )
            )
            return [row_to_message(row) for row in result.scalars()]

    async def list_due(
        self, now: int, limit: int | None = None
    ) -> list[ScheduledMessage]:
        """Pending messages with scheduled_for <= now, earliest first."""
        stmt = (
            select(ScheduledMessageRow)
            .where(
                ScheduledMessageRow.status == MessageStatus.PENDING.value,
                ScheduledMessageRow.scheduled_for <= now,
            )
            .order_by(
                ScheduledMessageRow.scheduled_for.asc(),
                ScheduledMessageRow.created_at.asc(),
            )
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self._db.session() as session:
            result = await session.execute(stmt)
            return [row_to_message(row) for row in result.scalars()]

    async def count_by_status(self) -> dict[MessageStatus, int]:
        counts = dict.fromkeys(MessageStatus, 0)
        async with self._db.session() as session:
            result = await session.execute(
                select(ScheduledMessageRow.status, func.count()).group_by(
                    ScheduledMessageRow.status
                )
            )
            for status, count in result.all():
                counts[MessageStatus(status)] = count
        return counts

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    async def insert(self, message: ScheduledMessage) -> ScheduledMessage:
        async with self._db.session() as session:
            session.add(message_to_row(message))
        return message

    async def update(
        self,
        message_id: str,
        fields: Mapping[str, Any],
        *,
        owner_id: str | None = None,
        expected_status: MessageStatus | None = None,
    ) -> bool:
        """Update only the given columns of one row.

        Args:
            message_id: Row to update.
            fields: Column values; keys must be in UPDATABLE_FIELDS.
            owner_id: Restrict the update to this owner's row.
            expected_status: Only update if the row currently has this status.

        Returns:
            True if a row was updated.

        Raises:
            ValueError: If no fields or a non-updatable field is given.
        """
        if not fields:
            raise ValueError("At least one field must be provided")
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        values = {
            key: value.value if isinstance(value, MessageStatus) else value
            for key, value in fields.items()
        }
        stmt = update(ScheduledMessageRow).where(ScheduledMessageRow.id == message_id)
        if owner_id is not None:
            stmt = stmt.where(ScheduledMessageRow.owner_id == owner_id)
        if expected_status is not None:
            stmt = stmt.where(ScheduledMessageRow.status == expected_status.value)
        stmt = stmt.values(**values).execution_options(synchronize_session=False)

        async with self._db.session() as session:
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def delete_by_id_and_owner(
        self,
        message_id: str,
        owner_id: str,
        *,
        expected_status: MessageStatus | None = None,
    ) -> bool:
        stmt = delete(ScheduledMessageRow).where(
            ScheduledMessageRow.id == message_id,
            ScheduledMessageRow.owner_id == owner_id,
        )
        if expected_status is not None:
            stmt = stmt.where(ScheduledMessageRow.status == expected_status.value)
        stmt = stmt.execution_options(synchronize_session=False)

        async with self._db.session() as session:
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def delete_by_owner(self, owner_id: str) -> int:
        """Remove every row belonging to an owner (used when a user is removed)."""
        stmt = (
            delete(ScheduledMessageRow)
            .where(ScheduledMessageRow.owner_id == owner_id)
            .execution_options(synchronize_session=False)
        )
        async with self._db.session() as session:
            result = await session.execute(stmt)
            return result.rowcount

    async def purge_terminal_older_than(self, age_seconds: int, now: int) -> int:
        """Delete terminal rows created more than `age_seconds` before `now`.

        Returns:
            Number of rows removed.
        """
        cutoff = now - age_seconds
        stmt = (
            delete(ScheduledMessageRow)
            .where(
                ScheduledMessageRow.status.in_([s.value for s in TERMINAL_STATUSES]),
                ScheduledMessageRow.created_at < cutoff,
            )
            .execution_options(synchronize_session=False)
        )
        async with self._db.session() as session:
            result = await session.execute(stmt)
            removed = result.rowcount

        if removed:
            logger.info(
                "terminal_messages_purged",
                extra={"purge.count": removed, "purge.cutoff": cutoff},
            )
        return removed
