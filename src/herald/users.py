"""Slack users who authorized the app, and credential lookup by owner."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import select

from herald.db import Database, UserRow
from herald.errors import CredentialNotFoundError
from herald.scheduling.store import MessageStore
from herald.scheduling.types import Clock, utc_timestamp

logger = logging.getLogger(__name__)


@dataclass
class User:
    id: str
    slack_user_id: str
    team_id: str
    access_token: str
    refresh_token: str | None = None
    token_expires_at: int | None = None
    created_at: int = 0
    updated_at: int = 0


def _row_to_user(row: UserRow) -> User:
    return User(
        id=row.id,
        slack_user_id=row.slack_user_id,
        team_id=row.team_id,
        access_token=row.access_token,
        refresh_token=row.refresh_token,
        token_expires_at=row.token_expires_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class UserStore:
    """CRUD for users, keyed internally by id and externally by Slack user id."""

    def __init__(self, database: Database, clock: Clock = utc_timestamp) -> None:
        self._db = database
        self._clock = clock

    async def get_by_id(self, user_id: str) -> User | None:
        async with self._db.session() as session:
            row = await session.get(UserRow, user_id)
            return _row_to_user(row) if row else None

    async def get_by_slack_id(self, slack_user_id: str) -> User | None:
        async with self._db.session() as session:
            result = await session.execute(
                select(UserRow).where(UserRow.slack_user_id == slack_user_id)
            )
            row = result.scalar_one_or_none()
            return _row_to_user(row) if row else None

    async def upsert_from_oauth(
        self,
        slack_user_id: str,
        team_id: str,
        access_token: str,
        refresh_token: str | None = None,
        token_expires_at: int | None = None,
    ) -> User:
        """Create a user for a first authorization, or refresh their tokens."""
        existing = await self.get_by_slack_id(slack_user_id)
        if existing is not None:
            await self.update_tokens(
                existing.id,
                access_token,
                refresh_token,
                token_expires_at,
                team_id=team_id,
            )
            logger.info("user_tokens_refreshed", extra={"user.id": existing.id})
            refreshed = await self.get_by_id(existing.id)
            assert refreshed is not None
            return refreshed

        now = self._clock()
        async with self._db.session() as session:
            row = UserRow(
                id=uuid.uuid4().hex,
                slack_user_id=slack_user_id,
                team_id=team_id,
                access_token=access_token,
                refresh_token=refresh_token,
                token_expires_at=token_expires_at,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            user = _row_to_user(row)

        logger.info(
            "user_created",
            extra={"user.id": user.id, "slack.user_id": slack_user_id},
        )
        return user

    async def update_tokens(
        self,
        user_id: str,
        access_token: str,
        refresh_token: str | None = None,
        token_expires_at: int | None = None,
        *,
        team_id: str | None = None,
    ) -> bool:
        """Replace a user's stored tokens; False when the user is unknown."""
        async with self._db.session() as session:
            row = await session.get(UserRow, user_id)
            if row is None:
                return False
            row.access_token = access_token
            row.refresh_token = refresh_token
            row.token_expires_at = token_expires_at
            if team_id is not None:
                row.team_id = team_id
            row.updated_at = self._clock()
            return True

    async def delete(self, user_id: str) -> bool:
        """Remove a user and every message they own."""
        async with self._db.session() as session:
            row = await session.get(UserRow, user_id)
            if row is None:
                return False
            await session.delete(row)

        removed = await MessageStore(self._db).delete_by_owner(user_id)
        logger.info(
            "user_deleted",
            extra={"user.id": user_id, "messages.removed": removed},
        )
        return True


class StoreCredentialResolver:
    """Resolves an owner id to the Slack token stored for that user."""

    def __init__(self, users: UserStore) -> None:
        self._users = users

    async def get_credential_for_owner(self, owner_id: str) -> str:
        user = await self._users.get_by_id(owner_id)
        if user is None:
            raise CredentialNotFoundError(f"No credential stored for owner {owner_id}")
        return user.access_token
