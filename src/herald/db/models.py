"""SQLAlchemy ORM models.

Timestamps are integer epoch seconds, matching the resolution the
scheduler works at.
"""

from sqlalchemy import Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""


class UserRow(Base):
    """A Slack user who authorized the app, with their bearer credential."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    slack_user_id: Mapped[str] = mapped_column(
        String, unique=True, nullable=False, index=True
    )
    team_id: Mapped[str] = mapped_column(String, nullable=False)
    access_token: Mapped[str] = mapped_column(String, nullable=False)
    refresh_token: Mapped[str | None] = mapped_column(String, nullable=True)
    token_expires_at: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[int] = mapped_column(Integer, nullable=False)


class ScheduledMessageRow(Base):
    """A message queued for delivery.

    owner_id is a users.id for channel rows and the reserved webhook owner
    for webhook rows, so it carries no foreign key.
    """

    __tablename__ = "scheduled_messages"
    __table_args__ = (
        Index("idx_scheduled_messages_status_due", "status", "scheduled_for"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    owner_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    destination_kind: Mapped[str] = mapped_column(String, nullable=False)
    channel_id: Mapped[str | None] = mapped_column(String, nullable=True)
    channel_name: Mapped[str | None] = mapped_column(String, nullable=True)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    scheduled_for: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    created_at: Mapped[int] = mapped_column(Integer, nullable=False)
    sent_at: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
