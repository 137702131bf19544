"""Shared test fixtures and factories."""

import asyncio
import uuid
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from herald.config.models import HeraldConfig, SchedulerConfig
from herald.db.engine import Database
from herald.errors import CredentialNotFoundError, DeliveryError
from herald.scheduling.dispatcher import Dispatcher
from herald.scheduling.lifecycle import MessageLifecycle
from herald.scheduling.store import MessageStore
from herald.scheduling.types import (
    Destination,
    FixedWebhook,
    MessageStatus,
    ScheduledMessage,
    UserChannel,
)
from herald.slack.channels import ChannelLister
from herald.slack.client import SlackChannel
from herald.users import UserStore

# Fixed "now" for deterministic tests: 2026-01-15T12:00:00Z
NOW = 1768478400
WEBHOOK_URL = "https://hooks.slack.com/services/T000/B000/XXXXXXXXXXXXXXXX"


# =============================================================================
# Clock and fakes
# =============================================================================


class FakeClock:
    """Callable clock returning a settable epoch second."""

    def __init__(self, now: int = NOW):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@dataclass
class FakeDeliveryClient:
    """In-memory stand-in for SlackClient's delivery surface."""

    invalid_credentials: set[str] = field(default_factory=set)
    channel_errors: dict[str, Exception] = field(default_factory=dict)
    webhook_error: Exception | None = None
    gate: asyncio.Event | None = None
    channel_sends: list[tuple[str, str, str]] = field(default_factory=list)
    webhook_sends: list[tuple[str, str]] = field(default_factory=list)
    validated: list[str] = field(default_factory=list)

    async def _wait(self) -> None:
        if self.gate is not None:
            await self.gate.wait()

    async def send_to_channel(self, credential: str, channel_id: str, text: str) -> None:
        await self._wait()
        if channel_id in self.channel_errors:
            raise self.channel_errors[channel_id]
        self.channel_sends.append((credential, channel_id, text))

    async def send_to_webhook(self, url: str, text: str) -> None:
        await self._wait()
        if self.webhook_error is not None:
            raise self.webhook_error
        self.webhook_sends.append((url, text))

    async def credential_is_valid(self, credential: str) -> bool:
        self.validated.append(credential)
        return credential not in self.invalid_credentials


@dataclass
class FakeCredentials:
    tokens: dict[str, str] = field(default_factory=dict)

    async def get_credential_for_owner(self, owner_id: str) -> str:
        if owner_id not in self.tokens:
            raise CredentialNotFoundError(f"No credential stored for owner {owner_id}")
        return self.tokens[owner_id]


class FakeChannelSource:
    """Scripted channel fetch strategies; an exception entry makes it fail."""

    def __init__(self, *results: list[SlackChannel] | DeliveryError):
        self.results = list(results)
        self.calls: list[str] = []

    def strategies(self):
        def make(index: int):
            async def fetch(credential: str) -> list[SlackChannel]:
                self.calls.append(f"strategy-{index}")
                result = self.results[index]
                if isinstance(result, Exception):
                    raise result
                return result

            return (f"strategy-{index}", fetch)

        return [make(i) for i in range(len(self.results))]


def make_message(
    destination: Destination | None = None,
    *,
    body: str = "Hello team",
    scheduled_for: int = NOW - 60,
    status: MessageStatus = MessageStatus.PENDING,
    created_at: int = NOW - 3600,
    sent_at: int | None = None,
    error_message: str | None = None,
) -> ScheduledMessage:
    return ScheduledMessage(
        id=uuid.uuid4().hex,
        destination=destination or UserChannel("user-1", "C100", "general"),
        body=body,
        scheduled_for=scheduled_for,
        status=status,
        created_at=created_at,
        sent_at=sent_at,
        error_message=error_message,
    )


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def scheduler_config() -> SchedulerConfig:
    return SchedulerConfig(poll_interval_seconds=0.01, batch_size=5)


@pytest.fixture
def herald_config(tmp_path: Path) -> HeraldConfig:
    """Configuration with both flows set up and a temp database."""
    return HeraldConfig.model_validate(
        {
            "slack": {
                "client_id": "123.456",
                "client_secret": "shhh-secret",
                "redirect_uri": "http://localhost:3001/api/auth/callback",
                "webhook_url": WEBHOOK_URL,
            },
            "database": {"path": str(tmp_path / "herald.db")},
        }
    )


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
async def database(tmp_path: Path) -> AsyncGenerator[Database, None]:
    """Create a temporary test database."""
    db = Database(database_path=tmp_path / "test.db")
    await db.connect()
    await db.create_tables()

    yield db

    await db.disconnect()


@pytest.fixture
async def store(database: Database) -> MessageStore:
    return MessageStore(database)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def users(database: Database, clock: FakeClock) -> UserStore:
    return UserStore(database, clock)


# =============================================================================
# Scheduling Fixtures
# =============================================================================


@pytest.fixture
def delivery() -> FakeDeliveryClient:
    return FakeDeliveryClient()


@pytest.fixture
def credentials() -> FakeCredentials:
    return FakeCredentials(tokens={"user-1": "xoxb-user-1", "user-2": "xoxb-user-2"})


@pytest.fixture
def dispatcher(
    store: MessageStore,
    delivery: FakeDeliveryClient,
    credentials: FakeCredentials,
    scheduler_config: SchedulerConfig,
    clock: FakeClock,
) -> Dispatcher:
    return Dispatcher(
        store,
        delivery,
        credentials,
        scheduler_config,
        webhook_url=WEBHOOK_URL,
        clock=clock,
    )


@pytest.fixture
def channel_source() -> FakeChannelSource:
    return FakeChannelSource([SlackChannel("C100", "general", is_general=True)])


@pytest.fixture
def lifecycle(
    store: MessageStore,
    delivery: FakeDeliveryClient,
    credentials: FakeCredentials,
    channel_source: FakeChannelSource,
    scheduler_config: SchedulerConfig,
    clock: FakeClock,
) -> MessageLifecycle:
    return MessageLifecycle(
        store,
        delivery,
        credentials,
        ChannelLister(channel_source.strategies()),
        scheduler_config,
        webhook_url=WEBHOOK_URL,
        clock=clock,
    )


@pytest.fixture
def webhook() -> FixedWebhook:
    return FixedWebhook()
