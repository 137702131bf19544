"""Composition root: builds the wired runtime from configuration."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from herald.config import HeraldConfig
from herald.db import Database
from herald.scheduling import Dispatcher, MessageLifecycle, MessageStore
from herald.scheduling.types import Clock, utc_timestamp
from herald.slack import ChannelLister, SlackClient
from herald.users import StoreCredentialResolver, UserStore


@dataclass(slots=True)
class HeraldRuntime:
    """Components shared by the server and CLI command handlers."""

    config: HeraldConfig
    database: Database
    slack: SlackClient
    users: UserStore
    store: MessageStore
    dispatcher: Dispatcher
    lifecycle: MessageLifecycle
    clock: Clock


def database_from_config(config: HeraldConfig) -> Database:
    if config.database.url:
        return Database(database_url=config.database.url)
    return Database(database_path=config.database.path)


def build_runtime(
    config: HeraldConfig,
    database: Database | None = None,
    slack: SlackClient | None = None,
    *,
    clock: Clock = utc_timestamp,
) -> HeraldRuntime:
    """Wire stores, Slack client, dispatcher and lifecycle API together.

    Nothing is connected yet; callers own database connect/disconnect.
    """
    database = database or database_from_config(config)
    slack = slack or SlackClient(config.slack)
    webhook_url = config.slack.get_webhook_url()

    users = UserStore(database, clock)
    store = MessageStore(database)
    credentials = StoreCredentialResolver(users)
    dispatcher = Dispatcher(
        store,
        slack,
        credentials,
        config.scheduler,
        webhook_url=webhook_url,
        clock=clock,
    )
    lifecycle = MessageLifecycle(
        store,
        slack,
        credentials,
        ChannelLister.for_client(slack),
        config.scheduler,
        webhook_url=webhook_url,
        clock=clock,
    )
    return HeraldRuntime(
        config=config,
        database=database,
        slack=slack,
        users=users,
        store=store,
        dispatcher=dispatcher,
        lifecycle=lifecycle,
        clock=clock,
    )


@asynccontextmanager
async def open_runtime(
    config: HeraldConfig, database: Database | None = None
) -> AsyncIterator[HeraldRuntime]:
    """Connected runtime for one-shot commands; closes everything on exit."""
    runtime = build_runtime(config, database)
    await runtime.database.connect()
    try:
        await runtime.database.create_tables()
        yield runtime
    finally:
        await runtime.slack.close()
        await runtime.database.disconnect()
