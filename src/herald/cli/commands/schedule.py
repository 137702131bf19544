"""Scheduled message management commands."""

import asyncio
from pathlib import Path
from typing import Annotated

import click
import typer

from herald.cli.console import (
    confirm_or_cancel,
    console,
    create_table,
    dim,
    error,
    fail,
    preview,
    status_markup,
    success,
    warning,
)
from herald.scheduling.dispatcher import SECONDS_PER_DAY
from herald.scheduling.types import WEBHOOK_OWNER, format_timestamp


def _resolve_owner(owner: str | None, webhook: bool) -> str | None:
    if webhook:
        return WEBHOOK_OWNER
    return owner


def register(app: typer.Typer) -> None:
    """Register the schedule command."""

    @app.command()
    def schedule(
        action: Annotated[
            str | None,
            typer.Argument(help="Action: list, cancel, purge, status, dispatch"),
        ] = None,
        message_id: Annotated[
            str | None,
            typer.Option("--id", "-i", help="Message ID for cancel"),
        ] = None,
        owner: Annotated[
            str | None,
            typer.Option("--owner", "-o", help="Owner (user) ID"),
        ] = None,
        webhook: Annotated[
            bool,
            typer.Option("--webhook", help="Act on webhook-flow messages"),
        ] = False,
        days: Annotated[
            int | None,
            typer.Option(
                "--days",
                "-d",
                help="Purge terminal messages older than this (default: retention_days)",
            ),
        ] = None,
        force: Annotated[
            bool,
            typer.Option("--force", "-f", help="Force action without confirmation"),
        ] = False,
        config_path: Annotated[
            Path | None,
            typer.Option("--config", "-c", help="Path to configuration file"),
        ] = None,
    ) -> None:
        """Manage scheduled Slack messages.

        Examples:
            herald schedule list --owner 3f2a...      # A user's messages
            herald schedule list --webhook            # Webhook-flow messages
            herald schedule cancel --id ab12... --webhook
            herald schedule purge --days 7            # Drop old terminal rows
            herald schedule status                    # Counts and dispatcher state
            herald schedule dispatch                  # Deliver due messages now
        """
        if action is None:
            ctx = click.get_current_context()
            click.echo(ctx.get_help())
            raise typer.Exit(0)

        from herald.config import load_config

        config = load_config(config_path)
        resolved_owner = _resolve_owner(owner, webhook)

        if action == "list":
            if resolved_owner is None:
                error("--owner or --webhook is required for list")
                raise typer.Exit(1)
            asyncio.run(_schedule_list(config, resolved_owner))

        elif action == "cancel":
            if message_id is None or resolved_owner is None:
                error("--id and --owner (or --webhook) are required for cancel")
                raise typer.Exit(1)
            asyncio.run(_schedule_cancel(config, message_id, resolved_owner))

        elif action == "purge":
            retention = config.scheduler.retention_days if days is None else days
            if retention < 0:
                error("--days cannot be negative")
                raise typer.Exit(1)
            if not confirm_or_cancel(
                f"Delete sent, failed and cancelled messages older than {retention} day(s)?",
                force,
            ):
                return
            asyncio.run(_schedule_purge(config, retention))

        elif action == "status":
            asyncio.run(_schedule_status(config))

        elif action == "dispatch":
            asyncio.run(_schedule_dispatch(config))

        else:
            error(f"Unknown action: {action}")
            console.print("Valid actions: list, cancel, purge, status, dispatch")
            raise typer.Exit(1)


async def _schedule_list(config, owner_id: str) -> None:
    from herald.runtime import open_runtime

    async with open_runtime(config) as runtime:
        result = await runtime.lifecycle.list(owner_id)

    if not result.ok:
        assert result.error is not None
        fail(result.error.message)
    messages = result.value or []

    if not messages:
        warning("No scheduled messages found")
        return

    table = create_table(
        "Scheduled Messages",
        [
            ("ID", "dim"),
            ("Channel", "cyan"),
            ("Message", ""),
            ("Scheduled For", ""),
            ("Status", ""),
        ],
    )
    for message in messages:
        table.add_row(
            message.id,
            message.destination.channel_name,
            preview(message.body),
            format_timestamp(message.scheduled_for) or "?",
            status_markup(message.status),
        )

    console.print(table)
    dim(f"Total: {len(messages)} message(s)")


async def _schedule_cancel(config, message_id: str, owner_id: str) -> None:
    from herald.runtime import open_runtime

    async with open_runtime(config) as runtime:
        result = await runtime.lifecycle.cancel(message_id, owner_id)

    if not result.ok:
        assert result.error is not None
        fail(result.error.message)
    assert result.value is not None
    success(f"Cancelled: {preview(result.value.body, 50)}")


async def _schedule_purge(config, days: int) -> None:
    from herald.runtime import open_runtime

    async with open_runtime(config) as runtime:
        removed = await runtime.store.purge_terminal_older_than(
            days * SECONDS_PER_DAY, runtime.clock()
        )
    success(f"Purged {removed} message(s)")


async def _schedule_status(config) -> None:
    from herald.runtime import open_runtime

    async with open_runtime(config) as runtime:
        counts = await runtime.store.count_by_status()

    table = create_table("Scheduled Messages", [("Status", "cyan"), ("Count", "green")])
    for status, count in counts.items():
        table.add_row(status_markup(status), str(count))
    console.print(table)

    webhook_state = "configured" if config.slack.get_webhook_url() else "not configured"
    dim(f"Webhook: {webhook_state}")
    dim(
        f"Dispatcher: every {config.scheduler.poll_interval_seconds:g}s, "
        f"batches of {config.scheduler.batch_size}, "
        f"retention {config.scheduler.retention_days} day(s)"
    )


async def _schedule_dispatch(config) -> None:
    from herald.runtime import open_runtime

    async with open_runtime(config) as runtime:
        report = await runtime.dispatcher.tick()

    if report.due == 0:
        dim("No messages due")
        return
    success(
        f"Due: {report.due}  sent: {report.sent}  failed: {report.failed}  "
        f"skipped: {report.skipped}"
    )
    if report.errors:
        warning(f"{report.errors} message(s) could not be recorded; they stay pending")
