"""Authorized Slack user commands."""

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
    success,
)
from herald.scheduling.types import format_timestamp


def register(app: typer.Typer) -> None:
    """Register the users command."""

    @app.command()
    def users(
        action: Annotated[
            str | None,
            typer.Argument(help="Action: show, remove"),
        ] = None,
        user_id: Annotated[
            str | None,
            typer.Option("--id", "-i", help="Herald user ID"),
        ] = None,
        force: Annotated[
            bool,
            typer.Option("--force", "-f", help="Remove without confirmation"),
        ] = False,
        config_path: Annotated[
            Path | None,
            typer.Option("--config", "-c", help="Path to configuration file"),
        ] = None,
    ) -> None:
        """Inspect or remove users who authorized the Slack app.

        Removing a user also deletes every message they scheduled.

        Examples:
            herald users show --id 3f2a...
            herald users remove --id 3f2a... --force
        """
        if action is None:
            ctx = click.get_current_context()
            click.echo(ctx.get_help())
            raise typer.Exit(0)

        if action not in ("show", "remove"):
            error(f"Unknown action: {action}")
            console.print("Valid actions: show, remove")
            raise typer.Exit(1)
        if user_id is None:
            fail(f"--id is required for {action}")

        from herald.config import load_config

        config = load_config(config_path)

        if action == "show":
            asyncio.run(_users_show(config, user_id))
            return

        if not confirm_or_cancel(
            f"Remove user {user_id} and all of their scheduled messages?", force
        ):
            return
        asyncio.run(_users_remove(config, user_id))


async def _users_show(config, user_id: str) -> None:
    from herald.runtime import open_runtime

    async with open_runtime(config) as runtime:
        user = await runtime.users.get_by_id(user_id)
        owned = await runtime.store.list_by_owner(user_id) if user else []

    if user is None:
        fail(f"No user with id {user_id}")

    table = create_table("User", [("Field", "cyan"), ("Value", "")])
    table.add_row("ID", user.id)
    table.add_row("Slack user", user.slack_user_id)
    table.add_row("Team", user.team_id)
    table.add_row("Authorized", format_timestamp(user.created_at) or "?")
    table.add_row("Token updated", format_timestamp(user.updated_at) or "?")
    table.add_row(
        "Token expires",
        format_timestamp(user.token_expires_at) or "never",
    )
    table.add_row("Messages", str(len(owned)))
    console.print(table)


async def _users_remove(config, user_id: str) -> None:
    from herald.runtime import open_runtime

    async with open_runtime(config) as runtime:
        removed = await runtime.users.delete(user_id)

    if not removed:
        fail(f"No user with id {user_id}")
    success(f"Removed user {user_id}")
    dim("Their scheduled messages were deleted as well")
