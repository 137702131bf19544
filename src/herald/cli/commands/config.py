"""Configuration commands."""

from pathlib import Path
from typing import Annotated

import click
import typer

from herald.cli.console import console, create_table, error, success


def register(app: typer.Typer) -> None:
    """Register the config command."""

    @app.command()
    def config(
        action: Annotated[
            str | None,
            typer.Argument(help="Action: show, validate"),
        ] = None,
        path: Annotated[
            Path | None,
            typer.Option(
                "--path",
                "-p",
                help="Path to config file (default: search ./, $HERALD_HOME, /etc/herald)",
            ),
        ] = None,
    ) -> None:
        """Show or validate the effective configuration."""
        if action is None:
            ctx = click.get_current_context()
            click.echo(ctx.get_help())
            raise typer.Exit(0)

        if action not in ("show", "validate"):
            error(f"Unknown action: {action}")
            console.print("Valid actions: show, validate")
            raise typer.Exit(1)

        from herald.config import ConfigError, load_config

        try:
            config_obj = load_config(path)
        except FileNotFoundError as e:
            error(str(e))
            raise typer.Exit(1) from None
        except ConfigError as e:
            error(f"Configuration validation failed: {e}")
            raise typer.Exit(1) from None

        if action == "validate":
            success("Configuration is valid!")
            return

        def configured(flag: bool) -> str:
            return "configured" if flag else "[dim]not configured[/dim]"

        table = create_table(
            "Configuration Summary", [("Setting", "cyan"), ("Value", "green")]
        )
        table.add_row("Slack OAuth", configured(config_obj.slack.oauth_configured))
        table.add_row(
            "Slack webhook", configured(config_obj.slack.get_webhook_url() is not None)
        )
        table.add_row("Slack timeout", f"{config_obj.slack.timeout_seconds:g}s")
        table.add_row(
            "Database",
            "url (from config/env)"
            if config_obj.database.url
            else str(config_obj.database.path),
        )
        table.add_row(
            "Server", f"{config_obj.server.host}:{config_obj.server.port}"
        )
        scheduler = config_obj.scheduler
        table.add_row("Dispatcher", "enabled" if scheduler.enabled else "disabled")
        table.add_row("Poll interval", f"{scheduler.poll_interval_seconds:g}s")
        table.add_row("Batch size", str(scheduler.batch_size))
        table.add_row("Retention", f"{scheduler.retention_days} day(s)")
        table.add_row("Max schedule horizon", f"{scheduler.max_schedule_days} day(s)")
        console.print(table)
