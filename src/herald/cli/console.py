"""Console output for herald commands: message lines, tables, status colours."""

from typing import NoReturn

import typer
from rich.console import Console
from rich.table import Table

from herald.scheduling.types import MessageStatus

console = Console()

STATUS_STYLES = {
    MessageStatus.PENDING: "yellow",
    MessageStatus.SENT: "green",
    MessageStatus.FAILED: "red",
    MessageStatus.CANCELLED: "dim",
}

PREVIEW_LENGTH = 40


def _styled(style: str, msg: str) -> None:
    console.print(f"[{style}]{msg}[/{style}]")


def error(msg: str) -> None:
    _styled("red", msg)


def warning(msg: str) -> None:
    _styled("yellow", msg)


def success(msg: str) -> None:
    _styled("green", msg)


def dim(msg: str) -> None:
    _styled("dim", msg)


def fail(msg: str) -> NoReturn:
    """Print an error and exit the command with status 1."""
    error(msg)
    raise typer.Exit(1)


def status_markup(status: MessageStatus) -> str:
    """Rich markup for a message status, coloured by lifecycle state."""
    style = STATUS_STYLES.get(status)
    if not style:
        return status.value
    return f"[{style}]{status.value}[/{style}]"


def preview(body: str, length: int = PREVIEW_LENGTH) -> str:
    if len(body) <= length:
        return body
    return body[:length] + "..."


def create_table(title: str, columns: list[tuple[str, str]]) -> Table:
    """Table with one (name, style) entry per column."""
    table = Table(title=title)
    for name, style in columns:
        table.add_column(name, style=style or None)
    return table


def confirm_or_cancel(prompt: str, force: bool) -> bool:
    if force:
        return True
    confirmed = typer.confirm(prompt)
    if not confirmed:
        dim("Cancelled")
    return confirmed
