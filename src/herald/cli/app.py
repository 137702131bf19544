"""Main CLI application."""

import typer

from herald.cli.commands import config, schedule, serve, users

app = typer.Typer(
    name="herald",
    help="Herald - scheduled Slack message delivery",
    no_args_is_help=True,
)

serve.register(app)
schedule.register(app)
users.register(app)
config.register(app)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
