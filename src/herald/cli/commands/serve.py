"""Server command for running the Herald service."""

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import typer

logger = logging.getLogger(__name__)


def register(app: typer.Typer) -> None:
    """Register the serve command."""

    @app.command()
    def serve(
        config: Annotated[
            Path | None,
            typer.Option(
                "--config",
                "-c",
                help="Path to configuration file",
            ),
        ] = None,
        host: Annotated[
            str | None,
            typer.Option(
                "--host",
                "-h",
                help="Host to bind to (default: server.host)",
            ),
        ] = None,
        port: Annotated[
            int | None,
            typer.Option(
                "--port",
                "-p",
                help="Port to bind to (default: server.port)",
            ),
        ] = None,
        no_dispatcher: Annotated[
            bool,
            typer.Option(
                "--no-dispatcher",
                help="Serve the API without delivering scheduled messages",
            ),
        ] = False,
    ) -> None:
        """Start the Herald API server and message dispatcher."""
        try:
            asyncio.run(_run_server(config, host, port, no_dispatcher))
        except KeyboardInterrupt:
            # Use print here since logging may not be configured yet
            print("\nServer stopped")


async def _run_server(
    config_path: Path | None = None,
    host: str | None = None,
    port: int | None = None,
    no_dispatcher: bool = False,
) -> None:
    """Run the server asynchronously."""
    from herald.logging import configure_logging

    configure_logging(use_rich=True)

    from herald.config import load_config
    from herald.runtime import build_runtime
    from herald.server import HeraldServer, ServerRunner

    logger.info("Loading configuration")
    herald_config = load_config(config_path)
    runtime = build_runtime(herald_config)
    server = HeraldServer(runtime)

    run_dispatcher = herald_config.scheduler.enabled and not no_dispatcher
    bind_host = host or herald_config.server.host
    bind_port = port or herald_config.server.port
    logger.info(
        "server_listening",
        extra={
            "server.host": bind_host,
            "server.port": bind_port,
            "scheduler.enabled": run_dispatcher,
        },
    )

    runner = ServerRunner(
        server.app,
        host=bind_host,
        port=bind_port,
        dispatcher=runtime.dispatcher if run_dispatcher else None,
    )
    await runner.run()
