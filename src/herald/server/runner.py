"""Runtime server orchestration helpers."""

from __future__ import annotations

import asyncio
import logging
import os
import signal as signal_module
import time
from typing import TYPE_CHECKING, Protocol

import uvicorn

if TYPE_CHECKING:
    from fastapi import FastAPI


class BackgroundService(Protocol):
    """Minimal contract for a service started alongside uvicorn."""

    async def start(self) -> None: ...

    async def stop(self) -> None: ...


logger = logging.getLogger(__name__)

STARTUP_POLL_INTERVAL_SECONDS = 0.1
STARTUP_WAIT_TIMEOUT_SECONDS = 60.0


class ServerRunner:
    """Owns uvicorn serving and the dispatcher's lifecycle around it."""

    def __init__(
        self,
        app: FastAPI,
        *,
        host: str,
        port: int,
        dispatcher: BackgroundService | None = None,
    ) -> None:
        self._app = app
        self._host = host
        self._port = port
        self._dispatcher = dispatcher

    async def run(self) -> None:
        """Run uvicorn and the dispatcher with coordinated shutdown."""
        uvicorn_config = uvicorn.Config(
            self._app,
            host=self._host,
            port=self._port,
            log_level="info",
            log_config=None,  # Use shared logging config, not uvicorn's
        )
        server = uvicorn.Server(uvicorn_config)

        loop = asyncio.get_running_loop()
        shutdown_count = 0

        def handle_signal() -> None:
            nonlocal shutdown_count
            shutdown_count += 1

            if shutdown_count == 1:
                logger.info("server_shutting_down")
                server.should_exit = True
                dispatcher = self._dispatcher
                if dispatcher:
                    loop.call_soon(lambda: asyncio.create_task(dispatcher.stop()))
            else:
                logger.warning("server_force_shutdown")
                os._exit(1)

        for sig in (signal_module.SIGTERM, signal_module.SIGINT):
            loop.add_signal_handler(sig, handle_signal)

        if not self._dispatcher:
            logger.info("dispatcher_disabled")
            await server.serve()
            return

        dispatcher = self._dispatcher
        server_task = asyncio.create_task(server.serve())

        async def start_dispatcher() -> None:
            # Lifespan startup connects the database; wait for it.
            deadline = time.monotonic() + STARTUP_WAIT_TIMEOUT_SECONDS
            while not server_task.done():
                if getattr(server, "started", False):
                    await dispatcher.start()
                    return
                if time.monotonic() >= deadline:
                    logger.error("server_startup_timeout")
                    return
                await asyncio.sleep(STARTUP_POLL_INTERVAL_SECONDS)

            logger.error("server_exited_before_dispatcher_start")

        dispatcher_task = asyncio.create_task(start_dispatcher())
        try:
            await asyncio.gather(server_task, dispatcher_task, return_exceptions=True)
        finally:
            await dispatcher.stop()
