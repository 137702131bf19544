"""FastAPI application for the Herald server."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from herald.errors import HeraldError
from herald.runtime import HeraldRuntime
from herald.server.responses import herald_error_handler, request_validation_handler
from herald.server.routes import auth, health, messages, webhook

logger = logging.getLogger(__name__)


class HeraldServer:
    """Main server application.

    Exposes the runtime's components to routes through the FastAPI app
    state. The dispatcher itself is started by ServerRunner once uvicorn
    is serving; the lifespan only connects and closes resources.
    """

    def __init__(self, runtime: HeraldRuntime):
        self._runtime = runtime
        self._app = self._create_app()

    @property
    def app(self) -> FastAPI:
        """Get the FastAPI application."""
        return self._app

    @property
    def runtime(self) -> HeraldRuntime:
        return self._runtime

    def _create_app(self) -> FastAPI:
        """Create and configure the FastAPI app."""
        runtime = self._runtime

        @asynccontextmanager
        async def lifespan(app: FastAPI) -> AsyncIterator[None]:
            logger.info("server_starting")
            await runtime.database.connect()
            await runtime.database.create_tables()
            if not runtime.config.slack.get_webhook_url():
                logger.warning("webhook_flow_disabled")
            if not runtime.config.slack.oauth_configured:
                logger.warning("oauth_flow_disabled")

            yield

            logger.info("server_stopping")
            await runtime.dispatcher.stop()
            await runtime.slack.close()
            await runtime.database.disconnect()

        app = FastAPI(
            title="Herald",
            description="Scheduled Slack message delivery API",
            version="0.1.0",
            lifespan=lifespan,
        )

        app.state.server = self
        app.state.config = runtime.config
        app.state.clock = runtime.clock
        app.state.database = runtime.database
        app.state.slack = runtime.slack
        app.state.users = runtime.users
        app.state.lifecycle = runtime.lifecycle
        app.state.dispatcher = runtime.dispatcher

        app.add_exception_handler(HeraldError, herald_error_handler)
        app.add_exception_handler(RequestValidationError, request_validation_handler)

        app.include_router(health.router, tags=["health"])
        app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
        app.include_router(
            webhook.router, prefix="/api/messages/webhook", tags=["webhook"]
        )
        app.include_router(messages.router, prefix="/api/messages", tags=["messages"])

        return app


def create_app(runtime: HeraldRuntime) -> FastAPI:
    """Create the FastAPI application."""
    return HeraldServer(runtime).app
