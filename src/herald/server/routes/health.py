"""Health check and scheduler status routes."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from herald.scheduling import Dispatcher
from herald.server.deps import get_dispatcher
from herald.server.responses import envelope

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
@router.get("/api/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint.

    Returns:
        Health status.
    """
    return {"status": "healthy"}


@router.get("/ready")
async def readiness_check(request: Request) -> JSONResponse:
    """Readiness check: the database answers a trivial query."""
    try:
        async with request.app.state.database.session() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning("readiness_check_failed", extra={"error.message": str(e)})
        return JSONResponse(status_code=503, content={"status": "unavailable"})
    return JSONResponse(content={"status": "ready"})


@router.get("/api/scheduler/status")
async def scheduler_status(
    dispatcher: Annotated[Dispatcher, Depends(get_dispatcher)],
) -> dict:
    status = await dispatcher.status()
    return envelope(status.to_dict())
