"""Message routes for the unauthenticated incoming-webhook flow.

Every caller acts as the shared webhook owner. The whole router answers
503 when no webhook URL is configured.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from herald.scheduling import WEBHOOK_OWNER, FixedWebhook
from herald.server.deps import LifecycleDep, require_webhook
from herald.server.responses import result_response

router = APIRouter(dependencies=[Depends(require_webhook)])


class WebhookSendRequest(BaseModel):
    message: str


class WebhookScheduleRequest(BaseModel):
    message: str
    scheduled_for: int


class WebhookUpdateRequest(BaseModel):
    message: str | None = None
    scheduled_for: int | None = None


@router.post("/send")
async def send_webhook_message(
    body: WebhookSendRequest, lifecycle: LifecycleDep
) -> JSONResponse:
    result = await lifecycle.send_now(FixedWebhook(), body.message)
    return result_response(result, message="Message sent via webhook")


@router.post("/schedule")
async def schedule_webhook_message(
    body: WebhookScheduleRequest, lifecycle: LifecycleDep
) -> JSONResponse:
    result = await lifecycle.create(FixedWebhook(), body.message, body.scheduled_for)
    return result_response(
        result, message="Webhook message scheduled successfully", status_code=201
    )


@router.get("/scheduled")
async def list_webhook_messages(lifecycle: LifecycleDep) -> JSONResponse:
    return result_response(await lifecycle.list(WEBHOOK_OWNER))


@router.put("/scheduled/{message_id}")
async def update_webhook_message(
    message_id: str, body: WebhookUpdateRequest, lifecycle: LifecycleDep
) -> JSONResponse:
    result = await lifecycle.edit(
        message_id, WEBHOOK_OWNER, body=body.message, scheduled_for=body.scheduled_for
    )
    return result_response(result, message="Webhook message updated")


@router.delete("/scheduled/{message_id}")
async def cancel_webhook_message(
    message_id: str, lifecycle: LifecycleDep
) -> JSONResponse:
    result = await lifecycle.cancel(message_id, WEBHOOK_OWNER)
    return result_response(result, message="Webhook message cancelled")
