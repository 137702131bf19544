"""Message routes for authenticated Slack users."""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from herald.scheduling import UserChannel
from herald.server.deps import CurrentUser, LifecycleDep
from herald.server.responses import result_response

router = APIRouter()


class SendMessageRequest(BaseModel):
    channel_id: str
    message: str


class ScheduleMessageRequest(BaseModel):
    channel_id: str
    channel_name: str | None = None
    message: str
    scheduled_for: int


class UpdateMessageRequest(BaseModel):
    message: str | None = None
    scheduled_for: int | None = None


@router.get("/channels")
async def list_channels(user: CurrentUser, lifecycle: LifecycleDep) -> JSONResponse:
    result = await lifecycle.get_channels(user.access_token)
    listing = result.value
    message = listing.warning if listing is not None else None
    return result_response(result, message=message)


@router.post("/send")
async def send_message(
    body: SendMessageRequest, user: CurrentUser, lifecycle: LifecycleDep
) -> JSONResponse:
    destination = UserChannel(user.id, body.channel_id, body.channel_id)
    result = await lifecycle.send_now(destination, body.message)
    return result_response(result, message="Message sent successfully")


@router.post("/schedule")
async def schedule_message(
    body: ScheduleMessageRequest, user: CurrentUser, lifecycle: LifecycleDep
) -> JSONResponse:
    destination = UserChannel(
        user.id, body.channel_id, body.channel_name or body.channel_id
    )
    result = await lifecycle.create(destination, body.message, body.scheduled_for)
    return result_response(
        result, message="Message scheduled successfully", status_code=201
    )


@router.get("/scheduled")
async def list_scheduled(user: CurrentUser, lifecycle: LifecycleDep) -> JSONResponse:
    return result_response(await lifecycle.list(user.id))


@router.get("/scheduled/{message_id}")
async def get_scheduled(
    message_id: str, user: CurrentUser, lifecycle: LifecycleDep
) -> JSONResponse:
    return result_response(await lifecycle.get(message_id, user.id))


@router.put("/scheduled/{message_id}")
async def update_scheduled(
    message_id: str,
    body: UpdateMessageRequest,
    user: CurrentUser,
    lifecycle: LifecycleDep,
) -> JSONResponse:
    result = await lifecycle.edit(
        message_id, user.id, body=body.message, scheduled_for=body.scheduled_for
    )
    return result_response(result, message="Scheduled message updated")


@router.delete("/scheduled/{message_id}")
async def cancel_scheduled(
    message_id: str, user: CurrentUser, lifecycle: LifecycleDep
) -> JSONResponse:
    result = await lifecycle.cancel(message_id, user.id)
    return result_response(result, message="Scheduled message cancelled")


@router.delete("/scheduled/{message_id}/purge")
async def delete_scheduled(
    message_id: str, user: CurrentUser, lifecycle: LifecycleDep
) -> JSONResponse:
    result = await lifecycle.delete(message_id, user.id)
    return result_response(result, message="Scheduled message deleted")
