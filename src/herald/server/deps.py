"""Request dependencies: app components and caller identity."""

import logging
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from herald.errors import (
    AuthenticationError,
    ConfigurationError,
    DeliveryError,
    DeliveryErrorKind,
)
from herald.scheduling import Dispatcher, MessageLifecycle
from herald.scheduling.dispatcher import WEBHOOK_NOT_CONFIGURED
from herald.slack import SlackClient
from herald.users import User, UserStore

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_lifecycle(request: Request) -> MessageLifecycle:
    return request.app.state.lifecycle


def get_dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher


def get_slack(request: Request) -> SlackClient:
    return request.app.state.slack


def get_users(request: Request) -> UserStore:
    return request.app.state.users


async def get_current_user(
    slack: Annotated[SlackClient, Depends(get_slack)],
    users: Annotated[UserStore, Depends(get_users)],
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ] = None,
) -> User:
    """Identify the caller's Slack token and load the matching stored user."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Access token is required")

    try:
        identity = await slack.identify(credentials.credentials)
    except DeliveryError as e:
        if e.kind is DeliveryErrorKind.AUTH_INVALID:
            raise AuthenticationError("Invalid or expired token") from e
        raise

    user = await users.get_by_slack_id(identity.user_id)
    if user is None:
        logger.info("api_user_unknown", extra={"slack.user_id": identity.user_id})
        raise AuthenticationError("User not found")
    return user


def require_webhook(
    lifecycle: Annotated[MessageLifecycle, Depends(get_lifecycle)],
) -> None:
    if not lifecycle.webhook_configured:
        raise ConfigurationError(WEBHOOK_NOT_CONFIGURED)


LifecycleDep = Annotated[MessageLifecycle, Depends(get_lifecycle)]
CurrentUser = Annotated[User, Depends(get_current_user)]
