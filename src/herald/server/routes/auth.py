"""Slack OAuth routes."""

import logging
from typing import Annotated
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response

from herald.errors import DeliveryError, ValidationError
from herald.server.deps import CurrentUser, get_slack, get_users
from herald.server.responses import envelope, error_response
from herald.slack import SlackClient
from herald.users import UserStore

router = APIRouter()
logger = logging.getLogger(__name__)

SlackDep = Annotated[SlackClient, Depends(get_slack)]


def _frontend_redirect(request: Request, path: str, **params: str) -> Response | None:
    frontend_url = request.app.state.config.server.frontend_url
    if not frontend_url:
        return None
    return RedirectResponse(
        f"{frontend_url.rstrip('/')}{path}?{urlencode(params)}", status_code=302
    )


@router.get("/slack")
async def slack_authorize(slack: SlackDep, state: str | None = None) -> dict:
    """Return the Slack authorization URL to send the user to."""
    return envelope({"auth_url": slack.build_authorize_url(state)})


@router.get("/callback")
async def slack_callback(
    request: Request,
    slack: SlackDep,
    users: Annotated[UserStore, Depends(get_users)],
    code: str | None = None,
    error: str | None = None,
) -> Response:
    """Exchange the OAuth code and store (or refresh) the user.

    Redirects to the frontend when one is configured; otherwise answers
    with JSON carrying the user token to use as the API bearer.
    """
    if error or not code:
        reason = error or "no_code"
        logger.warning("oauth_callback_rejected", extra={"oauth.error": reason})
        redirect = _frontend_redirect(request, "/auth/error", error=reason)
        return redirect or error_response(
            ValidationError(f"Slack authorization failed: {reason}")
        )

    try:
        grant = await slack.exchange_code(code)
    except DeliveryError as e:
        logger.error("oauth_exchange_failed", extra={"error.message": e.message})
        redirect = _frontend_redirect(request, "/auth/error", error="callback_failed")
        return redirect or error_response(e)

    expires_at = None
    if grant.expires_in:
        expires_at = request.app.state.clock() + int(grant.expires_in)
    user = await users.upsert_from_oauth(
        slack_user_id=grant.slack_user_id,
        team_id=grant.team_id,
        access_token=grant.access_token,
        refresh_token=grant.refresh_token,
        token_expires_at=expires_at,
    )

    token = grant.user_access_token or grant.access_token
    redirect = _frontend_redirect(request, "/auth/success", token=token)
    if redirect:
        return redirect
    return JSONResponse(
        envelope(
            {
                "token": token,
                "user": {
                    "id": user.id,
                    "slack_user_id": user.slack_user_id,
                    "team_id": user.team_id,
                },
            },
            message="Slack authorization complete",
        )
    )


@router.get("/me")
async def current_user(user: CurrentUser, slack: SlackDep) -> dict:
    """The caller's stored user and whether the stored token still works."""
    return envelope(
        {
            "id": user.id,
            "slack_user_id": user.slack_user_id,
            "team_id": user.team_id,
            "token_valid": await slack.credential_is_valid(user.access_token),
            "created_at": user.created_at,
            "updated_at": user.updated_at,
        }
    )


@router.post("/refresh")
async def refresh_token_status(user: CurrentUser, slack: SlackDep) -> dict:
    """Re-check whether the stored Slack token still works."""
    token_valid = await slack.credential_is_valid(user.access_token)
    if not token_valid:
        logger.info("stored_token_invalid", extra={"user.id": user.id})
    return envelope({"token_valid": token_valid})


@router.post("/logout")
async def logout(user: CurrentUser) -> dict:
    """Nothing is stored per session; clients drop their bearer token."""
    logger.info("user_logged_out", extra={"user.id": user.id})
    return envelope(message="Successfully logged out")
