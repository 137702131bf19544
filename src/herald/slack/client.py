"""Slack Web API and incoming-webhook client.

Every call goes through one httpx.AsyncClient with a finite timeout and
raises DeliveryError with a classified kind on failure. Nothing retries
here; retry policy belongs to callers.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.parse import urlencode

import httpx

from herald.config.models import SlackConfig
from herald.errors import ConfigurationError, DeliveryError, DeliveryErrorKind

logger = logging.getLogger(__name__)

AUTH_ERROR_CODES = frozenset(
    {
        "invalid_auth",
        "not_authed",
        "token_revoked",
        "token_expired",
        "account_inactive",
        "missing_scope",
        "invalid_token",
        "action_prohibited",
    }
)
RATE_LIMIT_ERROR_CODES = frozenset({"ratelimited", "rate_limited"})
UNREACHABLE_ERROR_CODES = frozenset(
    {
        "channel_not_found",
        "not_in_channel",
        "is_archived",
        "channel_is_archived",
        "no_service",
        "no_active_hooks",
    }
)

DEFAULT_CHANNEL_TYPES = "public_channel,private_channel"


def classify_error_code(code: str) -> DeliveryErrorKind:
    """Map a Slack `error` code (or webhook body) to a failure kind."""
    if code in AUTH_ERROR_CODES:
        return DeliveryErrorKind.AUTH_INVALID
    if code in RATE_LIMIT_ERROR_CODES:
        return DeliveryErrorKind.RATE_LIMITED
    if code in UNREACHABLE_ERROR_CODES:
        return DeliveryErrorKind.CHANNEL_UNREACHABLE
    return DeliveryErrorKind.UNKNOWN


def classify_http_status(status_code: int) -> DeliveryErrorKind:
    if status_code in (401, 403):
        return DeliveryErrorKind.AUTH_INVALID
    if status_code == 429:
        return DeliveryErrorKind.RATE_LIMITED
    if status_code in (404, 410):
        return DeliveryErrorKind.CHANNEL_UNREACHABLE
    return DeliveryErrorKind.UNKNOWN


def _retry_after(response: httpx.Response) -> int | None:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


@contextmanager
def _reading(method: str) -> Iterator[None]:
    """Report a Slack body missing expected fields as an unknown failure."""
    try:
        yield
    except (KeyError, TypeError, AttributeError) as e:
        raise DeliveryError(
            DeliveryErrorKind.UNKNOWN, f"malformed {method} response"
        ) from e


@dataclass(frozen=True)
class SlackChannel:
    id: str
    name: str
    is_private: bool = False
    is_member: bool = True
    is_general: bool = False

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "SlackChannel":
        return cls(
            id=data["id"],
            name=data.get("name") or data["id"],
            is_private=bool(data.get("is_private", False)),
            is_member=bool(data.get("is_member", True)),
            is_general=bool(data.get("is_general", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "is_private": self.is_private,
            "is_member": self.is_member,
            "is_general": self.is_general,
        }


@dataclass(frozen=True)
class SlackIdentity:
    """Who a token belongs to, as reported by auth.test."""

    user_id: str
    team_id: str
    user_name: str | None = None
    team_name: str | None = None


@dataclass(frozen=True)
class OAuthGrant:
    """Result of exchanging an OAuth code.

    `access_token` is the bot token used for sending; `user_access_token`
    identifies the authorizing user to this API.
    """

    access_token: str
    slack_user_id: str
    team_id: str
    user_access_token: str | None = None
    refresh_token: str | None = None
    expires_in: int | None = None


class DeliveryClient(Protocol):
    """The subset of Slack the dispatcher needs."""

    async def send_to_channel(
        self, credential: str, channel_id: str, text: str
    ) -> None: ...

    async def send_to_webhook(self, url: str, text: str) -> None: ...

    async def credential_is_valid(self, credential: str) -> bool: ...


class SlackClient:
    """Async Slack client.

    Example:
        async with SlackClient(config.slack) as slack:
            await slack.send_to_channel(token, "C123", "hello")
    """

    def __init__(
        self,
        config: SlackConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._http = httpx.AsyncClient(
            base_url=config.api_base_url,
            timeout=config.timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "SlackClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _post(
        self, url: str, *, headers: dict[str, str] | None = None, **kwargs: Any
    ) -> httpx.Response:
        try:
            return await self._http.post(url, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise DeliveryError(
                DeliveryErrorKind.CHANNEL_UNREACHABLE, "request timed out"
            ) from e
        except httpx.TransportError as e:
            raise DeliveryError(
                DeliveryErrorKind.CHANNEL_UNREACHABLE, f"connection failed ({e})"
            ) from e

    async def _call(
        self,
        method: str,
        credential: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Call a Web API method and return its JSON body when `ok` is true."""
        headers = {"Authorization": f"Bearer {credential}"} if credential else None
        response = await self._post(method, headers=headers, data=data or {})

        if response.status_code >= 400:
            kind = classify_http_status(response.status_code)
            raise DeliveryError(
                kind,
                f"{method} returned HTTP {response.status_code}",
                platform_error=str(response.status_code),
                retry_after=_retry_after(response),
            )

        try:
            body = response.json()
        except ValueError as e:
            raise DeliveryError(
                DeliveryErrorKind.UNKNOWN, f"{method} returned a non-JSON body"
            ) from e
        if not isinstance(body, dict):
            raise DeliveryError(
                DeliveryErrorKind.UNKNOWN, f"{method} returned a non-object body"
            )

        if not body.get("ok"):
            code = body.get("error") or "unknown_error"
            logger.debug(
                "slack_api_error",
                extra={"slack.method": method, "slack.error": code},
            )
            raise DeliveryError(
                classify_error_code(code),
                code,
                platform_error=code,
                retry_after=_retry_after(response),
            )
        return body

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def send_to_channel(self, credential: str, channel_id: str, text: str) -> None:
        await self._call(
            "chat.postMessage", credential, {"channel": channel_id, "text": text}
        )

    async def send_to_webhook(self, url: str, text: str) -> None:
        """Post to an incoming webhook. Webhooks answer in plain text."""
        response = await self._post(url, json={"text": text})
        if response.status_code == 200:
            return

        code = response.text.strip()
        kind = classify_error_code(code)
        if kind is DeliveryErrorKind.UNKNOWN:
            kind = classify_http_status(response.status_code)
        raise DeliveryError(
            kind,
            code or f"webhook returned HTTP {response.status_code}",
            platform_error=code or str(response.status_code),
            retry_after=_retry_after(response),
        )

    async def credential_is_valid(self, credential: str) -> bool:
        """Check a token with auth.test.

        Returns False only when Slack rejects the token. Rate limits and
        transport failures raise DeliveryError.
        """
        try:
            await self._call("auth.test", credential)
        except DeliveryError as e:
            if e.kind is DeliveryErrorKind.AUTH_INVALID:
                return False
            raise
        return True

    # ------------------------------------------------------------------
    # Channels and identity
    # ------------------------------------------------------------------

    async def list_channels(
        self,
        credential: str,
        types: str = DEFAULT_CHANNEL_TYPES,
        member_only: bool = True,
    ) -> list[SlackChannel]:
        body = await self._call(
            "conversations.list",
            credential,
            {"types": types, "exclude_archived": "true", "limit": 200},
        )
        with _reading("conversations.list"):
            channels = [
                SlackChannel.from_api(item)
                for item in body.get("channels", [])
                if not item.get("is_archived")
            ]
        if member_only:
            channels = [c for c in channels if c.is_member]
        return channels

    async def list_user_conversations(self, credential: str) -> list[SlackChannel]:
        """Channels the token's own user is a member of."""
        body = await self._call(
            "users.conversations",
            credential,
            {"types": DEFAULT_CHANNEL_TYPES, "exclude_archived": "true", "limit": 200},
        )
        with _reading("users.conversations"):
            return [SlackChannel.from_api(item) for item in body.get("channels", [])]

    async def identify(self, credential: str) -> SlackIdentity:
        body = await self._call("auth.test", credential)
        with _reading("auth.test"):
            return SlackIdentity(
                user_id=body["user_id"],
                team_id=body["team_id"],
                user_name=body.get("user"),
                team_name=body.get("team"),
            )

    # ------------------------------------------------------------------
    # OAuth
    # ------------------------------------------------------------------

    def _require_oauth(self) -> None:
        if not self._config.oauth_configured:
            raise ConfigurationError(
                "Slack OAuth is not configured "
                "(SLACK_CLIENT_ID, SLACK_CLIENT_SECRET, SLACK_REDIRECT_URI)"
            )

    def build_authorize_url(self, state: str | None = None) -> str:
        self._require_oauth()
        params = {
            "client_id": self._config.client_id,
            "scope": ",".join(self._config.scopes),
            "user_scope": ",".join(self._config.user_scopes),
            "redirect_uri": self._config.redirect_uri,
            "response_type": "code",
        }
        if state:
            params["state"] = state
        return f"{self._config.authorize_url}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> OAuthGrant:
        """Exchange an OAuth callback code for tokens (oauth.v2.access)."""
        self._require_oauth()
        assert self._config.client_secret is not None
        body = await self._call(
            "oauth.v2.access",
            data={
                "client_id": self._config.client_id,
                "client_secret": self._config.client_secret.get_secret_value(),
                "code": code,
                "redirect_uri": self._config.redirect_uri,
            },
        )
        with _reading("oauth.v2.access"):
            authed_user = body.get("authed_user") or {}
            access_token = body.get("access_token") or authed_user.get("access_token")
            if not access_token or not authed_user.get("id"):
                raise DeliveryError(
                    DeliveryErrorKind.UNKNOWN,
                    f"oauth.v2.access response missing fields: {sorted(body)}",
                )
            return OAuthGrant(
                access_token=access_token,
                slack_user_id=authed_user["id"],
                team_id=(body.get("team") or {}).get("id", ""),
                user_access_token=authed_user.get("access_token"),
                refresh_token=body.get("refresh_token"),
                expires_in=body.get("expires_in"),
            )
