"""Tests for channel listing fallbacks."""

import httpx

from herald.config.models import SlackConfig
from herald.errors import DeliveryError, DeliveryErrorKind
from herald.slack.channels import DEGRADED_WARNING, ChannelLister
from herald.slack.client import SlackChannel, SlackClient

from tests.conftest import FakeChannelSource

ENGINEERING = SlackChannel("C2", "engineering")


class TestChannelLister:
    """Tests for ordered strategy fallback."""

    async def test_falls_through_to_first_success(self):
        source = FakeChannelSource(
            DeliveryError(DeliveryErrorKind.AUTH_INVALID, "missing_scope"),
            [ENGINEERING],
            [SlackChannel("C3", "unused")],
        )
        lister = ChannelLister(source.strategies())

        listing = await lister.list_for("xoxb-token")

        assert listing.channels == [ENGINEERING]
        assert listing.source == "strategy-1"
        assert not listing.degraded
        assert listing.warning is None
        assert source.calls == ["strategy-0", "strategy-1"]

    async def test_empty_success_is_not_degraded(self):
        source = FakeChannelSource([])
        listing = await ChannelLister(source.strategies()).list_for("xoxb-token")

        assert listing.channels == []
        assert not listing.degraded

    async def test_all_failing_returns_flagged_default(self):
        source = FakeChannelSource(
            DeliveryError(DeliveryErrorKind.RATE_LIMITED),
            DeliveryError(DeliveryErrorKind.UNKNOWN),
        )
        listing = await ChannelLister(source.strategies()).list_for("xoxb-token")

        assert listing.degraded
        assert listing.source == "default"
        assert listing.warning == DEGRADED_WARNING
        assert [c.name for c in listing.channels] == ["general"]
        assert listing.to_dict()["degraded"] is True

    async def test_client_strategies_in_order(self):
        paths: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.path)
            if request.url.path == "/api/users.conversations":
                return httpx.Response(
                    200, json={"ok": True, "channels": [{"id": "C9", "name": "mine"}]}
                )
            return httpx.Response(200, json={"ok": False, "error": "missing_scope"})

        client = SlackClient(SlackConfig(), transport=httpx.MockTransport(handler))
        async with client:
            listing = await ChannelLister.for_client(client).list_for("xoxb-token")

        assert paths == [
            "/api/conversations.list",
            "/api/conversations.list",
            "/api/users.conversations",
        ]
        assert listing.source == "users.conversations"
        assert [c.id for c in listing.channels] == ["C9"]

    async def test_malformed_replies_degrade_to_default(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/api/users.conversations":
                return httpx.Response(200, json={"ok": True, "channels": None})
            return httpx.Response(200, json={"ok": True, "channels": [{"name": "x"}]})

        client = SlackClient(SlackConfig(), transport=httpx.MockTransport(handler))
        async with client:
            listing = await ChannelLister.for_client(client).list_for("xoxb-token")

        assert listing.degraded
        assert listing.warning == DEGRADED_WARNING
        assert [c.name for c in listing.channels] == ["general"]
