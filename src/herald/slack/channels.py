"""Channel listing with ordered fallbacks.

Slack apps installed with different scopes see different subsets of
conversations.list, so listing tries progressively narrower calls and, if
all of them fail, answers with a single default channel flagged as
degraded rather than an error.
"""

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

from herald.errors import DeliveryError
from herald.slack.client import SlackChannel, SlackClient

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL = SlackChannel(id="general", name="general", is_general=True)
DEGRADED_WARNING = (
    "Could not load channels from Slack; showing the default channel only"
)

ChannelFetcher = Callable[[str], Awaitable[list[SlackChannel]]]


@dataclass
class ChannelListing:
    channels: list[SlackChannel]
    source: str
    degraded: bool = False
    warning: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "channels": [c.to_dict() for c in self.channels],
            "source": self.source,
            "degraded": self.degraded,
            "warning": self.warning,
        }


def default_strategies(client: SlackClient) -> list[tuple[str, ChannelFetcher]]:
    async def public_and_private(credential: str) -> list[SlackChannel]:
        return await client.list_channels(credential)

    async def public_only(credential: str) -> list[SlackChannel]:
        return await client.list_channels(credential, types="public_channel")

    async def member_conversations(credential: str) -> list[SlackChannel]:
        return await client.list_user_conversations(credential)

    return [
        ("conversations.list", public_and_private),
        ("conversations.list:public", public_only),
        ("users.conversations", member_conversations),
    ]


class ChannelLister:
    """Runs fetch strategies in order; the first one that succeeds wins."""

    def __init__(
        self,
        strategies: Sequence[tuple[str, ChannelFetcher]],
        default_channel: SlackChannel = DEFAULT_CHANNEL,
    ) -> None:
        self._strategies = list(strategies)
        self._default_channel = default_channel

    @classmethod
    def for_client(cls, client: SlackClient) -> "ChannelLister":
        return cls(default_strategies(client))

    async def list_for(self, credential: str) -> ChannelListing:
        for name, fetch in self._strategies:
            try:
                channels = await fetch(credential)
            except DeliveryError as e:
                logger.warning(
                    "channel_strategy_failed",
                    extra={
                        "channels.strategy": name,
                        "delivery.kind": e.kind.value,
                        "error.message": e.message,
                    },
                )
                continue
            logger.debug(
                "channels_listed",
                extra={"channels.strategy": name, "channels.count": len(channels)},
            )
            return ChannelListing(channels=channels, source=name)

        logger.warning("channel_listing_degraded")
        return ChannelListing(
            channels=[self._default_channel],
            source="default",
            degraded=True,
            warning=DEGRADED_WARNING,
        )
