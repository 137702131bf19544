"""Slack Web API access: delivery, identity, OAuth and channel listing."""

from herald.slack.channels import ChannelLister, ChannelListing
from herald.slack.client import (
    DeliveryClient,
    OAuthGrant,
    SlackChannel,
    SlackClient,
    SlackIdentity,
)

__all__ = [
    "ChannelLister",
    "ChannelListing",
    "DeliveryClient",
    "OAuthGrant",
    "SlackChannel",
    "SlackClient",
    "SlackIdentity",
]
