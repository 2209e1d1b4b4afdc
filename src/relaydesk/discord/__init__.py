from __future__ import annotations

from .api_models import Channel, ChannelType, Guild, Member, Message, User
from .client import DiscordClient
from .client_api import (
    CANNOT_MESSAGE_USER,
    INVALID_RECIPIENT,
    DiscordApi,
    DiscordApiError,
    DiscordRetryAfter,
)
from .parsing import parse_dispatch, parse_gateway_frame

__all__ = [
    "CANNOT_MESSAGE_USER",
    "INVALID_RECIPIENT",
    "Channel",
    "ChannelType",
    "DiscordApi",
    "DiscordApiError",
    "DiscordClient",
    "DiscordRetryAfter",
    "Guild",
    "Member",
    "Message",
    "User",
    "parse_dispatch",
    "parse_gateway_frame",
]
