"""Gateway connection.

discord.py owns the websocket (identify, heartbeat, resume, reconnect). Raw
frames are taken from `on_socket_raw_receive` and everything above that works on
plain dispatch payloads, so no discord.py model object leaks into the core.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable

import discord

from ..logging import get_logger
from .parsing import OP_DISPATCH, parse_gateway_frame

logger = get_logger(__name__)

DispatchHandler = Callable[[str, Any], Awaitable[None]]


def default_intents() -> discord.Intents:
    intents = discord.Intents.none()
    intents.guilds = True
    intents.guild_messages = True
    intents.dm_messages = True
    return intents


class DiscordGateway:
    def __init__(self, token: str, *, intents: discord.Intents | None = None) -> None:
        if not token:
            raise ValueError("Discord token is empty")
        self._token = token
        self._client = discord.Client(
            intents=intents or default_intents(),
            enable_debug_events=True,
        )
        self._handler: DispatchHandler | None = None
        self._client.event(self.on_socket_raw_receive)

    async def on_socket_raw_receive(self, msg: str) -> None:
        if self._handler is None:
            return
        frame = parse_gateway_frame(msg)
        if frame is None or frame.op != OP_DISPATCH or frame.t is None:
            return
        logger.debug("gateway.dispatch", event_type=frame.t, seq=frame.s)
        await self._handler(frame.t, frame.d)

    async def run(self, handler: DispatchHandler) -> None:
        self._handler = handler
        logger.info("gateway.connecting")
        try:
            await self._client.start(self._token)
        finally:
            self._handler = None
            if not self._client.is_closed():
                await self._client.close()

    async def close(self) -> None:
        if not self._client.is_closed():
            await self._client.close()
