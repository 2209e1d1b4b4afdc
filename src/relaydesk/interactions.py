"""Interaction responses and the catch-all handler boundary.

Discord expects exactly one acknowledgement per interaction. The responder
remembers what was already sent and picks the next valid path: initial reply,
edit of the deferred reply, follow-up, and finally a logged drop.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from .discord.client_api import DiscordApi, DiscordApiError
from .discord.components import (
    CALLBACK_DEFERRED_MESSAGE,
    CALLBACK_MESSAGE,
    CALLBACK_MODAL,
    EPHEMERAL,
)
from .errors import ConfigurationError, ValidationError
from .logging import get_logger
from .model import InteractionRef

logger = get_logger(__name__)

CONFIG_ERROR_MESSAGE = (
    "❌ The support desk is not set up correctly. Please contact an administrator."
)
UNEXPECTED_ERROR_MESSAGE = "❌ Something went wrong. Please try again later."


class InteractionResponder:
    def __init__(self, api: DiscordApi, ref: InteractionRef) -> None:
        self._api = api
        self._ref = ref
        self.acknowledged = False
        self.deferred = False

    async def _callback(self, payload: dict[str, Any]) -> None:
        await self._api.create_interaction_response(
            self._ref.interaction_id, self._ref.token, payload
        )
        self.acknowledged = True

    async def show_modal(self, modal: dict[str, Any]) -> None:
        await self._callback({"type": CALLBACK_MODAL, "data": modal})

    async def defer(self, *, ephemeral: bool = True) -> None:
        data = {"flags": EPHEMERAL} if ephemeral else {}
        await self._callback({"type": CALLBACK_DEFERRED_MESSAGE, "data": data})
        self.deferred = True

    async def reply(self, content: str, *, ephemeral: bool = True) -> bool:
        data: dict[str, Any] = {"content": content, "allowed_mentions": {"parse": []}}
        if ephemeral:
            data["flags"] = EPHEMERAL

        if not self.acknowledged:
            try:
                await self._callback({"type": CALLBACK_MESSAGE, "data": data})
                return True
            except DiscordApiError as exc:
                logger.warning(
                    "interaction.reply.failed",
                    interaction_id=self._ref.interaction_id,
                    status=exc.status,
                    code=exc.code,
                )

        try:
            await self._api.edit_original_response(
                self._ref.application_id, self._ref.token, {"content": content}
            )
            return True
        except DiscordApiError as exc:
            logger.warning(
                "interaction.edit.failed",
                interaction_id=self._ref.interaction_id,
                status=exc.status,
                code=exc.code,
            )

        try:
            await self._api.create_followup(
                self._ref.application_id, self._ref.token, data
            )
            return True
        except DiscordApiError as exc:
            logger.error(
                "interaction.response.dropped",
                interaction_id=self._ref.interaction_id,
                status=exc.status,
                code=exc.code,
            )
        return False


async def guarded(
    responder: InteractionResponder,
    handler: Callable[[], Awaitable[None]],
    *,
    name: str,
) -> None:
    try:
        await handler()
    except ValidationError as exc:
        logger.info("interaction.invalid", handler=name, field=exc.field)
        await responder.reply(f"❌ {exc.message}")
    except ConfigurationError as exc:
        logger.error("interaction.config_error", handler=name, error=str(exc))
        await responder.reply(CONFIG_ERROR_MESSAGE)
    except Exception:
        logger.exception("interaction.failed", handler=name)
        await responder.reply(UNEXPECTED_ERROR_MESSAGE)
