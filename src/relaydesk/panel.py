"""Ticket panel lifecycle.

One panel message per server lives in the support channel. `ensure` is
idempotent across restarts because it first looks for a panel the bot already
posted; `on_deleted` puts a new one back when the tracked message goes away.
"""

from __future__ import annotations

from collections.abc import Iterable

from .discord.api_models import Channel, Message
from .discord.client_api import DiscordApi, DiscordApiError
from .discord.components import PANEL_CONTROL_IDS, panel_components, panel_embed
from .discord.permissions import can_pin, can_send, channel_permissions
from .errors import ConfigurationError
from .logging import get_logger
from .model import PanelRecord
from .resolver import EntityResolver

logger = get_logger(__name__)

HISTORY_LIMIT = 50


def is_panel_message(message: Message, bot_user_id: str) -> bool:
    if message.author is None or message.author.id != bot_user_id:
        return False
    return PANEL_CONTROL_IDS <= message.component_custom_ids()


class PanelManager:
    def __init__(
        self,
        api: DiscordApi,
        entities: EntityResolver,
        *,
        support_channel_id: str,
        history_limit: int = HISTORY_LIMIT,
    ) -> None:
        self._api = api
        self._entities = entities
        self._support_channel_id = support_channel_id
        self._history_limit = history_limit
        self._records: dict[str, PanelRecord] = {}

    @property
    def support_channel_id(self) -> str:
        return self._support_channel_id

    def tracked(self, space_id: str) -> str | None:
        record = self._records.get(space_id)
        return record.message_id if record is not None else None

    async def _permissions(self, space_id: str, channel: Channel, user_id: str) -> int:
        guild = await self._api.get_guild(space_id)
        member = await self._api.get_member(space_id, user_id)
        return channel_permissions(guild, member, user_id, channel)

    async def _find_existing(self, channel: Channel, user_id: str) -> Message | None:
        try:
            messages = await self._api.get_messages(
                channel.id, limit=self._history_limit
            )
        except DiscordApiError as exc:
            logger.warning(
                "panel.history.failed",
                channel_id=channel.id,
                status=exc.status,
                code=exc.code,
            )
            return None
        # Newest first, as returned by the API.
        for message in messages:
            if is_panel_message(message, user_id):
                return message
        return None

    async def _pin(self, message: Message) -> None:
        try:
            await self._api.pin_message(message.channel_id, message.id)
        except DiscordApiError as exc:
            logger.warning(
                "panel.pin.failed",
                channel_id=message.channel_id,
                message_id=message.id,
                status=exc.status,
                code=exc.code,
            )

    def _record(self, space_id: str, message: Message) -> None:
        self._records[space_id] = PanelRecord(space_id=space_id, message_id=message.id)

    async def ensure(self, space_id: str) -> Message | None:
        channel = await self._entities.require_channel(
            self._support_channel_id, "text-channel", setting="SUPPORT_CHANNEL_ID"
        )
        if channel.guild_id != space_id:
            raise ConfigurationError(
                f"SUPPORT_CHANNEL_ID ({channel.id}) does not belong to server {space_id}."
            )
        me = await self._entities.current_user_id()
        permissions = await self._permissions(space_id, channel, me)
        if not can_send(permissions):
            logger.info(
                "panel.ensure.skipped",
                space_id=space_id,
                channel_id=channel.id,
                reason="missing_send_permission",
            )
            return None
        pin_allowed = can_pin(permissions)

        existing = await self._find_existing(channel, me)
        if existing is not None:
            if not existing.pinned and pin_allowed:
                await self._pin(existing)
            self._record(space_id, existing)
            logger.info(
                "panel.ensure.reused",
                space_id=space_id,
                message_id=existing.id,
                pinned=existing.pinned or pin_allowed,
            )
            return existing

        sent = await self._api.send_message(
            channel.id,
            embeds=[panel_embed()],
            components=panel_components(),
        )
        if pin_allowed:
            await self._pin(sent)
        self._record(space_id, sent)
        logger.info(
            "panel.ensure.created",
            space_id=space_id,
            message_id=sent.id,
            pinned=pin_allowed,
        )
        return sent

    async def on_deleted(
        self, space_id: str | None, channel_id: str, message_id: str
    ) -> Message | None:
        if space_id is None or channel_id != self._support_channel_id:
            return None
        if self.tracked(space_id) != message_id:
            return None
        logger.info("panel.deleted", space_id=space_id, message_id=message_id)
        recreated = await self.ensure(space_id)
        if recreated is None:
            # Could not self-heal (permissions); forget the dead id.
            self._records.pop(space_id, None)
        return recreated

    async def ensure_all(self, space_ids: Iterable[str]) -> None:
        for space_id in space_ids:
            try:
                await self.ensure(space_id)
            except ConfigurationError as exc:
                logger.error("panel.ensure.config_error", space_id=space_id, error=str(exc))
            except DiscordApiError as exc:
                logger.error(
                    "panel.ensure.failed",
                    space_id=space_id,
                    status=exc.status,
                    code=exc.code,
                    error=exc.message,
                )

    async def post_untracked(self, channel_id: str) -> Message:
        return await self._api.send_message(
            channel_id,
            embeds=[panel_embed()],
            components=panel_components(),
        )
