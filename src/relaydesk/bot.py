from __future__ import annotations

import signal
import time
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, assert_never

import anyio
from anyio import CancelScope

from .anchors import ConversationAnchors
from .commands import PING_COMMAND, PROMO_COMMAND, TICKET_PANEL_COMMAND
from .config import RelaydeskSettings
from .cooldown import COOLDOWN_MESSAGE, CooldownGate, control_key
from .delivery import DeliveryResolver
from .discord.client_api import DiscordApi
from .discord.components import MODALS_BY_CONTROL
from .discord.parsing import parse_dispatch
from .discord.permissions import Permission, has_permission
from .health import serve_health
from .intake import RequestIntake
from .interactions import InteractionResponder, guarded
from .logging import get_logger
from .model import (
    CommandInvocation,
    ControlActivation,
    FormSubmission,
    IncomingEvent,
    MessageDeleted,
    MessageReceived,
    Ready,
    SpaceAvailable,
)
from .panel import PanelManager
from .promo import promo_options_from_command, send_promo
from .relay import RelayRouter
from .resolver import EntityResolver

logger = get_logger(__name__)

EVENT_BUFFER_SIZE = 256

STAFF_ONLY_MESSAGE = "❌ You need the **Manage Server** permission to use this command."


class Gateway(Protocol):
    async def run(self, handler: Callable[[str, Any], Awaitable[None]]) -> None: ...


class SupportBot:
    def __init__(
        self,
        api: DiscordApi,
        settings: RelaydeskSettings,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._api = api
        self._settings = settings
        self.entities = EntityResolver(api)
        self.anchors = ConversationAnchors()
        self.delivery = DeliveryResolver(
            api,
            self.entities,
            self.anchors,
            fallback_channel_id=settings.fallback_channel_id,
            notice_channel_id=settings.notice_channel_id,
        )
        self.relay = RelayRouter(
            api,
            self.entities,
            self.delivery,
            self.anchors,
            operator_id=settings.admin_user_id,
        )
        self.panels = PanelManager(
            api, self.entities, support_channel_id=settings.support_channel_id
        )
        self.intake = RequestIntake(
            api,
            self.entities,
            self.delivery,
            forum_channel_id=settings.forum_channel_id,
            operator_id=settings.admin_user_id,
        )
        self.cooldown: CooldownGate[str] = CooldownGate(
            window_s=settings.cooldown_seconds, clock=clock
        )

    async def handle(self, event: IncomingEvent) -> None:
        match event:
            case Ready():
                self.entities.set_current_user_id(event.user_id)
                logger.info("bot.ready", user_id=event.user_id)
            case SpaceAvailable():
                await self.panels.ensure_all([event.space_id])
            case ControlActivation():
                await self.on_control(event)
            case FormSubmission():
                responder = InteractionResponder(self._api, event.interaction)
                await guarded(
                    responder,
                    lambda: self.intake.submit(event, responder),
                    name=event.custom_id,
                )
            case CommandInvocation():
                await self.on_command(event)
            case MessageReceived():
                await self.relay.handle_message(event)
            case MessageDeleted():
                await self.panels.on_deleted(
                    event.space_id, event.channel_id, event.message_id
                )
            case _:
                assert_never(event)

    async def on_control(self, event: ControlActivation) -> None:
        responder = InteractionResponder(self._api, event.interaction)

        async def _open_form() -> None:
            key = control_key(event.space_id, event.user_id, event.custom_id)
            if not self.cooldown.try_acquire(key):
                logger.info("control.cooldown", key=key)
                await responder.reply(COOLDOWN_MESSAGE)
                return
            build_modal = MODALS_BY_CONTROL.get(event.custom_id)
            if build_modal is None:
                await responder.reply("❌ This button is no longer supported.")
                return
            await responder.show_modal(build_modal())

        await guarded(responder, _open_form, name=event.custom_id)

    async def on_command(self, event: CommandInvocation) -> None:
        responder = InteractionResponder(self._api, event.interaction)

        async def _ping() -> None:
            await responder.reply("🏓 Pong!")

        async def _ticket_panel() -> None:
            if not has_permission(event.member_permissions, Permission.MANAGE_GUILD):
                await responder.reply(STAFF_ONLY_MESSAGE)
                return
            if event.channel_id is None:
                await responder.reply("❌ Use this command inside a server channel.")
                return
            await responder.defer()
            if (
                event.space_id is not None
                and event.channel_id == self.panels.support_channel_id
            ):
                message = await self.panels.ensure(event.space_id)
                if message is None:
                    await responder.reply(
                        "⚠️ I can't post in the support channel; check my permissions."
                    )
                    return
                await responder.reply("✅ Ticket panel is in place.")
                return
            await self.panels.post_untracked(event.channel_id)
            await responder.reply("✅ Ticket panel posted.")

        async def _promo() -> None:
            if not has_permission(event.member_permissions, Permission.MANAGE_GUILD):
                await responder.reply(STAFF_ONLY_MESSAGE)
                return
            options = promo_options_from_command(event.options)
            channel_id = options.channel_id or event.channel_id
            if channel_id is None:
                await responder.reply("❌ Pick a channel for the promo.")
                return
            await responder.defer()
            await send_promo(self._api, channel_id, options)
            await responder.reply(f"✅ Promo posted in <#{channel_id}>.")

        handlers = {
            PING_COMMAND: _ping,
            TICKET_PANEL_COMMAND: _ticket_panel,
            PROMO_COMMAND: _promo,
        }
        handler = handlers.get(event.name)
        if handler is None:
            logger.info("command.unknown", name=event.name)
            await responder.reply("❌ Unknown command.")
            return
        await guarded(responder, handler, name=event.name)

    async def _handle_safely(self, event: IncomingEvent) -> None:
        try:
            await self.handle(event)
        except Exception:
            logger.exception("bot.event.failed", event_type=type(event).__name__)

    async def run(self, gateway: Gateway) -> None:
        send, receive = anyio.create_memory_object_stream[IncomingEvent](
            max_buffer_size=EVENT_BUFFER_SIZE
        )

        async def on_dispatch(event_type: str, payload: Any) -> None:
            for event in parse_dispatch(event_type, payload):
                await send.send(event)

        async def run_gateway() -> None:
            async with send:
                await gateway.run(on_dispatch)

        async with anyio.create_task_group() as tg:
            tg.start_soon(run_gateway)
            async with receive:
                async for event in receive:
                    tg.start_soon(self._handle_safely, event)


async def _watch_signals(scope: CancelScope) -> None:
    with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
        async for signum in signals:
            logger.info("bot.shutdown", signal=signal.Signals(signum).name)
            scope.cancel()
            return


async def run_service(settings: RelaydeskSettings) -> None:
    from .discord.client import DiscordClient
    from .discord.gateway import DiscordGateway

    api = DiscordClient(settings.discord_token)
    gateway = DiscordGateway(settings.discord_token)
    bot = SupportBot(api, settings)
    try:
        async with anyio.create_task_group() as tg:
            tg.start_soon(_watch_signals, tg.cancel_scope)
            await tg.start(serve_health, settings.port)
            await bot.run(gateway)
            tg.cancel_scope.cancel()
    finally:
        with anyio.CancelScope(shield=True):
            await gateway.close()
            await api.close()
