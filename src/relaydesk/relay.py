"""Two-way DM relay between requesters and the operator.

Requester DMs are wrapped into envelopes and delivered to the operator. The
operator answers by replying (platform reply-to) to an envelope; the requester
is recovered from the envelope's routing token, so no per-conversation session
table is needed.
"""

from __future__ import annotations

from .anchors import ConversationAnchors
from .delivery import (
    BOT_RECIPIENT,
    DeliveryResolver,
    classify_error,
    explain_failure,
)
from .discord.client_api import DiscordApi, DiscordApiError
from .envelope import extract_requester_id, render_operator_reply
from .errors import DeliveryFailure
from .logging import get_logger
from .model import DeliveryOutcome, Failed, MessageReceived, RelayEnvelope
from .resolver import EntityResolver, Resolved

logger = get_logger(__name__)

FOLLOW_UP_TITLE = "📩 Follow-up message"


class RelayRouter:
    def __init__(
        self,
        api: DiscordApi,
        entities: EntityResolver,
        delivery: DeliveryResolver,
        anchors: ConversationAnchors,
        *,
        operator_id: str,
    ) -> None:
        self._api = api
        self._entities = entities
        self._delivery = delivery
        self._anchors = anchors
        self._operator_id = operator_id

    @property
    def anchors(self) -> ConversationAnchors:
        return self._anchors

    async def handle_message(self, event: MessageReceived) -> None:
        if event.space_id is not None:
            return
        if event.author_is_bot or not event.author_id:
            return
        if event.author_id == self._operator_id:
            await self.relay_from_operator(event)
            return
        await self.relay_from_requester(event)

    async def relay_from_requester(self, event: MessageReceived) -> DeliveryOutcome | None:
        if not event.content.strip() and not event.attachment_urls:
            return None
        envelope = RelayEnvelope(
            sender_display=event.author_tag or event.author_display,
            sender_id=event.author_id,
            origin_space_name=None,
            body_text=event.content.strip(),
            attachment_urls=event.attachment_urls,
            title=FOLLOW_UP_TITLE,
        )
        outcome = await self._delivery.deliver(self._operator_id, envelope)
        if isinstance(outcome, Failed):
            await self._notify(
                event.channel_id,
                "⚠️ Your message could not be delivered to staff: "
                f"{explain_failure(outcome)}. Please contact an administrator.",
                reply_to=event.message_id,
            )
            await self._delivery.post_failure_notice(outcome, envelope)
        return outcome

    async def resolve_target(self, event: MessageReceived) -> str | None:
        """Requester ID encoded in the message the operator replied to, if any."""
        if event.reply_to_message_id is None:
            return None
        channel_id = event.reply_to_channel_id or event.channel_id
        try:
            referenced = await self._api.get_message(
                channel_id, event.reply_to_message_id
            )
        except DiscordApiError as exc:
            logger.info(
                "relay.reply.reference_unavailable",
                channel_id=channel_id,
                message_id=event.reply_to_message_id,
                status=exc.status,
                code=exc.code,
            )
            return None
        bot_user_id = await self._entities.current_user_id()
        return extract_requester_id(referenced, bot_user_id=bot_user_id)

    async def relay_from_operator(self, event: MessageReceived) -> bool:
        requester_id = await self.resolve_target(event)
        if requester_id is None:
            logger.debug(
                "relay.reply.ignored",
                message_id=event.message_id,
                reason="no_relay_token",
            )
            return False
        if (
            event.reply_to_message_id is not None
            and not self._anchors.is_current(requester_id, event.reply_to_message_id)
        ):
            logger.info(
                "relay.reply.stale_anchor",
                requester_id=requester_id,
                message_id=event.reply_to_message_id,
            )
        messages = render_operator_reply(
            event.author_display, event.content, event.attachment_urls
        )
        try:
            await self._send_direct(requester_id, messages)
        except DeliveryFailure as failure:
            logger.warning(
                "relay.reply.undeliverable",
                requester_id=requester_id,
                classification=failure.classification,
                raw_code=failure.raw_code,
            )
            reason = explain_failure(Failed(failure.classification, failure.raw_code))
            await self._notify(
                event.channel_id,
                f"⚠️ Could not deliver your reply to <@{requester_id}>: {reason}.",
                reply_to=event.message_id,
            )
            return False
        logger.info(
            "relay.reply.forwarded",
            requester_id=requester_id,
            message_id=event.message_id,
        )
        return True

    async def _send_direct(self, user_id: str, messages: list[str]) -> None:
        try:
            user = await self._entities.user(user_id)
        except DiscordApiError as exc:
            raise DeliveryFailure(classify_error(exc), exc.code) from exc
        if not isinstance(user, Resolved):
            raise DeliveryFailure("invalidRecipient", "unknown_user")
        if user.entity.bot:
            raise DeliveryFailure("invalidRecipient", BOT_RECIPIENT)
        try:
            channel = await self._api.create_dm(user_id)
            for content in messages:
                await self._api.send_message(
                    channel.id, content=content, allowed_mentions={"parse": []}
                )
        except DiscordApiError as exc:
            raise DeliveryFailure(classify_error(exc), exc.code) from exc

    async def _notify(
        self, channel_id: str, text: str, *, reply_to: str | None = None
    ) -> None:
        try:
            await self._api.send_message(
                channel_id,
                content=text,
                reply_to=reply_to,
                allowed_mentions={"parse": []},
            )
        except DiscordApiError as exc:
            logger.error(
                "relay.notify.failed",
                channel_id=channel_id,
                status=exc.status,
                code=exc.code,
            )
