"""Operator delivery with ordered fallbacks.

Strategies run in order until one delivers:

1. direct send to the operator as a member of the originating server
2. explicit DM channel opened against the platform-wide user
3. private thread in the fallback channel, only after a DM came back
   "cannot message this user"

`invalidRecipient` stops the chain immediately.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from .anchors import ConversationAnchors
from .discord.api_models import Message
from .discord.client_api import (
    CANNOT_MESSAGE_USER,
    INVALID_RECIPIENT,
    DiscordApi,
    DiscordApiError,
)
from .envelope import render_envelope
from .logging import get_logger
from .model import (
    Delivered,
    DeliveryOutcome,
    DeliveryVia,
    Failed,
    FailureClassification,
    RelayEnvelope,
)
from .resolver import EntityResolver, Resolved

logger = get_logger(__name__)

Strategy = Callable[
    [str, RelayEnvelope, str | None, Failed | None],
    Awaitable[DeliveryOutcome | None],
]

BOT_RECIPIENT = "bot_account"


def classify_error(exc: DiscordApiError) -> FailureClassification:
    if exc.code == CANNOT_MESSAGE_USER:
        return "recipientUnreachable"
    if exc.code == INVALID_RECIPIENT:
        return "invalidRecipient"
    return "unknown"


def _raw_code(exc: DiscordApiError) -> int | None:
    return exc.code if exc.code is not None else exc.status


def explain_failure(failed: Failed) -> str:
    if failed.classification == "recipientUnreachable":
        return "their direct messages are closed or they have blocked the bot"
    if failed.classification == "invalidRecipient":
        if failed.raw_code == BOT_RECIPIENT:
            return "the configured staff account is a bot account"
        return "the configured staff account cannot receive messages"
    code = failed.raw_code if failed.raw_code is not None else "unknown"
    return f"delivery failed (code: {code})"


class DeliveryResolver:
    def __init__(
        self,
        api: DiscordApi,
        entities: EntityResolver,
        anchors: ConversationAnchors,
        *,
        fallback_channel_id: str | None = None,
        notice_channel_id: str | None = None,
    ) -> None:
        self._api = api
        self._entities = entities
        self._anchors = anchors
        self._fallback_channel_id = fallback_channel_id
        self._notice_channel_id = notice_channel_id
        self._threads: dict[str, str] = {}
        self._strategies: list[tuple[DeliveryVia, Strategy]] = [
            ("directSend", self._direct_member_send),
            ("explicitChannelSend", self._explicit_channel_send),
            ("fallbackThread", self._fallback_thread),
        ]

    async def deliver(
        self,
        operator_id: str,
        envelope: RelayEnvelope,
        *,
        origin_space_id: str | None = None,
    ) -> DeliveryOutcome:
        last: Failed | None = None
        for via, strategy in self._strategies:
            outcome = await strategy(operator_id, envelope, origin_space_id, last)
            if outcome is None:
                logger.debug("delivery.strategy.skipped", via=via)
                continue
            if isinstance(outcome, Delivered):
                self._anchors.record(
                    envelope.sender_id,
                    channel_id=outcome.channel_id,
                    message_id=outcome.message_id,
                )
                logger.info(
                    "delivery.delivered",
                    via=outcome.via,
                    requester_id=envelope.sender_id,
                    channel_id=outcome.channel_id,
                    message_id=outcome.message_id,
                )
                return outcome
            logger.warning(
                "delivery.strategy.failed",
                via=via,
                requester_id=envelope.sender_id,
                classification=outcome.classification,
                raw_code=outcome.raw_code,
            )
            last = outcome
            if outcome.classification == "invalidRecipient":
                break
        failed = last if last is not None else Failed("unknown")
        logger.error(
            "delivery.exhausted",
            requester_id=envelope.sender_id,
            classification=failed.classification,
            raw_code=failed.raw_code,
        )
        return failed

    async def _send_envelope(
        self,
        channel_id: str,
        envelope: RelayEnvelope,
        *,
        mention_ids: tuple[str, ...] = (),
    ) -> Message:
        content, embed = render_envelope(envelope)
        if mention_ids:
            content = " ".join(f"<@{user_id}>" for user_id in mention_ids) + " " + content
        anchor = self._anchors.get(envelope.sender_id)
        reply_to = (
            anchor.message_id
            if anchor is not None and anchor.channel_id == channel_id
            else None
        )
        allowed_mentions: dict[str, Any] = {"parse": [], "users": list(mention_ids)}
        return await self._api.send_message(
            channel_id,
            content=content,
            embeds=[embed],
            reply_to=reply_to,
            allowed_mentions=allowed_mentions,
        )

    async def _direct_member_send(
        self,
        operator_id: str,
        envelope: RelayEnvelope,
        origin_space_id: str | None,
        previous: Failed | None,
    ) -> DeliveryOutcome | None:
        if origin_space_id is None:
            return None
        try:
            member = await self._entities.member(origin_space_id, operator_id)
        except DiscordApiError as exc:
            return Failed(classify_error(exc), _raw_code(exc))
        if not isinstance(member, Resolved):
            return None
        user = member.entity.user
        if user is not None and user.bot:
            return Failed("invalidRecipient", BOT_RECIPIENT)
        try:
            channel = await self._api.create_dm(operator_id)
            message = await self._send_envelope(channel.id, envelope)
        except DiscordApiError as exc:
            return Failed(classify_error(exc), _raw_code(exc))
        return Delivered(via="directSend", channel_id=channel.id, message_id=message.id)

    async def _explicit_channel_send(
        self,
        operator_id: str,
        envelope: RelayEnvelope,
        origin_space_id: str | None,
        previous: Failed | None,
    ) -> DeliveryOutcome | None:
        try:
            user = await self._entities.user(operator_id)
        except DiscordApiError as exc:
            return Failed(classify_error(exc), _raw_code(exc))
        if not isinstance(user, Resolved):
            return Failed("invalidRecipient", "unknown_user")
        if user.entity.bot:
            return Failed("invalidRecipient", BOT_RECIPIENT)
        try:
            channel = await self._api.create_dm(user.entity.id)
            message = await self._send_envelope(channel.id, envelope)
        except DiscordApiError as exc:
            return Failed(classify_error(exc), _raw_code(exc))
        return Delivered(
            via="explicitChannelSend", channel_id=channel.id, message_id=message.id
        )

    async def _fallback_thread(
        self,
        operator_id: str,
        envelope: RelayEnvelope,
        origin_space_id: str | None,
        previous: Failed | None,
    ) -> DeliveryOutcome | None:
        if self._fallback_channel_id is None:
            return None
        if previous is None or previous.classification != "recipientUnreachable":
            return None
        reused = await self._reuse_thread(operator_id, envelope)
        if reused is not None:
            return reused
        try:
            thread = await self._api.start_private_thread(
                self._fallback_channel_id,
                name=f"Support: {envelope.sender_display}",
            )
        except DiscordApiError as exc:
            return Failed(classify_error(exc), _raw_code(exc))
        for user_id in (envelope.sender_id, operator_id):
            try:
                await self._api.add_thread_member(thread.id, user_id)
            except DiscordApiError as exc:
                logger.warning(
                    "delivery.thread_member.failed",
                    thread_id=thread.id,
                    user_id=user_id,
                    status=exc.status,
                    code=exc.code,
                )
        try:
            message = await self._send_envelope(
                thread.id, envelope, mention_ids=(operator_id,)
            )
        except DiscordApiError as exc:
            return Failed(classify_error(exc), _raw_code(exc))
        self._threads[envelope.sender_id] = thread.id
        return Delivered(via="fallbackThread", channel_id=thread.id, message_id=message.id)

    async def _reuse_thread(
        self, operator_id: str, envelope: RelayEnvelope
    ) -> Delivered | None:
        thread_id = self._threads.get(envelope.sender_id)
        if thread_id is None:
            return None
        try:
            message = await self._send_envelope(
                thread_id, envelope, mention_ids=(operator_id,)
            )
        except DiscordApiError as exc:
            logger.info(
                "delivery.thread.unusable",
                thread_id=thread_id,
                status=exc.status,
                code=exc.code,
            )
            del self._threads[envelope.sender_id]
            return None
        return Delivered(via="fallbackThread", channel_id=thread_id, message_id=message.id)

    async def post_failure_notice(
        self, failed: Failed, envelope: RelayEnvelope
    ) -> bool:
        """Best-effort moderation notice for an undeliverable envelope."""
        if self._notice_channel_id is None:
            return False
        text = (
            f"⚠️ A message from <@{envelope.sender_id}> ({envelope.sender_display}) "
            f"could not be delivered to staff: {explain_failure(failed)}."
        )
        try:
            await self._api.send_message(
                self._notice_channel_id,
                content=text,
                allowed_mentions={"parse": []},
            )
        except DiscordApiError as exc:
            logger.error(
                "delivery.notice.failed",
                channel_id=self._notice_channel_id,
                status=exc.status,
                code=exc.code,
            )
            return False
        return True
