from __future__ import annotations

from typing import Any

import msgspec

from ..logging import get_logger
from ..model import (
    CommandInvocation,
    ControlActivation,
    FormSubmission,
    IncomingEvent,
    InteractionRef,
    MessageDeleted,
    MessageReceived,
    Ready,
    SpaceAvailable,
)
from .api_models import GatewayFrame, Interaction, Message, convert

logger = get_logger(__name__)

OP_DISPATCH = 0

INTERACTION_APPLICATION_COMMAND = 2
INTERACTION_MESSAGE_COMPONENT = 3
INTERACTION_MODAL_SUBMIT = 5

_frame_decoder = msgspec.json.Decoder(GatewayFrame)


def parse_gateway_frame(raw: str | bytes) -> GatewayFrame | None:
    try:
        return _frame_decoder.decode(raw)
    except (msgspec.DecodeError, msgspec.ValidationError):
        return None


def parse_dispatch(event_type: str, payload: Any) -> list[IncomingEvent]:
    if not isinstance(payload, dict):
        return []
    try:
        if event_type == "READY":
            return _parse_ready(payload)
        if event_type == "GUILD_CREATE":
            return _parse_guild_create(payload)
        if event_type == "INTERACTION_CREATE":
            event = _parse_interaction(convert(payload, Interaction))
            return [event] if event is not None else []
        if event_type == "MESSAGE_CREATE":
            return [_parse_message(convert(payload, Message))]
        if event_type == "MESSAGE_DELETE":
            return [
                MessageDeleted(
                    space_id=_opt_str(payload.get("guild_id")),
                    channel_id=str(payload["channel_id"]),
                    message_id=str(payload["id"]),
                )
            ]
        if event_type == "MESSAGE_DELETE_BULK":
            return [
                MessageDeleted(
                    space_id=_opt_str(payload.get("guild_id")),
                    channel_id=str(payload["channel_id"]),
                    message_id=str(message_id),
                )
                for message_id in payload.get("ids") or []
            ]
    except (KeyError, TypeError, msgspec.ValidationError) as exc:
        logger.warning(
            "gateway.dispatch.malformed",
            event_type=event_type,
            error=str(exc),
            error_type=exc.__class__.__name__,
        )
        return []
    return []


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def _parse_ready(payload: dict[str, Any]) -> list[IncomingEvent]:
    user = payload.get("user") or {}
    return [Ready(user_id=str(user["id"]))]


def _parse_guild_create(payload: dict[str, Any]) -> list[IncomingEvent]:
    if payload.get("unavailable"):
        return []
    return [SpaceAvailable(space_id=str(payload["id"]), name=payload.get("name"))]


def _modal_values(components: Any) -> dict[str, str]:
    values: dict[str, str] = {}
    stack: list[Any] = [components]
    while stack:
        item = stack.pop()
        if isinstance(item, list):
            stack.extend(item)
            continue
        if not isinstance(item, dict):
            continue
        custom_id = item.get("custom_id")
        value = item.get("value")
        if isinstance(custom_id, str) and isinstance(value, str):
            values[custom_id] = value
        for child_key in ("components", "component"):
            child = item.get(child_key)
            if child is not None:
                stack.append(child)
    return values


def _command_options(options: Any) -> dict[str, str | int | bool]:
    parsed: dict[str, str | int | bool] = {}
    if not isinstance(options, list):
        return parsed
    for option in options:
        if not isinstance(option, dict):
            continue
        name = option.get("name")
        value = option.get("value")
        if isinstance(name, str) and isinstance(value, (str, int, bool)):
            parsed[name] = value
    return parsed


def _parse_interaction(interaction: Interaction) -> IncomingEvent | None:
    invoker = interaction.invoker
    if invoker is None:
        return None
    data = interaction.data or {}
    ref = InteractionRef(
        interaction_id=interaction.id,
        application_id=interaction.application_id,
        token=interaction.token,
    )
    if interaction.type == INTERACTION_MESSAGE_COMPONENT:
        custom_id = data.get("custom_id")
        if not isinstance(custom_id, str):
            return None
        return ControlActivation(
            interaction=ref,
            space_id=interaction.guild_id,
            channel_id=interaction.channel_id,
            user_id=invoker.id,
            custom_id=custom_id,
        )
    if interaction.type == INTERACTION_MODAL_SUBMIT:
        custom_id = data.get("custom_id")
        if not isinstance(custom_id, str):
            return None
        return FormSubmission(
            interaction=ref,
            space_id=interaction.guild_id,
            channel_id=interaction.channel_id,
            user_id=invoker.id,
            user_display=invoker.display_name,
            user_tag=invoker.tag,
            custom_id=custom_id,
            fields=_modal_values(data.get("components")),
        )
    if interaction.type == INTERACTION_APPLICATION_COMMAND:
        name = data.get("name")
        if not isinstance(name, str):
            return None
        member_permissions = 0
        if interaction.member is not None and interaction.member.permissions:
            try:
                member_permissions = int(interaction.member.permissions)
            except ValueError:
                member_permissions = 0
        return CommandInvocation(
            interaction=ref,
            space_id=interaction.guild_id,
            channel_id=interaction.channel_id,
            user_id=invoker.id,
            name=name,
            options=_command_options(data.get("options")),
            member_permissions=member_permissions,
        )
    return None


def _parse_message(message: Message) -> MessageReceived:
    author = message.author
    reference = message.message_reference
    reply_to_message_id = reference.message_id if reference is not None else None
    reply_to_channel_id = (
        reference.channel_id or message.channel_id if reference is not None else None
    )
    return MessageReceived(
        message_id=message.id,
        channel_id=message.channel_id,
        space_id=message.guild_id,
        author_id=author.id if author is not None else "",
        author_display=author.display_name if author is not None else "",
        author_tag=author.tag if author is not None else "",
        author_is_bot=author.bot if author is not None else False,
        content=message.content,
        attachment_urls=tuple(item.url for item in message.attachments),
        reply_to_message_id=reply_to_message_id,
        reply_to_channel_id=reply_to_channel_id,
    )
