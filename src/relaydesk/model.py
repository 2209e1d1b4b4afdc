"""relaydesk domain model types (delivery outcomes, envelopes, incoming events)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, TypeAlias


DeliveryVia: TypeAlias = Literal["directSend", "explicitChannelSend", "fallbackThread"]

FailureClassification: TypeAlias = Literal[
    "recipientUnreachable",
    "invalidRecipient",
    "unknown",
]

SubmissionKind: TypeAlias = Literal["report", "contact-operator"]


@dataclass(frozen=True, slots=True)
class Delivered:
    via: DeliveryVia
    channel_id: str
    message_id: str


@dataclass(frozen=True, slots=True)
class Failed:
    classification: FailureClassification
    raw_code: int | str | None = None


DeliveryOutcome: TypeAlias = Delivered | Failed


@dataclass(frozen=True, slots=True)
class PanelRecord:
    space_id: str
    message_id: str


@dataclass(frozen=True, slots=True)
class RelayEnvelope:
    sender_display: str
    sender_id: str
    origin_space_name: str | None
    body_text: str
    attachment_urls: tuple[str, ...] = ()
    title: str = "📩 New Message for Admin"


@dataclass(frozen=True, slots=True)
class Ready:
    user_id: str


@dataclass(frozen=True, slots=True)
class SpaceAvailable:
    space_id: str
    name: str | None = None


@dataclass(frozen=True, slots=True)
class InteractionRef:
    interaction_id: str
    application_id: str
    token: str


@dataclass(frozen=True, slots=True)
class ControlActivation:
    interaction: InteractionRef
    space_id: str | None
    channel_id: str | None
    user_id: str
    custom_id: str


@dataclass(frozen=True, slots=True)
class FormSubmission:
    interaction: InteractionRef
    space_id: str | None
    channel_id: str | None
    user_id: str
    user_display: str
    user_tag: str
    custom_id: str
    fields: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class CommandInvocation:
    interaction: InteractionRef
    space_id: str | None
    channel_id: str | None
    user_id: str
    name: str
    options: dict[str, str | int | bool] = field(default_factory=dict)
    member_permissions: int = 0


@dataclass(frozen=True, slots=True)
class MessageReceived:
    message_id: str
    channel_id: str
    space_id: str | None
    author_id: str
    author_display: str
    author_tag: str
    author_is_bot: bool
    content: str
    attachment_urls: tuple[str, ...] = ()
    reply_to_message_id: str | None = None
    reply_to_channel_id: str | None = None


@dataclass(frozen=True, slots=True)
class MessageDeleted:
    space_id: str | None
    channel_id: str
    message_id: str


IncomingEvent: TypeAlias = (
    Ready
    | SpaceAvailable
    | ControlActivation
    | FormSubmission
    | CommandInvocation
    | MessageReceived
    | MessageDeleted
)
