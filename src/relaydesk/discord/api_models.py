from __future__ import annotations

from typing import Any, TypeVar

import msgspec

__all__ = [
    "Attachment",
    "Channel",
    "ChannelType",
    "Embed",
    "EmbedFooter",
    "GatewayFrame",
    "Guild",
    "Interaction",
    "Member",
    "Message",
    "MessageReference",
    "PermissionOverwrite",
    "Role",
    "User",
    "convert",
]

T = TypeVar("T")


class ChannelType:
    GUILD_TEXT = 0
    DM = 1
    GUILD_CATEGORY = 4
    GUILD_ANNOUNCEMENT = 5
    PUBLIC_THREAD = 11
    PRIVATE_THREAD = 12
    GUILD_FORUM = 15


class User(msgspec.Struct, forbid_unknown_fields=False):
    id: str
    username: str = ""
    discriminator: str | None = None
    global_name: str | None = None
    bot: bool = False

    @property
    def display_name(self) -> str:
        return self.global_name or self.username or self.id

    @property
    def tag(self) -> str:
        if self.discriminator and self.discriminator != "0":
            return f"{self.username}#{self.discriminator}"
        return self.username or self.id

    @property
    def mention(self) -> str:
        return f"<@{self.id}>"


class Member(msgspec.Struct, forbid_unknown_fields=False):
    user: User | None = None
    nick: str | None = None
    roles: list[str] = msgspec.field(default_factory=list)
    permissions: str | None = None


class Role(msgspec.Struct, forbid_unknown_fields=False):
    id: str
    name: str = ""
    permissions: str = "0"


class Guild(msgspec.Struct, forbid_unknown_fields=False):
    id: str
    name: str = ""
    owner_id: str | None = None
    roles: list[Role] = msgspec.field(default_factory=list)


class PermissionOverwrite(msgspec.Struct, forbid_unknown_fields=False):
    id: str
    type: int
    allow: str = "0"
    deny: str = "0"


class Channel(msgspec.Struct, forbid_unknown_fields=False):
    id: str
    type: int
    guild_id: str | None = None
    name: str | None = None
    parent_id: str | None = None
    permission_overwrites: list[PermissionOverwrite] = msgspec.field(
        default_factory=list
    )

    @property
    def mention(self) -> str:
        return f"<#{self.id}>"


class Attachment(msgspec.Struct, forbid_unknown_fields=False):
    id: str
    url: str
    filename: str = ""


class EmbedFooter(msgspec.Struct, forbid_unknown_fields=False):
    text: str = ""


class Embed(msgspec.Struct, forbid_unknown_fields=False):
    title: str | None = None
    description: str | None = None
    footer: EmbedFooter | None = None


class MessageReference(msgspec.Struct, forbid_unknown_fields=False):
    message_id: str | None = None
    channel_id: str | None = None
    guild_id: str | None = None


class Message(msgspec.Struct, forbid_unknown_fields=False):
    id: str
    channel_id: str
    author: User | None = None
    content: str = ""
    guild_id: str | None = None
    pinned: bool = False
    embeds: list[Embed] = msgspec.field(default_factory=list)
    attachments: list[Attachment] = msgspec.field(default_factory=list)
    components: list[dict[str, Any]] = msgspec.field(default_factory=list)
    message_reference: MessageReference | None = None

    def component_custom_ids(self) -> set[str]:
        found: set[str] = set()
        stack: list[Any] = list(self.components)
        while stack:
            item = stack.pop()
            if not isinstance(item, dict):
                continue
            custom_id = item.get("custom_id")
            if isinstance(custom_id, str):
                found.add(custom_id)
            children = item.get("components")
            if isinstance(children, list):
                stack.extend(children)
        return found


class Interaction(msgspec.Struct, forbid_unknown_fields=False):
    id: str
    application_id: str
    type: int
    token: str
    data: dict[str, Any] | None = None
    guild_id: str | None = None
    channel_id: str | None = None
    member: Member | None = None
    user: User | None = None

    @property
    def invoker(self) -> User | None:
        if self.member is not None and self.member.user is not None:
            return self.member.user
        return self.user


class GatewayFrame(msgspec.Struct, forbid_unknown_fields=False):
    op: int
    d: Any = None
    s: int | None = None
    t: str | None = None


def convert(payload: Any, kind: type[T]) -> T:
    return msgspec.convert(payload, type=kind)
