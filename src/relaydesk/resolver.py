"""Typed entity lookups on top of the REST client.

A missing entity is a normal outcome here, not an exception: callers get a
`NotFound` or `WrongType` value and decide how loud to be about it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Literal, TypeAlias, TypeVar

from .discord.api_models import Channel, ChannelType, Member, User
from .discord.client_api import DiscordApi, DiscordApiError
from .errors import ConfigurationError
from .logging import get_logger

logger = get_logger(__name__)

EntityKind: TypeAlias = Literal["forum-category", "text-channel", "user", "member"]

_CHANNEL_KINDS: dict[str, int] = {
    "forum-category": ChannelType.GUILD_FORUM,
    "text-channel": ChannelType.GUILD_TEXT,
}

# 50001 Missing Access: the bot cannot see it, which is the same as absent for us.
_MISSING_ACCESS = 50001

E = TypeVar("E")


@dataclass(frozen=True, slots=True)
class Resolved(Generic[E]):
    entity: E


@dataclass(frozen=True, slots=True)
class NotFound:
    kind: EntityKind
    entity_id: str


@dataclass(frozen=True, slots=True)
class WrongType:
    kind: EntityKind
    entity_id: str
    actual: str


ResolveFailure: TypeAlias = NotFound | WrongType


def _missing(exc: DiscordApiError) -> bool:
    return exc.is_not_found or exc.status == 403 or exc.code == _MISSING_ACCESS


def describe_failure(failure: ResolveFailure, *, setting: str | None = None) -> str:
    label = f"{setting} ({failure.entity_id})" if setting else failure.entity_id
    if isinstance(failure, WrongType):
        return f"{label} is not configured as a {failure.kind} (found {failure.actual})."
    return f"{label} does not exist or is not visible to the bot."


class EntityResolver:
    def __init__(self, api: DiscordApi) -> None:
        self._api = api
        self._current_user_id: str | None = None

    def set_current_user_id(self, user_id: str) -> None:
        self._current_user_id = user_id

    async def current_user_id(self) -> str:
        """ID of the acting bot identity; READY fills it, REST is the fallback."""
        if self._current_user_id is None:
            me = await self._api.get_current_user()
            self._current_user_id = me.id
        return self._current_user_id

    async def channel(
        self, channel_id: str, kind: EntityKind
    ) -> Resolved[Channel] | ResolveFailure:
        expected = _CHANNEL_KINDS.get(kind)
        if expected is None:
            raise ValueError(f"{kind!r} is not a channel kind")
        try:
            channel = await self._api.get_channel(channel_id)
        except DiscordApiError as exc:
            if _missing(exc):
                return NotFound(kind=kind, entity_id=channel_id)
            raise
        if channel.type != expected:
            return WrongType(
                kind=kind, entity_id=channel_id, actual=f"channel type {channel.type}"
            )
        return Resolved(channel)

    async def user(self, user_id: str) -> Resolved[User] | ResolveFailure:
        try:
            return Resolved(await self._api.get_user(user_id))
        except DiscordApiError as exc:
            if _missing(exc):
                return NotFound(kind="user", entity_id=user_id)
            raise

    async def member(
        self, space_id: str, user_id: str
    ) -> Resolved[Member] | ResolveFailure:
        try:
            return Resolved(await self._api.get_member(space_id, user_id))
        except DiscordApiError as exc:
            if _missing(exc):
                return NotFound(kind="member", entity_id=user_id)
            raise

    async def resolve(
        self,
        kind: EntityKind,
        entity_id: str,
        *,
        space_id: str | None = None,
    ) -> Resolved[Channel] | Resolved[User] | Resolved[Member] | ResolveFailure:
        if kind == "user":
            return await self.user(entity_id)
        if kind == "member":
            if space_id is None:
                return NotFound(kind="member", entity_id=entity_id)
            return await self.member(space_id, entity_id)
        return await self.channel(entity_id, kind)

    async def require_channel(
        self, channel_id: str, kind: EntityKind, *, setting: str
    ) -> Channel:
        result = await self.channel(channel_id, kind)
        if isinstance(result, Resolved):
            return result.entity
        message = describe_failure(result, setting=setting)
        logger.error(
            "resolver.config_invalid",
            setting=setting,
            entity_id=channel_id,
            kind=kind,
            reason=type(result).__name__,
        )
        raise ConfigurationError(message)
