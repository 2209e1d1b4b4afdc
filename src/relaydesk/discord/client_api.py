from __future__ import annotations

from typing import Any, Protocol

from .api_models import Channel, Guild, Member, Message, User

# JSON error codes returned by the Discord API.
UNKNOWN_CHANNEL = 10003
UNKNOWN_GUILD = 10004
UNKNOWN_MEMBER = 10007
UNKNOWN_MESSAGE = 10008
UNKNOWN_USER = 10013
CANNOT_MESSAGE_USER = 50007
INVALID_RECIPIENT = 50033

NOT_FOUND_CODES = frozenset(
    {UNKNOWN_CHANNEL, UNKNOWN_GUILD, UNKNOWN_MEMBER, UNKNOWN_MESSAGE, UNKNOWN_USER}
)


class RetryAfter(Exception):
    def __init__(self, retry_after: float, description: str | None = None) -> None:
        super().__init__(description or f"retry after {retry_after}")
        self.retry_after = float(retry_after)
        self.description = description


class DiscordRetryAfter(RetryAfter):
    pass


class DiscordApiError(Exception):
    def __init__(
        self,
        *,
        status: int | None,
        code: int | None,
        message: str,
        method: str = "",
        path: str = "",
    ) -> None:
        super().__init__(f"{method} {path} -> {status} {code}: {message}".strip())
        self.status = status
        self.code = code
        self.message = message
        self.method = method
        self.path = path

    @property
    def is_not_found(self) -> bool:
        return self.status == 404 or self.code in NOT_FOUND_CODES


class DiscordApi(Protocol):
    async def close(self) -> None: ...

    async def get_current_user(self) -> User: ...

    async def get_application(self) -> dict[str, Any]: ...

    async def get_channel(self, channel_id: str) -> Channel: ...

    async def get_user(self, user_id: str) -> User: ...

    async def get_guild(self, guild_id: str) -> Guild: ...

    async def get_member(self, guild_id: str, user_id: str) -> Member: ...

    async def create_dm(self, user_id: str) -> Channel: ...

    async def send_message(
        self,
        channel_id: str,
        *,
        content: str | None = None,
        embeds: list[dict[str, Any]] | None = None,
        components: list[dict[str, Any]] | None = None,
        reply_to: str | None = None,
        allowed_mentions: dict[str, Any] | None = None,
    ) -> Message: ...

    async def get_message(self, channel_id: str, message_id: str) -> Message: ...

    async def get_messages(self, channel_id: str, *, limit: int = 50) -> list[Message]: ...

    async def pin_message(self, channel_id: str, message_id: str) -> None: ...

    async def start_forum_thread(
        self, forum_id: str, *, name: str, content: str
    ) -> Channel: ...

    async def start_private_thread(self, channel_id: str, *, name: str) -> Channel: ...

    async def add_thread_member(self, thread_id: str, user_id: str) -> None: ...

    async def create_interaction_response(
        self, interaction_id: str, token: str, payload: dict[str, Any]
    ) -> None: ...

    async def edit_original_response(
        self, application_id: str, token: str, payload: dict[str, Any]
    ) -> None: ...

    async def create_followup(
        self, application_id: str, token: str, payload: dict[str, Any]
    ) -> None: ...

    async def bulk_overwrite_guild_commands(
        self, application_id: str, guild_id: str, commands: list[dict[str, Any]]
    ) -> list[dict[str, Any]]: ...
