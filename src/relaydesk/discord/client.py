from __future__ import annotations

import re
from typing import Any, Awaitable, Callable

import anyio
import httpx

from ..logging import get_logger
from .api_models import Channel, ChannelType, Guild, Member, Message, User, convert
from .client_api import DiscordApiError, DiscordRetryAfter

logger = get_logger(__name__)

API_BASE_URL = "https://discord.com/api/v10"
USER_AGENT = "DiscordBot (https://github.com/relaydesk/relaydesk, 0.4)"
MAX_ATTEMPTS = 3

_RETRY_AFTER_RE = re.compile(r"retry after (\d+(?:\.\d+)?)", re.IGNORECASE)


def _retry_after_from_response(resp: httpx.Response) -> float | None:
    try:
        payload = resp.json()
    except Exception:
        payload = None
    if isinstance(payload, dict):
        retry_after = payload.get("retry_after")
        if isinstance(retry_after, (int, float)):
            return float(retry_after)
    header = resp.headers.get("retry-after")
    if header:
        try:
            return float(header)
        except ValueError:
            pass
    match = _RETRY_AFTER_RE.search(resp.text)
    if match:
        return float(match.group(1))
    return None


def _error_from_response(method: str, path: str, resp: httpx.Response) -> DiscordApiError:
    code: int | None = None
    message = resp.text
    try:
        payload = resp.json()
    except Exception:
        payload = None
    if isinstance(payload, dict):
        raw_code = payload.get("code")
        if isinstance(raw_code, int) and not isinstance(raw_code, bool):
            code = raw_code
        raw_message = payload.get("message")
        if isinstance(raw_message, str):
            message = raw_message
    return DiscordApiError(
        status=resp.status_code,
        code=code,
        message=message,
        method=method,
        path=path,
    )


class DiscordClient:
    def __init__(
        self,
        token: str,
        timeout_s: float = 30,
        client: httpx.AsyncClient | None = None,
        *,
        base_url: str = API_BASE_URL,
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
    ) -> None:
        if not token:
            raise ValueError("Discord token is empty")
        self._base = base_url.rstrip("/")
        self._headers = {
            "Authorization": f"Bot {token}",
            "User-Agent": USER_AGENT,
        }
        self._client = client or httpx.AsyncClient(timeout=timeout_s)
        self._owns_client = client is None
        self._sleep = sleep

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request_once(
        self,
        method: str,
        path: str,
        *,
        json_data: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        logger.debug("discord.request", method=method, path=path, payload=json_data)
        try:
            resp = await self._client.request(
                method,
                f"{self._base}{path}",
                json=json_data,
                params=params,
                headers=self._headers,
            )
        except httpx.HTTPError as e:
            logger.error(
                "discord.network_error",
                method=method,
                path=path,
                error=str(e),
                error_type=e.__class__.__name__,
            )
            raise DiscordApiError(
                status=None,
                code=None,
                message=str(e) or e.__class__.__name__,
                method=method,
                path=path,
            ) from e

        if resp.status_code == 429:
            retry_after = _retry_after_from_response(resp)
            if retry_after is not None:
                logger.info(
                    "discord.rate_limited",
                    method=method,
                    path=path,
                    retry_after=retry_after,
                )
                raise DiscordRetryAfter(retry_after)

        if resp.status_code >= 400:
            error = _error_from_response(method, path, resp)
            logger.info(
                "discord.http_error",
                method=method,
                path=path,
                status=error.status,
                code=error.code,
                error=error.message,
            )
            raise error

        if resp.status_code == 204 or not resp.content:
            return None

        try:
            payload = resp.json()
        except Exception as e:
            logger.error(
                "discord.bad_response",
                method=method,
                path=path,
                status=resp.status_code,
                error=str(e),
                error_type=e.__class__.__name__,
                body=resp.text,
            )
            raise DiscordApiError(
                status=resp.status_code,
                code=None,
                message="invalid JSON response",
                method=method,
                path=path,
            ) from e

        logger.debug("discord.response", method=method, path=path, payload=payload)
        return payload

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_data: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        attempt = 0
        while True:
            attempt += 1
            try:
                return await self._request_once(
                    method, path, json_data=json_data, params=params
                )
            except DiscordRetryAfter as exc:
                if attempt >= MAX_ATTEMPTS:
                    raise DiscordApiError(
                        status=429,
                        code=None,
                        message=f"rate limited (retry after {exc.retry_after}s)",
                        method=method,
                        path=path,
                    ) from exc
                await self._sleep(exc.retry_after)

    async def get_current_user(self) -> User:
        return convert(await self._request("GET", "/users/@me"), User)

    async def get_application(self) -> dict[str, Any]:
        payload = await self._request("GET", "/oauth2/applications/@me")
        return payload if isinstance(payload, dict) else {}

    async def get_channel(self, channel_id: str) -> Channel:
        return convert(await self._request("GET", f"/channels/{channel_id}"), Channel)

    async def get_user(self, user_id: str) -> User:
        return convert(await self._request("GET", f"/users/{user_id}"), User)

    async def get_guild(self, guild_id: str) -> Guild:
        return convert(await self._request("GET", f"/guilds/{guild_id}"), Guild)

    async def get_member(self, guild_id: str, user_id: str) -> Member:
        payload = await self._request("GET", f"/guilds/{guild_id}/members/{user_id}")
        return convert(payload, Member)

    async def create_dm(self, user_id: str) -> Channel:
        payload = await self._request(
            "POST", "/users/@me/channels", json_data={"recipient_id": user_id}
        )
        return convert(payload, Channel)

    async def send_message(
        self,
        channel_id: str,
        *,
        content: str | None = None,
        embeds: list[dict[str, Any]] | None = None,
        components: list[dict[str, Any]] | None = None,
        reply_to: str | None = None,
        allowed_mentions: dict[str, Any] | None = None,
    ) -> Message:
        params: dict[str, Any] = {}
        if content is not None:
            params["content"] = content
        if embeds is not None:
            params["embeds"] = embeds
        if components is not None:
            params["components"] = components
        if reply_to is not None:
            params["message_reference"] = {
                "message_id": reply_to,
                "fail_if_not_exists": False,
            }
        if allowed_mentions is not None:
            params["allowed_mentions"] = allowed_mentions
        payload = await self._request(
            "POST", f"/channels/{channel_id}/messages", json_data=params
        )
        return convert(payload, Message)

    async def get_message(self, channel_id: str, message_id: str) -> Message:
        payload = await self._request(
            "GET", f"/channels/{channel_id}/messages/{message_id}"
        )
        return convert(payload, Message)

    async def get_messages(self, channel_id: str, *, limit: int = 50) -> list[Message]:
        payload = await self._request(
            "GET",
            f"/channels/{channel_id}/messages",
            params={"limit": max(1, min(limit, 100))},
        )
        return convert(payload or [], list[Message])

    async def pin_message(self, channel_id: str, message_id: str) -> None:
        await self._request("PUT", f"/channels/{channel_id}/pins/{message_id}")

    async def start_forum_thread(
        self, forum_id: str, *, name: str, content: str
    ) -> Channel:
        payload = await self._request(
            "POST",
            f"/channels/{forum_id}/threads",
            json_data={"name": name[:100], "message": {"content": content}},
        )
        return convert(payload, Channel)

    async def start_private_thread(self, channel_id: str, *, name: str) -> Channel:
        payload = await self._request(
            "POST",
            f"/channels/{channel_id}/threads",
            json_data={
                "name": name[:100],
                "type": ChannelType.PRIVATE_THREAD,
                "invitable": False,
            },
        )
        return convert(payload, Channel)

    async def add_thread_member(self, thread_id: str, user_id: str) -> None:
        await self._request("PUT", f"/channels/{thread_id}/thread-members/{user_id}")

    async def create_interaction_response(
        self, interaction_id: str, token: str, payload: dict[str, Any]
    ) -> None:
        await self._request(
            "POST", f"/interactions/{interaction_id}/{token}/callback", json_data=payload
        )

    async def edit_original_response(
        self, application_id: str, token: str, payload: dict[str, Any]
    ) -> None:
        await self._request(
            "PATCH",
            f"/webhooks/{application_id}/{token}/messages/@original",
            json_data=payload,
        )

    async def create_followup(
        self, application_id: str, token: str, payload: dict[str, Any]
    ) -> None:
        await self._request(
            "POST", f"/webhooks/{application_id}/{token}", json_data=payload
        )

    async def bulk_overwrite_guild_commands(
        self, application_id: str, guild_id: str, commands: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        payload = await self._request(
            "PUT",
            f"/applications/{application_id}/guilds/{guild_id}/commands",
            json_data=commands,
        )
        return payload if isinstance(payload, list) else []
