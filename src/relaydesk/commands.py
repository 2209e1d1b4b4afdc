"""Application command definitions and guild registration."""

from __future__ import annotations

from typing import Any

from .discord.client_api import DiscordApi
from .logging import get_logger

logger = get_logger(__name__)

TICKET_PANEL_COMMAND = "ticket-panel"
PROMO_COMMAND = "promo"
PING_COMMAND = "ping"

OPTION_STRING = 3
OPTION_INTEGER = 4
OPTION_BOOLEAN = 5
OPTION_CHANNEL = 7

# MANAGE_GUILD, as a decimal string like the API wants.
_STAFF_ONLY = str(1 << 5)


def build_application_commands() -> list[dict[str, Any]]:
    return [
        {
            "name": PING_COMMAND,
            "description": "Simple ping test",
            "type": 1,
        },
        {
            "name": TICKET_PANEL_COMMAND,
            "description": "Post the ticket panel with two buttons in this channel.",
            "type": 1,
            "default_member_permissions": _STAFF_ONLY,
        },
        {
            "name": PROMO_COMMAND,
            "description": "Post the Free Airdrop Cashback promo",
            "type": 1,
            "default_member_permissions": _STAFF_ONLY,
            "options": [
                {"type": OPTION_STRING, "name": "title", "description": "Headline"},
                {"type": OPTION_STRING, "name": "subtitle", "description": "Sub-headline"},
                {
                    "type": OPTION_INTEGER,
                    "name": "min_games",
                    "description": "Minimum games to qualify",
                    "min_value": 0,
                },
                {
                    "type": OPTION_BOOLEAN,
                    "name": "deposit_required",
                    "description": "Whether a deposit is required",
                },
                {
                    "type": OPTION_CHANNEL,
                    "name": "channel",
                    "description": "Where to post (defaults to this channel)",
                    "channel_types": [0, 5],
                },
                {
                    "type": OPTION_STRING,
                    "name": "banner_url",
                    "description": "Banner image URL",
                },
                {
                    "type": OPTION_BOOLEAN,
                    "name": "ping_everyone",
                    "description": "Mention @everyone",
                },
            ],
        },
    ]


async def register_commands(
    api: DiscordApi, *, guild_id: str, application_id: str | None = None
) -> list[dict[str, Any]]:
    if application_id is None:
        application = await api.get_application()
        application_id = str(application["id"])
    result = await api.bulk_overwrite_guild_commands(
        application_id, guild_id, build_application_commands()
    )
    logger.info(
        "commands.registered",
        guild_id=guild_id,
        commands=[f"{item.get('name')}:{item.get('id')}" for item in result],
    )
    return result
