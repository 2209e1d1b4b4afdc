from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .discord.api_models import Message
from .discord.client_api import DiscordApi
from .errors import ValidationError
from .logging import get_logger

logger = get_logger(__name__)

DEFAULT_TITLE = "Free Airdrop Cashback"
PROMO_COLOR = 0xF1C40F


@dataclass(frozen=True, slots=True)
class PromoOptions:
    title: str = DEFAULT_TITLE
    subtitle: str | None = None
    min_games: int = 0
    deposit_required: bool = False
    channel_id: str | None = None
    banner_url: str | None = None
    ping_everyone: bool = False


def promo_options_from_command(options: dict[str, str | int | bool]) -> PromoOptions:
    def _text(name: str) -> str | None:
        value = options.get(name)
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    min_games = options.get("min_games", 0)
    if isinstance(min_games, bool) or not isinstance(min_games, int) or min_games < 0:
        raise ValidationError("min_games", "min_games must be a non-negative number.")
    banner_url = _text("banner_url")
    if banner_url is not None and not banner_url.startswith(("https://", "http://")):
        raise ValidationError("banner_url", "banner_url must be an http(s) link.")
    return PromoOptions(
        title=_text("title") or DEFAULT_TITLE,
        subtitle=_text("subtitle"),
        min_games=min_games,
        deposit_required=options.get("deposit_required") is True,
        channel_id=_text("channel"),
        banner_url=banner_url,
        ping_everyone=options.get("ping_everyone") is True,
    )


def promo_embed(options: PromoOptions) -> dict[str, Any]:
    lines = []
    if options.subtitle:
        lines.append(options.subtitle)
    requirements = []
    if options.min_games > 0:
        requirements.append(f"• Play at least **{options.min_games}** games")
    requirements.append(
        "• Deposit required" if options.deposit_required else "• No deposit required"
    )
    lines.append("**Requirements**")
    lines.extend(requirements)
    embed: dict[str, Any] = {
        "title": f"🎁 {options.title}",
        "description": "\n".join(lines),
        "color": PROMO_COLOR,
    }
    if options.banner_url:
        embed["image"] = {"url": options.banner_url}
    return embed


async def send_promo(
    api: DiscordApi, channel_id: str, options: PromoOptions
) -> Message:
    message = await api.send_message(
        channel_id,
        content="@everyone" if options.ping_everyone else None,
        embeds=[promo_embed(options)],
        allowed_mentions={"parse": ["everyone"] if options.ping_everyone else []},
    )
    logger.info(
        "promo.sent",
        channel_id=channel_id,
        message_id=message.id,
        ping_everyone=options.ping_everyone,
    )
    return message
