"""Relay envelope rendering and routing-token recovery.

Every operator-facing envelope carries `[relay:<requester id>]` at the end of
its embed footer. Only footers of bot-authored messages are read back, so text
typed by people never routes anything.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any

from .discord.api_models import Message
from .discord.components import ENVELOPE_COLOR
from .model import RelayEnvelope

RELAY_TOKEN_RE = re.compile(r"\[relay:(\d+)\]$")

FIELD_VALUE_LIMIT = 1024
DESCRIPTION_LIMIT = 4096
CONTENT_LIMIT = 2000


def relay_token(requester_id: str) -> str:
    return f"[relay:{requester_id}]"


def _clip(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


def split_content(text: str, limit: int = CONTENT_LIMIT) -> list[str]:
    """Split text into message-sized chunks, preferring line breaks."""
    chunks: list[str] = []
    while len(text) > limit:
        cut = text.rfind("\n", 0, limit + 1)
        if cut <= 0:
            chunks.append(text[:limit])
            text = text[limit:]
        else:
            chunks.append(text[:cut])
            text = text[cut + 1 :]
    if text:
        chunks.append(text)
    return chunks


def envelope_header(envelope: RelayEnvelope) -> str:
    where = f" in **{envelope.origin_space_name}**" if envelope.origin_space_name else ""
    return f"📨 New message from **{envelope.sender_display}**{where}."


def render_envelope(
    envelope: RelayEnvelope, *, now: datetime | None = None
) -> tuple[str, dict[str, Any]]:
    """Return `(content, embed)` for an operator-facing send.

    The body goes into the embed description, which holds any message a
    requester can send or type into the contact form.
    """
    fields = [
        {
            "name": "From",
            "value": f"<@{envelope.sender_id}> ({envelope.sender_display})",
        },
        {"name": "Server", "value": envelope.origin_space_name or "Direct message"},
    ]
    if envelope.attachment_urls:
        fields.append(
            {
                "name": "Attachments",
                "value": _clip("\n".join(envelope.attachment_urls), FIELD_VALUE_LIMIT),
            }
        )
    embed = {
        "title": envelope.title,
        "description": _clip(envelope.body_text or "(no content)", DESCRIPTION_LIMIT),
        "fields": fields,
        "color": ENVELOPE_COLOR,
        "timestamp": (now or datetime.now(timezone.utc)).isoformat(),
        "footer": {
            "text": f"Reply to this message to answer · {relay_token(envelope.sender_id)}"
        },
    }
    return envelope_header(envelope), embed


def extract_requester_id(message: Message, *, bot_user_id: str) -> str | None:
    if message.author is None or message.author.id != bot_user_id:
        return None
    for embed in message.embeds:
        if embed.footer is None:
            continue
        match = RELAY_TOKEN_RE.search(embed.footer.text.strip())
        if match:
            return match.group(1)
    return None


def render_operator_reply(
    operator_display: str, text: str, attachment_urls: tuple[str, ...] = ()
) -> list[str]:
    """Messages carrying a staff reply to the requester.

    A reply that fits next to the staff header goes out as one message.
    Longer replies send the header alone and the body in chunks.
    """
    header = f"💬 **Reply from {operator_display} (staff):**"
    parts = []
    if text.strip():
        parts.append(text)
    if attachment_urls:
        parts.append("\n".join(attachment_urls))
    body = "\n".join(parts)
    if not body:
        return [header]
    combined = f"{header}\n{body}"
    if len(combined) <= CONTENT_LIMIT:
        return [combined]
    return [header, *split_content(body)]
