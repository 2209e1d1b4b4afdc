from datetime import datetime, timezone

from relaydesk.discord.api_models import Embed, EmbedFooter, Message, User
from relaydesk.envelope import (
    RELAY_TOKEN_RE,
    extract_requester_id,
    relay_token,
    render_envelope,
    render_operator_reply,
    split_content,
)
from relaydesk.model import RelayEnvelope

BOT = "900"


def _envelope(**overrides) -> RelayEnvelope:
    values = {
        "sender_display": "rita",
        "sender_id": "123",
        "origin_space_name": "Arcade",
        "body_text": "help please",
    }
    values.update(overrides)
    return RelayEnvelope(**values)


def _message(author_id: str, footer: str | None) -> Message:
    return Message(
        id="1",
        channel_id="2",
        author=User(id=author_id),
        embeds=[Embed(footer=EmbedFooter(text=footer))] if footer is not None else [],
    )


def test_render_envelope() -> None:
    now = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    content, embed = render_envelope(_envelope(), now=now)

    assert "rita" in content
    assert "Arcade" in content
    assert embed["title"] == "📩 New Message for Admin"
    assert embed["timestamp"] == now.isoformat()
    fields = {field["name"]: field["value"] for field in embed["fields"]}
    assert fields["From"] == "<@123> (rita)"
    assert fields["Server"] == "Arcade"
    assert "Message" not in fields
    assert embed["description"] == "help please"
    assert "Attachments" not in fields
    assert embed["footer"]["text"].endswith(relay_token("123"))


def test_render_envelope_from_dm_with_attachments() -> None:
    _, embed = render_envelope(
        _envelope(origin_space_name=None, attachment_urls=("https://cdn/a.png",))
    )

    fields = {field["name"]: field["value"] for field in embed["fields"]}
    assert fields["Server"] == "Direct message"
    assert fields["Attachments"] == "https://cdn/a.png"


def test_full_length_body_reaches_the_embed() -> None:
    body = "a" * 1989 + "END_OF_BODY"

    _, embed = render_envelope(_envelope(body_text=body))

    assert embed["description"] == body


def test_body_beyond_embed_description_is_clipped() -> None:
    _, embed = render_envelope(_envelope(body_text="x" * 5000))

    assert len(embed["description"]) == 4096
    assert embed["description"].endswith("…")


def test_token_is_read_back_from_bot_envelope() -> None:
    _, embed = render_envelope(_envelope())

    message = _message(BOT, embed["footer"]["text"])

    assert extract_requester_id(message, bot_user_id=BOT) == "123"


def test_token_from_other_author_is_ignored() -> None:
    message = _message("555", "Reply to this message to answer · [relay:123]")

    assert extract_requester_id(message, bot_user_id=BOT) is None


def test_bot_message_without_token() -> None:
    assert extract_requester_id(_message(BOT, "just a footer"), bot_user_id=BOT) is None
    assert extract_requester_id(_message(BOT, None), bot_user_id=BOT) is None


def test_token_must_end_the_footer() -> None:
    assert RELAY_TOKEN_RE.search("[relay:42] trailing") is None
    assert RELAY_TOKEN_RE.search("prefix [relay:42]").group(1) == "42"


def test_render_operator_reply() -> None:
    [text] = render_operator_reply("Opal", "On it", ("https://cdn/b.png",))

    assert text.splitlines() == [
        "💬 **Reply from Opal (staff):**",
        "On it",
        "https://cdn/b.png",
    ]


def test_render_operator_reply_without_text() -> None:
    assert render_operator_reply("Opal", "  ") == ["💬 **Reply from Opal (staff):**"]


def test_long_operator_reply_keeps_every_character() -> None:
    text = "x" * 1990 + "END"

    messages = render_operator_reply("Opal", text)

    assert messages[0] == "💬 **Reply from Opal (staff):**"
    assert "".join(messages[1:]) == text
    assert all(len(message) <= 2000 for message in messages)
    assert messages[-1].endswith("END")


def test_split_content_prefers_line_breaks() -> None:
    text = "a" * 1500 + "\n" + "b" * 1000

    assert split_content(text) == ["a" * 1500, "b" * 1000]


def test_split_content_hard_cuts_unbroken_text() -> None:
    chunks = split_content("z" * 4500)

    assert [len(chunk) for chunk in chunks] == [2000, 2000, 500]
    assert split_content("") == []
