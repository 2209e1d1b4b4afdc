import pytest

from relaydesk.anchors import ConversationAnchors
from relaydesk.delivery import (
    BOT_RECIPIENT,
    DeliveryResolver,
    classify_error,
    explain_failure,
)
from relaydesk.discord.api_models import User
from relaydesk.model import Delivered, Failed, RelayEnvelope
from relaydesk.resolver import EntityResolver
from tests.discord_fakes import (
    FALLBACK_CHANNEL_ID,
    GUILD_ID,
    MOD_CHANNEL_ID,
    OPERATOR_ID,
    REQUESTER_ID,
    FakeDiscord,
    api_error,
    unreachable,
)

OPERATOR_DM = f"dm-{OPERATOR_ID}"


def _envelope(body: str = "help please") -> RelayEnvelope:
    return RelayEnvelope(
        sender_display="rita",
        sender_id=REQUESTER_ID,
        origin_space_name="Arcade",
        body_text=body,
    )


def _resolver(
    fake: FakeDiscord,
    anchors: ConversationAnchors | None = None,
    *,
    fallback_channel_id: str | None = FALLBACK_CHANNEL_ID,
) -> DeliveryResolver:
    return DeliveryResolver(
        fake,
        EntityResolver(fake),
        anchors if anchors is not None else ConversationAnchors(),
        fallback_channel_id=fallback_channel_id,
        notice_channel_id=MOD_CHANNEL_ID,
    )


@pytest.mark.anyio
async def test_direct_send_to_member_of_origin(fake_discord: FakeDiscord) -> None:
    anchors = ConversationAnchors()
    delivery = _resolver(fake_discord, anchors)

    outcome = await delivery.deliver(OPERATOR_ID, _envelope(), origin_space_id=GUILD_ID)

    assert isinstance(outcome, Delivered)
    assert outcome.via == "directSend"
    assert outcome.channel_id == OPERATOR_DM
    anchor = anchors.get(REQUESTER_ID)
    assert anchor is not None
    assert anchor.message_id == outcome.message_id


@pytest.mark.anyio
async def test_explicit_send_without_origin(fake_discord: FakeDiscord) -> None:
    delivery = _resolver(fake_discord)

    outcome = await delivery.deliver(OPERATOR_ID, _envelope())

    assert isinstance(outcome, Delivered)
    assert outcome.via == "explicitChannelSend"


@pytest.mark.anyio
async def test_explicit_send_when_operator_left_server(fake_discord: FakeDiscord) -> None:
    del fake_discord.members[(GUILD_ID, OPERATOR_ID)]
    delivery = _resolver(fake_discord)

    outcome = await delivery.deliver(OPERATOR_ID, _envelope(), origin_space_id=GUILD_ID)

    assert isinstance(outcome, Delivered)
    assert outcome.via == "explicitChannelSend"
    assert outcome.channel_id == OPERATOR_DM


@pytest.mark.anyio
async def test_unknown_failure_moves_to_next_strategy(fake_discord: FakeDiscord) -> None:
    fake_discord.fail_next("create_dm", api_error(None, status=500))
    delivery = _resolver(fake_discord)

    outcome = await delivery.deliver(OPERATOR_ID, _envelope(), origin_space_id=GUILD_ID)

    assert isinstance(outcome, Delivered)
    assert outcome.via == "explicitChannelSend"


@pytest.mark.anyio
async def test_fallback_thread_when_dms_are_closed(fake_discord: FakeDiscord) -> None:
    fake_discord.blocked_channels.add(OPERATOR_DM)
    delivery = _resolver(fake_discord)

    outcome = await delivery.deliver(OPERATOR_ID, _envelope(), origin_space_id=GUILD_ID)

    assert isinstance(outcome, Delivered)
    assert outcome.via == "fallbackThread"
    threads = fake_discord.calls_to("start_private_thread")
    assert threads == [{"channel_id": FALLBACK_CHANNEL_ID, "name": "Support: rita"}]
    assert fake_discord.thread_members[outcome.channel_id] == [REQUESTER_ID, OPERATOR_ID]
    sent = fake_discord.sent_to(outcome.channel_id)
    assert len(sent) == 1
    assert sent[0].content.startswith(f"<@{OPERATOR_ID}>")


@pytest.mark.anyio
async def test_thread_member_failure_is_tolerated(fake_discord: FakeDiscord) -> None:
    fake_discord.blocked_channels.add(OPERATOR_DM)
    fake_discord.fail_next("add_thread_member", api_error(50001))
    delivery = _resolver(fake_discord)

    outcome = await delivery.deliver(OPERATOR_ID, _envelope())

    assert isinstance(outcome, Delivered)
    assert outcome.via == "fallbackThread"
    assert fake_discord.thread_members[outcome.channel_id] == [OPERATOR_ID]


@pytest.mark.anyio
async def test_fallback_failure_is_returned(fake_discord: FakeDiscord) -> None:
    fake_discord.blocked_channels.add(OPERATOR_DM)
    fake_discord.fail_next("start_private_thread", api_error(50013, message="Missing Permissions"))
    anchors = ConversationAnchors()
    delivery = _resolver(fake_discord, anchors)

    outcome = await delivery.deliver(OPERATOR_ID, _envelope(), origin_space_id=GUILD_ID)

    assert outcome == Failed("unknown", 50013)
    assert len(fake_discord.calls_to("start_private_thread")) == 1
    assert anchors.get(REQUESTER_ID) is None


@pytest.mark.anyio
async def test_without_fallback_channel_last_failure_wins(fake_discord: FakeDiscord) -> None:
    fake_discord.blocked_channels.add(OPERATOR_DM)
    delivery = _resolver(fake_discord, fallback_channel_id=None)

    outcome = await delivery.deliver(OPERATOR_ID, _envelope(), origin_space_id=GUILD_ID)

    assert outcome == Failed("recipientUnreachable", 50007)
    assert fake_discord.calls_to("start_private_thread") == []


@pytest.mark.anyio
async def test_fallback_needs_unreachable_recipient(fake_discord: FakeDiscord) -> None:
    fake_discord.fail_next(
        "create_dm", api_error(None, status=500), api_error(None, status=500)
    )
    delivery = _resolver(fake_discord)

    outcome = await delivery.deliver(OPERATOR_ID, _envelope(), origin_space_id=GUILD_ID)

    assert outcome == Failed("unknown", 500)
    assert fake_discord.calls_to("start_private_thread") == []


@pytest.mark.anyio
async def test_invalid_recipient_stops_the_chain(fake_discord: FakeDiscord) -> None:
    fake_discord.fail_next("create_dm", api_error(50033, status=400))
    delivery = _resolver(fake_discord)

    outcome = await delivery.deliver(OPERATOR_ID, _envelope(), origin_space_id=GUILD_ID)

    assert outcome == Failed("invalidRecipient", 50033)
    assert len(fake_discord.calls_to("create_dm")) == 1
    assert fake_discord.calls_to("start_private_thread") == []


@pytest.mark.anyio
async def test_bot_operator_is_invalid(fake_discord: FakeDiscord) -> None:
    fake_discord.users[OPERATOR_ID] = User(id=OPERATOR_ID, username="helper", bot=True)
    delivery = _resolver(fake_discord)

    outcome = await delivery.deliver(OPERATOR_ID, _envelope())

    assert outcome == Failed("invalidRecipient", BOT_RECIPIENT)
    assert fake_discord.calls_to("create_dm") == []


@pytest.mark.anyio
async def test_unknown_operator_is_invalid(fake_discord: FakeDiscord) -> None:
    delivery = _resolver(fake_discord)

    outcome = await delivery.deliver("404", _envelope())

    assert isinstance(outcome, Failed)
    assert outcome.classification == "invalidRecipient"


@pytest.mark.anyio
async def test_anchor_is_overwritten(fake_discord: FakeDiscord) -> None:
    anchors = ConversationAnchors()
    delivery = _resolver(fake_discord, anchors)

    first = await delivery.deliver(OPERATOR_ID, _envelope("one"))
    second = await delivery.deliver(OPERATOR_ID, _envelope("two"))

    assert isinstance(first, Delivered) and isinstance(second, Delivered)
    assert first.message_id != second.message_id
    assert anchors.is_current(REQUESTER_ID, second.message_id)
    assert not anchors.is_current(REQUESTER_ID, first.message_id)
    assert len(anchors) == 1
    sends = fake_discord.calls_to("send_message")
    assert sends[0]["reply_to"] is None
    assert sends[1]["reply_to"] == first.message_id


@pytest.mark.anyio
async def test_failure_notice(fake_discord: FakeDiscord) -> None:
    delivery = _resolver(fake_discord)

    posted = await delivery.post_failure_notice(
        Failed("recipientUnreachable", 50007), _envelope()
    )

    assert posted is True
    [notice] = fake_discord.sent_to(MOD_CHANNEL_ID)
    assert f"<@{REQUESTER_ID}>" in notice.content
    assert "direct messages are closed" in notice.content


@pytest.mark.anyio
async def test_failure_notice_without_channel(fake_discord: FakeDiscord) -> None:
    delivery = DeliveryResolver(
        fake_discord, EntityResolver(fake_discord), ConversationAnchors()
    )

    assert await delivery.post_failure_notice(Failed("unknown"), _envelope()) is False
    assert fake_discord.calls_to("send_message") == []


@pytest.mark.anyio
async def test_failure_notice_errors_are_swallowed(fake_discord: FakeDiscord) -> None:
    fake_discord.fail_next("send_message", api_error(50001))
    delivery = _resolver(fake_discord)

    assert await delivery.post_failure_notice(Failed("unknown"), _envelope()) is False


def test_classify_error() -> None:
    assert classify_error(unreachable()) == "recipientUnreachable"
    assert classify_error(api_error(50033, status=400)) == "invalidRecipient"
    assert classify_error(api_error(None, status=500)) == "unknown"


def test_explain_failure() -> None:
    assert "blocked" in explain_failure(Failed("recipientUnreachable", 50007))
    assert "bot account" in explain_failure(Failed("invalidRecipient", BOT_RECIPIENT))
    assert "cannot receive" in explain_failure(Failed("invalidRecipient", 50033))
    assert explain_failure(Failed("unknown", 50013)) == "delivery failed (code: 50013)"
    assert explain_failure(Failed("unknown")) == "delivery failed (code: unknown)"


@pytest.mark.anyio
async def test_follow_ups_reuse_the_requester_fallback_thread(
    fake_discord: FakeDiscord,
) -> None:
    fake_discord.blocked_channels.add(OPERATOR_DM)
    anchors = ConversationAnchors()
    delivery = _resolver(fake_discord, anchors)

    first = await delivery.deliver(OPERATOR_ID, _envelope())
    second = await delivery.deliver(OPERATOR_ID, _envelope("one more thing"))

    assert isinstance(first, Delivered)
    assert isinstance(second, Delivered)
    assert second.via == "fallbackThread"
    assert second.channel_id == first.channel_id
    assert len(fake_discord.calls_to("start_private_thread")) == 1
    later = fake_discord.sent_to(first.channel_id)[-1]
    assert later.message_reference.message_id == first.message_id
    assert anchors.is_current(REQUESTER_ID, second.message_id)


@pytest.mark.anyio
async def test_deleted_fallback_thread_is_replaced(fake_discord: FakeDiscord) -> None:
    fake_discord.blocked_channels.add(OPERATOR_DM)
    delivery = _resolver(fake_discord)

    first = await delivery.deliver(OPERATOR_ID, _envelope())
    assert isinstance(first, Delivered)
    fake_discord.delete_channel(first.channel_id)

    second = await delivery.deliver(OPERATOR_ID, _envelope("still there?"))

    assert isinstance(second, Delivered)
    assert second.via == "fallbackThread"
    assert second.channel_id != first.channel_id
    assert len(fake_discord.calls_to("start_private_thread")) == 2
