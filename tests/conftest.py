from collections.abc import Callable

import pytest

from relaydesk.config import RelaydeskSettings
from tests.discord_fakes import (
    FALLBACK_CHANNEL_ID,
    FORUM_CHANNEL_ID,
    MOD_CHANNEL_ID,
    OPERATOR_ID,
    SUPPORT_CHANNEL_ID,
    FakeDiscord,
)


@pytest.fixture
def fake_discord() -> FakeDiscord:
    return FakeDiscord()


@pytest.fixture
def make_settings() -> Callable[..., RelaydeskSettings]:
    def _factory(**overrides) -> RelaydeskSettings:
        values = {
            "discord_token": "test-token",
            "forum_channel_id": FORUM_CHANNEL_ID,
            "support_channel_id": SUPPORT_CHANNEL_ID,
            "admin_user_id": OPERATOR_ID,
            "fallback_channel_id": FALLBACK_CHANNEL_ID,
            "moderation_channel_id": MOD_CHANNEL_ID,
        }
        values.update(overrides)
        return RelaydeskSettings.model_validate(values)

    return _factory


@pytest.fixture
def settings(make_settings: Callable[..., RelaydeskSettings]) -> RelaydeskSettings:
    return make_settings()


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
