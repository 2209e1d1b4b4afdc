from pathlib import Path

import pytest
from typer.testing import CliRunner

from relaydesk import __version__, cli
from relaydesk.config import ConfigError, RelaydeskSettings
from tests.discord_fakes import FakeDiscord


def _settings(**overrides) -> RelaydeskSettings:
    values = {
        "discord_token": "token",
        "forum_channel_id": "1",
        "support_channel_id": "2",
        "admin_user_id": "3",
    }
    values.update(overrides)
    return RelaydeskSettings.model_validate(values)


def test_version() -> None:
    result = CliRunner().invoke(cli.create_app(), ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_run_reports_config_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fail(path: Path | None = None):
        raise ConfigError("Missing required settings: DISCORD_TOKEN.")

    monkeypatch.setattr(cli, "load_settings", _fail)

    result = CliRunner().invoke(cli.create_app(), ["run"])

    assert result.exit_code == 1
    assert "error: Missing required settings: DISCORD_TOKEN." in result.output


def test_run_starts_service(monkeypatch: pytest.MonkeyPatch) -> None:
    started: list[RelaydeskSettings] = []

    async def _run_service(settings: RelaydeskSettings) -> None:
        started.append(settings)

    monkeypatch.setattr(cli, "load_settings", lambda path=None: _settings())
    monkeypatch.setattr(cli, "run_service", _run_service)

    result = CliRunner().invoke(cli.create_app(), ["run"])

    assert result.exit_code == 0
    assert [item.support_channel_id for item in started] == ["2"]


def test_register_commands_needs_guild(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "load_settings", lambda path=None: _settings())

    result = CliRunner().invoke(cli.create_app(), ["register-commands"])

    assert result.exit_code == 1
    assert "GUILD_ID is required" in result.output


def test_register_commands(monkeypatch: pytest.MonkeyPatch) -> None:
    fake = FakeDiscord()
    monkeypatch.setattr(
        cli, "load_settings", lambda path=None: _settings(guild_id="10", client_id="42")
    )
    monkeypatch.setattr(cli, "DiscordClient", lambda token: fake)

    result = CliRunner().invoke(cli.create_app(), ["register-commands"])

    assert result.exit_code == 0
    assert "registered guild commands: ping:1, ticket-panel:2, promo:3" in result.output
    assert fake.calls_to("bulk_overwrite_guild_commands") == [("42", "10")]
    assert fake.closed


def test_promo_command(monkeypatch: pytest.MonkeyPatch) -> None:
    fake = FakeDiscord()
    monkeypatch.setattr(cli, "load_settings", lambda path=None: _settings())
    monkeypatch.setattr(cli, "DiscordClient", lambda token: fake)

    result = CliRunner().invoke(
        cli.create_app(),
        ["promo", "--channel", "555", "--min-games", "4", "--ping-everyone"],
    )

    assert result.exit_code == 0
    [call] = fake.calls_to("send_message")
    assert call["channel_id"] == "555"
    assert call["content"] == "@everyone"
    assert "Play at least **4** games" in call["embeds"][0]["description"]
    assert "posted promo" in result.output
