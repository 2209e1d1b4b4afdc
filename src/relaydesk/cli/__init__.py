from __future__ import annotations

from functools import partial
from pathlib import Path

import anyio
import typer

from .. import __version__
from ..bot import run_service
from ..commands import register_commands
from ..config import ConfigError, RelaydeskSettings, load_settings
from ..discord.client import DiscordClient
from ..discord.client_api import DiscordApiError
from ..logging import get_logger, setup_logging
from ..promo import PromoOptions, send_promo

logger = get_logger(__name__)

_CONFIG_PATH_OPTION = typer.Option(
    None,
    "--config",
    help="Path to relaydesk.toml (environment variables still take precedence).",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


def _load_settings_or_exit(config_path: Path | None) -> RelaydeskSettings:
    try:
        return load_settings(config_path)
    except ConfigError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def run(
    config_path: Path | None = _CONFIG_PATH_OPTION,
    debug: bool = typer.Option(False, "--debug", help="Human-readable debug logs."),
) -> None:
    """Connect to Discord and serve the support desk."""
    settings = _load_settings_or_exit(config_path)
    setup_logging(debug=debug)
    logger.info(
        "relaydesk.starting",
        version=__version__,
        support_channel_id=settings.support_channel_id,
        forum_channel_id=settings.forum_channel_id,
        fallback_channel_id=settings.fallback_channel_id,
    )
    anyio.run(run_service, settings, backend="asyncio")


async def _register(settings: RelaydeskSettings, guild_id: str) -> list[dict]:
    api = DiscordClient(settings.discord_token)
    try:
        return await register_commands(
            api, guild_id=guild_id, application_id=settings.client_id
        )
    finally:
        await api.close()


def register(config_path: Path | None = _CONFIG_PATH_OPTION) -> None:
    """Register the slash commands in GUILD_ID."""
    settings = _load_settings_or_exit(config_path)
    setup_logging()
    if settings.guild_id is None:
        typer.echo("error: GUILD_ID is required to register commands.", err=True)
        raise typer.Exit(code=1)
    try:
        result = anyio.run(_register, settings, settings.guild_id)
    except DiscordApiError as exc:
        typer.echo(f"error: registration failed: {exc.message}", err=True)
        raise typer.Exit(code=1) from exc
    names = ", ".join(f"{item.get('name')}:{item.get('id')}" for item in result)
    typer.echo(f"registered guild commands: {names}")


async def _promo(settings: RelaydeskSettings, channel_id: str, options: PromoOptions):
    api = DiscordClient(settings.discord_token)
    try:
        return await send_promo(api, channel_id, options)
    finally:
        await api.close()


def promo(
    channel: str = typer.Option(..., "--channel", help="Channel ID to post in."),
    title: str = typer.Option("Free Airdrop Cashback", "--title"),
    subtitle: str | None = typer.Option(None, "--subtitle"),
    min_games: int = typer.Option(0, "--min-games", min=0),
    deposit_required: bool = typer.Option(False, "--deposit-required"),
    banner_url: str | None = typer.Option(None, "--banner-url"),
    ping_everyone: bool = typer.Option(False, "--ping-everyone"),
    config_path: Path | None = _CONFIG_PATH_OPTION,
) -> None:
    """Post the promo embed (meant for cron)."""
    settings = _load_settings_or_exit(config_path)
    setup_logging()
    options = PromoOptions(
        title=title,
        subtitle=subtitle,
        min_games=min_games,
        deposit_required=deposit_required,
        channel_id=channel,
        banner_url=banner_url,
        ping_everyone=ping_everyone,
    )
    try:
        message = anyio.run(partial(_promo, settings, channel, options))
    except DiscordApiError as exc:
        typer.echo(f"error: promo failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"posted promo {message.id} in {channel}")


def create_app() -> typer.Typer:
    app = typer.Typer(
        add_completion=False,
        invoke_without_command=False,
        help="Discord support desk: ticket panel, forum reports and a staff DM relay.",
    )

    @app.callback()
    def _main(
        version: bool = typer.Option(
            False,
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show the version and exit.",
        ),
    ) -> None:
        _ = version

    app.command(name="run")(run)
    app.command(name="register-commands")(register)
    app.command(name="promo")(promo)
    return app


def main() -> None:
    app = create_app()
    app()
