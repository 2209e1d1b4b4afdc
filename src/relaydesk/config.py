from __future__ import annotations

import os
import re
import tomllib
from pathlib import Path
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError as PydanticValidationError,
    field_validator,
)

from .errors import ConfigurationError

LOCAL_CONFIG_NAME = Path("relaydesk.toml")
HOME_CONFIG_PATH = Path.home() / ".relaydesk" / "relaydesk.toml"

# Environment variable names, checked before the config file.
ENV_KEYS: dict[str, str] = {
    "discord_token": "DISCORD_TOKEN",
    "forum_channel_id": "FORUM_CHANNEL_ID",
    "support_channel_id": "SUPPORT_CHANNEL_ID",
    "admin_user_id": "ADMIN_USER_ID",
    "fallback_channel_id": "FALLBACK_CHANNEL_ID",
    "moderation_channel_id": "MODERATION_CHANNEL_ID",
    "guild_id": "GUILD_ID",
    "client_id": "CLIENT_ID",
    "port": "PORT",
    "cooldown_seconds": "COOLDOWN_SECONDS",
}

REQUIRED_KEYS = (
    "discord_token",
    "forum_channel_id",
    "support_channel_id",
    "admin_user_id",
)

_NON_DIGITS_RE = re.compile(r"\D")


class ConfigError(ConfigurationError):
    pass


def sanitize_id(value: Any) -> str:
    """Reduce a pasted ID (`<@123>`, `"123 "`, `123`) to its digits."""
    if isinstance(value, bool):
        raise ValueError("expected a Discord ID")
    digits = _NON_DIGITS_RE.sub("", str(value))
    if not digits:
        raise ValueError("expected a Discord ID")
    return digits


class RelaydeskSettings(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    discord_token: str = Field(min_length=1)
    forum_channel_id: str
    support_channel_id: str
    admin_user_id: str
    fallback_channel_id: str | None = None
    moderation_channel_id: str | None = None
    guild_id: str | None = None
    client_id: str | None = None
    port: int = Field(default=3000, ge=0, le=65535)
    cooldown_seconds: float = Field(default=3.0, ge=0)

    @field_validator("discord_token", mode="before")
    @classmethod
    def _strip_token(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator(
        "forum_channel_id",
        "support_channel_id",
        "admin_user_id",
        mode="before",
    )
    @classmethod
    def _required_id(cls, value: Any) -> str:
        return sanitize_id(value)

    @field_validator(
        "fallback_channel_id",
        "moderation_channel_id",
        "guild_id",
        "client_id",
        mode="before",
    )
    @classmethod
    def _optional_id(cls, value: Any) -> str | None:
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        return sanitize_id(value)

    @property
    def notice_channel_id(self) -> str | None:
        return self.moderation_channel_id or self.fallback_channel_id


def _config_candidates() -> list[Path]:
    candidates = [Path.cwd() / LOCAL_CONFIG_NAME, HOME_CONFIG_PATH]
    if candidates[0] == candidates[1]:
        return [candidates[0]]
    return candidates


def _read_config(cfg_path: Path) -> dict:
    try:
        raw = cfg_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigError(f"Missing config file {cfg_path}.") from None
    except OSError as e:
        raise ConfigError(f"Failed to read config file {cfg_path}: {e}") from e
    try:
        return tomllib.loads(raw)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Malformed TOML in {cfg_path}: {e}") from None


def load_config_file(path: str | Path | None = None) -> tuple[dict, Path | None]:
    """Return the TOML mapping and its path; an absent default file is not an error."""
    if path:
        cfg_path = Path(path).expanduser()
        return _read_config(cfg_path), cfg_path

    for candidate in _config_candidates():
        if candidate.is_file():
            return _read_config(candidate), candidate
    return {}, None


def _env_overrides(environ: dict[str, str]) -> dict[str, str]:
    values: dict[str, str] = {}
    for key, env_name in ENV_KEYS.items():
        raw = environ.get(env_name)
        if raw is not None and raw.strip():
            values[key] = raw.strip()
    return values


def _source_hint(key: str, config_path: Path | None) -> str:
    env_name = ENV_KEYS[key]
    if config_path is None:
        return f"Set {env_name} environment variable or add `{key}` to {LOCAL_CONFIG_NAME}."
    return f"Set {env_name} environment variable or add `{key}` to {config_path}."


def load_settings(
    path: str | Path | None = None,
    *,
    environ: dict[str, str] | None = None,
) -> RelaydeskSettings:
    """Merge the config file with the environment and validate the result.

    Environment variables take precedence over the config file.
    """
    config, config_path = load_config_file(path)
    merged: dict[str, Any] = dict(config)
    merged.update(_env_overrides(dict(os.environ) if environ is None else environ))

    missing = [key for key in REQUIRED_KEYS if key not in merged]
    if missing:
        names = ", ".join(ENV_KEYS[key] for key in missing)
        raise ConfigError(
            f"Missing required settings: {names}. {_source_hint(missing[0], config_path)}"
        )

    try:
        return RelaydeskSettings.model_validate(merged)
    except PydanticValidationError as exc:
        problems = []
        for error in exc.errors():
            loc = ".".join(str(part) for part in error.get("loc", ())) or "config"
            problems.append(f"`{loc}`: {error.get('msg', 'invalid value')}")
        where = config_path if config_path is not None else "environment"
        raise ConfigError(f"Invalid settings in {where}; " + "; ".join(problems)) from None
