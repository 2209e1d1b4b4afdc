from __future__ import annotations

import contextlib
import errno
import logging
import re
import sys
from typing import Any

import structlog


DISCORD_TOKEN_RE = re.compile(r"\b[\w-]{23,28}\.[\w-]{6}\.[\w-]{27,40}\b")
WEBHOOK_TOKEN_RE = re.compile(r"/(webhooks|interactions)/(\d+)/[\w.-]{20,}")


def redact_token_processor(_, __, event_dict):
    """Processor to redact Discord bot and interaction tokens from log messages."""
    message = str(event_dict.get("event", ""))

    redacted = DISCORD_TOKEN_RE.sub("[REDACTED_TOKEN]", message)
    redacted = WEBHOOK_TOKEN_RE.sub(r"/\1/\2/[REDACTED]", redacted)

    if redacted != message:
        event_dict["event"] = redacted

    for key in ("url", "path"):
        value = event_dict.get(key)
        if isinstance(value, str):
            event_dict[key] = WEBHOOK_TOKEN_RE.sub(r"/\1/\2/[REDACTED]", value)

    return event_dict


class SafeStreamHandler(logging.StreamHandler):
    """Drops records quietly once the output pipe is gone (`relaydesk run | head`)."""

    def handleError(self, record: logging.LogRecord) -> None:
        exc = sys.exc_info()[1]
        if not isinstance(exc, OSError) or exc.errno != errno.EPIPE:
            super().handleError(record)
            return
        with contextlib.suppress(OSError, ValueError):
            self.stream.close()


def get_logger(name: str | None = None) -> Any:
    return structlog.get_logger(name)


def setup_logging(*, debug: bool = False) -> None:
    """Configure structlog with console output and token redaction."""

    structlog.configure(
        processors=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            redact_token_processor,
            structlog.dev.ConsoleRenderer(colors=True)
            if debug
            else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = SafeStreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logging.basicConfig(
        handlers=[handler],
        level=logging.DEBUG if debug else logging.INFO,
        force=True,
    )

    logging.getLogger("discord").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
