"""Logging configuration helpers."""

from __future__ import annotations

import logging
import logging.config
from typing import Any

from .config import LoggingSettings

_PACKAGE_LOGGER = "inbox_priority"
NO_MESSAGE_ID = "-"


class MessageIdFilter(logging.Filter):
    """Give every record a ``message_id`` attribute for the formatters.

    Scoring code passes ``extra={"message_id": ...}``; other records get ``-``.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "message_id", None):
            record.message_id = NO_MESSAGE_ID
        return True


def _structured_formatter() -> dict[str, Any]:
    """Return a dictConfig fragment for brace-style structured logs."""
    return {
        "format": "{asctime} {levelname} {name} message_id={message_id} {message}",
        "style": "{",
    }


def _plain_formatter() -> dict[str, Any]:
    """Return a dictConfig fragment for human readable logs."""
    return {
        "format": "%(asctime)s %(levelname)s %(name)s [%(message_id)s] %(message)s",
    }


def configure_logging(settings: LoggingSettings) -> None:
    """Configure console logging for the scoring pipeline."""
    formatter = _structured_formatter() if settings.structured else _plain_formatter()
    level = settings.level.upper()

    dict_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "message_id": {"()": MessageIdFilter},
        },
        "formatters": {
            "default": formatter,
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "filters": ["message_id"],
                "level": level,
            },
        },
        "loggers": {
            _PACKAGE_LOGGER: {"level": level, "propagate": True},
        },
        "root": {
            "handlers": ["console"],
            "level": level,
        },
    }

    logging.config.dictConfig(dict_config)


__all__ = ["MessageIdFilter", "configure_logging"]
