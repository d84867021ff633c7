"""Tests for logging utilities."""

from __future__ import annotations

import logging

from inbox_priority.core.config import LoggingSettings
from inbox_priority.core.logging import MessageIdFilter, configure_logging


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord("inbox_priority.test", logging.INFO, __file__, 1, "hello", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_configure_logging_sets_root_level() -> None:
    """configure_logging should set the root logger level according to settings."""

    settings = LoggingSettings(level="debug", structured=False)
    configure_logging(settings)
    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("inbox_priority").level == logging.DEBUG


def test_configure_logging_structured_formatter() -> None:
    configure_logging(LoggingSettings(level="INFO", structured=True))
    handler = logging.getLogger().handlers[0]
    assert handler.formatter is not None

    plain = _record()
    scored = _record(message_id="<m-1@example.com>")
    assert handler.filter(plain)
    assert handler.filter(scored)

    assert handler.formatter.format(plain).endswith("INFO inbox_priority.test message_id=- hello")
    assert handler.formatter.format(scored).endswith(
        "INFO inbox_priority.test message_id=<m-1@example.com> hello"
    )


def test_plain_formatter_shows_message_id() -> None:
    configure_logging(LoggingSettings(level="INFO", structured=False))
    handler = logging.getLogger().handlers[0]
    record = _record(message_id="abc")

    assert handler.filter(record)
    assert handler.formatter is not None
    assert handler.formatter.format(record).endswith("INFO inbox_priority.test [abc] hello")


def test_message_id_filter_keeps_existing_value() -> None:
    record = _record(message_id="abc")

    assert MessageIdFilter().filter(record)
    assert record.message_id == "abc"  # type: ignore[attr-defined]
