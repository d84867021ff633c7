"""Tests for RFC822 parsing into raw scoring messages."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest

from inbox_priority.ingestion import EmailParser, html_to_text

FIXTURE_PATH = Path(__file__).parent / "fixtures" / "sample_email.eml"


def _payload(*lines: str) -> bytes:
    return "\r\n".join(lines).encode("utf-8")


def test_email_parser_extracts_headers_and_bodies() -> None:
    payload = FIXTURE_PATH.read_bytes()
    parser = EmailParser()

    message = parser.parse(payload)

    assert message.message_id == "<1234@example.com>"
    assert message.subject == "Test Email"
    assert message.sender == "sender@example.com"
    assert message.sender_name == "Sender Name"
    assert message.recipients == ("user@example.com", "another@example.com")
    assert message.thread_id == "<thread@example.com>"
    assert message.body == "Hello world."
    assert message.received_at == datetime(2025, 3, 10, 9, 15, tzinfo=UTC)
    assert message.content_type == "multipart/mixed"
    assert message.headers["list-unsubscribe"] == "<mailto:leave@example.com>"
    assert message.calendar_data is None
    assert len(message.attachments) == 1
    attachment = message.attachments[0]
    assert attachment.filename == "note.txt"
    assert attachment.content_type == "application/octet-stream"
    assert attachment.size == 18


def test_html_only_message_is_stripped_and_uses_fallback_id() -> None:
    payload = _payload(
        "From: news@example.com",
        "To: user@example.com",
        "Subject: Update",
        "Content-Type: text/html; charset=utf-8",
        "",
        "<html><head><style>p { color: red; }</style></head><body>",
        "<p>Tom &amp; Jerry</p><script>track();</script>",
        "<div>Second   line</div></body></html>",
    )

    message = EmailParser().parse(payload, fallback_id="update-1")

    assert message.message_id == "update-1"
    assert message.body == "Tom & Jerry\nSecond line"
    assert message.received_at is None
    assert message.thread_id is None


def test_missing_identifier_is_rejected() -> None:
    payload = _payload("From: a@example.com", "Subject: Hi", "", "Body")

    with pytest.raises(ValueError):
        EmailParser().parse(payload)


def test_calendar_attachment_becomes_calendar_data() -> None:
    payload = _payload(
        "From: Organizer <organizer@example.com>",
        "To: user@example.com",
        "Subject: Invitation: Design review",
        "Message-ID: <invite@example.com>",
        "MIME-Version: 1.0",
        'Content-Type: multipart/mixed; boundary="b"',
        "",
        "--b",
        "Content-Type: text/plain; charset=utf-8",
        "",
        "You have been invited.",
        "--b",
        "Content-Type: text/calendar; method=REQUEST; charset=utf-8",
        'Content-Disposition: attachment; filename="invite.ics"',
        "",
        "BEGIN:VCALENDAR",
        "METHOD:REQUEST",
        "BEGIN:VEVENT",
        "DTSTART:20250311T150000Z",
        "SUMMARY:Design review",
        "END:VEVENT",
        "END:VCALENDAR",
        "--b--",
    )

    message = EmailParser().parse(payload)

    assert message.body == "You have been invited."
    assert message.calendar_data is not None
    assert message.calendar_data.startswith("BEGIN:VCALENDAR")
    assert "DTSTART:20250311T150000Z" in message.calendar_data
    assert [item.filename for item in message.attachments] == ["invite.ics"]
    assert message.attachments[0].content_type == "text/calendar"


def test_thread_falls_back_to_in_reply_to() -> None:
    payload = _payload(
        "From: a@example.com",
        "Subject: Re: Plans",
        "Message-ID: <child@example.com>",
        "In-Reply-To: <parent@example.com>",
        "",
        "Sounds good",
    )

    message = EmailParser().parse(payload)

    assert message.thread_id == "<parent@example.com>"


def test_unparseable_date_is_ignored() -> None:
    payload = _payload(
        "From: a@example.com",
        "Message-ID: <x@example.com>",
        "Date: sometime last week",
        "",
        "Body",
    )

    assert EmailParser().parse(payload).received_at is None


def test_html_to_text_drops_hidden_content() -> None:
    markup = "<style>.x{}</style><ul><li>One</li><li>Two &lt;b&gt;</li></ul>"

    assert html_to_text(markup) == "One\nTwo <b>"
