"""Tests for calendar invitation detection and event extraction."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from inbox_priority.core.models import AttachmentMeta
from inbox_priority.gates import detect_calendar, parse_vcalendar
from inbox_priority.gates.calendar import extract_event_from_text, parse_ical_datetime

ICS = """BEGIN:VCALENDAR
PRODID:-//Example//EN
METHOD:request
BEGIN:VTIMEZONE
TZID:Europe/Berlin
BEGIN:STANDARD
DTSTART:19701025T030000
END:STANDARD
END:VTIMEZONE
BEGIN:VEVENT
DTSTART;TZID=Europe/Berlin:20250312T150000
DTEND;TZID=Europe/Berlin:20250312T160000
SUMMARY:Quarterly planning\\, Q2
LOCATION:Room 4
ORGANIZER;CN=Dana:mailto:dana@example.com
RRULE:FREQ=WEEKLY;COUNT=4
DESCRIPTION:Join at https://meet.google.com/abc-defg-hij and bring notes
 for the roadmap.
BEGIN:VALARM
TRIGGER:-PT15M
DESCRIPTION:Reminder
END:VALARM
END:VEVENT
END:VCALENDAR
"""


def test_calendar_content_type_is_certain() -> None:
    result = detect_calendar("dana@example.com", {}, "Planning", "", (), "text/calendar")

    assert result.matched
    assert result.confidence == pytest.approx(1.0)


def test_ics_attachment_matches_and_parses_event() -> None:
    result = detect_calendar(
        "dana@example.com",
        {},
        "Quarterly planning",
        "See attached.",
        (AttachmentMeta(filename="invite.ics", content_type="application/octet-stream"),),
        "multipart/mixed",
        calendar_data=ICS,
    )

    assert result.matched
    assert result.confidence == pytest.approx(0.95)
    assert result.event is not None
    assert result.event.title == "Quarterly planning, Q2"
    assert result.event.start == datetime(2025, 3, 12, 14, 0, tzinfo=UTC)


def test_parse_vcalendar_skips_timezone_and_alarm_components() -> None:
    event = parse_vcalendar(ICS)

    assert event.start == datetime(2025, 3, 12, 14, 0, tzinfo=UTC)
    assert event.end == datetime(2025, 3, 12, 15, 0, tzinfo=UTC)
    assert event.location == "Room 4"
    assert event.organizer == "dana@example.com"
    assert event.is_recurring
    assert event.method == "REQUEST"
    assert event.meeting_url == "https://meet.google.com/abc-defg-hij"


def test_parse_ical_datetime_forms() -> None:
    assert parse_ical_datetime("20250101T090000Z") == datetime(2025, 1, 1, 9, tzinfo=UTC)
    assert parse_ical_datetime("20250101") == datetime(2025, 1, 1, tzinfo=UTC)
    assert parse_ical_datetime("not-a-date") is None


def test_calendar_service_sender() -> None:
    result = detect_calendar("calendar-notification@calendar.google.com", {}, "Update", "")

    assert result.matched
    assert result.confidence == pytest.approx(0.90)
    assert "From calendar service: Google Calendar" in result.reasons


def test_invitation_subject_uses_text_fallback() -> None:
    body = (
        "When: Thursday 10am\n"
        "Join the meeting: https://zoom.us/j/123456789\n"
    )
    result = detect_calendar("alex@example.com", {}, "Invitation: Design review", body)

    assert result.matched
    assert result.confidence == pytest.approx(0.85)
    assert result.event is not None
    assert result.event.when_text == "Thursday 10am"
    assert result.event.location == "Online Meeting"
    assert result.event.meeting_url == "https://zoom.us/j/123456789"


def test_single_body_pattern_is_not_enough() -> None:
    result = detect_calendar("alex@example.com", {}, "Notes", "Please RSVP by Friday.")

    assert not result.matched
    assert result.confidence == pytest.approx(0.65)
    assert result.event is None


def test_multiple_body_patterns_scale_confidence() -> None:
    body = "Please RSVP.\nWhere: Room 2\nAdd to calendar below."
    result = detect_calendar("alex@example.com", {}, "Notes", body)

    assert result.matched
    assert result.confidence == pytest.approx(0.75)


def test_event_platform_and_exchange_headers() -> None:
    meetup = detect_calendar("info@example.com", {"x-meetup-event": "123"}, "Hi", "")
    exchange = detect_calendar(
        "boss@example.com",
        {"x-microsoft-exchange-calendar-series-instance-id": "abc"},
        "Sync",
        "",
    )

    assert meetup.confidence == pytest.approx(0.85)
    assert exchange.confidence == pytest.approx(0.90)


def test_meeting_response_subject() -> None:
    result = detect_calendar("alex@example.com", {}, "Declined: Weekly sync", "")

    assert result.matched
    assert "Subject indicates meeting response" in result.reasons


def test_text_without_event_details_yields_none() -> None:
    assert extract_event_from_text("Nothing to see here.") is None


def test_inline_calendar_part_counts_as_calendar_content() -> None:
    result = detect_calendar(
        "organizer@example.com",
        {},
        "Design review",
        "Please find the details below.",
        (),
        "multipart/alternative",
        calendar_data=ICS,
    )

    assert result.matched
    assert result.confidence == 1.0
    assert "Has inline text/calendar part (RFC 5545)" in result.reasons
    assert result.event is not None
    assert result.event.start is not None


def test_blank_calendar_data_is_ignored() -> None:
    result = detect_calendar("friend@example.com", {}, "Lunch", "See you", calendar_data="  ")

    assert not result.matched
