"""Calendar invitation detection (RFC 5545) with best-effort event extraction."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from inbox_priority.core.models import AttachmentMeta, CalendarEvent, CalendarGateResult

LOGGER = logging.getLogger(__name__)

CALENDAR_MIME_TYPES = ("text/calendar", "application/ics", "text/x-vcalendar")
CALENDAR_EXTENSIONS = (".ics", ".vcs")

CALENDAR_SERVICES = (
    ("calendar.google.com", "Google Calendar"),
    ("calendar-server.bounces.google.com", "Google Calendar"),
    ("calendar.yahoo.com", "Yahoo Calendar"),
    ("calendly.com", "Calendly"),
    ("zoom.us", "Zoom"),
    ("webex.com", "WebEx"),
    ("teams.microsoft.com", "Microsoft Teams"),
    ("gotomeeting.com", "GoToMeeting"),
    ("bluejeans.com", "BlueJeans"),
)

EXCHANGE_HEADERS = (
    "x-microsoft-exchange-calendar-series-instance-id",
    "x-ms-exchange-calendar-series-master-id",
)
EVENT_PLATFORM_HEADERS = ("x-meetup-event", "x-eventbrite-event")

_SUBJECT_PATTERNS = (
    re.compile(r"invitation:|invite:|meeting invitation", re.IGNORECASE),
    re.compile(r"calendar invitation", re.IGNORECASE),
    re.compile(r"you('re| are) invited to", re.IGNORECASE),
    re.compile(
        r"meeting (request|reminder|update|cancell?ed|rescheduled)", re.IGNORECASE
    ),
    re.compile(r"\[(new |updated |cancell?ed )?meeting\]", re.IGNORECASE),
    re.compile(r"accepted:|declined:|tentative:|cancell?ed:", re.IGNORECASE),
    re.compile(
        r"has (accepted|declined|tentatively accepted) your (meeting|event|invitation)",
        re.IGNORECASE,
    ),
    re.compile(r"scheduled for .* at \d{1,2}:\d{2}", re.IGNORECASE),
    re.compile(r"webinar invitation|event registration|save the date", re.IGNORECASE),
)
_RESPONSE_SUBJECT = re.compile(r"accepted:|declined:|tentative:", re.IGNORECASE)

_BODY_PATTERNS = (
    re.compile(r"join\s+(the\s+)?(meeting|call|conference|webinar)", re.IGNORECASE),
    re.compile(r"meeting\s+link:|join\s+link:", re.IGNORECASE),
    re.compile(r"click\s+here\s+to\s+join", re.IGNORECASE),
    re.compile(r"zoom\.us/j/", re.IGNORECASE),
    re.compile(r"teams\.microsoft\.com/l/meetup", re.IGNORECASE),
    re.compile(r"meet\.google\.com/", re.IGNORECASE),
    re.compile(r"webex\.com/meet", re.IGNORECASE),
    re.compile(r"add\s+to\s+(your\s+)?calendar", re.IGNORECASE),
    re.compile(r"accept\s+or\s+decline", re.IGNORECASE),
    re.compile(r"\brsvp\b", re.IGNORECASE),
    re.compile(r"^\s*when:\s*\S", re.IGNORECASE | re.MULTILINE),
    re.compile(r"^\s*where:\s*\S", re.IGNORECASE | re.MULTILINE),
    re.compile(r"dial[- ]?in:", re.IGNORECASE),
    re.compile(r"meeting\s+id:", re.IGNORECASE),
)

_MEETING_LINKS = (
    re.compile(r"https?://[\w.-]*zoom\.us/j/\d+\S*", re.IGNORECASE),
    re.compile(r"https?://teams\.microsoft\.com/l/meetup-join/\S+", re.IGNORECASE),
    re.compile(r"https?://meet\.google\.com/[a-z]{3}-[a-z]{4}-[a-z]{3}", re.IGNORECASE),
    re.compile(r"https?://[\w.-]*webex\.com/meet/\S+", re.IGNORECASE),
)

_WHEN_LINE = re.compile(r"^\s*when:\s*(.+?)\s*$", re.IGNORECASE | re.MULTILINE)
_WHERE_LINE = re.compile(r"^\s*(?:where|location):\s*(.+?)\s*$", re.IGNORECASE | re.MULTILINE)
_SKIPPED_COMPONENTS = frozenset({"VTIMEZONE", "VALARM"})
_ICAL_DATETIME = re.compile(r"^(\d{4})(\d{2})(\d{2})(?:T(\d{2})(\d{2})(\d{2})(Z)?)?$")

CONTENT_TYPE_CONFIDENCE = 1.0
ATTACHMENT_CONFIDENCE = 0.95
SERVICE_CONFIDENCE = 0.90
EXCHANGE_CONFIDENCE = 0.90
SUBJECT_CONFIDENCE = 0.85
EVENT_PLATFORM_CONFIDENCE = 0.85
RESPONSE_SUBJECT_CONFIDENCE = 0.80
BODY_BASE_CONFIDENCE = 0.60
BODY_STEP_CONFIDENCE = 0.05
BODY_MAX_CONFIDENCE = 0.85
DEFAULT_THRESHOLD = 0.70


# pylint: disable=too-many-arguments,too-many-branches,too-many-locals
def detect_calendar(
    sender: str,
    headers: Mapping[str, str] | None = None,
    subject: str | None = None,
    body: str | None = None,
    attachments: Sequence[AttachmentMeta] | None = None,
    content_type: str | None = None,
    *,
    calendar_data: str | None = None,
    threshold: float = DEFAULT_THRESHOLD,
    scan_chars: int = 1500,
) -> CalendarGateResult:
    """Return how confidently a message is a calendar invitation."""
    headers = headers or {}
    body = body or ""
    reasons: list[str] = []
    confidence = 0.0

    normalized_type = (content_type or "").lower()
    if any(mime in normalized_type for mime in CALENDAR_MIME_TYPES):
        confidence = max(confidence, CONTENT_TYPE_CONFIDENCE)
        reasons.append(f"Content-Type is {content_type} (RFC 5545)")
    elif calendar_data and calendar_data.strip():
        # inline text/calendar part of a multipart/alternative invite
        confidence = max(confidence, CONTENT_TYPE_CONFIDENCE)
        reasons.append("Has inline text/calendar part (RFC 5545)")

    attachment = _find_calendar_attachment(attachments or ())
    if attachment is not None:
        confidence = max(confidence, ATTACHMENT_CONFIDENCE)
        reasons.append(f"Has calendar attachment: {attachment.filename or attachment.content_type}")

    service = _match_calendar_service(sender)
    if service:
        confidence = max(confidence, SERVICE_CONFIDENCE)
        reasons.append(f"From calendar service: {service}")

    if subject:
        for pattern in _SUBJECT_PATTERNS:
            if pattern.search(subject):
                confidence = max(confidence, SUBJECT_CONFIDENCE)
                reasons.append(f"Subject matches calendar pattern: {pattern.pattern}")
                break
        if _RESPONSE_SUBJECT.search(subject):
            confidence = max(confidence, RESPONSE_SUBJECT_CONFIDENCE)
            reasons.append("Subject indicates meeting response")

    snippet = body[:scan_chars]
    body_matches = sum(1 for pattern in _BODY_PATTERNS if pattern.search(snippet))
    if body_matches:
        body_confidence = min(
            BODY_BASE_CONFIDENCE + body_matches * BODY_STEP_CONFIDENCE,
            BODY_MAX_CONFIDENCE,
        )
        confidence = max(confidence, body_confidence)
        reasons.append(f"Body contains {body_matches} calendar pattern(s)")

    if any(headers.get(name) for name in EXCHANGE_HEADERS):
        confidence = max(confidence, EXCHANGE_CONFIDENCE)
        reasons.append("Has Microsoft Exchange calendar headers")

    if any(headers.get(name) for name in EVENT_PLATFORM_HEADERS):
        confidence = max(confidence, EVENT_PLATFORM_CONFIDENCE)
        reasons.append("Has event platform headers")

    matched = confidence >= threshold
    event: CalendarEvent | None = None
    if matched:
        structured = calendar_data or (body if "BEGIN:VCALENDAR" in body else None)
        if structured:
            event = parse_vcalendar(structured)
        else:
            event = extract_event_from_text(snippet, subject=subject)

    return CalendarGateResult(
        matched=matched,
        confidence=confidence,
        reasons=tuple(reasons),
        event=event,
    )


def parse_vcalendar(content: str) -> CalendarEvent:
    """Pull headline fields from iCalendar text using key:value line matching."""
    properties: dict[str, tuple[dict[str, str], str]] = {}
    components: list[str] = []
    for line in _unfold(content):
        name_part, separator, value = line.partition(":")
        if not separator:
            continue
        name, *raw_params = name_part.split(";")
        name = name.strip().upper()
        if name == "BEGIN":
            components.append(value.strip().upper())
            continue
        if name == "END":
            if components:
                components.pop()
            continue
        # timezone rules and alarms carry their own DTSTART/DESCRIPTION
        if any(component in _SKIPPED_COMPONENTS for component in components):
            continue
        if name in properties:
            continue
        params: dict[str, str] = {}
        for raw in raw_params:
            key, _, param_value = raw.partition("=")
            params[key.strip().upper()] = param_value.strip().strip('"')
        properties[name] = (params, value.strip())

    def _text(name: str) -> str | None:
        entry = properties.get(name)
        if entry is None or not entry[1]:
            return None
        return _unescape(entry[1])

    def _datetime(name: str) -> datetime | None:
        entry = properties.get(name)
        if entry is None:
            return None
        params, value = entry
        return parse_ical_datetime(value, tzid=params.get("TZID"))

    organizer = None
    organizer_entry = properties.get("ORGANIZER")
    if organizer_entry is not None:
        value = organizer_entry[1]
        if value.lower().startswith("mailto:"):
            organizer = value[len("mailto:") :]
        else:
            organizer = organizer_entry[0].get("CN") or value or None

    method = _text("METHOD")
    location = _text("LOCATION")
    return CalendarEvent(
        start=_datetime("DTSTART"),
        end=_datetime("DTEND"),
        title=_text("SUMMARY"),
        location=location,
        organizer=organizer,
        is_recurring="RRULE" in properties,
        method=method.upper() if method else None,
        meeting_url=_find_meeting_link(content),
    )


def parse_ical_datetime(value: str, *, tzid: str | None = None) -> datetime | None:
    """Parse ``YYYYMMDD`` or ``YYYYMMDDTHHMMSS[Z]`` into an aware datetime."""
    match = _ICAL_DATETIME.match(value.strip())
    if match is None:
        return None
    year, month, day, hour, minute, second, utc_marker = match.groups()
    tzinfo = UTC
    if not utc_marker and tzid:
        try:
            tzinfo = ZoneInfo(tzid)
        except (ZoneInfoNotFoundError, ValueError):
            LOGGER.debug("Unknown TZID %s; assuming UTC", tzid)
    try:
        parsed = datetime(
            int(year),
            int(month),
            int(day),
            int(hour or 0),
            int(minute or 0),
            int(second or 0),
            tzinfo=tzinfo,
        )
    except ValueError:
        return None
    return parsed.astimezone(UTC)


def extract_event_from_text(text: str, *, subject: str | None = None) -> CalendarEvent | None:
    """Best-effort event details from free text ``When:``/``Where:`` lines."""
    when_match = _WHEN_LINE.search(text)
    where_match = _WHERE_LINE.search(text)
    meeting_url = _find_meeting_link(text)

    when_text = when_match.group(1) if when_match else None
    location = where_match.group(1) if where_match else None
    if location is None and meeting_url is not None:
        location = "Online Meeting"

    if when_text is None and location is None and meeting_url is None:
        return None

    title = subject.strip() if subject else None
    if not title and when_text:
        title = f"Meeting on {when_text}"
    return CalendarEvent(
        title=title,
        location=location,
        meeting_url=meeting_url,
        when_text=when_text,
    )


def _find_calendar_attachment(
    attachments: Sequence[AttachmentMeta],
) -> AttachmentMeta | None:
    for attachment in attachments:
        filename = (attachment.filename or "").lower()
        mime = (attachment.content_type or "").lower()
        if filename.endswith(CALENDAR_EXTENSIONS) or any(
            calendar_mime in mime for calendar_mime in CALENDAR_MIME_TYPES
        ):
            return attachment
    return None


def _match_calendar_service(sender: str) -> str | None:
    domain = (sender or "").strip().lower().rpartition("@")[2]
    if not domain or "@" not in (sender or ""):
        return None
    for service_domain, service in CALENDAR_SERVICES:
        if domain == service_domain or domain.endswith("." + service_domain):
            return service
    if any(token in domain for token in ("calendar", "events", "meeting")):
        return "Unknown Calendar Service"
    return None


def _find_meeting_link(text: str) -> str | None:
    for pattern in _MEETING_LINKS:
        match = pattern.search(text)
        if match:
            return match.group(0).rstrip(".,;>)")
    return None


def _unfold(content: str) -> list[str]:
    lines: list[str] = []
    for raw in content.splitlines():
        if raw[:1] in {" ", "\t"} and lines:
            lines[-1] += raw[1:]
        else:
            lines.append(raw)
    return lines


def _unescape(value: str) -> str:
    return (
        value.replace("\\n", " ")
        .replace("\\N", " ")
        .replace("\\,", ",")
        .replace("\\;", ";")
        .replace("\\\\", "\\")
    )


__all__ = [
    "detect_calendar",
    "extract_event_from_text",
    "parse_ical_datetime",
    "parse_vcalendar",
]
