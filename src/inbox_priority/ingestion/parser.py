"""Utilities for parsing raw RFC822 messages into scoring inputs."""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import datetime
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from email.utils import getaddresses, parsedate_to_datetime
from html.parser import HTMLParser

from ..core.datetime_utils import ensure_utc
from ..core.models import AttachmentMeta, RawMessage

_CALENDAR_TYPES = ("text/calendar", "application/ics")


class EmailParser:
    """Convert raw email payloads into :class:`RawMessage` records."""

    def __init__(self) -> None:
        """Prepare internal parser instance."""
        self._parser = BytesParser(policy=policy.default)

    def parse(self, payload: bytes, *, fallback_id: str | None = None) -> RawMessage:
        """Parse raw RFC822 bytes.

        ``fallback_id`` names messages that carry no ``Message-ID`` header.
        """
        message = self._parser.parsebytes(payload)
        message_id = (message.get("Message-ID") or "").strip() or fallback_id
        if not message_id:
            raise ValueError("Message has no Message-ID and no fallback identifier")

        sender_name, sender = _first_address(message.get("From"))
        recipients = tuple(
            _extract_addresses(message.get_all("To", []) + message.get_all("Cc", []))
        )
        text, html, calendar_data = _extract_parts(message)
        body = text or (html_to_text(html) if html else "")

        return RawMessage(
            message_id=message_id,
            sender=sender or "",
            sender_name=sender_name or None,
            subject=str(message.get("Subject") or ""),
            body=body,
            headers=_header_map(message),
            attachments=tuple(_collect_attachments(message)),
            content_type=message.get_content_type(),
            received_at=_try_parse_datetime(message.get("Date")),
            thread_id=_resolve_thread_id(message),
            recipients=recipients,
            calendar_data=calendar_data,
        )


def html_to_text(markup: str) -> str:
    """Return the visible text of an HTML fragment."""
    stripper = _TextExtractor()
    stripper.feed(markup)
    stripper.close()
    return stripper.text()


class _TextExtractor(HTMLParser):
    _BLOCK_TAGS = frozenset({"br", "p", "div", "li", "tr", "h1", "h2", "h3", "h4"})
    _HIDDEN_TAGS = frozenset({"script", "style", "head"})

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._chunks: list[str] = []
        self._hidden = 0

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in self._HIDDEN_TAGS:
            self._hidden += 1
        elif tag in self._BLOCK_TAGS:
            self._chunks.append("\n")

    def handle_endtag(self, tag: str) -> None:
        if tag in self._HIDDEN_TAGS and self._hidden:
            self._hidden -= 1
        elif tag in self._BLOCK_TAGS:
            self._chunks.append("\n")

    def handle_data(self, data: str) -> None:
        if not self._hidden:
            self._chunks.append(data)

    def text(self) -> str:
        joined = "".join(self._chunks)
        lines = (re.sub(r"[ \t]+", " ", line).strip() for line in joined.splitlines())
        return "\n".join(line for line in lines if line)


def _header_map(message: EmailMessage) -> dict[str, str]:
    headers: dict[str, str] = {}
    for name, value in message.items():
        headers.setdefault(name.lower(), str(value))
    return headers


def _extract_addresses(headers: Iterable[str]) -> Iterable[str]:
    for _, email_address in getaddresses([str(header) for header in headers]):
        if email_address:
            yield email_address.lower()


def _first_address(header_value: str | None) -> tuple[str, str]:
    if header_value is None:
        return "", ""
    for name, address in getaddresses([str(header_value)]):
        if address:
            return name, address.lower()
    return "", ""


def _resolve_thread_id(message: EmailMessage) -> str | None:
    references = message.get("References")
    if isinstance(references, str) and references.split():
        return references.split()[0]
    for header in ("Thread-Index", "Thread-Id", "In-Reply-To", "Message-ID"):
        value = message.get(header)
        if isinstance(value, str) and value.strip():
            return value.split()[0]
    return None


def _collapse_chunks(chunks: Iterable[str], separator: str) -> str | None:
    filtered_chunks = [chunk for chunk in chunks if chunk]
    if not filtered_chunks:
        return None
    return separator.join(filtered_chunks)


def _extract_parts(message: EmailMessage) -> tuple[str | None, str | None, str | None]:
    plain_chunks: list[str] = []
    html_chunks: list[str] = []
    calendar_chunks: list[str] = []

    for part in message.walk():
        if part.is_multipart():
            continue
        content_type = part.get_content_type()
        is_attachment = part.get_content_disposition() == "attachment"
        if is_attachment and content_type not in _CALENDAR_TYPES:
            continue
        try:
            content_obj = part.get_content()
        except LookupError:
            continue
        if isinstance(content_obj, bytes) and content_type in _CALENDAR_TYPES:
            content_obj = content_obj.decode("utf-8", errors="replace")
        if not isinstance(content_obj, str):
            continue
        content = content_obj.strip()
        if content_type in _CALENDAR_TYPES:
            calendar_chunks.append(content)
        elif content_type == "text/plain":
            plain_chunks.append(content)
        elif content_type == "text/html":
            html_chunks.append(content)

    return (
        _collapse_chunks(plain_chunks, "\n\n"),
        _collapse_chunks(html_chunks, "\n"),
        calendar_chunks[0] if calendar_chunks else None,
    )


def _collect_attachments(message: EmailMessage) -> Iterable[AttachmentMeta]:
    for part in message.iter_attachments():
        payload = part.get_payload(decode=True) or b""
        yield AttachmentMeta(
            filename=part.get_filename(),
            content_type=part.get_content_type(),
            size=len(payload) if payload else None,
        )


def _try_parse_datetime(header_value: str | None) -> datetime | None:
    if header_value is None:
        return None
    try:
        return ensure_utc(parsedate_to_datetime(str(header_value)))
    except (TypeError, ValueError):
        return None


__all__ = ["EmailParser", "html_to_text"]
