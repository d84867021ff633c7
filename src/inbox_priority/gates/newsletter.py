"""Bulk mail and newsletter detection.

Signals, strongest first: RFC 2369/2919 ``List-*`` headers, campaign tool
headers, bulk ``Precedence`` values, known bulk-mail sending domains,
no-reply style sender local parts, and newsletter-like subjects. The gate
confidence is the maximum over matched signals.
"""

from __future__ import annotations

import re
from collections.abc import Mapping

from inbox_priority.core.models import GateResult

LIST_HEADERS = (
    "list-unsubscribe",
    "list-id",
    "list-post",
    "list-help",
    "list-subscribe",
    "list-archive",
)

CAMPAIGN_HEADERS = (
    "x-campaign-id",
    "x-mailchimp-campaign",
    "x-sendgrid-id",
    "x-mailjet-campaign",
    "x-constantcontact-id",
)

BULK_DOMAINS = (
    "mailchimp.com",
    "mcsv.net",
    "sendgrid.net",
    "constantcontact.com",
    "mailjet.com",
    "sendinblue.com",
    "getresponse.com",
    "activecampaign.com",
    "convertkit.com",
    "drip.com",
    "aweber.com",
    "substack.com",
    "beehiiv.com",
    "buttondown.email",
    "revue.co",
    "tinyletter.com",
)

_SENDER_PATTERNS = (
    re.compile(r"^no[-_.]?reply", re.IGNORECASE),
    re.compile(r"^do[-_.]?not[-_.]?reply", re.IGNORECASE),
    re.compile(r"^notifications?$", re.IGNORECASE),
    re.compile(r"^alerts?$", re.IGNORECASE),
    re.compile(r"^news(?:letter)?s?$", re.IGNORECASE),
    re.compile(r"^updates?$", re.IGNORECASE),
    re.compile(r"^marketing", re.IGNORECASE),
    re.compile(r"^(?:info|hello|team)$", re.IGNORECASE),
)

_SUBJECT_PATTERNS = (
    re.compile(r"newsletter", re.IGNORECASE),
    re.compile(r"weekly digest", re.IGNORECASE),
    re.compile(r"monthly update", re.IGNORECASE),
    re.compile(r"daily brief", re.IGNORECASE),
    re.compile(r"\[[^\]]+\]"),
    re.compile(r"issue #\d+", re.IGNORECASE),
    re.compile(r"volume \d+", re.IGNORECASE),
    re.compile(r"edition \d+", re.IGNORECASE),
)

LIST_HEADER_CONFIDENCE = 0.95
CAMPAIGN_HEADER_CONFIDENCE = 0.90
PRECEDENCE_CONFIDENCE = 0.85
BULK_DOMAIN_CONFIDENCE = 0.85
SENDER_PATTERN_CONFIDENCE = 0.75
SUBJECT_PATTERN_CONFIDENCE = 0.60
DEFAULT_THRESHOLD = 0.60


def detect_newsletter(
    sender: str,
    headers: Mapping[str, str] | None = None,
    subject: str | None = None,
    *,
    threshold: float = DEFAULT_THRESHOLD,
) -> GateResult:
    """Return how confidently a message looks like bulk or list mail."""
    headers = headers or {}
    reasons: list[str] = []
    confidence = 0.0

    list_headers = [name for name in LIST_HEADERS if headers.get(name)]
    if list_headers:
        confidence = max(confidence, LIST_HEADER_CONFIDENCE)
        for name in list_headers:
            rfc = "2919" if name == "list-id" else "2369"
            reasons.append(f"Has {name.upper()} header (RFC {rfc})")

    campaign_headers = [name for name in CAMPAIGN_HEADERS if headers.get(name)]
    if campaign_headers:
        confidence = max(confidence, CAMPAIGN_HEADER_CONFIDENCE)
        reasons.extend(f"Has {name.upper()} marketing header" for name in campaign_headers)

    precedence = (headers.get("precedence") or "").strip().lower()
    if precedence in {"bulk", "list"}:
        confidence = max(confidence, PRECEDENCE_CONFIDENCE)
        reasons.append("Precedence header indicates bulk mail")

    local_part, _, domain = (sender or "").strip().lower().partition("@")

    bulk_domain = _match_bulk_domain(domain)
    if bulk_domain:
        confidence = max(confidence, BULK_DOMAIN_CONFIDENCE)
        reasons.append(f"From known bulk mail service: {bulk_domain}")

    for pattern in _SENDER_PATTERNS:
        if local_part and pattern.search(local_part):
            confidence = max(confidence, SENDER_PATTERN_CONFIDENCE)
            reasons.append(f"Sender matches pattern: {pattern.pattern}")
            break

    for pattern in _SUBJECT_PATTERNS:
        if subject and pattern.search(subject):
            confidence = max(confidence, SUBJECT_PATTERN_CONFIDENCE)
            reasons.append(f"Subject matches newsletter pattern: {pattern.pattern}")
            break

    return GateResult(
        matched=confidence >= threshold,
        confidence=confidence,
        reasons=tuple(reasons),
    )


def _match_bulk_domain(domain: str) -> str | None:
    if not domain:
        return None
    for candidate in BULK_DOMAINS:
        if domain == candidate or domain.endswith("." + candidate):
            return candidate
    return None


__all__ = ["BULK_DOMAINS", "CAMPAIGN_HEADERS", "LIST_HEADERS", "detect_newsletter"]
