"""One-time passcode and 2FA message detection."""

from __future__ import annotations

import re
from datetime import datetime

from inbox_priority.core.datetime_utils import ensure_utc, minutes_between, utc_now
from inbox_priority.core.models import OtpGateResult

_BODY_KEYWORDS = (
    re.compile(r"verification code", re.IGNORECASE),
    re.compile(r"confirm(?:ation)? code", re.IGNORECASE),
    re.compile(r"security code", re.IGNORECASE),
    re.compile(r"authentication code", re.IGNORECASE),
    re.compile(r"one[- ]?time (?:password|passcode|code)", re.IGNORECASE),
    re.compile(r"\botp\b", re.IGNORECASE),
    re.compile(r"\b(?:2fa|mfa) code", re.IGNORECASE),
    re.compile(r"two[- ]?factor", re.IGNORECASE),
    re.compile(r"\bpin code", re.IGNORECASE),
    re.compile(r"access code", re.IGNORECASE),
    re.compile(r"activation code", re.IGNORECASE),
    re.compile(r"(?:use|enter) (?:this |the following )?code", re.IGNORECASE),
    re.compile(r"your code is", re.IGNORECASE),
    re.compile(r"here(?:'s| is) your code", re.IGNORECASE),
    re.compile(r"sign[- ]?in code", re.IGNORECASE),
    re.compile(r"log[- ]?in code", re.IGNORECASE),
    re.compile(r"reset code", re.IGNORECASE),
    re.compile(r"recovery code", re.IGNORECASE),
    re.compile(r"temporary password", re.IGNORECASE),
    re.compile(r"single[- ]?use code", re.IGNORECASE),
)

_SUBJECT_PATTERNS = (
    re.compile(
        r"\byour? (?:verification|security|authentication|confirmation|sign[- ]?in|login) code",
        re.IGNORECASE,
    ),
    re.compile(r"\b\d{4,8} is your\b", re.IGNORECASE),
    re.compile(r"\bcode:\s*\d{4,8}\b", re.IGNORECASE),
    re.compile(r"verify your (?:account|email|phone|identity)", re.IGNORECASE),
    re.compile(r"confirm your (?:account|email|phone|identity)", re.IGNORECASE),
    re.compile(r"\b(?:2fa|otp|mfa)\b", re.IGNORECASE),
    re.compile(r"sign[- ]?in attempt", re.IGNORECASE),
    re.compile(r"password reset", re.IGNORECASE),
    re.compile(r"account recovery", re.IGNORECASE),
)

_CONTEXT_CODE_PATTERNS = (
    re.compile(r"code(?: is)?:?\s*(\d{8}|\d{6}|\d{4})\b", re.IGNORECASE),
    re.compile(r"\b(?:is|passcode|password|pin|otp):?\s*(\d{8}|\d{6}|\d{4})\b", re.IGNORECASE),
    re.compile(r"\b(\d{8}|\d{6}|\d{4}) is your\b", re.IGNORECASE),
)
_BARE_CODE_PATTERNS = (
    re.compile(r"\b(\d{6})\b"),
    re.compile(r"\b(\d{8})\b"),
    re.compile(r"\b(\d{4})\b"),
)

_EXPIRY_MINUTES = (
    re.compile(r"expires? in (\d+) minutes?", re.IGNORECASE),
    re.compile(r"valid for (\d+) minutes?", re.IGNORECASE),
    re.compile(r"use within (\d+) minutes?", re.IGNORECASE),
    re.compile(r"(\d+)[- ]?minutes? to use", re.IGNORECASE),
)
_EXPIRY_HOURS = re.compile(r"(?:expires? in|valid for) (\d+) hours?", re.IGNORECASE)

_TIME_SENSITIVE = re.compile(
    r"will expire|time[- ]?sensitive|expires? soon|do not share|don't share",
    re.IGNORECASE,
)

CODE_SERVICES = (
    ("google.com", "Google"),
    ("accounts.google.com", "Google"),
    ("microsoft.com", "Microsoft"),
    ("microsoftonline.com", "Microsoft"),
    ("apple.com", "Apple"),
    ("amazon.com", "Amazon"),
    ("paypal.com", "PayPal"),
    ("stripe.com", "Stripe"),
    ("venmo.com", "Venmo"),
    ("github.com", "GitHub"),
    ("gitlab.com", "GitLab"),
    ("npmjs.com", "NPM"),
    ("docker.com", "Docker"),
    ("facebookmail.com", "Facebook"),
    ("instagram.com", "Instagram"),
    ("linkedin.com", "LinkedIn"),
    ("x.com", "Twitter/X"),
    ("twitter.com", "Twitter/X"),
    ("discord.com", "Discord"),
    ("slack.com", "Slack"),
    ("whatsapp.com", "WhatsApp"),
    ("telegram.org", "Telegram"),
    ("uber.com", "Uber"),
    ("airbnb.com", "Airbnb"),
    ("netflix.com", "Netflix"),
    ("spotify.com", "Spotify"),
)

_SECURITY_SENDER = re.compile(
    r"^(?:security|no[-_.]?reply|verification|verify|authenticate|2fa|otp|accounts?)$",
    re.IGNORECASE,
)

SUBJECT_CONFIDENCE = 0.80
KEYWORD_BASE_CONFIDENCE = 0.70
KEYWORD_STEP_CONFIDENCE = 0.10
KEYWORD_MAX_CONFIDENCE = 0.95
CONTEXT_CODE_CONFIDENCE = 0.90
SERVICE_CONFIDENCE = 0.70
SECURITY_SENDER_CONFIDENCE = 0.65
DEFAULT_THRESHOLD = 0.65
DEFAULT_EXPIRY_MINUTES = 15


# pylint: disable=too-many-arguments,too-many-locals,too-many-branches
def detect_otp(
    sender: str,
    subject: str | None = None,
    body: str | None = None,
    received_at: datetime | None = None,
    *,
    now: datetime | None = None,
    threshold: float = DEFAULT_THRESHOLD,
    expiry_window_minutes: int = DEFAULT_EXPIRY_MINUTES,
    scan_chars: int = 500,
) -> OtpGateResult:
    """Return how confidently a message carries a one-time code."""
    reasons: list[str] = []
    confidence = 0.0
    code: str | None = None
    code_type: str | None = None

    age_minutes: int | None = None
    received = ensure_utc(received_at)
    if received is not None:
        age_minutes = max(0, minutes_between(received, now or utc_now()))

    subject = subject or ""
    snippet = (body or "")[:scan_chars]

    for pattern in _SUBJECT_PATTERNS:
        if pattern.search(subject):
            confidence = max(confidence, SUBJECT_CONFIDENCE)
            reasons.append(f"Subject matches code pattern: {pattern.pattern}")
            break

    keyword_matches = sum(1 for pattern in _BODY_KEYWORDS if pattern.search(snippet))
    if keyword_matches:
        confidence = max(
            confidence,
            min(
                KEYWORD_BASE_CONFIDENCE + keyword_matches * KEYWORD_STEP_CONFIDENCE,
                KEYWORD_MAX_CONFIDENCE,
            ),
        )
        reasons.append(f"Body contains {keyword_matches} code keyword(s)")

    if confidence > 0:
        code = extract_code(snippet, prefer_context=True) or extract_code(
            subject, prefer_context=True
        )
        if code is not None and _has_context_code(f"{subject}\n{snippet}"):
            confidence = max(confidence, CONTEXT_CODE_CONFIDENCE)
            reasons.append(f"Found code: {code}")
        code_type = classify_code_type(f"{subject}\n{snippet}")

    service = identify_service(sender)
    if service:
        confidence = max(confidence, SERVICE_CONFIDENCE)
        reasons.append(f"From known code-issuing service: {service}")

    local_part = (sender or "").strip().partition("@")[0]
    if local_part and _SECURITY_SENDER.match(local_part):
        confidence = max(confidence, SECURITY_SENDER_CONFIDENCE)
        reasons.append("From security/no-reply address")

    expiry_minutes = extract_expiry_minutes(snippet)
    if expiry_minutes is not None:
        reasons.append(f"Code expires in {expiry_minutes} minutes")
    if confidence > 0 and _TIME_SENSITIVE.search(snippet):
        reasons.append("Contains time-sensitive language")

    is_expired = False
    if age_minutes is not None:
        if age_minutes > expiry_window_minutes:
            is_expired = True
        if expiry_minutes is not None and age_minutes > expiry_minutes:
            is_expired = True
    if is_expired:
        reasons.append("Code likely expired (message too old)")

    matched = confidence >= threshold
    return OtpGateResult(
        matched=matched,
        confidence=confidence,
        reasons=tuple(reasons),
        code=code if matched else None,
        code_type=code_type if matched else None,
        service=service if matched else None,
        expiry_minutes=expiry_minutes,
        age_minutes=age_minutes,
        is_expired=is_expired,
    )


def extract_code(text: str, *, prefer_context: bool = False) -> str | None:
    """Return the most plausible 4, 6 or 8 digit code in ``text``."""
    if prefer_context:
        for pattern in _CONTEXT_CODE_PATTERNS:
            match = pattern.search(text)
            if match:
                return match.group(1)
    for pattern in _BARE_CODE_PATTERNS:
        for match in pattern.finditer(text):
            candidate = match.group(1)
            # four digits in this range are far more often years
            if len(candidate) == 4 and 1900 <= int(candidate) <= 2100:
                continue
            return candidate
    return None


def extract_expiry_minutes(text: str) -> int | None:
    """Return an explicitly stated validity window in minutes."""
    for pattern in _EXPIRY_MINUTES:
        match = pattern.search(text)
        if match:
            return int(match.group(1))
    match = _EXPIRY_HOURS.search(text)
    if match:
        return int(match.group(1)) * 60
    return None


def identify_service(sender: str) -> str | None:
    """Return the service name for a known code-issuing sender domain."""
    domain = (sender or "").strip().lower().rpartition("@")[2]
    if not domain or "@" not in (sender or ""):
        return None
    for service_domain, service in CODE_SERVICES:
        if domain == service_domain or domain.endswith("." + service_domain):
            return service
    return None


def classify_code_type(text: str) -> str:
    """Return ``reset``, ``pin``, ``2fa``, ``verification`` or ``otp``."""
    lowered = text.lower()
    if "reset" in lowered or "recover" in lowered:
        return "reset"
    if re.search(r"\bpin\b", lowered):
        return "pin"
    if "2fa" in lowered or "two-factor" in lowered or "two factor" in lowered:
        return "2fa"
    if "verif" in lowered:
        return "verification"
    return "otp"


def otp_urgency(
    received_at: datetime, *, now: datetime | None = None, expiry_minutes: int = 10
) -> float:
    """Return 1.0 for a fresh code decaying linearly to 0.0 at expiry."""
    current = ensure_utc(now) or utc_now()
    received = ensure_utc(received_at) or received_at
    age = (current - received).total_seconds() / 60
    if age >= expiry_minutes:
        return 0.0
    return max(0.0, 1.0 - age / expiry_minutes)


def _has_context_code(text: str) -> bool:
    return any(pattern.search(text) for pattern in _CONTEXT_CODE_PATTERNS)


__all__ = [
    "CODE_SERVICES",
    "classify_code_type",
    "detect_otp",
    "extract_code",
    "extract_expiry_minutes",
    "identify_service",
    "otp_urgency",
]
