"""Detection of machine-generated mail (RFC 3834 and vendor headers)."""

from __future__ import annotations

from collections.abc import Mapping

from inbox_priority.core.models import GateResult

AUTO_SUBMITTED_CONFIDENCE = 0.95
AUTO_RESPONSE_CONFIDENCE = 0.90
PRECEDENCE_CONFIDENCE = 0.80
DEFAULT_THRESHOLD = 0.70

_AUTO_RESPONSE_HEADERS = (
    "x-autoreply",
    "x-autorespond",
    "x-autogenerated",
)


def has_auto_submitted(headers: Mapping[str, str] | None) -> bool:
    """Return ``True`` for an ``Auto-Submitted`` value other than ``no``."""
    value = ((headers or {}).get("auto-submitted") or "").strip().lower()
    return bool(value) and value != "no"


def detect_auto_generated(
    headers: Mapping[str, str] | None = None,
    *,
    threshold: float = DEFAULT_THRESHOLD,
) -> GateResult:
    """Return how confidently headers mark a message as automated."""
    headers = headers or {}
    reasons: list[str] = []
    confidence = 0.0

    if has_auto_submitted(headers):
        confidence = max(confidence, AUTO_SUBMITTED_CONFIDENCE)
        value = headers["auto-submitted"].strip()
        reasons.append(f"Auto-Submitted: {value} (RFC 3834)")

    for name in _AUTO_RESPONSE_HEADERS:
        if headers.get(name):
            confidence = max(confidence, AUTO_RESPONSE_CONFIDENCE)
            reasons.append(f"Has {name.upper()} header")

    precedence = (headers.get("precedence") or "").strip().lower()
    if precedence in {"auto_reply", "junk"}:
        confidence = max(confidence, PRECEDENCE_CONFIDENCE)
        reasons.append(f"Precedence header is {precedence}")

    return GateResult(
        matched=confidence >= threshold,
        confidence=confidence,
        reasons=tuple(reasons),
    )


__all__ = ["detect_auto_generated", "has_auto_submitted"]
