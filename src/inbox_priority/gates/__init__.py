"""Deterministic, side-effect-free message gates."""

from .automation import detect_auto_generated, has_auto_submitted
from .calendar import detect_calendar, parse_vcalendar
from .newsletter import detect_newsletter
from .otp import detect_otp, otp_urgency

__all__ = [
    "detect_auto_generated",
    "detect_calendar",
    "detect_newsletter",
    "detect_otp",
    "has_auto_submitted",
    "otp_urgency",
    "parse_vcalendar",
]
