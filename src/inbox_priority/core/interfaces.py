"""Protocol interfaces and errors at the edges of the scoring core."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from .models import InteractionStats, RawMessage, ThreadEntry


class ScoringError(RuntimeError):
    """Raised when a message cannot be turned into a priority score."""

    def __init__(self, message_id: str, reason: str) -> None:
        super().__init__(f"{message_id}: {reason}")
        self.message_id = message_id
        self.reason = reason


class MessageNotFoundError(ScoringError):
    """Raised when the message source has no message for an identifier."""

    def __init__(self, message_id: str) -> None:
        super().__init__(message_id, "message not found")


@dataclass(slots=True, frozen=True)
class DateMatch:
    """A date phrase located in free text."""

    text: str
    start: int
    value: datetime


class MessageSource(Protocol):
    """Read-only access to raw messages by identifier."""

    def fetch_message(self, message_id: str) -> RawMessage | None:
        """Return the message for ``message_id`` or ``None`` if unknown."""
        raise NotImplementedError


class InteractionHistorySource(Protocol):
    """Read-only access to windowed interaction aggregates."""

    def fetch_stats(
        self, sender: str, user_address: str | None, *, since: datetime
    ) -> InteractionStats:
        """Return interaction stats between ``sender`` and the user since ``since``."""
        raise NotImplementedError


class ThreadSource(Protocol):
    """Read-only access to conversation history."""

    def fetch_thread(self, thread_id: str) -> Sequence[ThreadEntry]:
        """Return thread entries, in any order, for ``thread_id``."""
        raise NotImplementedError


class DatePhraseParser(Protocol):
    """Finds date phrases in text relative to a reference time."""

    def find_dates(self, text: str, now: datetime) -> Sequence[DateMatch]:
        """Return candidate dates, each with its position in ``text``."""
        raise NotImplementedError


__all__ = [
    "DateMatch",
    "DatePhraseParser",
    "InteractionHistorySource",
    "MessageNotFoundError",
    "MessageSource",
    "ScoringError",
    "ThreadSource",
]
