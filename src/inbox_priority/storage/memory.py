"""In-memory mailbox implementing the message, history and thread sources."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime
from threading import Lock

from ..core.config import RelationshipSettings
from ..core.models import InteractionStats, RawMessage, ThreadEntry
from ..intelligence.relationship import summarize_history

LOGGER = logging.getLogger(__name__)


class InMemoryMailStore:
    """Hold parsed messages and derive history from them on demand."""

    def __init__(
        self,
        messages: Iterable[RawMessage] = (),
        *,
        settings: RelationshipSettings | None = None,
    ) -> None:
        self._settings = settings or RelationshipSettings()
        self._messages: dict[str, RawMessage] = {}
        self._lock = Lock()
        self.add_many(messages)

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)

    def add(self, message: RawMessage) -> None:
        """Store ``message``, replacing any earlier copy with the same id."""
        with self._lock:
            if message.message_id in self._messages:
                LOGGER.debug("Replacing stored message %s", message.message_id)
            self._messages[message.message_id] = message

    def add_many(self, messages: Iterable[RawMessage]) -> None:
        """Store every message in ``messages``."""
        for message in messages:
            self.add(message)

    def message_ids(self) -> list[str]:
        """Return stored identifiers in insertion order."""
        with self._lock:
            return list(self._messages)

    def fetch_message(self, message_id: str) -> RawMessage | None:
        """Return the stored message or ``None``."""
        with self._lock:
            return self._messages.get(message_id)

    def fetch_stats(
        self, sender: str, user_address: str | None, *, since: datetime
    ) -> InteractionStats:
        """Summarise traffic between ``sender`` and ``user_address`` since ``since``.

        Without a user address only inbound volume from the sender is known.
        """
        sender = sender.strip().lower()
        user = (user_address or "").strip().lower()
        received: list[datetime] = []
        sent: list[datetime] = []
        for message in self._snapshot():
            if message.received_at is None:
                continue
            author = message.sender.strip().lower()
            recipients = {address.lower() for address in message.recipients}
            if author == sender and (not user or not recipients or user in recipients):
                received.append(message.received_at)
            elif user and author == user and sender in recipients:
                sent.append(message.received_at)
        return summarize_history(
            received,
            sent,
            since=since,
            reply_window_days=self._settings.reply_window_days,
        )

    def fetch_thread(self, thread_id: str) -> Sequence[ThreadEntry]:
        """Return dated entries of the conversation ``thread_id``."""
        return [
            ThreadEntry(sender=message.sender, sent_at=message.received_at)
            for message in self._snapshot()
            if message.thread_id == thread_id and message.received_at is not None
        ]

    def _snapshot(self) -> list[RawMessage]:
        with self._lock:
            return list(self._messages.values())


__all__ = ["InMemoryMailStore"]
