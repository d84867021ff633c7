"""Merge gate, relationship, content and thread signals into one feature record."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timedelta
from email.utils import parseaddr

from inbox_priority.core.config import AppSettings
from inbox_priority.core.datetime_utils import ensure_utc, minutes_between, to_epoch, utc_now
from inbox_priority.core.interfaces import (
    DatePhraseParser,
    InteractionHistorySource,
    ThreadSource,
)
from inbox_priority.core.models import (
    CalendarGateResult,
    ContentAnalysis,
    InteractionStats,
    MessageFeatures,
    QuestionType,
    RawMessage,
    ThreadContext,
)
from inbox_priority.gates import (
    detect_auto_generated,
    detect_calendar,
    detect_newsletter,
    detect_otp,
    has_auto_submitted,
)

from .content import ContentAnalyzer
from .dates import DateparserPhraseParser
from .relationship import RelationshipScorer

LOGGER = logging.getLogger(__name__)

DIRECT_QUESTION_WEIGHT = 0.40
IMPLICIT_QUESTION_WEIGHT = 0.30
URGENCY_WEIGHT = 0.20
RELATIONSHIP_WEIGHT = 0.20
YOU_OWE_WEIGHT = 0.20
ACTION_ITEMS_WEIGHT = 0.10
DEADLINE_WEIGHT = 0.10
BULK_DAMPING = 0.2

_LATENCY_BUCKETS = ((60, 0), (240, 1), (1440, 2))
SLOWEST_LATENCY_BUCKET = 3


class FeatureExtractor:
    """Build :class:`MessageFeatures` for raw messages.

    Failures of the history source, thread source or date parser are logged
    and treated as missing signals, never raised.
    """

    # pylint: disable=too-many-arguments
    def __init__(
        self,
        history_source: InteractionHistorySource,
        analyzer: ContentAnalyzer | None = None,
        settings: AppSettings | None = None,
        *,
        thread_source: ThreadSource | None = None,
        date_parser: DatePhraseParser | None = None,
        relationship_scorer: RelationshipScorer | None = None,
    ) -> None:
        self._settings = settings or AppSettings()
        self._history = history_source
        self._threads = thread_source
        self._date_parser = date_parser or DateparserPhraseParser()
        self._analyzer = analyzer or ContentAnalyzer(
            self._date_parser, self._settings.content
        )
        self._relationship = relationship_scorer or RelationshipScorer(
            self._settings.relationship
        )

    # pylint: disable=too-many-locals
    def extract(
        self,
        message: RawMessage,
        *,
        user_address: str | None = None,
        is_vip: bool | None = None,
        now: datetime | None = None,
    ) -> MessageFeatures:
        """Return the feature record for ``message`` as of ``now``."""
        current = ensure_utc(now) or utc_now()
        gates = self._settings.gates
        user_address = user_address or self._settings.user.address
        if is_vip is None:
            is_vip = self._settings.user.is_vip(message.sender)
        headers = _lower_keys(message.headers)

        newsletter = detect_newsletter(
            message.sender,
            headers,
            message.subject,
            threshold=gates.newsletter_threshold,
        )
        automation = detect_auto_generated(headers, threshold=gates.automation_threshold)
        calendar = detect_calendar(
            message.sender,
            headers,
            message.subject,
            message.body,
            message.attachments,
            message.content_type,
            calendar_data=message.calendar_data,
            threshold=gates.calendar_threshold,
            scan_chars=gates.calendar_scan_chars,
        )
        otp = detect_otp(
            message.sender,
            message.subject,
            message.body,
            message.received_at,
            now=current,
            threshold=gates.otp_threshold,
            expiry_window_minutes=gates.otp_expiry_minutes,
            scan_chars=gates.otp_scan_chars,
        )

        stats = self._fetch_stats(message.sender, user_address, now=current)
        relationship = self._relationship.score(
            message.sender, stats, is_vip=is_vip, now=current
        )
        content = self._analyze(message, now=current)
        thread = self._thread_context(message, user_address, now=current)

        reply_need = estimate_reply_need(
            content,
            relationship_score=relationship.score,
            you_owe=thread.you_owe,
            bulk=newsletter.matched or automation.matched or otp.matched,
        )

        features = MessageFeatures(
            message_id=message.message_id,
            is_newsletter=newsletter.matched,
            is_auto_generated=automation.matched,
            has_list_unsubscribe=bool(headers.get("list-unsubscribe")),
            has_list_id=bool(headers.get("list-id")),
            has_auto_submitted=has_auto_submitted(headers),
            has_calendar=calendar.matched,
            calendar_start_epoch=self._calendar_start(calendar, now=current),
            otp_detected=otp.matched,
            otp_age_minutes=otp.age_minutes if otp.matched else None,
            otp_expired=otp.matched and otp.is_expired,
            relationship_score=relationship.score,
            is_vip_sender=is_vip,
            reply_count_from_user=relationship.stats.user_replies,
            reply_count_to_user=relationship.stats.sender_replies,
            last_interaction_epoch=relationship.stats.last_contact_epoch,
            thread_you_owe=thread.you_owe,
            thread_recency_minutes=thread.recency_minutes,
            thread_length=thread.length,
            explicit_ask=content.question_type is not QuestionType.NONE,
            deadline_epoch=content.deadline_epoch,
            minutes_to_deadline=content.minutes_to_deadline,
            intent=content.intent,
            reply_need_probability=reply_need,
            reply_latency_bucket=latency_bucket(relationship.stats.avg_reply_latency_minutes),
        )
        LOGGER.debug(
            "Extracted features for %s: %s",
            message.message_id,
            features,
            extra={"message_id": message.message_id},
        )
        return features

    def _fetch_stats(
        self, sender: str, user_address: str | None, *, now: datetime
    ) -> InteractionStats | None:
        since = now - timedelta(days=self._settings.relationship.lookback_days)
        try:
            return self._history.fetch_stats(sender, user_address, since=since)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.warning(
                "Interaction history unavailable for %s; using neutral relationship: %s",
                sender,
                exc,
            )
            return None

    def _analyze(self, message: RawMessage, *, now: datetime) -> ContentAnalysis:
        try:
            return self._analyzer.analyze(message.subject, message.body, now=now)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.warning(
                "Deadline parsing failed for %s; continuing without deadline: %s",
                message.message_id,
                exc,
                extra={"message_id": message.message_id},
            )
            return self._analyzer.analyze(
                message.subject, message.body, now=now, resolve_deadlines=False
            )

    def _thread_context(
        self, message: RawMessage, user_address: str | None, *, now: datetime
    ) -> ThreadContext:
        if self._threads is None or not message.thread_id:
            return ThreadContext()
        try:
            entries = list(self._threads.fetch_thread(message.thread_id))
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.warning(
                "Thread %s unavailable: %s",
                message.thread_id,
                exc,
                extra={"message_id": message.message_id},
            )
            return ThreadContext()
        if not entries:
            return ThreadContext()

        entries.sort(key=lambda entry: ensure_utc(entry.sent_at) or entry.sent_at)
        latest = entries[-1]
        user = _address(user_address)
        user_authored = bool(user) and any(_address(entry.sender) == user for entry in entries)
        you_owe = len(entries) >= 2 and user_authored and _address(latest.sender) != user
        return ThreadContext(
            you_owe=you_owe,
            recency_minutes=max(0, minutes_between(latest.sent_at, now)),
            length=max(1, len(entries)),
        )

    def _calendar_start(self, calendar: CalendarGateResult, *, now: datetime) -> int | None:
        event = calendar.event
        if not calendar.matched or event is None:
            return None
        if event.start is not None:
            return to_epoch(event.start)
        if not event.when_text:
            return None
        try:
            found = self._date_parser.find_dates(event.when_text, now)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.warning("Could not resolve event time %r: %s", event.when_text, exc)
            return None
        return to_epoch(found[0].value) if found else None


def estimate_reply_need(
    content: ContentAnalysis,
    *,
    relationship_score: float,
    you_owe: bool,
    bulk: bool,
) -> float:
    """Return a 0-1 heuristic probability that the message needs a reply."""
    probability = 0.0
    if content.question_type is QuestionType.DIRECT:
        probability += DIRECT_QUESTION_WEIGHT
    elif content.question_type is QuestionType.IMPLICIT:
        probability += IMPLICIT_QUESTION_WEIGHT
    probability += URGENCY_WEIGHT * (content.urgency_level / 10)
    probability += RELATIONSHIP_WEIGHT * relationship_score
    if you_owe:
        probability += YOU_OWE_WEIGHT
    if content.action_items:
        probability += ACTION_ITEMS_WEIGHT
    if content.deadline_epoch is not None:
        probability += DEADLINE_WEIGHT
    if bulk:
        probability *= BULK_DAMPING
    return max(0.0, min(1.0, probability))


def latency_bucket(avg_reply_latency_minutes: float | None) -> int:
    """Bucket the user's average reply latency: <1h, <4h, <24h, otherwise."""
    if avg_reply_latency_minutes is None:
        return SLOWEST_LATENCY_BUCKET
    for limit, bucket in _LATENCY_BUCKETS:
        if avg_reply_latency_minutes < limit:
            return bucket
    return SLOWEST_LATENCY_BUCKET


def _lower_keys(headers: Mapping[str, str] | None) -> dict[str, str]:
    return {key.lower(): value for key, value in (headers or {}).items()}


def _address(value: str | None) -> str:
    return parseaddr(value or "")[1].strip().lower()


__all__ = ["FeatureExtractor", "estimate_reply_need", "latency_bucket"]
