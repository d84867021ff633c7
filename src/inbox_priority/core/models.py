"""Core domain models used across the scoring pipeline."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


class QuestionType(StrEnum):
    """How explicitly a message asks something of the reader."""

    DIRECT = "direct"
    IMPLICIT = "implicit"
    NONE = "none"


class Intent(StrEnum):
    """Coarse purpose of a message's content."""

    CONFIRM = "confirm"
    REQUEST = "request"
    SCHEDULE = "schedule"
    INFORM = "inform"


class PriorityCategory(StrEnum):
    """Bucket derived from the final 0-100 score."""

    URGENT = "urgent"
    IMPORTANT = "important"
    NORMAL = "normal"
    LOW = "low"
    SPAM = "spam"


@dataclass(slots=True, frozen=True)
class AttachmentMeta:
    """Metadata describing an email attachment."""

    filename: str | None
    content_type: str | None
    size: int | None = None


# pylint: disable=too-many-instance-attributes
@dataclass(slots=True, frozen=True)
class RawMessage:
    """Message as handed to the pipeline by a message source."""

    message_id: str
    sender: str
    subject: str = ""
    body: str = ""
    sender_name: str | None = None
    headers: Mapping[str, str] = field(default_factory=dict)
    attachments: tuple[AttachmentMeta, ...] = ()
    content_type: str | None = None
    received_at: datetime | None = None
    thread_id: str | None = None
    recipients: tuple[str, ...] = ()
    calendar_data: str | None = None


@dataclass(slots=True, frozen=True)
class GateResult:
    """Outcome of a single deterministic gate."""

    matched: bool
    confidence: float
    reasons: tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class CalendarEvent:
    """Best-effort event details pulled from an invitation."""

    start: datetime | None = None
    end: datetime | None = None
    title: str | None = None
    location: str | None = None
    organizer: str | None = None
    is_recurring: bool = False
    method: str | None = None
    meeting_url: str | None = None
    when_text: str | None = None


@dataclass(slots=True, frozen=True)
class CalendarGateResult(GateResult):
    """Calendar gate outcome with any extracted event."""

    event: CalendarEvent | None = None


@dataclass(slots=True, frozen=True)
class OtpGateResult(GateResult):
    """One-time-code gate outcome with code metadata."""

    code: str | None = None
    code_type: str | None = None
    service: str | None = None
    expiry_minutes: int | None = None
    age_minutes: int | None = None
    is_expired: bool = False


@dataclass(slots=True, frozen=True)
class InteractionStats:
    """Aggregated history between the user and one sender."""

    emails_received: int = 0
    emails_sent_to: int = 0
    user_replies: int = 0
    sender_replies: int = 0
    two_way_exchanges: int = 0
    first_contact_epoch: int | None = None
    last_contact_epoch: int | None = None
    avg_reply_latency_minutes: float | None = None
    total_interaction_days: int = 0

    @property
    def is_empty(self) -> bool:
        """Return ``True`` when there is no traffic in either direction."""
        return self.emails_received == 0 and self.emails_sent_to == 0


@dataclass(slots=True, frozen=True)
class RelationshipComponents:
    """Individual 0-1 components behind a relationship score."""

    reply_frequency: float
    two_way_exchanges: float
    recency: float
    volume: float
    manual_vip: float


@dataclass(slots=True, frozen=True)
class RelationshipScore:
    """Importance of a sender derived from interaction history."""

    sender: str
    score: float
    is_vip: bool
    components: RelationshipComponents
    stats: InteractionStats


@dataclass(slots=True, frozen=True)
class ContentAnalysis:
    """Question, deadline, urgency and intent signals found in text."""

    has_question: bool = False
    question_type: QuestionType = QuestionType.NONE
    deadline_epoch: int | None = None
    minutes_to_deadline: int | None = None
    urgency_level: int = 0
    urgency_signals: tuple[str, ...] = ()
    action_items: tuple[str, ...] = ()
    intent: Intent = Intent.INFORM


@dataclass(slots=True, frozen=True)
class ThreadEntry:
    """One message of a conversation, reduced to author and time."""

    sender: str
    sent_at: datetime


@dataclass(slots=True, frozen=True)
class ThreadContext:
    """Conversation state relevant to whether a reply is owed."""

    you_owe: bool = False
    recency_minutes: int | None = None
    length: int = 1


# pylint: disable=too-many-instance-attributes
@dataclass(slots=True, frozen=True)
class MessageFeatures:
    """Canonical per-message feature record consumed by the scorer.

    Every field defaults to its "no signal" value so a bare instance
    represents a completely neutral message.
    """

    message_id: str = ""

    is_newsletter: bool = False
    is_auto_generated: bool = False
    has_list_unsubscribe: bool = False
    has_list_id: bool = False
    has_auto_submitted: bool = False
    has_calendar: bool = False
    calendar_start_epoch: int | None = None
    otp_detected: bool = False
    otp_age_minutes: int | None = None
    otp_expired: bool = False

    relationship_score: float = 0.0
    is_vip_sender: bool = False
    reply_count_from_user: int = 0
    reply_count_to_user: int = 0
    last_interaction_epoch: int | None = None

    thread_you_owe: bool = False
    thread_recency_minutes: int | None = None
    thread_length: int = 1

    explicit_ask: bool = False
    deadline_epoch: int | None = None
    minutes_to_deadline: int | None = None
    intent: Intent | None = None

    reply_need_probability: float = 0.0
    reply_latency_bucket: int = 3


@dataclass(slots=True, frozen=True)
class PriorityScore:
    """Final priority verdict with its explanation."""

    message_id: str
    score: int
    category: PriorityCategory
    confidence: float
    reasoning: tuple[str, ...]
    feature_weights: Mapping[str, float]


@dataclass(slots=True, frozen=True)
class FeatureImpact:
    """Absolute contribution of one feature to a score."""

    feature: str
    weight: float
    impact: str


@dataclass(slots=True, frozen=True)
class ScoringFailure:
    """A message that could not be scored inside a batch."""

    message_id: str
    error: str
    kind: str


@dataclass(slots=True, frozen=True)
class BatchReport:
    """Outcome of scoring many messages."""

    results: tuple[PriorityScore, ...]
    errors: tuple[ScoringFailure, ...]
    elapsed_seconds: float


__all__ = [
    "AttachmentMeta",
    "BatchReport",
    "CalendarEvent",
    "CalendarGateResult",
    "ContentAnalysis",
    "FeatureImpact",
    "GateResult",
    "Intent",
    "InteractionStats",
    "MessageFeatures",
    "OtpGateResult",
    "PriorityCategory",
    "PriorityScore",
    "QuestionType",
    "RawMessage",
    "RelationshipComponents",
    "RelationshipScore",
    "ScoringFailure",
    "ThreadContext",
    "ThreadEntry",
]
