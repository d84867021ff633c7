"""Question, deadline, urgency, action-item and intent analysis of message text."""

from __future__ import annotations

import re
from datetime import datetime

from inbox_priority.core.config import ContentSettings
from inbox_priority.core.datetime_utils import ensure_utc, minutes_between, to_epoch, utc_now
from inbox_priority.core.interfaces import DatePhraseParser
from inbox_priority.core.models import ContentAnalysis, Intent, QuestionType

_DIRECT_QUESTION_PATTERNS = (
    re.compile(r"\?"),
    re.compile(
        r"\b(?:can|could|would|will|do|did|have|are) you\b",
        re.IGNORECASE,
    ),
    re.compile(r"\bis it possible\b", re.IGNORECASE),
    re.compile(
        r"(?:^|[.!?]\s+)(?:what|when|where|who|why|how)\b",
        re.IGNORECASE | re.MULTILINE,
    ),
)

_IMPLICIT_QUESTION_PATTERNS = (
    re.compile(
        r"\bplease (?:advise|confirm|reply|respond|review|approve|let me know)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\bkindly (?:advise|confirm|reply|respond|review|approve)\b", re.IGNORECASE),
    re.compile(
        r"\bi(?:'d| would) (?:like|appreciate|love) (?:to know|if you could|your input)",
        re.IGNORECASE,
    ),
    re.compile(r"\bwondering if\b", re.IGNORECASE),
    re.compile(r"\blet me know\b", re.IGNORECASE),
    re.compile(r"\btell me\b", re.IGNORECASE),
    re.compile(r"\bshare (?:your|the)\b", re.IGNORECASE),
    re.compile(r"\b(?:thoughts|feedback|input) on\b", re.IGNORECASE),
    re.compile(r"\bclarify\b", re.IGNORECASE),
)

_SHORTHAND_REWRITES = (
    (re.compile(r"\b(?:by|before)\s+(today|tomorrow)\b", re.IGNORECASE), r"\1"),
    (re.compile(r"\b(?:end|close) of (?:the )?week\b", re.IGNORECASE), "Friday"),
    (re.compile(r"\b(?:end|close) of (?:the )?(?:business )?day\b", re.IGNORECASE), "today 5pm"),
    (re.compile(r"\b(?:EOD|COB)\b", re.IGNORECASE), "today 5pm"),
)

_DEADLINE_PHRASE = re.compile(
    r"\b(?:by|before|until|due|deadline|expires?)\s+(.+?)(?:\.|,|;|$)",
    re.IGNORECASE | re.MULTILINE,
)

CRITICAL_POINTS = 5
HIGH_POINTS = 3
MEDIUM_POINTS = 1
ALL_CAPS_POINTS = 2
MAX_URGENCY = 10
ALL_CAPS_SIGNAL = "ALL CAPS in subject"

_CRITICAL_SIGNALS = (
    ("urgent", re.compile(r"\b(?:urgent|emergency|critical|immediate(?:ly)?|asap|right away)\b", re.IGNORECASE)),
    ("time-sensitive", re.compile(r"\btime[- ](?:sensitive|critical)\b", re.IGNORECASE)),
    ("action required", re.compile(r"\b(?:action|response|approval) required\b", re.IGNORECASE)),
    ("repeated exclamation", re.compile(r"!{2,}")),
    ("NOW", re.compile(r"\bNOW\b")),
)
_HIGH_SIGNALS = (
    ("soon", re.compile(r"\b(?:soon|quickly|prompt(?:ly)?|expedite)\b", re.IGNORECASE)),
    ("high priority", re.compile(r"\b(?:high priority|important)\b", re.IGNORECASE)),
    ("needed by", re.compile(r"\bneed(?:ed)? (?:by|before)\b", re.IGNORECASE)),
    ("deadline", re.compile(r"\b(?:deadline|due date)\b", re.IGNORECASE)),
)
_MEDIUM_SIGNALS = (
    ("timely", re.compile(r"\b(?:timely|at your earliest convenience)\b", re.IGNORECASE)),
    ("follow-up", re.compile(r"\b(?:follow(?:ing)?[- ]?up|reminder)\b", re.IGNORECASE)),
    ("pending", re.compile(r"\b(?:pending|waiting for)\b", re.IGNORECASE)),
)
_ALL_CAPS_RUN = re.compile(r"\b[A-Z][A-Z0-9']+(?:\s+[A-Z][A-Z0-9']+){2,}\b")

_ACTION_MARKERS = (
    re.compile(r"^\s*[-*•]\s+(.+)$", re.MULTILINE),
    re.compile(r"^\s*\d+[.)]\s+(.+)$", re.MULTILINE),
    re.compile(r"^\s*\[[ xX]\]\s+(.+)$", re.MULTILINE),
    re.compile(r"^\s*☐\s+(.+)$", re.MULTILINE),
    re.compile(r"^\s*TODO:\s*(.+)$", re.MULTILINE | re.IGNORECASE),
)
_ACTION_VERBS = re.compile(
    r"\b(?:review|approve|sign|submit|respond|reply|confirm|acknowledge"
    r"|complete|finish|provide|send|forward|share"
    r"|update|verify|check|validate|test"
    r"|schedule|book|arrange|coordinate|plan"
    r"|prepare|create|draft|write|compose"
    r"|read|examine|look at|go through|assess)\b",
    re.IGNORECASE,
)
_SENTENCE_SPLIT = re.compile(r"[.!?]\s+")

URGENT_INTENT_LEVEL = 5

_MEETING_PATTERNS = (
    re.compile(
        r"\b(?:meeting|calendar|invite|invitation|scheduled|appointment)\b", re.IGNORECASE
    ),
    re.compile(r"\b(?:zoom|teams|meet|webex|gotomeeting)\b", re.IGNORECASE),
    re.compile(r"\b(?:join|dial[- ]?in|conference|call)\b", re.IGNORECASE),
)
_FINANCIAL_PATTERNS = (
    re.compile(
        r"\b(?:invoice|payment|receipt|billing|charge|transaction)\b", re.IGNORECASE
    ),
    re.compile(r"\b(?:refund|credit|debit|purchase|order)\b", re.IGNORECASE),
    re.compile(r"\$\d+"),
    re.compile(r"\d+\.\d{2}"),
)


class ContentAnalyzer:
    """Derive :class:`ContentAnalysis` from a subject and body."""

    def __init__(
        self,
        date_parser: DatePhraseParser | None = None,
        settings: ContentSettings | None = None,
    ) -> None:
        if date_parser is None:
            from .dates import DateparserPhraseParser

            date_parser = DateparserPhraseParser()
        self._date_parser = date_parser
        self._settings = settings or ContentSettings()

    def analyze(
        self,
        subject: str | None,
        body: str | None,
        *,
        now: datetime | None = None,
        resolve_deadlines: bool = True,
    ) -> ContentAnalysis:
        """Run every detector and classify intent.

        With ``resolve_deadlines`` disabled the date-phrase parser is not
        consulted and the analysis carries no deadline.
        """
        subject = subject or ""
        body = body or ""
        current = ensure_utc(now) or utc_now()
        full_text = f"{subject}\n{body}"

        question_type = self.detect_question(full_text)
        deadline: datetime | None = None
        if resolve_deadlines:
            deadline = self.extract_deadline(full_text, now=current)
        urgency_level, urgency_signals = self.detect_urgency(subject, body)
        action_items = self.extract_action_items(body)
        has_question = question_type is not QuestionType.NONE

        minutes_to_deadline: int | None = None
        if deadline is not None:
            # deadline is strictly future; under a minute floors to 0
            minutes_to_deadline = max(0, minutes_between(current, deadline))

        return ContentAnalysis(
            has_question=has_question,
            question_type=question_type,
            deadline_epoch=to_epoch(deadline),
            minutes_to_deadline=minutes_to_deadline,
            urgency_level=urgency_level,
            urgency_signals=urgency_signals,
            action_items=action_items,
            intent=classify_intent(
                has_question=has_question,
                has_deadline=deadline is not None,
                urgency_level=urgency_level,
                action_item_count=len(action_items),
            ),
        )

    @staticmethod
    def detect_question(text: str) -> QuestionType:
        """Return whether ``text`` asks something directly, implicitly or not at all."""
        if any(pattern.search(text) for pattern in _DIRECT_QUESTION_PATTERNS):
            return QuestionType.DIRECT
        if any(pattern.search(text) for pattern in _IMPLICIT_QUESTION_PATTERNS):
            return QuestionType.IMPLICIT
        return QuestionType.NONE

    def extract_deadline(self, text: str, *, now: datetime | None = None) -> datetime | None:
        """Return the earliest strictly-future date mentioned in ``text``."""
        current = ensure_utc(now) or utc_now()
        processed = normalize_deadline_shorthand(text)

        candidates: list[datetime] = []
        for match in _DEADLINE_PHRASE.finditer(processed):
            phrase = match.group(1).strip()
            if phrase:
                candidates.extend(
                    found.value for found in self._date_parser.find_dates(phrase, current)
                )
        snippet = processed[: self._settings.deadline_scan_chars]
        candidates.extend(
            found.value for found in self._date_parser.find_dates(snippet, current)
        )

        future = [
            value
            for value in (ensure_utc(candidate) for candidate in candidates)
            if value is not None and value > current
        ]
        return min(future) if future else None

    @staticmethod
    def detect_urgency(subject: str, body: str) -> tuple[int, tuple[str, ...]]:
        """Return a 0-10 urgency level and the signals that produced it.

        Every matching signal adds its points; the total is clamped at the end.
        """
        full_text = f"{subject}\n{body}"
        score = 0
        signals: list[str] = []
        for points, table in (
            (CRITICAL_POINTS, _CRITICAL_SIGNALS),
            (HIGH_POINTS, _HIGH_SIGNALS),
            (MEDIUM_POINTS, _MEDIUM_SIGNALS),
        ):
            for label, pattern in table:
                if pattern.search(full_text):
                    score += points
                    signals.append(label)
        if _ALL_CAPS_RUN.search(subject):
            score += ALL_CAPS_POINTS
            signals.append(ALL_CAPS_SIGNAL)
        return min(MAX_URGENCY, score), tuple(signals)

    def extract_action_items(self, body: str) -> tuple[str, ...]:
        """Return up to ``max_action_items`` distinct action items from ``body``."""
        items: list[str] = []
        for pattern in _ACTION_MARKERS:
            items.extend(match.group(1).strip() for match in pattern.finditer(body))

        if not items:
            for sentence in _SENTENCE_SPLIT.split(body):
                sentence = sentence.strip()
                if sentence and _ACTION_VERBS.search(sentence):
                    items.append(sentence)

        unique = [item for item in dict.fromkeys(items) if item]
        return tuple(unique[: self._settings.max_action_items])


def classify_intent(
    *,
    has_question: bool,
    has_deadline: bool,
    urgency_level: int,
    action_item_count: int,
) -> Intent:
    """Map analysis signals onto an intent; earlier rules take precedence."""
    if has_deadline and urgency_level >= URGENT_INTENT_LEVEL:
        return Intent.CONFIRM
    if has_question or action_item_count > 0 or urgency_level >= URGENT_INTENT_LEVEL:
        return Intent.REQUEST
    if has_deadline:
        return Intent.SCHEDULE
    return Intent.INFORM


def is_meeting_related(subject: str | None, body: str | None) -> bool:
    """Return ``True`` when the text talks about meetings or calls."""
    full_text = f"{subject or ''}\n{body or ''}"
    return any(pattern.search(full_text) for pattern in _MEETING_PATTERNS)


def is_financial_related(subject: str | None, body: str | None) -> bool:
    """Return ``True`` when the text mentions payments or amounts."""
    full_text = f"{subject or ''}\n{body or ''}"
    return any(pattern.search(full_text) for pattern in _FINANCIAL_PATTERNS)


def normalize_deadline_shorthand(text: str) -> str:
    """Rewrite business shorthand into phrases a date parser understands."""
    for pattern, replacement in _SHORTHAND_REWRITES:
        text = pattern.sub(replacement, text)
    return text


__all__ = [
    "ContentAnalyzer",
    "classify_intent",
    "is_financial_related",
    "is_meeting_related",
    "normalize_deadline_shorthand",
]
