"""Weighted linear priority scoring with explainable contributions.

Scoring runs in five phases over a :class:`MessageFeatures` record:

1. negative signals (newsletter, automation, one-time codes)
2. positive signals (relationship, VIP, asks, deadlines, threads, reply need)
3. intent modifiers
4. floor overrides (imminent calendar events, security-style alerts)
5. clamping, rounding and categorisation

Phases 1-3 are a table of :class:`Adjustment` steps folded over a running
total; phase 4 is a table of :class:`Override` floors. Both tables are built
from :class:`ScoringSettings`, so weights live in configuration.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime

from inbox_priority.core.config import ScoringSettings
from inbox_priority.core.datetime_utils import epoch_seconds, utc_now
from inbox_priority.core.models import (
    FeatureImpact,
    Intent,
    MessageFeatures,
    PriorityCategory,
    PriorityScore,
)

LOGGER = logging.getLogger(__name__)

STRONG_RELATIONSHIP = 0.7
MODERATE_RELATIONSHIP = 0.4
TOP_FEATURES = 5


@dataclass(slots=True, frozen=True)
class Adjustment:
    """One additive rule: when ``applies`` holds, add ``points`` under ``feature``."""

    feature: str
    applies: Callable[[MessageFeatures], bool]
    points: Callable[[MessageFeatures], float]
    reason: Callable[[MessageFeatures], str | None]
    confidence: Callable[[float], float] | None = None


@dataclass(slots=True, frozen=True)
class Override:
    """A floor applied after the additive phases, evaluated at a reference time."""

    feature: str
    applies: Callable[[MessageFeatures, int], bool]
    floor: float
    reason: Callable[[MessageFeatures, int], str]
    confidence: Callable[[float], float]


def _constant(value: float) -> Callable[[MessageFeatures], float]:
    return lambda _features: value


def _text(value: str) -> Callable[[MessageFeatures], str]:
    return lambda _features: value


def _has_deadline(features: MessageFeatures) -> bool:
    return features.deadline_epoch is not None


def _relationship_reason(features: MessageFeatures) -> str | None:
    score = features.relationship_score
    if score > STRONG_RELATIONSHIP:
        return f"Strong relationship with sender (score: {score:.2f})"
    if score > MODERATE_RELATIONSHIP:
        return f"Moderate relationship with sender (score: {score:.2f})"
    return None


def build_adjustments(settings: ScoringSettings) -> tuple[Adjustment, ...]:
    """Return the ordered additive rules of phases 1-3."""

    def urgent_deadline(features: MessageFeatures) -> bool:
        return (
            _has_deadline(features)
            and features.minutes_to_deadline is not None
            and features.minutes_to_deadline < settings.urgent_deadline_minutes
        )

    def intent_is(intent: Intent) -> Callable[[MessageFeatures], bool]:
        return lambda features: features.intent is intent

    return (
        # negative signals
        Adjustment(
            "is_newsletter",
            lambda f: f.is_newsletter,
            _constant(settings.newsletter_penalty),
            _text("Newsletter detected (RFC 2369/2919)"),
        ),
        Adjustment(
            "is_auto_generated",
            # calendar invites are routinely auto-generated
            lambda f: f.is_auto_generated and not f.has_calendar,
            _constant(settings.auto_generated_penalty),
            _text("Auto-generated email (RFC 3834)"),
        ),
        Adjustment(
            "otp_detected",
            lambda f: f.otp_detected,
            _constant(settings.otp_penalty),
            _text("OTP/2FA code detected (low interaction priority)"),
            confidence=lambda c: min(c, settings.otp_max_confidence),
        ),
        # positive signals
        Adjustment(
            "relationship_score",
            lambda f: f.relationship_score > 0,
            lambda f: f.relationship_score * settings.relationship_max,
            _relationship_reason,
        ),
        Adjustment(
            "is_vip_sender",
            lambda f: f.is_vip_sender,
            _constant(settings.vip_sender),
            _text("VIP sender (manually flagged)"),
        ),
        Adjustment(
            "explicit_ask",
            lambda f: f.explicit_ask,
            _constant(settings.explicit_ask),
            _text("Contains explicit question or request"),
        ),
        Adjustment(
            "deadline_epoch",
            _has_deadline,
            _constant(settings.deadline_bonus),
            _text("Email has deadline"),
        ),
        Adjustment(
            "time_to_deadline_urgent",
            urgent_deadline,
            _constant(settings.urgent_deadline_bonus),
            lambda f: f"Deadline in {(f.minutes_to_deadline or 0) // 60}h (urgent)",
            confidence=lambda c: min(c + settings.urgent_deadline_confidence_boost, 1.0),
        ),
        Adjustment(
            "thread_you_owe",
            lambda f: f.thread_you_owe,
            _constant(settings.thread_you_owe),
            _text("Conversation continuation (you owe a reply)"),
        ),
        Adjustment(
            "reply_need_probability",
            lambda f: f.reply_need_probability > settings.reply_need_threshold,
            lambda f: f.reply_need_probability * settings.reply_need_max,
            lambda f: f"High reply probability ({f.reply_need_probability * 100:.0f}%)",
        ),
        # intent modifiers
        Adjustment(
            "intent_confirm",
            intent_is(Intent.CONFIRM),
            _constant(settings.intent_confirm),
            _text("Requires confirmation"),
        ),
        Adjustment(
            "intent_request",
            intent_is(Intent.REQUEST),
            _constant(settings.intent_request),
            _text("Action request"),
        ),
        Adjustment(
            "intent_schedule",
            intent_is(Intent.SCHEDULE),
            _constant(settings.intent_schedule),
            lambda _f: None,
        ),
        Adjustment(
            "intent_inform",
            intent_is(Intent.INFORM),
            _constant(settings.intent_inform),
            _text("Informational (lower priority)"),
        ),
    )


def build_overrides(settings: ScoringSettings) -> tuple[Override, ...]:
    """Return the floor rules of phase 4."""
    window_seconds = settings.calendar_window_hours * 3600

    def event_soon(features: MessageFeatures, now_epoch: int) -> bool:
        if not features.has_calendar or features.calendar_start_epoch is None:
            return False
        return 0 < features.calendar_start_epoch - now_epoch < window_seconds

    def event_reason(features: MessageFeatures, now_epoch: int) -> str:
        hours = ((features.calendar_start_epoch or now_epoch) - now_epoch) // 3600
        return f"Calendar invite: event in {hours}h"

    def security_alert(features: MessageFeatures, _now_epoch: int) -> bool:
        return (
            _has_deadline(features)
            and features.minutes_to_deadline is not None
            and features.minutes_to_deadline < settings.security_deadline_minutes
            and features.explicit_ask
        )

    return (
        Override(
            "calendar_upcoming",
            event_soon,
            float(settings.important_threshold),
            event_reason,
            lambda c: min(c + settings.calendar_confidence_boost, 1.0),
        ),
        Override(
            "security_alert",
            security_alert,
            settings.urgent_threshold - settings.security_floor_margin,
            lambda _f, _n: "Potential security alert (urgent + short deadline)",
            lambda _c: settings.security_confidence,
        ),
    )


class PriorityScorer:
    """Stateless scorer turning a feature record into a :class:`PriorityScore`."""

    def __init__(self, settings: ScoringSettings | None = None) -> None:
        self._settings = settings or ScoringSettings()
        self._adjustments = build_adjustments(self._settings)
        self._overrides = build_overrides(self._settings)

    @property
    def adjustments(self) -> Sequence[Adjustment]:
        """Return the additive rule table in evaluation order."""
        return self._adjustments

    def score(self, features: MessageFeatures, *, now: datetime | None = None) -> PriorityScore:
        """Score ``features``; ``now`` anchors the calendar window."""
        settings = self._settings
        now_epoch = epoch_seconds(now or utc_now())

        total = settings.baseline
        confidence = settings.base_confidence
        reasoning: list[str] = []
        weights: dict[str, float] = {}

        for step in self._adjustments:
            if not step.applies(features):
                continue
            points = step.points(features)
            total += points
            weights[step.feature] = points
            reason = step.reason(features)
            if reason:
                reasoning.append(reason)
            if step.confidence is not None:
                confidence = step.confidence(confidence)

        for override in self._overrides:
            if not override.applies(features, now_epoch):
                continue
            lifted = max(total, override.floor)
            weights[override.feature] = lifted - total
            total = lifted
            reasoning.append(override.reason(features, now_epoch))
            confidence = override.confidence(confidence)

        final = int(math.floor(max(0.0, min(100.0, total)) + 0.5))
        result = PriorityScore(
            message_id=features.message_id,
            score=final,
            category=self.categorize(final),
            confidence=max(0.0, min(1.0, confidence)),
            reasoning=tuple(reasoning),
            feature_weights=weights,
        )
        LOGGER.debug(
            "Scored %s: %s (%s)",
            features.message_id,
            result.score,
            result.category,
            extra={"message_id": features.message_id},
        )
        return result

    def categorize(self, score: float) -> PriorityCategory:
        """Return the category whose threshold ``score`` reaches."""
        settings = self._settings
        if score >= settings.urgent_threshold:
            return PriorityCategory.URGENT
        if score >= settings.important_threshold:
            return PriorityCategory.IMPORTANT
        if score >= settings.normal_threshold:
            return PriorityCategory.NORMAL
        if score >= settings.low_threshold:
            return PriorityCategory.LOW
        return PriorityCategory.SPAM


def feature_importance(score: PriorityScore) -> list[FeatureImpact]:
    """Rank the recorded contributions by absolute size."""
    impacts = [
        FeatureImpact(
            feature=feature,
            weight=abs(points),
            impact="positive" if points > 0 else "negative" if points < 0 else "neutral",
        )
        for feature, points in score.feature_weights.items()
    ]
    impacts.sort(key=lambda item: item.weight, reverse=True)
    return impacts


def explain(score: PriorityScore) -> str:
    """Render a plain-text explanation of ``score``."""
    lines = [f"Priority: {score.category.upper()} ({score.score}/100)", "", "Reasons:"]
    lines.extend(f"  {index}. {reason}" for index, reason in enumerate(score.reasoning, 1))

    importance = feature_importance(score)
    if importance:
        lines.extend(["", "Top contributing features:"])
        for index, item in enumerate(importance[:TOP_FEATURES], 1):
            sign = "-" if item.impact == "negative" else "+"
            lines.append(f"  {index}. {item.feature}: {sign}{item.weight:.1f} points")
    return "\n".join(lines) + "\n"


__all__ = [
    "Adjustment",
    "Override",
    "PriorityScorer",
    "build_adjustments",
    "build_overrides",
    "explain",
    "feature_importance",
]
