"""Tests for the weighted linear priority scorer."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from inbox_priority.core.config import ScoringSettings
from inbox_priority.core.datetime_utils import to_epoch
from inbox_priority.core.models import Intent, MessageFeatures, PriorityCategory
from inbox_priority.intelligence.priority import PriorityScorer, explain, feature_importance

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=UTC)


def _features(**overrides: object) -> MessageFeatures:
    return MessageFeatures(message_id="msg-1", **overrides)  # type: ignore[arg-type]


def _deadline_in(minutes: int) -> dict[str, object]:
    return {
        "deadline_epoch": to_epoch(NOW + timedelta(minutes=minutes)),
        "minutes_to_deadline": minutes,
    }


@pytest.fixture
def scorer() -> PriorityScorer:
    return PriorityScorer()


def test_neutral_features_score_baseline(scorer: PriorityScorer) -> None:
    result = scorer.score(_features(), now=NOW)

    assert result.score == 50
    assert result.category is PriorityCategory.NORMAL
    assert result.confidence == pytest.approx(0.8)
    assert result.reasoning == ()
    assert result.feature_weights == {}


def test_newsletter_alone_is_spam(scorer: PriorityScorer) -> None:
    result = scorer.score(_features(is_newsletter=True), now=NOW)

    assert result.score == 20
    assert result.category is PriorityCategory.SPAM
    assert "Newsletter detected (RFC 2369/2919)" in result.reasoning
    assert result.feature_weights["is_newsletter"] == -30


def test_strong_relationship_with_ask(scorer: PriorityScorer) -> None:
    result = scorer.score(_features(relationship_score=0.9, explicit_ask=True), now=NOW)

    assert result.score >= 85
    assert result.score == 97
    assert "Strong relationship with sender (score: 0.90)" in result.reasoning
    assert "Contains explicit question or request" in result.reasoning
    assert result.feature_weights["relationship_score"] == pytest.approx(27.0)


def test_moderate_relationship_reason(scorer: PriorityScorer) -> None:
    result = scorer.score(_features(relationship_score=0.5), now=NOW)

    assert "Moderate relationship with sender (score: 0.50)" in result.reasoning
    assert result.score == 65


def test_deadline_in_thirty_minutes_is_urgent(scorer: PriorityScorer) -> None:
    result = scorer.score(_features(**_deadline_in(30)), now=NOW)

    assert result.score == 90
    assert result.category is PriorityCategory.URGENT
    assert result.confidence == pytest.approx(0.9)
    assert "Email has deadline" in result.reasoning
    assert "Deadline in 0h (urgent)" in result.reasoning
    assert result.feature_weights["time_to_deadline_urgent"] == 25


def test_distant_deadline_gets_base_bonus_only(scorer: PriorityScorer) -> None:
    result = scorer.score(_features(**_deadline_in(3 * 24 * 60)), now=NOW)

    assert result.score == 65
    assert "time_to_deadline_urgent" not in result.feature_weights


def test_otp_is_spam_with_capped_confidence(scorer: PriorityScorer) -> None:
    result = scorer.score(_features(otp_detected=True), now=NOW)

    assert result.score < 30
    assert result.category is PriorityCategory.SPAM
    assert result.confidence <= 0.6
    assert "OTP/2FA code detected (low interaction priority)" in result.reasoning


def test_auto_generated_penalty(scorer: PriorityScorer) -> None:
    result = scorer.score(_features(is_auto_generated=True), now=NOW)

    assert result.score == 30
    assert "Auto-generated email (RFC 3834)" in result.reasoning


def test_upcoming_calendar_event_is_important_without_auto_penalty(
    scorer: PriorityScorer,
) -> None:
    features = _features(
        has_calendar=True,
        is_auto_generated=True,
        calendar_start_epoch=to_epoch(NOW + timedelta(hours=2)),
    )

    result = scorer.score(features, now=NOW)

    assert result.score == 70
    assert result.category is PriorityCategory.IMPORTANT
    assert "is_auto_generated" not in result.feature_weights
    assert "Auto-generated email (RFC 3834)" not in result.reasoning
    assert "Calendar invite: event in 2h" in result.reasoning
    assert result.feature_weights["calendar_upcoming"] == pytest.approx(20.0)
    assert result.confidence == pytest.approx(0.95)


def test_past_calendar_event_gets_no_floor(scorer: PriorityScorer) -> None:
    features = _features(
        has_calendar=True,
        calendar_start_epoch=to_epoch(NOW - timedelta(hours=1)),
    )

    result = scorer.score(features, now=NOW)

    assert result.score == 50
    assert "calendar_upcoming" not in result.feature_weights


def test_security_alert_floor(scorer: PriorityScorer) -> None:
    features = _features(is_newsletter=True, explicit_ask=True, **_deadline_in(120))

    result = scorer.score(features, now=NOW)

    assert result.score == 85
    assert result.category is PriorityCategory.IMPORTANT
    assert result.confidence == pytest.approx(0.7)
    assert "Potential security alert (urgent + short deadline)" in result.reasoning
    assert result.feature_weights["security_alert"] == pytest.approx(5.0)


def test_security_alert_needs_explicit_ask(scorer: PriorityScorer) -> None:
    features = _features(is_newsletter=True, **_deadline_in(120))

    result = scorer.score(features, now=NOW)

    assert result.score == 60
    assert "security_alert" not in result.feature_weights


@pytest.mark.parametrize(
    ("intent", "expected", "reason"),
    [
        (Intent.CONFIRM, 60, "Requires confirmation"),
        (Intent.REQUEST, 55, "Action request"),
        (Intent.SCHEDULE, 50, None),
        (Intent.INFORM, 45, "Informational (lower priority)"),
    ],
)
def test_intent_modifiers(
    scorer: PriorityScorer, intent: Intent, expected: int, reason: str | None
) -> None:
    result = scorer.score(_features(intent=intent), now=NOW)

    assert result.score == expected
    if reason is not None:
        assert reason in result.reasoning
    assert f"intent_{intent.value}" in result.feature_weights


def test_reply_need_applies_only_above_half(scorer: PriorityScorer) -> None:
    at_half = scorer.score(_features(reply_need_probability=0.5), now=NOW)
    high = scorer.score(_features(reply_need_probability=0.8), now=NOW)

    assert at_half.score == 50
    assert high.score == 70
    assert "High reply probability (80%)" in high.reasoning


def test_vip_and_thread_bonuses(scorer: PriorityScorer) -> None:
    result = scorer.score(_features(is_vip_sender=True, thread_you_owe=True), now=NOW)

    assert result.score == 85
    assert "VIP sender (manually flagged)" in result.reasoning
    assert "Conversation continuation (you owe a reply)" in result.reasoning


def test_scores_round_half_up(scorer: PriorityScorer) -> None:
    result = scorer.score(_features(relationship_score=0.25, intent=Intent.INFORM), now=NOW)

    assert result.score == 53


def test_score_and_confidence_are_clamped(scorer: PriorityScorer) -> None:
    everything = _features(
        relationship_score=1.0,
        is_vip_sender=True,
        explicit_ask=True,
        thread_you_owe=True,
        reply_need_probability=1.0,
        intent=Intent.CONFIRM,
        **_deadline_in(60),
    )
    nothing = _features(is_newsletter=True, is_auto_generated=True, otp_detected=True)

    high = scorer.score(everything, now=NOW)
    low = scorer.score(nothing, now=NOW)

    assert high.score == 100
    assert high.category is PriorityCategory.URGENT
    assert 0.0 <= high.confidence <= 1.0
    assert low.score == 0
    assert low.category is PriorityCategory.SPAM


def test_scoring_is_idempotent(scorer: PriorityScorer) -> None:
    features = _features(relationship_score=0.42, intent=Intent.REQUEST, **_deadline_in(600))

    assert scorer.score(features, now=NOW) == scorer.score(features, now=NOW)


@pytest.mark.parametrize(
    ("score", "expected"),
    [
        (100, PriorityCategory.URGENT),
        (90, PriorityCategory.URGENT),
        (89, PriorityCategory.IMPORTANT),
        (70, PriorityCategory.IMPORTANT),
        (69, PriorityCategory.NORMAL),
        (50, PriorityCategory.NORMAL),
        (49, PriorityCategory.LOW),
        (30, PriorityCategory.LOW),
        (29, PriorityCategory.SPAM),
        (0, PriorityCategory.SPAM),
    ],
)
def test_categorize_thresholds(scorer: PriorityScorer, score: int, expected: PriorityCategory) -> None:
    assert scorer.categorize(score) is expected


def test_weights_come_from_settings() -> None:
    scorer = PriorityScorer(ScoringSettings(newsletter_penalty=-10.0))

    assert scorer.score(_features(is_newsletter=True), now=NOW).score == 40


def test_feature_importance_sorted_by_magnitude(scorer: PriorityScorer) -> None:
    result = scorer.score(
        _features(is_newsletter=True, explicit_ask=True, intent=Intent.SCHEDULE), now=NOW
    )

    ranking = feature_importance(result)

    assert [item.feature for item in ranking] == [
        "is_newsletter",
        "explicit_ask",
        "intent_schedule",
    ]
    assert ranking[0].impact == "negative"
    assert ranking[1].impact == "positive"
    assert ranking[2].impact == "neutral"
    assert ranking[0].weight == 30


def test_explain_lists_reasons_and_top_features(scorer: PriorityScorer) -> None:
    result = scorer.score(_features(relationship_score=0.9, explicit_ask=True), now=NOW)

    text = explain(result)

    assert text.startswith("Priority: URGENT (97/100)\n")
    assert "Reasons:\n  1. Strong relationship with sender (score: 0.90)" in text
    assert "Top contributing features:" in text
    assert "  1. relationship_score: +27.0 points" in text
    assert "  2. explicit_ask: +20.0 points" in text
