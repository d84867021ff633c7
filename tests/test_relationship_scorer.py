"""Tests for sender relationship scoring and history summarisation."""

from __future__ import annotations

import math
from datetime import UTC, datetime, timedelta

import pytest

from inbox_priority.core.datetime_utils import to_epoch
from inbox_priority.core.models import InteractionStats
from inbox_priority.intelligence.relationship import RelationshipScorer, summarize_history

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=UTC)


def _stats(**overrides: object) -> InteractionStats:
    values: dict[str, object] = {
        "emails_received": 10,
        "emails_sent_to": 10,
        "user_replies": 5,
        "sender_replies": 5,
        "two_way_exchanges": 5,
        "last_contact_epoch": to_epoch(NOW),
    }
    values.update(overrides)
    return InteractionStats(**values)  # type: ignore[arg-type]


@pytest.fixture
def scorer() -> RelationshipScorer:
    return RelationshipScorer()


def test_unknown_sender_gets_neutral_score(scorer: RelationshipScorer) -> None:
    result = scorer.score("new@example.com", InteractionStats(), now=NOW)

    assert result.score == 0.5
    assert result.components.recency == 0.0


def test_missing_stats_are_neutral(scorer: RelationshipScorer) -> None:
    assert scorer.score("new@example.com", None, now=NOW).score == 0.5


def test_ideal_relationship_scores_high(scorer: RelationshipScorer) -> None:
    result = scorer.score("colleague@example.com", _stats(), now=NOW)

    assert result.components.reply_frequency == pytest.approx(1.0)
    assert result.components.two_way_exchanges == pytest.approx(0.5)
    assert result.components.recency == pytest.approx(1.0)
    assert result.components.volume == pytest.approx(1.0)
    assert result.score == pytest.approx(0.35 + 0.125 + 0.20 + 0.10)


@pytest.mark.parametrize(("replies", "expected"), [(0, 0.0), (5, 1.0), (10, 0.0), (3, 0.6)])
def test_reply_frequency_peaks_at_half(replies: int, expected: float) -> None:
    stats = _stats(user_replies=replies)

    assert RelationshipScorer.score_reply_frequency(stats) == pytest.approx(expected)


def test_reply_frequency_is_neutral_without_inbound_mail() -> None:
    stats = _stats(emails_received=0, user_replies=0)

    assert RelationshipScorer.score_reply_frequency(stats) == 0.5


def test_two_way_exchange_is_capped() -> None:
    stats = _stats(emails_received=4, emails_sent_to=4, two_way_exchanges=4)

    assert RelationshipScorer.score_two_way_exchanges(stats) == 1.0


def test_recency_decays_exponentially(scorer: RelationshipScorer) -> None:
    stats = _stats(last_contact_epoch=to_epoch(NOW - timedelta(days=90)))

    assert scorer.score_recency(stats, now=NOW) == pytest.approx(math.exp(-1))


@pytest.mark.parametrize(
    ("received", "expected"),
    [(0, 0.0), (2, 0.4), (5, 1.0), (50, 1.0), (100, 0.5), (150, 0.0), (400, 0.0)],
)
def test_volume_sweet_spot(scorer: RelationshipScorer, received: int, expected: float) -> None:
    assert scorer.score_volume(_stats(emails_received=received)) == pytest.approx(expected)


def test_manual_vip_adds_its_weight(scorer: RelationshipScorer) -> None:
    plain = scorer.score("boss@example.com", _stats(), now=NOW)
    vip = scorer.score("boss@example.com", _stats(), is_vip=True, now=NOW)

    assert vip.is_vip
    assert vip.components.manual_vip == 1.0
    assert vip.score - plain.score == pytest.approx(0.10)


def test_score_stays_in_range(scorer: RelationshipScorer) -> None:
    stats = _stats(two_way_exchanges=100, user_replies=5)
    result = scorer.score("x@example.com", stats, is_vip=True, now=NOW)

    assert 0.0 <= result.score <= 1.0


def test_summarize_history_counts_replies_and_latency() -> None:
    received = [NOW - timedelta(days=10), NOW - timedelta(days=3), NOW - timedelta(days=400)]
    sent = [NOW - timedelta(days=10) + timedelta(hours=2), NOW - timedelta(days=1)]

    stats = summarize_history(received, sent, now=NOW)

    assert stats.emails_received == 2
    assert stats.emails_sent_to == 2
    assert stats.user_replies == 2
    assert stats.sender_replies == 1
    assert stats.two_way_exchanges == 1
    assert stats.first_contact_epoch == to_epoch(NOW - timedelta(days=10))
    assert stats.last_contact_epoch == to_epoch(NOW - timedelta(days=1))
    assert stats.avg_reply_latency_minutes == pytest.approx((120 + 2 * 24 * 60) / 2)
    assert stats.total_interaction_days == 9


def test_summarize_history_empty() -> None:
    stats = summarize_history([], [], now=NOW)

    assert stats.is_empty
    assert stats.avg_reply_latency_minutes is None
