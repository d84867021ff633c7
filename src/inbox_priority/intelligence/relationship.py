"""Sender importance derived from interaction history.

The score is a weighted sum of five 0-1 components (reply frequency,
two-way exchanges, recency, volume, manual VIP). A sender with no traffic
in either direction receives a flat neutral score instead.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import datetime, timedelta

from inbox_priority.core.config import RelationshipSettings
from inbox_priority.core.datetime_utils import ensure_utc, epoch_seconds, to_epoch, utc_now
from inbox_priority.core.models import (
    InteractionStats,
    RelationshipComponents,
    RelationshipScore,
)

IDEAL_REPLY_RATIO = 0.5
NEUTRAL_SCORE = 0.5
_SECONDS_PER_DAY = 24 * 60 * 60


class RelationshipScorer:
    """Convert interaction stats for one sender into a relationship score."""

    def __init__(self, settings: RelationshipSettings | None = None) -> None:
        """Store weights and curve parameters."""
        self._settings = settings or RelationshipSettings()

    @property
    def settings(self) -> RelationshipSettings:
        """Return the active settings."""
        return self._settings

    def score(
        self,
        sender: str,
        stats: InteractionStats | None,
        *,
        is_vip: bool = False,
        now: datetime | None = None,
    ) -> RelationshipScore:
        """Return the relationship score for ``sender``.

        Missing stats are treated the same as an empty history.
        """
        stats = stats or InteractionStats()
        settings = self._settings
        components = RelationshipComponents(
            reply_frequency=self.score_reply_frequency(stats),
            two_way_exchanges=self.score_two_way_exchanges(stats),
            recency=self.score_recency(stats, now=now),
            volume=self.score_volume(stats),
            manual_vip=1.0 if is_vip else 0.0,
        )

        if stats.is_empty:
            final = NEUTRAL_SCORE
        else:
            composite = (
                components.reply_frequency * settings.reply_frequency_weight
                + components.two_way_exchanges * settings.two_way_weight
                + components.recency * settings.recency_weight
                + components.volume * settings.volume_weight
                + components.manual_vip * settings.manual_vip_weight
            )
            final = _clamp(composite)

        return RelationshipScore(
            sender=sender,
            score=final,
            is_vip=is_vip,
            components=components,
            stats=stats,
        )

    @staticmethod
    def score_reply_frequency(stats: InteractionStats) -> float:
        """Peak at a 50% reply ratio, decaying linearly either side."""
        if stats.emails_received <= 0:
            return NEUTRAL_SCORE
        ratio = stats.user_replies / stats.emails_received
        deviation = abs(ratio - IDEAL_REPLY_RATIO)
        return _clamp(1.0 - deviation * 2)

    @staticmethod
    def score_two_way_exchanges(stats: InteractionStats) -> float:
        """Reward exchanges relative to total volume; 50% is already maximal."""
        total = stats.emails_received + stats.emails_sent_to
        if total <= 0:
            return 0.0
        return _clamp(stats.two_way_exchanges / total * 2)

    def score_recency(
        self, stats: InteractionStats, *, now: datetime | None = None
    ) -> float:
        """Exponential decay from the most recent contact."""
        if stats.last_contact_epoch is None:
            return 0.0
        current = epoch_seconds(now or utc_now())
        days_since = max(0.0, (current - stats.last_contact_epoch) / _SECONDS_PER_DAY)
        return _clamp(math.exp(-days_since / self._settings.recency_decay_days))

    def score_volume(self, stats: InteractionStats) -> float:
        """Ramp up to the plateau, then penalise newsletter-like volume."""
        settings = self._settings
        received = stats.emails_received
        if received < settings.volume_ramp_count:
            return _clamp(received / settings.volume_ramp_count)
        if received <= settings.volume_plateau_count:
            return 1.0
        penalty = (received - settings.volume_plateau_count) / settings.volume_decay_span
        return _clamp(1.0 - penalty)


def summarize_history(
    received: Sequence[datetime],
    sent: Sequence[datetime],
    *,
    since: datetime | None = None,
    now: datetime | None = None,
    lookback_days: int = 180,
    reply_window_days: int = 7,
) -> InteractionStats:
    """Build :class:`InteractionStats` from message timestamps.

    ``received`` holds times of messages from the sender to the user and
    ``sent`` times of messages from the user to the sender. Only messages
    at or after ``since`` (default: ``lookback_days`` before ``now``) count.
    """
    current = ensure_utc(now) or utc_now()
    since = ensure_utc(since) or current - timedelta(days=lookback_days)
    window = timedelta(days=reply_window_days)

    received_times = sorted(
        value for value in (ensure_utc(item) for item in received) if value and value >= since
    )
    sent_times = sorted(
        value for value in (ensure_utc(item) for item in sent) if value and value >= since
    )

    user_replies = sum(
        1
        for sent_at in sent_times
        if any(timedelta(0) < sent_at - got < window for got in received_times)
    )
    sender_replies = sum(
        1
        for got in received_times
        if any(timedelta(0) < got - sent_at < window for sent_at in sent_times)
    )

    latencies: list[float] = []
    for sent_at in sent_times:
        preceding = [got for got in received_times if got < sent_at]
        if not preceding:
            continue
        latency = sent_at - preceding[-1]
        if latency < window:
            latencies.append(latency.total_seconds() / 60)

    everything = sorted(received_times + sent_times)
    first_contact = to_epoch(everything[0]) if everything else None
    last_contact = to_epoch(everything[-1]) if everything else None
    total_days = 0
    if first_contact is not None and last_contact is not None:
        total_days = math.ceil((last_contact - first_contact) / _SECONDS_PER_DAY)

    return InteractionStats(
        emails_received=len(received_times),
        emails_sent_to=len(sent_times),
        user_replies=user_replies,
        sender_replies=sender_replies,
        two_way_exchanges=min(user_replies, sender_replies),
        first_contact_epoch=first_contact,
        last_contact_epoch=last_contact,
        avg_reply_latency_minutes=sum(latencies) / len(latencies) if latencies else None,
        total_interaction_days=total_days,
    )


def _clamp(value: float, lower: float = 0.0, upper: float = 1.0) -> float:
    return max(lower, min(upper, value))


__all__ = ["NEUTRAL_SCORE", "RelationshipScorer", "summarize_history"]
