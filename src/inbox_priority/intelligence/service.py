"""Single and batch priority scoring over a message source."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from datetime import datetime

from inbox_priority.core.config import AppSettings
from inbox_priority.core.datetime_utils import ensure_utc, utc_now
from inbox_priority.core.interfaces import (
    DatePhraseParser,
    InteractionHistorySource,
    MessageNotFoundError,
    MessageSource,
    ScoringError,
    ThreadSource,
)
from inbox_priority.core.models import (
    BatchReport,
    PriorityScore,
    RawMessage,
    ScoringFailure,
)

from .features import FeatureExtractor
from .priority import PriorityScorer

LOGGER = logging.getLogger(__name__)

NOT_FOUND = "not_found"
TIMEOUT = "timeout"
ERROR = "error"


class PriorityService:
    """Score messages by identifier, one at a time or concurrently."""

    def __init__(
        self,
        message_source: MessageSource,
        extractor: FeatureExtractor,
        scorer: PriorityScorer | None = None,
        settings: AppSettings | None = None,
    ) -> None:
        self._settings = settings or AppSettings()
        self._messages = message_source
        self._extractor = extractor
        self._scorer = scorer or PriorityScorer(self._settings.scoring)

    def score(self, message_id: str, *, now: datetime | None = None) -> PriorityScore:
        """Return the priority of ``message_id``.

        Raises :class:`MessageNotFoundError` for unknown identifiers and
        :class:`ScoringError` for any other failure.
        """
        try:
            message = self._messages.fetch_message(message_id)
        except Exception as exc:
            raise ScoringError(message_id, f"message source failed: {exc}") from exc
        if message is None:
            raise MessageNotFoundError(message_id)
        return self.score_message(message, now=now)

    def score_message(
        self, message: RawMessage, *, now: datetime | None = None
    ) -> PriorityScore:
        """Return the priority of an already fetched message."""
        current = ensure_utc(now) or utc_now()
        try:
            features = self._extractor.extract(message, now=current)
            return self._scorer.score(features, now=current)
        except ScoringError:
            raise
        except Exception as exc:
            raise ScoringError(message.message_id, str(exc) or type(exc).__name__) from exc

    async def score_many(
        self,
        message_ids: Sequence[str],
        parallelism: int | None = None,
        *,
        timeout: float | None = None,
        now: datetime | None = None,
    ) -> BatchReport:
        """Score ``message_ids`` concurrently, collecting per-message failures.

        Results keep the input order. One reference time is shared by the
        whole batch.
        """
        limit = self.effective_parallelism(parallelism)
        per_message_timeout = timeout if timeout is not None else self._settings.batch.timeout_seconds
        current = ensure_utc(now) or utc_now()
        semaphore = asyncio.Semaphore(limit)
        started = time.perf_counter()

        async def run(message_id: str) -> PriorityScore:
            async with semaphore:
                call = asyncio.to_thread(self.score, message_id, now=current)
                if per_message_timeout is None:
                    return await call
                return await asyncio.wait_for(call, per_message_timeout)

        outcomes = await asyncio.gather(
            *(run(message_id) for message_id in message_ids),
            return_exceptions=True,
        )

        results: list[PriorityScore] = []
        errors: list[ScoringFailure] = []
        for message_id, outcome in zip(message_ids, outcomes):
            if isinstance(outcome, PriorityScore):
                results.append(outcome)
                continue
            if not isinstance(outcome, Exception):
                raise outcome
            failure = _failure(message_id, outcome)
            LOGGER.error(
                "Failed to score message %s: %s",
                message_id,
                failure.error,
                extra={"message_id": message_id},
            )
            errors.append(failure)

        elapsed = time.perf_counter() - started
        LOGGER.info(
            "Scored %s of %s messages in %.2fs (parallelism %s)",
            len(results),
            len(message_ids),
            elapsed,
            limit,
        )
        return BatchReport(
            results=tuple(results),
            errors=tuple(errors),
            elapsed_seconds=elapsed,
        )

    def effective_parallelism(self, requested: int | None) -> int:
        """Clamp ``requested`` into ``[1, max_parallelism]``."""
        batch = self._settings.batch
        value = batch.default_parallelism if requested is None else requested
        return max(1, min(batch.max_parallelism, value))


def _failure(message_id: str, exc: Exception) -> ScoringFailure:
    if isinstance(exc, MessageNotFoundError):
        return ScoringFailure(message_id=message_id, error=str(exc), kind=NOT_FOUND)
    if isinstance(exc, TimeoutError):
        return ScoringFailure(message_id=message_id, error="timed out", kind=TIMEOUT)
    return ScoringFailure(message_id=message_id, error=str(exc), kind=ERROR)


def build_priority_service(
    settings: AppSettings,
    *,
    message_source: MessageSource,
    history_source: InteractionHistorySource,
    thread_source: ThreadSource | None = None,
    date_parser: DatePhraseParser | None = None,
) -> PriorityService:
    """Wire the extractor and scorer for ``settings`` around the given sources."""
    extractor = FeatureExtractor(
        history_source,
        settings=settings,
        thread_source=thread_source,
        date_parser=date_parser,
    )
    return PriorityService(
        message_source,
        extractor,
        PriorityScorer(settings.scoring),
        settings,
    )


__all__ = ["PriorityService", "build_priority_service"]
