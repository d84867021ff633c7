"""Natural-language date phrase lookup backed by ``dateparser``."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from dateparser.search import search_dates

from inbox_priority.core.datetime_utils import ensure_utc
from inbox_priority.core.interfaces import DateMatch

LOGGER = logging.getLogger(__name__)

# timestamps and digit-run formats turn order numbers into dates
_PARSERS = ["relative-time", "absolute-time"]

_MONTH_NAMES = frozenset(
    {
        "january", "february", "march", "april", "may", "june", "july",
        "august", "september", "october", "november", "december",
        "jan", "feb", "mar", "apr", "jun", "jul", "aug", "sep", "sept",
        "oct", "nov", "dec",
    }
)
_BARE_NUMBER = re.compile(
    r"^(?:(?:on|by|in|the|of)\s+)*\d+(?:st|nd|rd|th)?$", re.IGNORECASE
)
_EDGE_PUNCTUATION = " \t\r\n.,;:!?()[]\"'"


def is_vague_date_phrase(phrase: str) -> bool:
    """Return ``True`` for matches too weak to be a date.

    A bare month name ("may"), a bare number ("2031") or a lone ordinal
    ("the 5th") reads as a date to the parser but rarely is one in mail.
    """
    token = phrase.strip(_EDGE_PUNCTUATION).lower()
    if not token:
        return True
    if token in _MONTH_NAMES:
        return True
    return bool(_BARE_NUMBER.match(token))


class DateparserPhraseParser:
    """Find date phrases in English text relative to a reference time."""

    def __init__(self, languages: Sequence[str] = ("en",)) -> None:
        self._languages = list(languages)

    def find_dates(self, text: str, now: datetime) -> Sequence[DateMatch]:
        """Return the date phrases ``dateparser`` recognises in ``text``.

        Vague single-token matches are skipped.
        """
        if not text.strip():
            return []
        reference = ensure_utc(now) or now
        settings: dict[str, Any] = {
            # dateparser expects a naive relative base
            "RELATIVE_BASE": reference.replace(tzinfo=None),
            "PREFER_DATES_FROM": "future",
            "TIMEZONE": "UTC",
            "TO_TIMEZONE": "UTC",
            "RETURN_AS_TIMEZONE_AWARE": True,
            "PARSERS": _PARSERS,
        }
        found = search_dates(text, languages=self._languages, settings=settings)
        if not found:
            return []

        matches: list[DateMatch] = []
        cursor = 0
        for phrase, value in found:
            position = text.find(phrase, cursor)
            if position < 0:
                position = text.find(phrase)
            else:
                cursor = position + len(phrase)
            if is_vague_date_phrase(phrase):
                LOGGER.debug("Ignoring vague date phrase %r", phrase)
                continue
            matches.append(
                DateMatch(text=phrase, start=max(position, 0), value=ensure_utc(value) or value)
            )
        return matches


__all__ = ["DateparserPhraseParser", "is_vague_date_phrase"]
