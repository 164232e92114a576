"""Near-duplicate phrase suppression for finalized recognizer text."""

from __future__ import annotations

import logging
import re
from collections import deque
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_SENTENCE_SPLIT = re.compile(r"[.!?]")


@dataclass(frozen=True)
class FilterResult:
    """Outcome of filtering one candidate text."""

    cleaned_text: str
    had_duplicates: bool


def split_sentences(text: str) -> list[str]:
    """Split text into sentence-like units on terminal punctuation."""
    return [unit.strip() for unit in _SENTENCE_SPLIT.split(text) if unit.strip()]


def word_set(text: str) -> frozenset[str]:
    """Lower-cased set of whitespace-separated words."""
    return frozenset(text.lower().split())


def jaccard_similarity(first: str, second: str) -> float:
    """Word-set Jaccard similarity: |A & B| / |A | B|."""
    a = word_set(first)
    b = word_set(second)
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


class DuplicateSuppressor:
    """Drops sentence units that repeat something recently recognized.

    Recognizers restarted mid-utterance tend to re-emit text they already
    finalized. Each unit is compared against the last ``history_size``
    accepted units; a unit whose similarity to any of them is above
    ``threshold`` is dropped and not remembered.
    """

    def __init__(self, history_size: int = 10, threshold: float = 0.75) -> None:
        self._threshold = threshold
        self._history: deque[str] = deque(maxlen=history_size)

    @property
    def history(self) -> list[str]:
        """Accepted units, oldest first."""
        return list(self._history)

    def is_duplicate(self, unit: str) -> bool:
        return any(jaccard_similarity(unit, recent) > self._threshold for recent in self._history)

    def filter(self, text: str) -> FilterResult:
        """Remove duplicate units from ``text``.

        Args:
            text: Candidate text from the recognizer.

        Returns:
            Surviving units joined by single spaces, and whether any unit
            was dropped.
        """
        kept: list[str] = []
        had_duplicates = False

        for unit in split_sentences(text):
            if self.is_duplicate(unit):
                had_duplicates = True
                logger.debug(f"Dropped duplicate phrase: {unit!r}")
                continue
            kept.append(unit)
            self._history.append(unit)

        return FilterResult(cleaned_text=" ".join(kept), had_duplicates=had_duplicates)

    def reset(self) -> None:
        """Forget all history."""
        self._history.clear()
