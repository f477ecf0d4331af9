"""Domain models shared across services and repositories."""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Tuple

from .errors import InvariantViolation


DEFAULT_EASE = 2.5
MIN_EASE = 1.3
MS_PER_DAY = 86_400_000
SYNONYM_SLOTS: Tuple[int, ...] = (1, 2, 3)


@dataclass(frozen=True)
class SynonymSlot:
    """One interchangeable (synonym, definition, example) triple."""

    number: int
    synonym: str
    definition: str
    example_sentence: str


@dataclass(frozen=True)
class VocabularyItem:
    """A vocabulary word together with its scheduling state.

    Records are immutable; learning fields change only through
    :meth:`ItemStore.update_item`, which swaps in a new record built with
    :func:`dataclasses.replace`.
    """

    id: int
    word: str
    definition: str
    synonym1: str
    synonym1_definition: str
    synonym1_example_sentence: str
    synonym2: str
    synonym2_definition: str
    synonym2_example_sentence: str
    synonym3: str
    synonym3_definition: str
    synonym3_example_sentence: str
    example_sentence: str = ""
    is_bookmarked: bool = False

    times_reviewed: int = 0
    times_correct: int = 0
    ease_factor: float = DEFAULT_EASE
    interval: int = 0
    repetition_count: int = 0
    last_reviewed: int = 0
    next_review_date: int = 0
    quality: int = 0

    def slot(self, number: int) -> SynonymSlot:
        if number not in SYNONYM_SLOTS:
            raise InvariantViolation(f"Synonym slot must be one of {SYNONYM_SLOTS}, got {number}")
        prefix = f"synonym{number}"
        return SynonymSlot(
            number=number,
            synonym=getattr(self, prefix),
            definition=getattr(self, f"{prefix}_definition"),
            example_sentence=getattr(self, f"{prefix}_example_sentence"),
        )

    def synonyms(self) -> List[str]:
        return [self.slot(number).synonym for number in SYNONYM_SLOTS]

    @property
    def is_unseen(self) -> bool:
        return self.times_reviewed == 0

    def is_overdue(self, now: int) -> bool:
        return 0 < self.next_review_date <= now

    def reset_learning(self) -> "VocabularyItem":
        """Return a copy with every learning field back at its initial value."""

        return replace(
            self,
            times_reviewed=0,
            times_correct=0,
            ease_factor=DEFAULT_EASE,
            interval=0,
            repetition_count=0,
            last_reviewed=0,
            next_review_date=0,
            quality=0,
        )

    def with_bookmark(self, is_bookmarked: bool) -> "VocabularyItem":
        return replace(self, is_bookmarked=is_bookmarked)


__all__ = [
    "DEFAULT_EASE",
    "MIN_EASE",
    "MS_PER_DAY",
    "SYNONYM_SLOTS",
    "SynonymSlot",
    "VocabularyItem",
]
