"""Validation utilities for seed vocabulary and assembled questions."""
from __future__ import annotations

import re
from typing import TYPE_CHECKING, Iterable, List

from .domain import VocabularyItem

if TYPE_CHECKING:
    from .services import Question


FORBIDDEN_PATTERNS = (
    re.compile(r"\bTODO\b", re.IGNORECASE),
    re.compile(r"\bTBD\b", re.IGNORECASE),
    re.compile(r"lorem ipsum", re.IGNORECASE),
    re.compile(r"\?{3,}"),
)


class ValidationError(ValueError):
    """Raised when seed data or an assembled question fails validation."""


def _assert_forbidden_patterns(text: str, context: str) -> None:
    for pattern in FORBIDDEN_PATTERNS:
        if pattern.search(text):
            raise ValidationError(f"Forbidden pattern detected in {context}: '{pattern.pattern}'")


def _assert_non_empty(text: str, context: str) -> None:
    if not text.strip():
        raise ValidationError(f"{context} must be non-empty")


def validate_seed_items(items: Iterable[VocabularyItem]) -> List[VocabularyItem]:
    """Validate seed vocabulary before it reaches the store."""

    validated: List[VocabularyItem] = []
    seen_words = set()
    for item in items:
        key = item.word.strip().lower()
        _assert_non_empty(item.word, "Word")
        if key in seen_words:
            raise ValidationError(f"Duplicate word detected: {item.word}")
        seen_words.add(key)

        _assert_non_empty(item.definition, f"Definition of '{item.word}'")
        _assert_forbidden_patterns(item.definition, f"definition of '{item.word}'")

        synonyms = item.synonyms()
        for number, synonym in enumerate(synonyms, start=1):
            _assert_non_empty(synonym, f"Synonym {number} of '{item.word}'")
            _assert_forbidden_patterns(synonym, f"synonym {number} of '{item.word}'")
        if len({synonym.strip().lower() for synonym in synonyms}) != len(synonyms):
            raise ValidationError(f"Synonyms of '{item.word}' must be distinct")
        if key in {synonym.strip().lower() for synonym in synonyms}:
            raise ValidationError(f"'{item.word}' cannot list itself as a synonym")
        validated.append(item)
    return validated


def validate_question(question: "Question") -> None:
    """Check the structural guarantees of an assembled multiple-choice question."""

    target = question.target
    correct = question.correct_text
    if question.options.count(correct) != 1:
        raise ValidationError("Question must contain the correct answer exactly once")
    if len(question.options) != len(question.distractors) + 1:
        raise ValidationError("Question must have one option per distractor plus the answer")

    distractor_synonyms = {text for item in question.distractors for text in item.synonyms()}
    other_slots = set(target.synonyms()) - {correct}
    for option in question.options:
        if option == correct:
            continue
        if option in other_slots and option not in distractor_synonyms:
            raise ValidationError(f"Option '{option}' leaks another synonym of '{target.word}'")
        if option not in distractor_synonyms:
            raise ValidationError(f"Option '{option}' does not come from a distractor")


__all__ = ["ValidationError", "validate_question", "validate_seed_items"]
