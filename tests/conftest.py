"""Shared fixtures for the vocabdrill test-suite."""

from typing import Callable, List

import pytest

from vocabdrill.domain import MS_PER_DAY, VocabularyItem

# 2024-05-01T00:00:00Z in milliseconds; far enough from zero that "days ago" stays positive.
NOW = 1_714_521_600_000


def build_item(item_id: int, **overrides) -> VocabularyItem:
    word = overrides.pop("word", f"word{item_id}")
    payload = dict(
        id=item_id,
        word=word,
        definition=f"definition of {word}",
        synonym1=f"{word}-syn1",
        synonym1_definition=f"{word} first sense",
        synonym1_example_sentence=f"{word} used first way.",
        synonym2=f"{word}-syn2",
        synonym2_definition=f"{word} second sense",
        synonym2_example_sentence=f"{word} used second way.",
        synonym3=f"{word}-syn3",
        synonym3_definition=f"{word} third sense",
        synonym3_example_sentence=f"{word} used third way.",
    )
    payload.update(overrides)
    return VocabularyItem(**payload)


@pytest.fixture()
def make_item() -> Callable[..., VocabularyItem]:
    return build_item


@pytest.fixture()
def days_ago() -> Callable[[float], int]:
    def _days_ago(days: float) -> int:
        return int(NOW - days * MS_PER_DAY)

    return _days_ago


@pytest.fixture()
def word_list() -> List[VocabularyItem]:
    return [build_item(item_id) for item_id in range(1, 7)]
