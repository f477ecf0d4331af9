"""Repository interface for vocabulary items and their learning state."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Callable, Iterable, List, Optional

from .domain import VocabularyItem
from .scheduling import ReviewOutcome


ItemTransform = Callable[[VocabularyItem], VocabularyItem]


class ItemStore(ABC):
    """Durable owner of vocabulary items.

    Every learning-state write goes through :meth:`update_item`, which must
    behave as a single read-modify-write serialised per item id.
    """

    @abstractmethod
    async def get_all(self) -> List[VocabularyItem]:
        """Return every stored item."""

    @abstractmethod
    async def get_by_id(self, item_id: int) -> Optional[VocabularyItem]:
        """Return the item with ``item_id`` or ``None``."""

    @abstractmethod
    async def get_overdue(self, now: int) -> List[VocabularyItem]:
        """Return items with ``0 < next_review_date <= now``."""

    @abstractmethod
    async def get_unseen(self) -> List[VocabularyItem]:
        """Return items that have never been reviewed."""

    @abstractmethod
    async def get_random(self, count: int, exclude_id: Optional[int] = None) -> List[VocabularyItem]:
        """Return up to ``count`` items sampled without replacement."""

    @abstractmethod
    async def get_bookmarked(self) -> List[VocabularyItem]:
        """Return every bookmarked item."""

    @abstractmethod
    async def get_random_bookmarked(
        self, count: int, exclude_id: Optional[int] = None
    ) -> List[VocabularyItem]:
        """Return up to ``count`` bookmarked items sampled without replacement."""

    @abstractmethod
    async def update_item(self, item_id: int, transform: ItemTransform) -> VocabularyItem:
        """Atomically replace the item with ``transform(current)`` and return it.

        Raises :class:`InvariantViolation` when ``item_id`` is unknown.
        """

    @abstractmethod
    async def set_bookmark(self, item_id: int, is_bookmarked: bool) -> None:
        """Set the bookmark flag of a single item."""

    @abstractmethod
    async def reset_all_learning_state(self) -> None:
        """Zero the learning fields of every item, keeping content and bookmarks."""

    @abstractmethod
    async def add_items(self, items: Iterable[VocabularyItem]) -> int:
        """Insert or replace items keyed on their word. Returns the number written."""

    @abstractmethod
    async def get_recently_reviewed(self, limit: int = 10) -> List[VocabularyItem]:
        """Return reviewed items, latest first."""

    async def apply_review_outcome(self, item_id: int, outcome: ReviewOutcome) -> VocabularyItem:
        return await self.update_item(item_id, outcome.apply)

    async def count(self) -> int:
        return len(await self.get_all())

    async def update_synonyms(
        self,
        item_id: int,
        slot: int,
        synonym: Optional[str] = None,
        definition: Optional[str] = None,
        example_sentence: Optional[str] = None,
    ) -> VocabularyItem:
        """Overwrite the given fields of one synonym slot, leaving the rest as-is."""

        def _transform(item: VocabularyItem) -> VocabularyItem:
            current = item.slot(slot)
            prefix = f"synonym{slot}"
            changes = {
                prefix: synonym if synonym is not None else current.synonym,
                f"{prefix}_definition": definition if definition is not None else current.definition,
                f"{prefix}_example_sentence": example_sentence
                if example_sentence is not None
                else current.example_sentence,
            }
            return replace(item, **changes)

        return await self.update_item(item_id, _transform)


__all__ = ["ItemStore", "ItemTransform"]
