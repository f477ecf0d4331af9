"""Concrete item stores backed by process memory and SQLite."""
from __future__ import annotations

import asyncio
import random
import sqlite3
import threading
from dataclasses import fields, replace
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar, Union

from .domain import VocabularyItem
from .errors import InvariantViolation, StoreUnavailableError
from .logging import logger
from .repositories import ItemStore, ItemTransform


T = TypeVar("T")

CONTENT_FIELDS = (
    "definition",
    "example_sentence",
    "synonym1",
    "synonym1_definition",
    "synonym1_example_sentence",
    "synonym2",
    "synonym2_definition",
    "synonym2_example_sentence",
    "synonym3",
    "synonym3_definition",
    "synonym3_example_sentence",
)
ITEM_COLUMNS = tuple(f.name for f in fields(VocabularyItem))


def _merge_content(existing: VocabularyItem, incoming: VocabularyItem) -> VocabularyItem:
    """Refresh content from a seed record while keeping progress and bookmark."""

    return replace(existing, **{name: getattr(incoming, name) for name in CONTENT_FIELDS})


class InMemoryItemStore(ItemStore):
    """Keeps items in a dict; intended for tests and ephemeral sessions."""

    def __init__(self, items: Iterable[VocabularyItem] = (), rng: Optional[random.Random] = None) -> None:
        self._items: Dict[int, VocabularyItem] = {}
        self._by_word: Dict[str, int] = {}
        self._next_id = 1
        self._rng = rng or random.Random()
        self._guard = threading.Lock()
        self._key_locks: Dict[int, threading.Lock] = {}
        self._insert(items)

    def _key_lock(self, item_id: int) -> threading.Lock:
        with self._guard:
            return self._key_locks.setdefault(item_id, threading.Lock())

    def _insert(self, items: Iterable[VocabularyItem]) -> int:
        written = 0
        with self._guard:
            for item in items:
                existing_id = self._by_word.get(item.word)
                if existing_id is not None:
                    self._items[existing_id] = _merge_content(self._items[existing_id], item)
                else:
                    item_id = item.id if item.id > 0 and item.id not in self._items else self._next_id
                    self._items[item_id] = replace(item, id=item_id)
                    self._by_word[item.word] = item_id
                    self._next_id = max(self._next_id, item_id) + 1
                written += 1
        return written

    def _snapshot(self) -> List[VocabularyItem]:
        with self._guard:
            return list(self._items.values())

    def _sample(self, pool: List[VocabularyItem], count: int, exclude_id: Optional[int]) -> List[VocabularyItem]:
        if exclude_id is not None:
            pool = [item for item in pool if item.id != exclude_id]
        return self._rng.sample(pool, min(max(count, 0), len(pool)))

    async def get_all(self) -> List[VocabularyItem]:
        return self._snapshot()

    async def get_by_id(self, item_id: int) -> Optional[VocabularyItem]:
        with self._guard:
            return self._items.get(item_id)

    async def get_overdue(self, now: int) -> List[VocabularyItem]:
        return [item for item in self._snapshot() if item.is_overdue(now)]

    async def get_unseen(self) -> List[VocabularyItem]:
        unseen = [item for item in self._snapshot() if item.is_unseen]
        self._rng.shuffle(unseen)
        return unseen

    async def get_random(self, count: int, exclude_id: Optional[int] = None) -> List[VocabularyItem]:
        return self._sample(self._snapshot(), count, exclude_id)

    async def get_bookmarked(self) -> List[VocabularyItem]:
        return [item for item in self._snapshot() if item.is_bookmarked]

    async def get_random_bookmarked(
        self, count: int, exclude_id: Optional[int] = None
    ) -> List[VocabularyItem]:
        return self._sample(await self.get_bookmarked(), count, exclude_id)

    async def update_item(self, item_id: int, transform: ItemTransform) -> VocabularyItem:
        with self._key_lock(item_id):
            with self._guard:
                current = self._items.get(item_id)
            if current is None:
                raise InvariantViolation(f"Item {item_id} does not exist")
            updated = transform(current)
            if updated.id != item_id:
                raise InvariantViolation(f"Transform changed the id of item {item_id}")
            with self._guard:
                self._items[item_id] = updated
        return updated

    async def set_bookmark(self, item_id: int, is_bookmarked: bool) -> None:
        await self.update_item(item_id, lambda item: item.with_bookmark(is_bookmarked))

    async def reset_all_learning_state(self) -> None:
        with self._guard:
            self._items = {item_id: item.reset_learning() for item_id, item in self._items.items()}

    async def add_items(self, items: Iterable[VocabularyItem]) -> int:
        return self._insert(items)

    async def get_recently_reviewed(self, limit: int = 10) -> List[VocabularyItem]:
        reviewed = [item for item in self._snapshot() if item.last_reviewed > 0]
        reviewed.sort(key=lambda item: item.last_reviewed, reverse=True)
        return reviewed[:limit]


class SqliteItemStore(ItemStore):
    """Stores vocabulary items and their learning state in a SQLite database.

    Blocking sqlite calls run on a worker thread via :func:`asyncio.to_thread`
    and share one connection guarded by a lock, which also serialises the
    read-modify-write of :meth:`update_item`.
    """

    def __init__(self, db_path: Union[str, Path]) -> None:
        self._db_path = str(db_path)
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._initialise_schema()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _initialise_schema(self) -> None:
        with self._lock:
            self._conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS words (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    word TEXT NOT NULL UNIQUE,
                    definition TEXT NOT NULL,
                    example_sentence TEXT NOT NULL DEFAULT '',
                    synonym1 TEXT NOT NULL,
                    synonym1_definition TEXT NOT NULL,
                    synonym1_example_sentence TEXT NOT NULL,
                    synonym2 TEXT NOT NULL,
                    synonym2_definition TEXT NOT NULL,
                    synonym2_example_sentence TEXT NOT NULL,
                    synonym3 TEXT NOT NULL,
                    synonym3_definition TEXT NOT NULL,
                    synonym3_example_sentence TEXT NOT NULL,
                    is_bookmarked INTEGER NOT NULL DEFAULT 0,
                    times_reviewed INTEGER NOT NULL DEFAULT 0,
                    times_correct INTEGER NOT NULL DEFAULT 0,
                    ease_factor REAL NOT NULL DEFAULT 2.5,
                    interval INTEGER NOT NULL DEFAULT 0,
                    repetition_count INTEGER NOT NULL DEFAULT 0,
                    last_reviewed INTEGER NOT NULL DEFAULT 0,
                    next_review_date INTEGER NOT NULL DEFAULT 0,
                    quality INTEGER NOT NULL DEFAULT 0
                );

                CREATE INDEX IF NOT EXISTS idx_words_next_review ON words(next_review_date);
                CREATE INDEX IF NOT EXISTS idx_words_bookmarked ON words(is_bookmarked);
                """
            )
            self._conn.commit()

    async def _call(self, func: Callable[..., T], *args: Any) -> T:
        try:
            return await asyncio.to_thread(func, *args)
        except sqlite3.Error as exc:
            logger.warning("store_query_failed", store="sqlite", operation=func.__name__, error=repr(exc))
            raise StoreUnavailableError(f"SQLite store unavailable: {exc}") from exc

    @staticmethod
    def _row_to_item(row: sqlite3.Row) -> VocabularyItem:
        payload = {name: row[name] for name in ITEM_COLUMNS}
        payload["is_bookmarked"] = bool(payload["is_bookmarked"])
        payload["ease_factor"] = float(payload["ease_factor"])
        return VocabularyItem(**payload)

    def _select(self, where: str = "", params: tuple = (), suffix: str = "") -> List[VocabularyItem]:
        sql = "SELECT * FROM words"
        if where:
            sql += f" WHERE {where}"
        if suffix:
            sql += f" {suffix}"
        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [self._row_to_item(row) for row in rows]

    def _random(self, count: int, exclude_id: Optional[int], bookmarked_only: bool) -> List[VocabularyItem]:
        clauses: List[str] = []
        params: List[Any] = []
        if bookmarked_only:
            clauses.append("is_bookmarked = 1")
        if exclude_id is not None:
            clauses.append("id != ?")
            params.append(exclude_id)
        params.append(max(count, 0))
        return self._select(" AND ".join(clauses), tuple(params), "ORDER BY RANDOM() LIMIT ?")

    def _update_item(self, item_id: int, transform: ItemTransform) -> VocabularyItem:
        assignments = ", ".join(f"{name} = ?" for name in ITEM_COLUMNS if name != "id")
        with self._lock:
            with self._conn:
                row = self._conn.execute("SELECT * FROM words WHERE id = ?", (item_id,)).fetchone()
                if row is None:
                    raise InvariantViolation(f"Item {item_id} does not exist")
                updated = transform(self._row_to_item(row))
                if updated.id != item_id:
                    raise InvariantViolation(f"Transform changed the id of item {item_id}")
                values = [getattr(updated, name) for name in ITEM_COLUMNS if name != "id"]
                self._conn.execute(f"UPDATE words SET {assignments} WHERE id = ?", (*values, item_id))
        return updated

    def _set_bookmark(self, item_id: int, is_bookmarked: bool) -> None:
        with self._lock:
            with self._conn:
                cursor = self._conn.execute(
                    "UPDATE words SET is_bookmarked = ? WHERE id = ?", (int(is_bookmarked), item_id)
                )
        if cursor.rowcount == 0:
            raise InvariantViolation(f"Item {item_id} does not exist")

    def _reset_all(self) -> None:
        with self._lock:
            with self._conn:
                self._conn.execute(
                    """
                    UPDATE words
                       SET times_reviewed = 0,
                           times_correct = 0,
                           last_reviewed = 0,
                           ease_factor = 2.5,
                           interval = 0,
                           repetition_count = 0,
                           next_review_date = 0,
                           quality = 0
                    """
                )

    def _add_items(self, items: List[VocabularyItem]) -> int:
        content = ", ".join(CONTENT_FIELDS)
        placeholders = ", ".join("?" for _ in CONTENT_FIELDS)
        updates = ", ".join(f"{name} = excluded.{name}" for name in CONTENT_FIELDS)
        payloads = [(item.word, *(getattr(item, name) for name in CONTENT_FIELDS)) for item in items]
        if not payloads:
            return 0
        with self._lock:
            with self._conn:
                self._conn.executemany(
                    f"""
                    INSERT INTO words (word, {content}) VALUES (?, {placeholders})
                    ON CONFLICT(word) DO UPDATE SET {updates}
                    """,
                    payloads,
                )
        return len(payloads)

    def _count(self) -> int:
        with self._lock:
            row = self._conn.execute("SELECT COUNT(1) AS c FROM words").fetchone()
        return int(row["c"])

    async def get_all(self) -> List[VocabularyItem]:
        return await self._call(self._select)

    async def get_by_id(self, item_id: int) -> Optional[VocabularyItem]:
        items = await self._call(self._select, "id = ?", (item_id,))
        return items[0] if items else None

    async def get_overdue(self, now: int) -> List[VocabularyItem]:
        return await self._call(
            self._select,
            "next_review_date > 0 AND next_review_date <= ?",
            (now,),
            "ORDER BY ease_factor ASC, last_reviewed ASC",
        )

    async def get_unseen(self) -> List[VocabularyItem]:
        return await self._call(self._select, "times_reviewed = 0", (), "ORDER BY RANDOM()")

    async def get_random(self, count: int, exclude_id: Optional[int] = None) -> List[VocabularyItem]:
        return await self._call(self._random, count, exclude_id, False)

    async def get_bookmarked(self) -> List[VocabularyItem]:
        return await self._call(self._select, "is_bookmarked = 1")

    async def get_random_bookmarked(
        self, count: int, exclude_id: Optional[int] = None
    ) -> List[VocabularyItem]:
        return await self._call(self._random, count, exclude_id, True)

    async def update_item(self, item_id: int, transform: ItemTransform) -> VocabularyItem:
        return await self._call(self._update_item, item_id, transform)

    async def set_bookmark(self, item_id: int, is_bookmarked: bool) -> None:
        await self._call(self._set_bookmark, item_id, is_bookmarked)

    async def reset_all_learning_state(self) -> None:
        await self._call(self._reset_all)
        logger.info("learning_state_reset", store="sqlite")

    async def add_items(self, items: Iterable[VocabularyItem]) -> int:
        return await self._call(self._add_items, list(items))

    async def count(self) -> int:
        return await self._call(self._count)

    async def get_recently_reviewed(self, limit: int = 10) -> List[VocabularyItem]:
        return await self._call(
            self._select, "last_reviewed > 0", (limit,), "ORDER BY last_reviewed DESC LIMIT ?"
        )


__all__ = ["InMemoryItemStore", "SqliteItemStore"]
