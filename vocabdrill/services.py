"""Core services implementing question assembly and the quiz session loop."""
from __future__ import annotations

import asyncio
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union
from uuid import UUID, uuid4

from .config import DrillConfig
from .domain import SYNONYM_SLOTS, VocabularyItem
from .errors import EmptyPoolError, InvariantViolation, StoreUnavailableError
from .logging import logger
from .metrics import METRICS
from .repositories import ItemStore
from .scheduling import TIER_BOOKMARKED, evaluate, pick_fallback, pick_overdue, pick_unseen, select_bookmarked
from .validators import validate_question


STARTING_LIVES = 3
RECENT_LIMIT = 10

Clock = Callable[[], int]


def now_ms() -> int:
    return int(time.time() * 1000)


class SessionMode(str, Enum):
    NORMAL = "normal"
    BOOKMARK_ONLY = "bookmark_only"


class SessionState(str, Enum):
    LOADING = "loading"
    AWAITING_ANSWER = "awaiting_answer"
    FEEDBACK = "feedback"
    GAME_OVER = "game_over"


@dataclass
class Question:
    """A multiple-choice question built around one target item."""

    target: VocabularyItem
    distractors: List[VocabularyItem]
    options: List[str]
    correct_slot: int

    @property
    def correct_text(self) -> str:
        return self.target.slot(self.correct_slot).synonym

    @property
    def correct_definition(self) -> str:
        return self.target.slot(self.correct_slot).definition

    @property
    def correct_example(self) -> str:
        return self.target.slot(self.correct_slot).example_sentence


@dataclass(frozen=True)
class QuizResult:
    word: str
    definition: str
    user_choice: str
    correct_choice: str
    is_correct: bool


@dataclass(frozen=True)
class Feedback:
    is_correct: bool
    correct_text: str
    correct_definition: str
    correct_example: str
    lives_remaining: int
    game_over: bool
    write_pending: bool = False


@dataclass(frozen=True)
class GameOver:
    results: List[QuizResult]


@dataclass(frozen=True)
class _PendingReview:
    item_id: int
    was_correct: bool
    timestamp: int
    latency_ms: int


def build_question(
    target: VocabularyItem, distractors: Sequence[VocabularyItem], rng: Optional[random.Random] = None
) -> Question:
    """Assemble shuffled options from ``target`` and its distractors.

    The correct answer is the target's synonym at a uniformly drawn slot;
    each distractor contributes the synonym at its own independently drawn
    slot. Slots whose text is also one of the target's synonyms are never
    drawn, and a distractor sharing all three is left out.
    """

    chooser = rng or random
    if any(item.id == target.id for item in distractors):
        raise InvariantViolation(f"Item {target.id} cannot be its own distractor")

    correct_slot = chooser.choice(SYNONYM_SLOTS)
    target_texts = set(target.synonyms())
    kept: List[VocabularyItem] = []
    options = [target.slot(correct_slot).synonym]
    for item in distractors:
        slots = [number for number in SYNONYM_SLOTS if item.slot(number).synonym not in target_texts]
        if not slots:
            logger.info("distractor_skipped", target_id=target.id, item_id=item.id, reason="shared_synonyms")
            continue
        kept.append(item)
        options.append(item.slot(chooser.choice(slots)).synonym)
    chooser.shuffle(options)
    question = Question(target=target, distractors=kept, options=options, correct_slot=correct_slot)
    validate_question(question)
    return question


async def draw_distractors(
    store: ItemStore,
    target: VocabularyItem,
    mode: SessionMode,
    count: int = 3,
    rng: Optional[random.Random] = None,
) -> List[VocabularyItem]:
    """Sample ``count`` distractors from the target's domain, never the target itself.

    Small pools repeat the sampled items to fill every slot.
    """

    if mode is SessionMode.BOOKMARK_ONLY:
        sampled = await store.get_random_bookmarked(count, exclude_id=target.id)
    else:
        sampled = await store.get_random(count, exclude_id=target.id)
    if not sampled:
        return []
    chooser = rng or random
    distractors = list(sampled)
    while len(distractors) < count:
        distractors.append(chooser.choice(sampled))
    return distractors


async def next_target(
    store: ItemStore,
    mode: SessionMode,
    now: int,
    exclude_id: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> VocabularyItem:
    """Pick the next item to study, consulting the store one tier at a time."""

    if mode is SessionMode.BOOKMARK_ONLY:
        item = select_bookmarked(await store.get_bookmarked(), exclude_id, rng)
        METRICS.record_selection(TIER_BOOKMARKED)
        logger.info("item_selected", tier=TIER_BOOKMARKED, item_id=item.id)
        return item

    selection = pick_overdue(await store.get_overdue(now), now, exclude_id)
    if selection is None:
        selection = pick_unseen(await store.get_unseen(), exclude_id, rng)
    if selection is None:
        selection = pick_fallback(await store.get_all(), now, exclude_id, rng)
    METRICS.record_selection(selection.tier)
    logger.info("item_selected", tier=selection.tier, item_id=selection.item.id, ratio=selection.ratio)
    return selection.item


async def record_review(
    store: ItemStore, item_id: int, was_correct: bool, timestamp: int, latency_ms: int
) -> VocabularyItem:
    """Evaluate an answer against the stored record and persist it in one step."""

    def _apply(current: VocabularyItem) -> VocabularyItem:
        return evaluate(current, was_correct, timestamp, latency_ms).apply(current)

    updated = await store.update_item(item_id, _apply)
    METRICS.record_review(updated.quality, updated.interval, was_correct)
    logger.info(
        "review_recorded",
        item_id=item_id,
        was_correct=was_correct,
        quality=updated.quality,
        ease_factor=round(updated.ease_factor, 4),
        interval=updated.interval,
        repetition_count=updated.repetition_count,
    )
    return updated


class QuizSession:
    """Drives one quiz run: lives, prefetching and termination.

    Only the target of the question being answered has its learning state
    updated. A failed store write keeps the outcome pending; the session
    refuses to advance until :meth:`retry_pending_write` (or ``advance``)
    manages to persist it.
    """

    def __init__(
        self,
        store: ItemStore,
        mode: SessionMode = SessionMode.NORMAL,
        config: Optional[DrillConfig] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Clock] = None,
        session_id: Optional[UUID] = None,
    ) -> None:
        self.id = session_id or uuid4()
        self.mode = mode
        self._store = store
        self._config = config or DrillConfig()
        self._rng = rng or random.Random()
        self._clock = clock or now_ms
        self.state = SessionState.LOADING
        self.lives = STARTING_LIVES
        self.results: List[QuizResult] = []
        self.current_question: Optional[Question] = None
        self.last_feedback: Optional[Feedback] = None
        self._question_shown_at = 0
        self._prefetch: Optional[asyncio.Task] = None
        self._pending_write: Optional[_PendingReview] = None

    @property
    def has_pending_write(self) -> bool:
        return self._pending_write is not None

    async def _build_question(self, exclude_id: Optional[int]) -> Question:
        target = await next_target(self._store, self.mode, self._clock(), exclude_id, self._rng)
        distractors = await draw_distractors(
            self._store, target, self.mode, self._config.distractor_count, self._rng
        )
        return build_question(target, distractors, self._rng)

    def _present(self, question: Question) -> None:
        self.current_question = question
        self._question_shown_at = self._clock()
        self.state = SessionState.AWAITING_ANSWER
        if self._config.prefetch:
            self._prefetch = asyncio.create_task(self._build_question(exclude_id=question.target.id))

    def _cancel_prefetch(self) -> None:
        if self._prefetch is not None and not self._prefetch.done():
            self._prefetch.cancel()
        self._prefetch = None

    def _take_prefetched(self) -> Optional[Question]:
        task, self._prefetch = self._prefetch, None
        if task is None:
            return None
        if not task.done():
            task.cancel()
            METRICS.record_prefetch(False)
            logger.info("prefetch_fallback", session_id=str(self.id), reason="not_ready")
            return None
        if task.cancelled() or task.exception() is not None:
            METRICS.record_prefetch(False)
            logger.info(
                "prefetch_fallback",
                session_id=str(self.id),
                reason="failed",
                error=None if task.cancelled() else repr(task.exception()),
            )
            return None
        METRICS.record_prefetch(True)
        return task.result()

    async def start(self) -> Question:
        if self.state is not SessionState.LOADING:
            raise InvariantViolation(f"Session {self.id} has already started")
        try:
            question = await self._build_question(exclude_id=None)
        except EmptyPoolError:
            METRICS.record_empty_pool()
            logger.info("empty_pool", session_id=str(self.id), mode=self.mode.value)
            raise
        METRICS.record_session_started()
        logger.info("session_started", session_id=str(self.id), mode=self.mode.value)
        self._present(question)
        return question

    async def submit_answer(self, choice_text: str, latency_ms: Optional[int] = None) -> Feedback:
        if self.state is not SessionState.AWAITING_ANSWER:
            raise InvariantViolation(f"Cannot answer while session is {self.state.value}")
        question = self.current_question
        if choice_text not in question.options:
            raise InvariantViolation(f"'{choice_text}' is not one of the offered options")
        answered_at = self._clock()
        if latency_ms is None:
            latency_ms = max(0, answered_at - self._question_shown_at)

        is_correct = choice_text == question.correct_text
        if not is_correct:
            self.lives -= 1
        self.results.append(
            QuizResult(
                word=question.target.word,
                definition=question.target.definition,
                user_choice=choice_text,
                correct_choice=question.correct_text,
                is_correct=is_correct,
            )
        )
        self._pending_write = _PendingReview(question.target.id, is_correct, answered_at, latency_ms)
        if self.lives <= 0:
            self.state = SessionState.GAME_OVER
            self._cancel_prefetch()
            METRICS.record_session_finished()
            logger.info("game_over", session_id=str(self.id), answered=len(self.results))
        else:
            self.state = SessionState.FEEDBACK

        write_pending = False
        try:
            await self.retry_pending_write()
        except StoreUnavailableError:
            # kept pending; advance retries it before moving on
            write_pending = True
        self.last_feedback = Feedback(
            is_correct=is_correct,
            correct_text=question.correct_text,
            correct_definition=question.correct_definition,
            correct_example=question.correct_example,
            lives_remaining=self.lives,
            game_over=self.state is SessionState.GAME_OVER,
            write_pending=write_pending,
        )
        return self.last_feedback

    async def retry_pending_write(self) -> Optional[VocabularyItem]:
        """Persist the outstanding review, retrying up to the configured attempts."""

        pending = self._pending_write
        if pending is None:
            return None
        attempts = self._config.store_write_attempts
        for attempt in range(1, attempts + 1):
            try:
                updated = await record_review(
                    self._store, pending.item_id, pending.was_correct, pending.timestamp, pending.latency_ms
                )
            except StoreUnavailableError as exc:
                METRICS.record_store_write_failure()
                logger.warning(
                    "store_write_failed",
                    session_id=str(self.id),
                    item_id=pending.item_id,
                    attempt=attempt,
                    attempts=attempts,
                    error=repr(exc),
                )
                if attempt == attempts:
                    raise
                continue
            self._pending_write = None
            return updated

    async def advance(self) -> Union[Question, GameOver]:
        await self.retry_pending_write()
        if self.state is SessionState.GAME_OVER:
            return GameOver(results=list(self.results))
        if self.state is not SessionState.FEEDBACK:
            raise InvariantViolation(f"Cannot advance while session is {self.state.value}")

        question = self._take_prefetched()
        if question is None:
            question = await self._build_question(exclude_id=self.current_question.target.id)
        self._present(question)
        return question

    def close(self) -> None:
        self._cancel_prefetch()


class QuizService:
    """Registry of live quiz sessions used by the HTTP layer.

    Sessions idle for longer than ``config.session_ttl_seconds`` are dropped
    on the next registry access, and starting a session beyond
    ``config.max_sessions`` evicts the least recently used one.
    """

    def __init__(
        self,
        store: ItemStore,
        config: Optional[DrillConfig] = None,
        rng_factory: Callable[[], random.Random] = random.Random,
        clock: Optional[Clock] = None,
    ) -> None:
        self._store = store
        self._config = config or DrillConfig()
        self._rng_factory = rng_factory
        self._clock = clock
        self._sessions: Dict[UUID, QuizSession] = {}
        self._last_seen: Dict[UUID, int] = {}

    def _now(self) -> int:
        return (self._clock or now_ms)()

    def _drop(self, session_id: UUID, reason: str) -> None:
        session = self._sessions.pop(session_id, None)
        self._last_seen.pop(session_id, None)
        if session is not None:
            session.close()
            logger.info("session_closed", session_id=str(session_id), answered=len(session.results), reason=reason)

    def _expire_idle(self) -> None:
        cutoff = self._now() - self._config.session_ttl_seconds * 1000
        for session_id in [sid for sid, seen in self._last_seen.items() if seen < cutoff]:
            self._drop(session_id, reason="idle")

    def session_count(self) -> int:
        return len(self._sessions)

    async def start_session(self, mode: SessionMode = SessionMode.NORMAL) -> QuizSession:
        self._expire_idle()
        session = QuizSession(
            self._store, mode=mode, config=self._config, rng=self._rng_factory(), clock=self._clock
        )
        await session.start()
        while len(self._sessions) >= self._config.max_sessions:
            self._drop(min(self._last_seen, key=self._last_seen.get), reason="capacity")
        self._sessions[session.id] = session
        self._last_seen[session.id] = self._now()
        return session

    def get(self, session_id: UUID) -> QuizSession:
        self._expire_idle()
        try:
            session = self._sessions[session_id]
        except KeyError as exc:
            raise InvariantViolation(f"Unknown session_id: {session_id}") from exc
        self._last_seen[session_id] = self._now()
        return session

    async def submit_answer(self, session_id: UUID, choice_text: str, latency_ms: Optional[int] = None) -> Feedback:
        return await self.get(session_id).submit_answer(choice_text, latency_ms)

    async def advance(self, session_id: UUID) -> Union[Question, GameOver]:
        return await self.get(session_id).advance()

    def current_lives(self, session_id: UUID) -> int:
        return self.get(session_id).lives

    def end_session(self, session_id: UUID) -> None:
        self._drop(session_id, reason="ended")


@dataclass
class LibraryStats:
    total: int
    reviewed: int
    bookmarked: int
    overdue: int
    unseen: int
    total_answers: int
    total_correct: int
    recently_reviewed: List[VocabularyItem] = field(default_factory=list)

    @property
    def accuracy(self) -> float:
        if self.total_answers == 0:
            return 0.0
        return self.total_correct / self.total_answers


class LibraryService:
    """Bookmarking, progress reset and statistics over the whole word list."""

    def __init__(self, store: ItemStore, clock: Optional[Clock] = None) -> None:
        self._store = store
        self._clock = clock or now_ms

    async def set_bookmark(self, item_id: int, is_bookmarked: bool) -> VocabularyItem:
        await self._store.set_bookmark(item_id, is_bookmarked)
        item = await self._store.get_by_id(item_id)
        if item is None:
            raise InvariantViolation(f"Item {item_id} does not exist")
        return item

    async def toggle_bookmark(self, item_id: int) -> VocabularyItem:
        return await self._store.update_item(item_id, lambda item: item.with_bookmark(not item.is_bookmarked))

    async def reset_progress(self) -> None:
        await self._store.reset_all_learning_state()
        logger.info("progress_reset")

    async def seed(self, items: Iterable[VocabularyItem]) -> int:
        return await self._store.add_items(items)

    async def stats(self, now: Optional[int] = None) -> LibraryStats:
        now = self._clock() if now is None else now
        items = await self._store.get_all()
        return LibraryStats(
            total=len(items),
            reviewed=sum(1 for item in items if item.times_reviewed > 0),
            bookmarked=sum(1 for item in items if item.is_bookmarked),
            overdue=sum(1 for item in items if item.is_overdue(now)),
            unseen=sum(1 for item in items if item.is_unseen),
            total_answers=sum(item.times_reviewed for item in items),
            total_correct=sum(item.times_correct for item in items),
            recently_reviewed=await self._store.get_recently_reviewed(RECENT_LIMIT),
        )


__all__ = [
    "Feedback",
    "GameOver",
    "LibraryService",
    "LibraryStats",
    "Question",
    "QuizResult",
    "QuizService",
    "QuizSession",
    "STARTING_LIVES",
    "SessionMode",
    "SessionState",
    "build_question",
    "draw_distractors",
    "next_target",
    "now_ms",
    "record_review",
]
