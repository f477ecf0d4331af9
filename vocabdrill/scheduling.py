"""SM-2 style review evaluation and due-item ranking."""
from __future__ import annotations

import math
import random
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

from .domain import MIN_EASE, MS_PER_DAY, VocabularyItem
from .errors import EmptyPoolError


FAST_RESPONSE_MS = 3000
SLOW_RESPONSE_MS = 5000

TIER_OVERDUE = "overdue"
TIER_UNSEEN = "unseen"
TIER_FALLBACK = "fallback"
TIER_ANY = "any"
TIER_BOOKMARKED = "bookmarked"


@dataclass(frozen=True)
class ReviewOutcome:
    """Revised learning fields produced by a single answer."""

    quality: int
    ease_factor: float
    interval: int
    repetition_count: int
    next_review_date: int
    times_reviewed: int
    times_correct: int
    last_reviewed: int

    def apply(self, item: VocabularyItem) -> VocabularyItem:
        return replace(
            item,
            quality=self.quality,
            ease_factor=self.ease_factor,
            interval=self.interval,
            repetition_count=self.repetition_count,
            next_review_date=self.next_review_date,
            times_reviewed=self.times_reviewed,
            times_correct=self.times_correct,
            last_reviewed=self.last_reviewed,
        )


@dataclass(frozen=True)
class Selection:
    """An item picked by the ranker and the tier it came from."""

    item: VocabularyItem
    tier: str
    ratio: Optional[float] = None


def compute_quality(was_correct: bool, response_latency_ms: int, prior_repetition_count: int) -> int:
    """Map correctness and latency onto the 0-5 quality scale."""

    if response_latency_ms < 0:
        raise ValueError("Response latency must be non-negative")
    if was_correct:
        if response_latency_ms < FAST_RESPONSE_MS:
            return 5
        if response_latency_ms <= SLOW_RESPONSE_MS:
            return 4
        return 3
    if prior_repetition_count == 1:
        return 2
    return 1


def adjust_ease(ease_factor: float, quality: int) -> float:
    lapse = 5 - quality
    adjustment = 0.1 - lapse * (0.08 + lapse * 0.02)
    return max(MIN_EASE, ease_factor + adjustment)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def evaluate(
    item: VocabularyItem, was_correct: bool, timestamp: int, response_latency_ms: int
) -> ReviewOutcome:
    """Compute the revised scheduling state for ``item`` after one answer.

    The ease factor moves by the SM-2 adjustment for both correct and
    incorrect answers and never drops below ``MIN_EASE``. A wrong answer
    restarts the repetition streak with a one day interval; correct answers
    step through 1 day, 3 days, then ``interval * ease``.
    """

    quality = compute_quality(was_correct, response_latency_ms, item.repetition_count)
    new_ease = adjust_ease(item.ease_factor, quality)

    if not was_correct:
        new_interval, new_repetitions = 1, 0
    elif item.repetition_count == 0:
        new_interval, new_repetitions = 1, 1
    elif item.repetition_count == 1:
        new_interval, new_repetitions = 3, 2
    else:
        new_interval = _round_half_up(item.interval * new_ease)
        new_repetitions = item.repetition_count + 1

    return ReviewOutcome(
        quality=quality,
        ease_factor=new_ease,
        interval=new_interval,
        repetition_count=new_repetitions,
        next_review_date=timestamp + new_interval * MS_PER_DAY,
        times_reviewed=item.times_reviewed + 1,
        times_correct=item.times_correct + (1 if was_correct else 0),
        last_reviewed=timestamp,
    )


def overdue_ratio(item: VocabularyItem, now: int) -> float:
    """How many interval lengths past due ``item`` is."""

    return (now - item.next_review_date) / (max(1, item.interval) * MS_PER_DAY)


def _overdue_sort_key(item: VocabularyItem, now: int) -> Tuple[float, float, int]:
    return (-overdue_ratio(item, now), item.ease_factor, item.last_reviewed)


def rank_overdue(items: Sequence[VocabularyItem], now: int) -> List[VocabularyItem]:
    """Return the overdue subset of ``items`` with the most urgent first."""

    overdue = [item for item in items if item.is_overdue(now)]
    return sorted(overdue, key=lambda item: _overdue_sort_key(item, now))


def _without(items: Sequence[VocabularyItem], exclude_id: Optional[int]) -> List[VocabularyItem]:
    if exclude_id is None:
        return list(items)
    return [item for item in items if item.id != exclude_id]


def pick_overdue(
    candidates: Sequence[VocabularyItem], now: int, exclude_id: Optional[int] = None
) -> Optional[Selection]:
    ranked = rank_overdue(_without(candidates, exclude_id), now)
    if not ranked:
        return None
    top = ranked[0]
    return Selection(item=top, tier=TIER_OVERDUE, ratio=overdue_ratio(top, now))


def pick_unseen(
    candidates: Sequence[VocabularyItem], exclude_id: Optional[int] = None, rng: Optional[random.Random] = None
) -> Optional[Selection]:
    # no ordering is defined among unseen items
    unseen = [item for item in _without(candidates, exclude_id) if item.is_unseen]
    if not unseen:
        return None
    return Selection(item=(rng or random).choice(unseen), tier=TIER_UNSEEN)


def pick_fallback(
    pool: Sequence[VocabularyItem],
    now: int,
    exclude_id: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> Selection:
    """Random choice among items not scheduled into the future.

    When every item is scheduled ahead of ``now`` the choice widens to the
    whole pool minus ``exclude_id``, and to the whole pool if that is empty.
    """

    if not pool:
        raise EmptyPoolError()
    chooser = rng or random
    remaining = _without(pool, exclude_id)
    eligible = [item for item in remaining if item.next_review_date == 0 or item.next_review_date <= now]
    if eligible:
        return Selection(item=chooser.choice(eligible), tier=TIER_FALLBACK)
    return Selection(item=chooser.choice(remaining or list(pool)), tier=TIER_ANY)


def rank_pool(
    pool: Sequence[VocabularyItem],
    now: int,
    exclude_id: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> Selection:
    """Apply the overdue, unseen, fallback tiers in strict order."""

    if not pool:
        raise EmptyPoolError()
    return (
        pick_overdue(pool, now, exclude_id)
        or pick_unseen(pool, exclude_id, rng)
        or pick_fallback(pool, now, exclude_id, rng)
    )


def select_next(
    pool: Sequence[VocabularyItem],
    now: int,
    exclude_id: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> VocabularyItem:
    """Return the most urgent item of ``pool``; fails only if ``pool`` is empty."""

    return rank_pool(pool, now, exclude_id, rng).item


def select_bookmarked(
    pool: Sequence[VocabularyItem], exclude_id: Optional[int] = None, rng: Optional[random.Random] = None
) -> VocabularyItem:
    """Uniform random pick for bookmark-only drilling, ignoring urgency."""

    if not pool:
        raise EmptyPoolError("No bookmarked words available")
    remaining = _without(pool, exclude_id) or list(pool)
    return (rng or random).choice(remaining)


__all__ = [
    "FAST_RESPONSE_MS",
    "SLOW_RESPONSE_MS",
    "ReviewOutcome",
    "Selection",
    "adjust_ease",
    "compute_quality",
    "evaluate",
    "overdue_ratio",
    "pick_fallback",
    "pick_overdue",
    "pick_unseen",
    "rank_overdue",
    "rank_pool",
    "select_bookmarked",
    "select_next",
]
