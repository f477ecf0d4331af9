"""Simple in-process metrics registry for scheduling and session instrumentation."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field


INTERVAL_BUCKETS = (1, 3, 7, 30, 90)


def _interval_bucket(interval_days: int) -> str:
    for bound in INTERVAL_BUCKETS:
        if interval_days <= bound:
            return f"<={bound}d"
    return f">{INTERVAL_BUCKETS[-1]}d"


@dataclass
class MetricsRegistry:
    """Holds counters exposed by the application."""

    tier_selections: Counter = field(default_factory=Counter)
    review_qualities: Counter = field(default_factory=Counter)
    interval_buckets: Counter = field(default_factory=Counter)
    answers_correct: int = 0
    answers_incorrect: int = 0
    sessions_started: int = 0
    sessions_finished: int = 0
    empty_pool_events: int = 0
    store_write_failures: int = 0
    prefetch_hits: int = 0
    prefetch_misses: int = 0

    def record_selection(self, tier: str) -> None:
        self.tier_selections[tier] += 1

    def record_review(self, quality: int, interval_days: int, was_correct: bool) -> None:
        self.review_qualities[quality] += 1
        self.interval_buckets[_interval_bucket(interval_days)] += 1
        if was_correct:
            self.answers_correct += 1
        else:
            self.answers_incorrect += 1

    def record_session_started(self) -> None:
        self.sessions_started += 1

    def record_session_finished(self) -> None:
        self.sessions_finished += 1

    def record_empty_pool(self) -> None:
        self.empty_pool_events += 1

    def record_store_write_failure(self) -> None:
        self.store_write_failures += 1

    def record_prefetch(self, hit: bool) -> None:
        if hit:
            self.prefetch_hits += 1
        else:
            self.prefetch_misses += 1

    @property
    def accuracy(self) -> float:
        total = self.answers_correct + self.answers_incorrect
        if total == 0:
            return 0.0
        return self.answers_correct / total


METRICS = MetricsRegistry()

__all__ = ["METRICS", "MetricsRegistry"]
