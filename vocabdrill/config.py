"""Runtime configuration read from ``VOCABDRILL_*`` environment variables."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


DEFAULT_SEED_PATH = Path(__file__).resolve().parent / "data" / "words.json"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class DrillConfig:
    """Tunable settings for the store, question assembly and sessions."""

    db_path: Optional[str] = None
    seed_path: Optional[Path] = DEFAULT_SEED_PATH
    option_count: int = 4
    store_write_attempts: int = 3
    prefetch: bool = True
    daily_goal: int = 20
    session_ttl_seconds: int = 1800
    max_sessions: int = 1000

    def __post_init__(self) -> None:
        if self.option_count < 2:
            raise ValueError("option_count must allow at least one distractor")
        if self.store_write_attempts < 1:
            raise ValueError("store_write_attempts must be at least 1")
        if self.session_ttl_seconds < 1 or self.max_sessions < 1:
            raise ValueError("session_ttl_seconds and max_sessions must be positive")
        # progress ratios divide by the goal
        self.daily_goal = max(1, self.daily_goal)

    @property
    def distractor_count(self) -> int:
        return self.option_count - 1

    @classmethod
    def from_env(cls) -> "DrillConfig":
        seed_path = os.getenv("VOCABDRILL_SEED_PATH")
        return cls(
            db_path=os.getenv("VOCABDRILL_DB_PATH") or None,
            seed_path=Path(seed_path) if seed_path else DEFAULT_SEED_PATH,
            option_count=int(os.getenv("VOCABDRILL_OPTION_COUNT", "4")),
            store_write_attempts=int(os.getenv("VOCABDRILL_STORE_WRITE_ATTEMPTS", "3")),
            prefetch=os.getenv("VOCABDRILL_PREFETCH", "true").strip().lower() in _TRUTHY,
            daily_goal=int(os.getenv("VOCABDRILL_DAILY_GOAL", "20")),
            session_ttl_seconds=int(os.getenv("VOCABDRILL_SESSION_TTL_SECONDS", "1800")),
            max_sessions=int(os.getenv("VOCABDRILL_MAX_SESSIONS", "1000")),
        )


__all__ = ["DEFAULT_SEED_PATH", "DrillConfig"]
