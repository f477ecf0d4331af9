"""Pydantic models for seed data and the vocabdrill HTTP surface."""
from __future__ import annotations

from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .domain import VocabularyItem


SessionModeName = Literal["normal", "bookmark_only"]


class SeedWord(BaseModel):
    """One entry of the ``words.json`` seed file."""

    model_config = ConfigDict(populate_by_name=True)

    word: str
    definition: str
    example_sentence: str = Field(default="", alias="exampleSentence")
    synonym1: str
    synonym1_definition: str = Field(alias="synonym1Definition")
    synonym1_example_sentence: str = Field(alias="synonym1ExampleSentence")
    synonym2: str
    synonym2_definition: str = Field(alias="synonym2Definition")
    synonym2_example_sentence: str = Field(alias="synonym2ExampleSentence")
    synonym3: str
    synonym3_definition: str = Field(alias="synonym3Definition")
    synonym3_example_sentence: str = Field(alias="synonym3ExampleSentence")

    @field_validator("example_sentence", mode="before")
    @classmethod
    def blank_example(cls, value: Optional[str]) -> str:
        return value or ""

    def to_item(self) -> VocabularyItem:
        return VocabularyItem(id=0, **self.model_dump())


class StartSessionRequest(BaseModel):
    mode: SessionModeName = "normal"


class QuestionResponse(BaseModel):
    """A multiple-choice question awaiting an answer."""

    session_id: UUID
    item_id: int
    word: str
    definition: str
    options: List[str]
    lives: int


class AnswerRequest(BaseModel):
    choice: str
    latency_ms: Optional[int] = None

    @field_validator("latency_ms")
    @classmethod
    def validate_latency(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value < 0:
            raise ValueError("latency_ms must be non-negative")
        return value


class FeedbackResponse(BaseModel):
    is_correct: bool
    correct_text: str
    correct_definition: str
    correct_example: str
    lives_remaining: int
    game_over: bool
    write_pending: bool = False


class QuizResultEntry(BaseModel):
    word: str
    definition: str
    user_choice: str
    correct_choice: str
    is_correct: bool


class AdvanceResponse(BaseModel):
    game_over: bool
    question: Optional[QuestionResponse] = None
    results: Optional[List[QuizResultEntry]] = None


class LivesResponse(BaseModel):
    lives: int


class BookmarkRequest(BaseModel):
    is_bookmarked: bool


class ItemSummary(BaseModel):
    id: int
    word: str
    definition: str
    is_bookmarked: bool
    times_reviewed: int
    times_correct: int
    ease_factor: float
    interval: int
    next_review_date: int


class StatsResponse(BaseModel):
    total: int
    reviewed: int
    bookmarked: int
    overdue: int
    unseen: int
    total_answers: int
    total_correct: int
    accuracy: float
    daily_goal: int
    recently_reviewed: List[ItemSummary]


__all__ = [
    "AdvanceResponse",
    "AnswerRequest",
    "BookmarkRequest",
    "FeedbackResponse",
    "ItemSummary",
    "LivesResponse",
    "QuestionResponse",
    "QuizResultEntry",
    "SeedWord",
    "SessionModeName",
    "StartSessionRequest",
    "StatsResponse",
]
