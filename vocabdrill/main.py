"""FastAPI application wiring for the vocabdrill quiz backend."""

from __future__ import annotations

from uuid import UUID

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from .config import DrillConfig
from .errors import EmptyPoolError, InvariantViolation, StoreUnavailableError
from .loader import seed_store
from .logging import configure_logging, logger
from .models import (
    AdvanceResponse,
    AnswerRequest,
    BookmarkRequest,
    FeedbackResponse,
    ItemSummary,
    LivesResponse,
    QuestionResponse,
    QuizResultEntry,
    StartSessionRequest,
    StatsResponse,
)
from .repositories import ItemStore
from .services import GameOver, LibraryService, Question, QuizService, SessionMode
from .storage import InMemoryItemStore, SqliteItemStore


app = FastAPI(title="vocabdrill", version="0.1.0")


def get_quiz_service() -> QuizService:
    return app.state.quiz_service


def get_library_service() -> LibraryService:
    return app.state.library_service


def build_store(config: DrillConfig) -> ItemStore:
    if config.db_path:
        return SqliteItemStore(config.db_path)
    return InMemoryItemStore()


@app.on_event("startup")
async def startup() -> None:
    configure_logging()
    config = DrillConfig.from_env()
    store = build_store(config)
    if config.seed_path is not None and await store.count() == 0:
        await seed_store(store, config.seed_path)

    app.state.config = config
    app.state.store = store
    app.state.quiz_service = QuizService(store, config=config)
    app.state.library_service = LibraryService(store)
    logger.info("startup_complete", db_path=config.db_path, prefetch=config.prefetch)


@app.exception_handler(EmptyPoolError)
async def empty_pool_handler(request: Request, exc: EmptyPoolError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc), "code": exc.code})


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(request: Request, exc: StoreUnavailableError) -> JSONResponse:
    return JSONResponse(status_code=503, content={"detail": str(exc), "code": exc.code})


def _question_response(session_id: UUID, question: Question, lives: int) -> QuestionResponse:
    return QuestionResponse(
        session_id=session_id,
        item_id=question.target.id,
        word=question.target.word,
        definition=question.target.definition,
        options=question.options,
        lives=lives,
    )


@app.post("/v1/sessions", response_model=QuestionResponse)
async def start_session(
    request: StartSessionRequest, service: QuizService = Depends(get_quiz_service)
) -> QuestionResponse:
    session = await service.start_session(SessionMode(request.mode))
    return _question_response(session.id, session.current_question, session.lives)


@app.post("/v1/sessions/{session_id}/answer", response_model=FeedbackResponse)
async def submit_answer(
    session_id: UUID, request: AnswerRequest, service: QuizService = Depends(get_quiz_service)
) -> FeedbackResponse:
    try:
        session = service.get(session_id)
    except InvariantViolation as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    try:
        feedback = await session.submit_answer(request.choice, request.latency_ms)
    except InvariantViolation as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return FeedbackResponse(
        is_correct=feedback.is_correct,
        correct_text=feedback.correct_text,
        correct_definition=feedback.correct_definition,
        correct_example=feedback.correct_example,
        lives_remaining=feedback.lives_remaining,
        game_over=feedback.game_over,
        write_pending=feedback.write_pending,
    )


@app.post("/v1/sessions/{session_id}/advance", response_model=AdvanceResponse)
async def advance(session_id: UUID, service: QuizService = Depends(get_quiz_service)) -> AdvanceResponse:
    try:
        session = service.get(session_id)
    except InvariantViolation as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    try:
        outcome = await session.advance()
    except InvariantViolation as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    if isinstance(outcome, GameOver):
        service.end_session(session_id)
        return AdvanceResponse(
            game_over=True,
            results=[
                QuizResultEntry(
                    word=result.word,
                    definition=result.definition,
                    user_choice=result.user_choice,
                    correct_choice=result.correct_choice,
                    is_correct=result.is_correct,
                )
                for result in outcome.results
            ],
        )
    return AdvanceResponse(game_over=False, question=_question_response(session_id, outcome, session.lives))


@app.get("/v1/sessions/{session_id}/lives", response_model=LivesResponse)
def current_lives(session_id: UUID, service: QuizService = Depends(get_quiz_service)) -> LivesResponse:
    try:
        return LivesResponse(lives=service.current_lives(session_id))
    except InvariantViolation as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.delete("/v1/sessions/{session_id}", status_code=204)
def end_session(session_id: UUID, service: QuizService = Depends(get_quiz_service)) -> None:
    service.end_session(session_id)


def _item_summary(item) -> ItemSummary:
    return ItemSummary(
        id=item.id,
        word=item.word,
        definition=item.definition,
        is_bookmarked=item.is_bookmarked,
        times_reviewed=item.times_reviewed,
        times_correct=item.times_correct,
        ease_factor=item.ease_factor,
        interval=item.interval,
        next_review_date=item.next_review_date,
    )


@app.put("/v1/items/{item_id}/bookmark", response_model=ItemSummary)
async def set_bookmark(
    item_id: int, request: BookmarkRequest, service: LibraryService = Depends(get_library_service)
) -> ItemSummary:
    try:
        item = await service.set_bookmark(item_id, request.is_bookmarked)
    except InvariantViolation as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _item_summary(item)


@app.post("/v1/items/reset", status_code=204)
async def reset_progress(service: LibraryService = Depends(get_library_service)) -> None:
    await service.reset_progress()


@app.get("/v1/stats", response_model=StatsResponse)
async def stats(service: LibraryService = Depends(get_library_service)) -> StatsResponse:
    summary = await service.stats()
    return StatsResponse(
        total=summary.total,
        reviewed=summary.reviewed,
        bookmarked=summary.bookmarked,
        overdue=summary.overdue,
        unseen=summary.unseen,
        total_answers=summary.total_answers,
        total_correct=summary.total_correct,
        accuracy=summary.accuracy,
        daily_goal=app.state.config.daily_goal,
        recently_reviewed=[_item_summary(item) for item in summary.recently_reviewed],
    )


__all__ = ["app", "build_store"]
