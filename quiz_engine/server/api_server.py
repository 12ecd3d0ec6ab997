"""FastAPI server that exposes the quiz session endpoints."""

from __future__ import annotations

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel
import uvicorn

from quiz_engine.constants.about import APP_ABOUT_TEXT, APP_NAME, APP_VERSION
from quiz_engine.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from quiz_engine.core.errors import InvalidTransitionError, QuizNotFoundError
from quiz_engine.core.models import QuizDefinition, Result, SubmitTrigger
from quiz_engine.core.services.score_calculator import performance_band
from quiz_engine.core.services.session_controller import SessionController, SubmissionOutcome
from quiz_engine.core.session_manager import SessionManager


class OpenSessionPayload(BaseModel):
    """Payload schema for opening a quiz attempt."""

    quiz_id: int


class AnswerPayload(BaseModel):
    """Payload schema for selecting an option."""

    question_index: int
    option_index: int


class NavigatePayload(BaseModel):
    """Payload schema for jumping to a question."""

    question_index: int


def _quiz_summary(quiz: QuizDefinition) -> dict[str, object]:
    return {
        "id": quiz.id,
        "title": quiz.title,
        "description": quiz.description,
        "subject": quiz.subject,
        "difficulty": quiz.difficulty.value,
        "time_limit_minutes": quiz.time_limit_minutes,
        "question_count": quiz.question_count,
        "total_points": quiz.total_points,
    }


def _result_payload(result: Result) -> dict[str, object]:
    return {
        "id": result.id,
        "quiz_id": result.quiz_id,
        "score": result.score,
        "total_points": result.total_points,
        "earned_points": result.earned_points,
        "completed_at": result.completed_at.isoformat(),
        "time_spent_seconds": result.time_spent_seconds,
        "answers": {str(index): option for index, option in sorted(result.answers.items())},
    }


def _outcome_payload(session: SessionController, outcome: SubmissionOutcome) -> dict[str, object]:
    breakdown = outcome.breakdown
    questions = session.quiz.questions
    return {
        "trigger": outcome.trigger.value,
        "score": breakdown.score,
        "earned_points": breakdown.earned_points,
        "total_points": breakdown.total_points,
        "correct_count": breakdown.correct_count,
        "message": performance_band(breakdown.score),
        "time_spent_seconds": outcome.elapsed_seconds,
        "persisted": outcome.is_persisted,
        "error": str(outcome.error) if outcome.error else None,
        "result": _result_payload(outcome.result) if outcome.result else None,
        "questions": [
            {
                "index": item.question_index,
                "selected_option_index": item.selected_option_index,
                "correct_option_index": questions[item.question_index].correct_option_index,
                "is_correct": item.is_correct,
                "earned_points": item.earned_points,
            }
            for item in breakdown.outcomes
        ],
    }


def _session_payload(session: SessionController) -> dict[str, object]:
    question = session.current_question
    index = session.current_question_index
    payload: dict[str, object] = {
        "quiz": _quiz_summary(session.quiz),
        "status": session.status.value,
        "abandoned": session.is_abandoned,
        "current_question_index": index,
        # The correct option is only revealed through the submission payload.
        "question": {
            "index": index,
            "text": question.text,
            "options": list(question.options),
            "points": question.points,
            "selected_option_index": session.selected_option(index),
        },
        "answered_indices": sorted(session.answers),
        "answered_count": session.answered_count,
        "elapsed_seconds": session.elapsed_seconds,
        "remaining_seconds": session.remaining_seconds,
        "progress_percent": session.progress_percent,
        "can_submit": session.can_submit,
        "paused": session.is_paused,
        "submission": None,
    }
    if session.outcome is not None:
        payload["submission"] = _outcome_payload(session, session.outcome)
    return payload


def _get_session_manager_dependency(session_manager: SessionManager):
    def dependency() -> SessionManager:
        return session_manager

    return dependency


def _active_session(manager: SessionManager) -> SessionController:
    try:
        return manager.get_active_session()
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


def _persistence_failure(session: SessionController, outcome: SubmissionOutcome) -> HTTPException:
    return HTTPException(
        status_code=503,
        detail={
            "message": "The attempt was scored but could not be saved. Retry to save it again.",
            "submission": _outcome_payload(session, outcome),
        },
    )


def create_api_app(session_manager: SessionManager) -> FastAPI:
    """Create a FastAPI application wired to the provided session manager."""
    app = FastAPI(title=f"{APP_NAME} API", description=APP_ABOUT_TEXT, version=APP_VERSION)
    session_manager_dep = _get_session_manager_dependency(session_manager)

    @app.get("/quizzes")
    async def list_quizzes(manager: SessionManager = Depends(session_manager_dep)) -> list[dict[str, object]]:
        return [_quiz_summary(quiz) for quiz in await manager.list_quizzes()]

    @app.post("/session", status_code=201)
    async def open_session(
        payload: OpenSessionPayload,
        manager: SessionManager = Depends(session_manager_dep),
    ) -> dict[str, object]:
        try:
            session = await manager.open_quiz(payload.quiz_id)
        except QuizNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return _session_payload(session)

    @app.get("/session")
    async def get_session(manager: SessionManager = Depends(session_manager_dep)) -> dict[str, object]:
        return _session_payload(_active_session(manager))

    @app.delete("/session", status_code=204)
    async def close_session(manager: SessionManager = Depends(session_manager_dep)) -> None:
        manager.close_session()

    @app.post("/session/start")
    async def start_session(manager: SessionManager = Depends(session_manager_dep)) -> dict[str, object]:
        session = _active_session(manager)
        try:
            session.start()
        except InvalidTransitionError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return _session_payload(session)

    @app.post("/session/answer")
    async def select_answer(
        payload: AnswerPayload,
        manager: SessionManager = Depends(session_manager_dep),
    ) -> dict[str, object]:
        session = _active_session(manager)
        try:
            accepted = session.select_answer(payload.question_index, payload.option_index)
        except IndexError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        except InvalidTransitionError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        if not accepted:
            raise HTTPException(status_code=409, detail="The attempt is no longer accepting answers.")
        return _session_payload(session)

    @app.post("/session/navigate")
    async def navigate(
        payload: NavigatePayload,
        manager: SessionManager = Depends(session_manager_dep),
    ) -> dict[str, object]:
        session = _active_session(manager)
        try:
            session.go_to(payload.question_index)
        except IndexError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        except InvalidTransitionError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return _session_payload(session)

    @app.post("/session/next")
    async def next_question(manager: SessionManager = Depends(session_manager_dep)) -> dict[str, object]:
        session = _active_session(manager)
        try:
            session.next_question()
        except InvalidTransitionError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return _session_payload(session)

    @app.post("/session/prev")
    async def previous_question(manager: SessionManager = Depends(session_manager_dep)) -> dict[str, object]:
        session = _active_session(manager)
        try:
            session.previous_question()
        except InvalidTransitionError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return _session_payload(session)

    @app.post("/session/submit")
    async def submit_session(manager: SessionManager = Depends(session_manager_dep)) -> dict[str, object]:
        session = _active_session(manager)
        try:
            outcome = await session.submit(SubmitTrigger.MANUAL)
        except InvalidTransitionError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        if outcome is None:
            # Already submitted, e.g. by the timer. Report the existing outcome.
            outcome = session.outcome
        assert outcome is not None
        if outcome.error is not None:
            raise _persistence_failure(session, outcome)
        return _outcome_payload(session, outcome)

    @app.post("/session/retry")
    async def retry_submission(manager: SessionManager = Depends(session_manager_dep)) -> dict[str, object]:
        session = _active_session(manager)
        try:
            outcome = await session.retry_persistence()
        except InvalidTransitionError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        if outcome.error is not None:
            raise _persistence_failure(session, outcome)
        return _outcome_payload(session, outcome)

    @app.get("/results")
    async def list_results(
        quiz_id: int | None = None,
        manager: SessionManager = Depends(session_manager_dep),
    ) -> list[dict[str, object]]:
        return [_result_payload(result) for result in await manager.list_results(quiz_id)]

    return app


def run_api_server(
    session_manager: SessionManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> None:
    """Serve the API with uvicorn until interrupted."""
    app = create_api_app(session_manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)
    server.run()
