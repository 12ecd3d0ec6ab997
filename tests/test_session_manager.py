from __future__ import annotations

import pytest

from conftest import make_quiz
from quiz_engine.core.errors import InvalidTransitionError, QuizNotFoundError
from quiz_engine.core.models import SessionStatus
from quiz_engine.core.services.result_repository import InMemoryResultRepository
from quiz_engine.core.services.quiz_repository import InMemoryQuizRepository
from quiz_engine.core.session_manager import SessionManager


@pytest.fixture
def manager(result_repository, clock_factory) -> SessionManager:
    quizzes = InMemoryQuizRepository()
    quizzes.add_quiz(make_quiz(quiz_id=1))
    quizzes.add_quiz(make_quiz(points=(5,), correct=(2,), quiz_id=2))
    return SessionManager(quizzes, result_repository, clock_factory=clock_factory)


async def test_open_quiz_prepares_unstarted_session(manager):
    session = await manager.open_quiz(1)

    assert manager.get_active_session() is session
    assert session.status is SessionStatus.NOT_STARTED
    assert session.quiz.id == 1


async def test_unknown_quiz_fails_before_any_session(manager):
    with pytest.raises(QuizNotFoundError):
        await manager.open_quiz(42)

    assert not manager.has_active_session()
    with pytest.raises(InvalidTransitionError):
        manager.get_active_session()


async def test_unknown_quiz_keeps_current_session(manager):
    session = await manager.open_quiz(1)

    with pytest.raises(QuizNotFoundError):
        await manager.open_quiz(42)

    assert manager.get_active_session() is session
    assert not session.is_abandoned


async def test_opening_another_quiz_abandons_the_previous_attempt(manager, clocks):
    first = await manager.open_quiz(1)
    first.start()

    second = await manager.open_quiz(2)

    assert first.is_abandoned
    assert clocks[0].is_cancelled
    assert manager.get_active_session() is second


async def test_close_session(manager):
    session = await manager.open_quiz(1)

    manager.close_session()
    manager.close_session()

    assert session.is_abandoned
    assert not manager.has_active_session()


async def test_list_results_filters_by_quiz(manager):
    for quiz_id in (1, 2, 1):
        session = await manager.open_quiz(quiz_id)
        session.start()
        await session.submit()

    assert len(await manager.list_results()) == 3
    assert [result.quiz_id for result in await manager.list_results(1)] == [1, 1]
    assert [quiz.id for quiz in await manager.list_quizzes()] == [1, 2]


async def test_quiz_filter_is_answered_by_the_result_repository(clock_factory):
    class RecordingRepository(InMemoryResultRepository):
        def __init__(self) -> None:
            super().__init__()
            self.filtered: list[int] = []

        async def list_for_quiz(self, quiz_id: int):
            self.filtered.append(quiz_id)
            return await super().list_for_quiz(quiz_id)

    quizzes = InMemoryQuizRepository()
    quizzes.add_quiz(make_quiz(quiz_id=1))
    results = RecordingRepository()
    manager = SessionManager(quizzes, results, clock_factory=clock_factory)
    session = await manager.open_quiz(1)
    session.start()
    await session.submit()

    assert len(await manager.list_results(1)) == 1
    assert await manager.list_results(2) == []
    assert results.filtered == [1, 2]
