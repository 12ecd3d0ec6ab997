from __future__ import annotations

import asyncio

import pytest

from quiz_engine.core.errors import PersistenceError
from quiz_engine.core.models import Difficulty, Question, QuizDefinition, Result, ResultDraft
from quiz_engine.core.services.countdown_clock import CountdownClock
from quiz_engine.core.services.result_repository import InMemoryResultRepository


class FakeResultRepository(InMemoryResultRepository):
    """Result store that counts create calls and can fail or stall on demand."""

    def __init__(self) -> None:
        super().__init__()
        self.create_calls = 0
        self.failures_remaining = 0
        self.gate: asyncio.Event | None = None

    async def create(self, draft: ResultDraft) -> Result:
        self.create_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.failures_remaining > 0:
            self.failures_remaining -= 1
            raise PersistenceError("storage offline")
        return await super().create(draft)


def make_quiz(
    points: tuple[int, ...] = (10, 20),
    correct: tuple[int, ...] = (0, 1),
    time_limit_minutes: int = 1,
    quiz_id: int | None = 1,
) -> QuizDefinition:
    questions = tuple(
        Question(
            id=index + 1,
            text=f"Question {index + 1}",
            options=("first", "second", "third"),
            correct_option_index=correct_index,
            points=question_points,
        )
        for index, (question_points, correct_index) in enumerate(zip(points, correct))
    )
    return QuizDefinition(
        id=quiz_id,
        title="Sample quiz",
        description="Two weighted questions.",
        subject="Testing",
        time_limit_minutes=time_limit_minutes,
        difficulty=Difficulty.EASY,
        questions=questions,
    )


@pytest.fixture
def quiz() -> QuizDefinition:
    return make_quiz()


@pytest.fixture
def result_repository() -> FakeResultRepository:
    return FakeResultRepository()


@pytest.fixture
def clocks() -> list[CountdownClock]:
    return []


@pytest.fixture
def clock_factory(clocks):
    """Clocks that only advance when a test calls ``step()``."""

    def factory(duration_minutes: int) -> CountdownClock:
        clock = CountdownClock(duration_minutes, auto_tick=False)
        clocks.append(clock)
        return clock

    return factory
