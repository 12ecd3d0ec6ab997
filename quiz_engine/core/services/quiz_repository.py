"""Service for storing quiz definitions and handing them out read-only."""

from __future__ import annotations

import asyncio
from dataclasses import replace
import logging
from typing import Protocol

from quiz_engine.constants.quiz_constants import (
    MAX_OPTION_COUNT,
    MIN_OPTION_COUNT,
    REPOSITORY_LATENCY_SECONDS,
)
from quiz_engine.core.errors import QuizNotFoundError
from quiz_engine.core.models import Question, QuizDefinition

logger = logging.getLogger(__name__)


class QuizRepository(Protocol):
    """Contract the session manager relies on."""

    async def get_by_id(self, quiz_id: int) -> QuizDefinition:
        """Return the quiz or raise QuizNotFoundError."""
        ...

    async def list_quizzes(self) -> list[QuizDefinition]:
        ...


class InMemoryQuizRepository:
    """Holds validated quiz definitions in process memory."""

    def __init__(self, latency_seconds: float = REPOSITORY_LATENCY_SECONDS) -> None:
        self._quizzes: dict[int, QuizDefinition] = {}
        self._latency_seconds = latency_seconds

    def add_quiz(self, quiz: QuizDefinition) -> QuizDefinition:
        """Validate, normalize and store a quiz. Returns the stored copy."""
        quiz_id = quiz.id if quiz.id is not None else self._next_quiz_id()
        if quiz_id in self._quizzes:
            raise ValueError(f"Quiz id {quiz_id} is already in use.")
        prepared = self._prepare_quiz(quiz, quiz_id)
        self._quizzes[quiz_id] = prepared
        logger.info("Registered quiz %s '%s' with %s question(s)", quiz_id, prepared.title, prepared.question_count)
        return prepared

    async def get_by_id(self, quiz_id: int) -> QuizDefinition:
        await self._simulate_latency()
        quiz = self._quizzes.get(quiz_id)
        if quiz is None:
            raise QuizNotFoundError(quiz_id)
        return quiz

    async def list_quizzes(self) -> list[QuizDefinition]:
        await self._simulate_latency()
        return [self._quizzes[quiz_id] for quiz_id in sorted(self._quizzes)]

    def _next_quiz_id(self) -> int:
        return max(self._quizzes, default=0) + 1

    def _prepare_quiz(self, quiz: QuizDefinition, quiz_id: int) -> QuizDefinition:
        title = quiz.title.strip()
        if not title:
            raise ValueError("Quiz title must not be empty.")
        if not isinstance(quiz.time_limit_minutes, int) or quiz.time_limit_minutes <= 0:
            raise ValueError("Time limit must be a positive whole number of minutes.")
        questions = tuple(
            self._prepare_question(question, question_id)
            for question_id, question in enumerate(quiz.questions, start=1)
        )
        return replace(
            quiz,
            id=quiz_id,
            title=title,
            description=quiz.description.strip(),
            subject=quiz.subject.strip(),
            questions=questions,
        )

    def _prepare_question(self, question: Question, question_id: int) -> Question:
        """Validate and normalize a question before storage."""
        cleaned_text = question.text.strip()
        if not cleaned_text:
            raise ValueError("Question text must not be empty.")

        # The correct index refers to the options as authored, before empties are dropped.
        if not 0 <= question.correct_option_index < len(question.options):
            raise ValueError("Correct option index is out of range.")
        if not question.options[question.correct_option_index].strip():
            raise ValueError("The correct option must not be empty.")
        kept = [
            (index, option.strip())
            for index, option in enumerate(question.options)
            if option.strip()
        ]
        options = self._validate_options([option for _, option in kept])
        correct_index = [index for index, _ in kept].index(question.correct_option_index)

        if not isinstance(question.points, int) or question.points <= 0:
            raise ValueError("Points must be a positive integer.")

        return Question(
            id=question_id,
            text=cleaned_text,
            options=options,
            correct_option_index=correct_index,
            points=question.points,
        )

    @staticmethod
    def _validate_options(options: list[str]) -> tuple[str, ...]:
        if len(options) < MIN_OPTION_COUNT:
            raise ValueError(f"Each question needs at least {MIN_OPTION_COUNT} non-empty options.")
        if len(options) > MAX_OPTION_COUNT:
            raise ValueError(f"A question may have at most {MAX_OPTION_COUNT} options.")
        return tuple(options)

    async def _simulate_latency(self) -> None:
        if self._latency_seconds > 0:
            await asyncio.sleep(self._latency_seconds)
