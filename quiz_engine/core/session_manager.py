"""Facade tying the repositories to the single active quiz attempt."""

from __future__ import annotations

import logging
from pathlib import Path

from quiz_engine.core.errors import InvalidTransitionError
from quiz_engine.core.models import QuizDefinition, Result
from quiz_engine.core.quiz_importer import load_quizzes_from_directory
from quiz_engine.core.services.countdown_clock import CountdownClock
from quiz_engine.core.services.quiz_repository import InMemoryQuizRepository, QuizRepository
from quiz_engine.core.services.result_repository import ResultRepository
from quiz_engine.core.services.session_controller import ClockFactory, SessionController

logger = logging.getLogger(__name__)


class SessionManager:
    """Facade for quiz services: repositories and the active SessionController.

    Only one attempt is live at a time. Opening another quiz abandons the
    previous attempt so its clock can never submit it in the background.
    """

    def __init__(
        self,
        quiz_repository: QuizRepository,
        result_repository: ResultRepository,
        clock_factory: ClockFactory = CountdownClock,
    ) -> None:
        self._quiz_repository = quiz_repository
        self._result_repository = result_repository
        self._clock_factory = clock_factory
        self._session: SessionController | None = None

    # --- Quiz Repository Delegation ---

    async def list_quizzes(self) -> list[QuizDefinition]:
        return await self._quiz_repository.list_quizzes()

    # --- Session Lifecycle ---

    async def open_quiz(self, quiz_id: int) -> SessionController:
        """Load a quiz and prepare a fresh, not yet started attempt.

        Raises QuizNotFoundError before any session state is touched.
        """
        quiz = await self._quiz_repository.get_by_id(quiz_id)
        self.close_session()
        self._session = SessionController(
            quiz,
            self._result_repository,
            clock_factory=self._clock_factory,
        )
        logger.info("Opened quiz %s '%s'", quiz.id, quiz.title)
        return self._session

    def has_active_session(self) -> bool:
        return self._session is not None

    def get_active_session(self) -> SessionController:
        if self._session is None:
            raise InvalidTransitionError("No quiz session is open.")
        return self._session

    def close_session(self) -> None:
        if self._session is None:
            return
        self._session.abandon()
        self._session = None

    # --- Result Repository Delegation ---

    async def list_results(self, quiz_id: int | None = None) -> list[Result]:
        if quiz_id is None:
            return await self._result_repository.list_results()
        return await self._result_repository.list_for_quiz(quiz_id)


def load_quiz_repository(directory: Path) -> InMemoryQuizRepository:
    """Build a quiz repository seeded from the quiz files in ``directory``."""
    repository = InMemoryQuizRepository()
    for imported in load_quizzes_from_directory(directory):
        repository.add_quiz(imported.quiz)
    return repository
