"""Packages a scored attempt into a stored Result."""

from __future__ import annotations

import asyncio
import logging
from typing import Mapping

from quiz_engine.core.errors import PersistenceError
from quiz_engine.core.models import QuizDefinition, Result, ResultDraft, ScoreBreakdown, freeze_answers
from quiz_engine.core.services.result_repository import ResultRepository

logger = logging.getLogger(__name__)


def build_result_draft(
    quiz: QuizDefinition,
    answers: Mapping[int, int],
    elapsed_seconds: int,
    breakdown: ScoreBreakdown,
) -> ResultDraft:
    if quiz.id is None:
        raise ValueError("Cannot build a result for a quiz without an id.")
    return ResultDraft(
        quiz_id=quiz.id,
        score=breakdown.score,
        total_points=breakdown.total_points,
        earned_points=breakdown.earned_points,
        time_spent_seconds=elapsed_seconds,
        answers=freeze_answers(answers),
    )


class ResultSubmitter:
    """Stores the result of one attempt at most once.

    One submitter belongs to one attempt. Once a create call succeeds the
    stored Result is returned for every later call without touching the
    repository again. Overlapping calls are serialized so a retry issued
    while a create is still in flight cannot store a second Result. Failed
    creates are never retried here.
    """

    def __init__(self, repository: ResultRepository) -> None:
        self._repository = repository
        self._lock = asyncio.Lock()
        self._result: Result | None = None

    @property
    def result(self) -> Result | None:
        return self._result

    @property
    def has_submitted(self) -> bool:
        return self._result is not None

    async def submit(self, draft: ResultDraft) -> Result:
        async with self._lock:
            if self._result is not None:
                logger.debug("Result %s already stored; skipping create", self._result.id)
                return self._result
            try:
                result = await self._repository.create(draft)
            except PersistenceError:
                logger.warning("Storing result for quiz %s failed", draft.quiz_id, exc_info=True)
                raise
            except Exception as exc:
                logger.exception("Storing result for quiz %s failed unexpectedly", draft.quiz_id)
                raise PersistenceError(f"Could not store result: {exc}") from exc
            self._result = result
            return result
