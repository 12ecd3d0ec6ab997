"""Storage for finished attempt results."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import logging
from typing import Protocol

from quiz_engine.constants.quiz_constants import REPOSITORY_LATENCY_SECONDS
from quiz_engine.core.errors import ResultNotFoundError
from quiz_engine.core.models import Result, ResultDraft, freeze_answers

logger = logging.getLogger(__name__)


class ResultRepository(Protocol):
    """Result storage used by the submitter and the session manager."""

    async def create(self, draft: ResultDraft) -> Result:
        """Persist a draft and return it with id and completion time assigned.

        Raises PersistenceError when the result cannot be stored.
        """
        ...

    async def list_results(self) -> list[Result]:
        ...

    async def list_for_quiz(self, quiz_id: int) -> list[Result]:
        ...


class InMemoryResultRepository:
    """Keeps results in process memory, optionally simulating storage latency."""

    def __init__(self, latency_seconds: float = REPOSITORY_LATENCY_SECONDS) -> None:
        self._results: list[Result] = []
        self._latency_seconds = latency_seconds

    async def create(self, draft: ResultDraft) -> Result:
        await self._simulate_latency()
        result = Result(
            id=self._next_result_id(),
            quiz_id=draft.quiz_id,
            score=draft.score,
            total_points=draft.total_points,
            earned_points=draft.earned_points,
            completed_at=datetime.now(timezone.utc),
            time_spent_seconds=draft.time_spent_seconds,
            answers=freeze_answers(draft.answers),
        )
        self._results.append(result)
        logger.info("Stored result %s for quiz %s (score %s%%)", result.id, result.quiz_id, result.score)
        return result

    async def get_by_id(self, result_id: int) -> Result:
        await self._simulate_latency()
        for result in self._results:
            if result.id == result_id:
                return result
        raise ResultNotFoundError(result_id)

    async def list_results(self) -> list[Result]:
        await self._simulate_latency()
        return list(self._results)

    async def list_for_quiz(self, quiz_id: int) -> list[Result]:
        await self._simulate_latency()
        return [result for result in self._results if result.quiz_id == quiz_id]

    def count(self) -> int:
        return len(self._results)

    def _next_result_id(self) -> int:
        return max((result.id for result in self._results), default=0) + 1

    async def _simulate_latency(self) -> None:
        if self._latency_seconds > 0:
            await asyncio.sleep(self._latency_seconds)
