"""State machine for a single timed quiz attempt."""

from __future__ import annotations

from dataclasses import dataclass, replace
import logging
from typing import Callable, Mapping

from quiz_engine.core.errors import InvalidTransitionError, PersistenceError
from quiz_engine.core.models import (
    Question,
    QuizDefinition,
    Result,
    ResultDraft,
    ScoreBreakdown,
    SessionStatus,
    SubmitTrigger,
    freeze_answers,
)
from quiz_engine.core.services.countdown_clock import CountdownClock
from quiz_engine.core.services.result_repository import ResultRepository
from quiz_engine.core.services.result_submitter import ResultSubmitter, build_result_draft
from quiz_engine.core.services.score_calculator import calculate_score

logger = logging.getLogger(__name__)

ClockFactory = Callable[[int], CountdownClock]


@dataclass(frozen=True, slots=True)
class SubmissionOutcome:
    """Frozen record of a submitted attempt and the state of its persistence."""

    trigger: SubmitTrigger
    answers: Mapping[int, int]
    breakdown: ScoreBreakdown
    elapsed_seconds: int
    draft: ResultDraft
    result: Result | None = None
    error: PersistenceError | None = None

    @property
    def is_persisted(self) -> bool:
        return self.result is not None


class SessionController:
    """Owns the state of one attempt from start to submission.

    Status only moves NOT_STARTED -> IN_PROGRESS -> SUBMITTED. Mutating calls
    made before ``start()`` raise InvalidTransitionError; the same calls
    arriving after submission or abandonment are ignored and return False,
    so stray UI events cannot alter a frozen attempt.
    """

    def __init__(
        self,
        quiz: QuizDefinition,
        result_repository: ResultRepository,
        clock_factory: ClockFactory = CountdownClock,
    ) -> None:
        if not quiz.questions:
            raise ValueError("Quiz must contain at least one question.")
        self._quiz = quiz
        self._submitter = ResultSubmitter(result_repository)
        self._clock_factory = clock_factory
        self._clock: CountdownClock | None = None

        self._status = SessionStatus.NOT_STARTED
        self._current_index: int = 0
        self._answers: dict[int, int] = {}
        self._elapsed_seconds: int = 0
        self._abandoned: bool = False
        self._outcome: SubmissionOutcome | None = None

    # --- Read-only state ---

    @property
    def quiz(self) -> QuizDefinition:
        return self._quiz

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def is_abandoned(self) -> bool:
        return self._abandoned

    @property
    def current_question_index(self) -> int:
        return self._current_index

    @property
    def current_question(self) -> Question:
        return self._quiz.questions[self._current_index]

    @property
    def answers(self) -> Mapping[int, int]:
        """Copy of the answers recorded so far."""
        return freeze_answers(self._answers)

    @property
    def elapsed_seconds(self) -> int:
        return self._elapsed_seconds

    @property
    def remaining_seconds(self) -> int:
        if self._clock is None:
            return self._quiz.time_limit_minutes * 60
        return self._clock.remaining_seconds

    @property
    def answered_count(self) -> int:
        return len(self._answers)

    @property
    def progress_percent(self) -> float:
        return (self._current_index + 1) / self._quiz.question_count * 100

    @property
    def can_submit(self) -> bool:
        """Whether a manual submit makes sense: running and something answered."""
        return self._is_live() and bool(self._answers)

    @property
    def is_paused(self) -> bool:
        return self._clock is not None and not self._clock.is_active

    @property
    def outcome(self) -> SubmissionOutcome | None:
        return self._outcome

    @property
    def result(self) -> Result | None:
        return self._outcome.result if self._outcome else None

    def is_answered(self, question_index: int) -> bool:
        return question_index in self._answers

    def selected_option(self, question_index: int) -> int | None:
        return self._answers.get(question_index)

    # --- Lifecycle ---

    def start(self) -> None:
        if self._abandoned:
            raise InvalidTransitionError("Session has been abandoned.")
        if self._status is not SessionStatus.NOT_STARTED:
            raise InvalidTransitionError(f"Cannot start a session that is {self._status.value}.")

        self._elapsed_seconds = 0
        self._current_index = 0
        self._answers = {}
        clock = self._clock_factory(self._quiz.time_limit_minutes)
        clock.set_on_tick(self._handle_clock_tick)
        clock.set_on_expire(self._handle_clock_expired)
        # Nothing is committed until the clock is running.
        clock.start()
        self._clock = clock
        self._status = SessionStatus.IN_PROGRESS
        logger.info(
            "Started attempt on quiz %s (%s question(s), %s minute(s))",
            self._quiz.id,
            self._quiz.question_count,
            self._quiz.time_limit_minutes,
        )

    def pause(self) -> bool:
        if not self._require_live("pause"):
            return False
        assert self._clock is not None
        self._clock.set_active(False)
        return True

    def resume(self) -> bool:
        if not self._require_live("resume"):
            return False
        assert self._clock is not None
        self._clock.set_active(True)
        return True

    def abandon(self) -> None:
        """Leave the attempt. The clock is cancelled so it can never submit it."""
        if self._clock is not None:
            self._clock.cancel()
        if not self._abandoned:
            self._abandoned = True
            logger.info("Abandoned attempt on quiz %s in status %s", self._quiz.id, self._status.value)

    # --- Answers and navigation ---

    def select_answer(self, question_index: int, option_index: int) -> bool:
        if not self._require_live("select an answer"):
            return False
        question = self._question_at(question_index)
        if not 0 <= option_index < len(question.options):
            raise IndexError(f"Option index {option_index} out of range")
        self._answers[question_index] = option_index
        return True

    def clear_answer(self, question_index: int) -> bool:
        if not self._require_live("clear an answer"):
            return False
        self._question_at(question_index)
        return self._answers.pop(question_index, None) is not None

    def go_to(self, index: int) -> bool:
        if not self._require_live("navigate"):
            return False
        self._question_at(index)
        self._current_index = index
        return True

    def next_question(self) -> bool:
        if not self._require_live("navigate"):
            return False
        if self._current_index >= self._quiz.question_count - 1:
            return False
        self._current_index += 1
        return True

    def previous_question(self) -> bool:
        if not self._require_live("navigate"):
            return False
        if self._current_index <= 0:
            return False
        self._current_index -= 1
        return True

    def tick(self) -> None:
        if self._status is SessionStatus.IN_PROGRESS and not self._abandoned:
            self._elapsed_seconds += 1

    # --- Submission ---

    async def submit(self, trigger: SubmitTrigger = SubmitTrigger.MANUAL) -> SubmissionOutcome | None:
        """Score and store the attempt exactly once.

        Returns None when the attempt was already submitted; that caller's
        effects are discarded. Persistence failures do not raise: they are
        reported on the returned outcome and can be retried with
        ``retry_persistence()``.
        """
        if self._status is SessionStatus.NOT_STARTED:
            raise InvalidTransitionError("Cannot submit a session that has not started.")
        if self._status is SessionStatus.SUBMITTED:
            logger.info("Ignoring %s submit: attempt already submitted", trigger.value)
            return None
        if self._abandoned:
            raise InvalidTransitionError("Cannot submit an abandoned session.")

        # Commit before any side effect or await so overlapping calls see SUBMITTED.
        self._status = SessionStatus.SUBMITTED
        if self._clock is not None:
            self._clock.cancel()

        snapshot = freeze_answers(self._answers)
        breakdown = calculate_score(self._quiz.questions, snapshot)
        draft = build_result_draft(self._quiz, snapshot, self._elapsed_seconds, breakdown)
        self._outcome = SubmissionOutcome(
            trigger=trigger,
            answers=snapshot,
            breakdown=breakdown,
            elapsed_seconds=self._elapsed_seconds,
            draft=draft,
        )
        logger.info(
            "Submitted quiz %s via %s: %s/%s points (%s%%) in %ss",
            self._quiz.id,
            trigger.value,
            breakdown.earned_points,
            breakdown.total_points,
            breakdown.score,
            self._elapsed_seconds,
        )
        return await self._persist()

    async def retry_persistence(self) -> SubmissionOutcome:
        """Store the already-scored attempt again after a persistence failure."""
        if self._outcome is None:
            raise InvalidTransitionError("Nothing has been submitted yet.")
        if self._outcome.is_persisted:
            return self._outcome
        logger.info("Retrying persistence for quiz %s", self._quiz.id)
        return await self._persist()

    async def _persist(self) -> SubmissionOutcome:
        assert self._outcome is not None
        try:
            result = await self._submitter.submit(self._outcome.draft)
        except PersistenceError as exc:
            self._outcome = replace(self._outcome, error=exc)
        else:
            self._outcome = replace(self._outcome, result=result, error=None)
        return self._outcome

    # --- Internals ---

    def _handle_clock_tick(self, remaining_seconds: int) -> None:
        self.tick()

    async def _handle_clock_expired(self) -> None:
        logger.info("Time is up for quiz %s; submitting", self._quiz.id)
        await self.submit(SubmitTrigger.TIMEOUT)

    def _is_live(self) -> bool:
        return self._status is SessionStatus.IN_PROGRESS and not self._abandoned

    def _require_live(self, action: str) -> bool:
        if self._status is SessionStatus.NOT_STARTED and not self._abandoned:
            raise InvalidTransitionError(f"Cannot {action} before the session has started.")
        if not self._is_live():
            logger.debug("Ignoring request to %s: session is %s", action, self._status.value)
            return False
        return True

    def _question_at(self, index: int) -> Question:
        if not 0 <= index < self._quiz.question_count:
            raise IndexError(f"Question index {index} out of range")
        return self._quiz.questions[index]
