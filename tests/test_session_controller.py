from __future__ import annotations

import asyncio

import pytest

from conftest import make_quiz
from quiz_engine.core.errors import InvalidTransitionError, PersistenceError
from quiz_engine.core.models import SessionStatus, SubmitTrigger
from quiz_engine.core.services.countdown_clock import CountdownClock
from quiz_engine.core.services.result_repository import InMemoryResultRepository
from quiz_engine.core.services.session_controller import SessionController


@pytest.fixture
def session(quiz, result_repository, clock_factory) -> SessionController:
    return SessionController(quiz, result_repository, clock_factory=clock_factory)


async def run_clock_to_expiry(clock: CountdownClock) -> None:
    while await clock.step():
        pass


async def test_start_moves_to_in_progress_and_starts_clock(session, clocks):
    assert session.status is SessionStatus.NOT_STARTED
    assert session.remaining_seconds == 60

    session.start()

    assert session.status is SessionStatus.IN_PROGRESS
    assert session.current_question_index == 0
    assert session.answers == {}
    assert session.elapsed_seconds == 0
    assert len(clocks) == 1
    assert clocks[0].duration_seconds == 60


async def test_start_twice_is_rejected(session):
    session.start()

    with pytest.raises(InvalidTransitionError):
        session.start()
    assert session.status is SessionStatus.IN_PROGRESS


def test_failed_clock_start_leaves_session_not_started(quiz, result_repository, clock_factory):
    built: list[int] = []

    def first_clock_needs_a_loop(minutes: int) -> CountdownClock:
        built.append(minutes)
        if len(built) == 1:
            # Auto-ticking clock; there is no running loop in a plain test.
            return CountdownClock(minutes)
        return clock_factory(minutes)

    session = SessionController(quiz, result_repository, clock_factory=first_clock_needs_a_loop)

    with pytest.raises(RuntimeError):
        session.start()

    assert session.status is SessionStatus.NOT_STARTED
    assert session.remaining_seconds == 60
    assert not session.is_paused
    with pytest.raises(InvalidTransitionError):
        session.select_answer(0, 0)

    session.start()
    assert session.status is SessionStatus.IN_PROGRESS


def test_quiz_without_questions_is_rejected(result_repository):
    with pytest.raises(ValueError):
        SessionController(make_quiz(points=(), correct=()), result_repository)


async def test_actions_before_start_are_rejected(session):
    with pytest.raises(InvalidTransitionError):
        session.select_answer(0, 0)
    with pytest.raises(InvalidTransitionError):
        session.next_question()
    with pytest.raises(InvalidTransitionError):
        await session.submit()


async def test_selecting_again_replaces_previous_choice(session):
    session.start()

    session.select_answer(0, 1)
    session.select_answer(0, 2)

    assert session.answers == {0: 2}
    assert session.answered_count == 1
    assert session.is_answered(0)
    assert not session.is_answered(1)


async def test_out_of_range_answers_are_rejected(session):
    session.start()

    with pytest.raises(IndexError):
        session.select_answer(0, 3)
    with pytest.raises(IndexError):
        session.select_answer(0, -1)
    with pytest.raises(IndexError):
        session.select_answer(5, 0)
    assert session.answers == {}


async def test_clear_answer(session):
    session.start()
    session.select_answer(1, 0)

    assert session.clear_answer(1)
    assert not session.clear_answer(1)
    assert session.answers == {}


async def test_navigation_clamps_without_wraparound(session):
    session.start()

    assert not session.previous_question()
    assert session.current_question_index == 0
    assert session.next_question()
    assert session.current_question_index == 1
    assert not session.next_question()
    assert session.current_question_index == 1
    assert session.progress_percent == 100


async def test_go_to_rejects_out_of_range_index(session):
    session.start()
    session.select_answer(0, 0)
    session.tick()

    assert session.go_to(1)
    with pytest.raises(IndexError):
        session.go_to(2)
    with pytest.raises(IndexError):
        session.go_to(-1)

    assert session.current_question_index == 1
    assert session.answers == {0: 0}
    assert session.elapsed_seconds == 1


async def test_clock_ticks_advance_elapsed_time(session, clocks):
    session.start()

    for _ in range(5):
        await clocks[0].step()

    assert session.elapsed_seconds == 5
    assert session.remaining_seconds == 55


async def test_can_submit_requires_an_answer(session):
    session.start()
    assert not session.can_submit

    session.select_answer(1, 1)

    assert session.can_submit


async def test_manual_submit_scores_and_stores_result(session, result_repository):
    session.start()
    session.select_answer(0, 0)
    session.select_answer(1, 1)
    for _ in range(3):
        session.tick()

    outcome = await session.submit(SubmitTrigger.MANUAL)

    assert outcome is not None
    assert session.status is SessionStatus.SUBMITTED
    assert outcome.trigger is SubmitTrigger.MANUAL
    assert outcome.breakdown.earned_points == 30
    assert outcome.breakdown.total_points == 30
    assert outcome.breakdown.score == 100
    assert outcome.is_persisted
    assert outcome.result.id == 1
    assert outcome.result.quiz_id == 1
    assert outcome.result.time_spent_seconds == 3
    assert dict(outcome.result.answers) == {0: 0, 1: 1}
    assert result_repository.count() == 1


async def test_partial_answers_score_zero(session):
    session.start()
    session.select_answer(0, 1)

    outcome = await session.submit()

    assert outcome.breakdown.earned_points == 0
    assert outcome.breakdown.score == 0


async def test_second_submit_is_a_no_op(session, result_repository):
    session.start()
    session.select_answer(0, 0)

    first = await session.submit(SubmitTrigger.MANUAL)
    second = await session.submit(SubmitTrigger.MANUAL)

    assert first is not None
    assert second is None
    assert session.outcome is first
    assert result_repository.create_calls == 1
    assert result_repository.count() == 1


async def test_overlapping_submits_persist_exactly_once(session, result_repository):
    result_repository.gate = asyncio.Event()
    session.start()
    session.select_answer(1, 1)

    manual = asyncio.create_task(session.submit(SubmitTrigger.MANUAL))
    timeout = asyncio.create_task(session.submit(SubmitTrigger.TIMEOUT))
    await asyncio.sleep(0)
    result_repository.gate.set()
    outcomes = await asyncio.gather(manual, timeout)

    assert [outcome is not None for outcome in outcomes] == [True, False]
    assert outcomes[0].trigger is SubmitTrigger.MANUAL
    assert result_repository.create_calls == 1
    assert result_repository.count() == 1


async def test_timeout_submits_automatically_and_manual_submit_is_ignored(session, clocks, result_repository):
    session.start()
    session.select_answer(0, 0)

    await run_clock_to_expiry(clocks[0])

    assert clocks[0].is_expired
    assert session.status is SessionStatus.SUBMITTED
    assert session.outcome.trigger is SubmitTrigger.TIMEOUT
    assert session.elapsed_seconds == 60
    assert session.outcome.breakdown.earned_points == 10

    assert await session.submit(SubmitTrigger.MANUAL) is None
    assert result_repository.create_calls == 1


async def test_answers_after_submission_do_not_change_result(session):
    session.start()
    session.select_answer(0, 0)
    outcome = await session.submit()

    assert session.select_answer(0, 2) is False
    assert not session.next_question()
    assert not session.go_to(1)

    assert session.answers == {0: 0}
    assert dict(outcome.answers) == {0: 0}
    assert dict(session.result.answers) == {0: 0}
    assert session.outcome.breakdown.score == outcome.breakdown.score


async def test_answer_arriving_during_persistence_is_ignored(session, result_repository):
    result_repository.gate = asyncio.Event()
    session.start()
    session.select_answer(0, 1)

    pending = asyncio.create_task(session.submit())
    await asyncio.sleep(0)
    assert session.status is SessionStatus.SUBMITTED
    assert session.select_answer(0, 0) is False
    result_repository.gate.set()
    outcome = await pending

    assert dict(outcome.result.answers) == {0: 1}
    assert outcome.breakdown.earned_points == 0


async def test_elapsed_time_is_frozen_after_submission(session, clocks):
    session.start()
    await clocks[0].step()
    await clocks[0].step()

    await session.submit()
    session.tick()
    await clocks[0].step()

    assert session.elapsed_seconds == 2
    assert session.outcome.elapsed_seconds == 2


async def test_submit_cancels_the_clock(session, clocks):
    session.start()

    await session.submit()

    assert clocks[0].is_cancelled
    assert not await clocks[0].step()


async def test_persistence_failure_keeps_session_submitted_and_can_be_retried(session, result_repository):
    result_repository.failures_remaining = 1
    session.start()
    session.select_answer(0, 0)

    outcome = await session.submit()

    assert session.status is SessionStatus.SUBMITTED
    assert not outcome.is_persisted
    assert outcome.error is not None
    assert outcome.breakdown.score == 33
    assert result_repository.count() == 0

    retried = await session.retry_persistence()

    assert retried.is_persisted
    assert retried.error is None
    assert retried.breakdown == outcome.breakdown
    assert retried.result.score == 33
    assert result_repository.create_calls == 2
    assert result_repository.count() == 1


async def test_unexpected_storage_error_on_timeout_is_recorded(quiz, clock_factory, clocks):
    class CrashingRepository(InMemoryResultRepository):
        async def create(self, draft):
            raise RuntimeError("driver crashed")

    session = SessionController(quiz, CrashingRepository(), clock_factory=clock_factory)
    session.start()

    await run_clock_to_expiry(clocks[0])

    assert session.status is SessionStatus.SUBMITTED
    assert session.outcome.trigger is SubmitTrigger.TIMEOUT
    assert not session.outcome.is_persisted
    assert isinstance(session.outcome.error, PersistenceError)
    assert "driver crashed" in str(session.outcome.error)


async def test_retry_after_success_does_not_store_again(session, result_repository):
    session.start()
    outcome = await session.submit()

    again = await session.retry_persistence()

    assert again is outcome
    assert result_repository.create_calls == 1


async def test_retry_before_submission_is_rejected(session):
    session.start()

    with pytest.raises(InvalidTransitionError):
        await session.retry_persistence()


async def test_pause_stops_ticks_until_resumed(session, clocks):
    session.start()
    await clocks[0].step()

    assert session.pause()
    assert session.is_paused
    assert not await clocks[0].step()
    assert session.elapsed_seconds == 1

    assert session.resume()
    await clocks[0].step()
    assert session.elapsed_seconds == 2


async def test_abandon_cancels_clock_and_freezes_session(session, clocks, result_repository):
    session.start()
    session.select_answer(0, 0)

    session.abandon()

    assert session.is_abandoned
    assert clocks[0].is_cancelled
    await run_clock_to_expiry(clocks[0])
    assert session.status is SessionStatus.IN_PROGRESS
    assert session.select_answer(1, 1) is False
    with pytest.raises(InvalidTransitionError):
        await session.submit()
    assert result_repository.create_calls == 0


async def test_background_clock_submits_on_timeout(quiz, result_repository):
    clocks: list[CountdownClock] = []

    def fast_clock(minutes: int) -> CountdownClock:
        clock = CountdownClock(minutes, interval=0)
        clocks.append(clock)
        return clock

    session = SessionController(quiz, result_repository, clock_factory=fast_clock)
    session.start()
    await asyncio.wait_for(clocks[0].wait_finished(), timeout=5)

    assert session.status is SessionStatus.SUBMITTED
    assert session.outcome.trigger is SubmitTrigger.TIMEOUT
    assert session.outcome.is_persisted
    assert session.elapsed_seconds == 60
    assert result_repository.count() == 1
