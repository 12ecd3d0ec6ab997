"""Deterministic partial-credit scoring for a finished attempt."""

from __future__ import annotations

from typing import Mapping, Sequence

from quiz_engine.core.models import Question, QuestionOutcome, ScoreBreakdown

_PERFORMANCE_BANDS: tuple[tuple[int, str], ...] = (
    (90, "Outstanding!"),
    (80, "Excellent Work!"),
    (70, "Good Job!"),
    (60, "Not Bad!"),
)
_LOWEST_BAND = "Keep Practicing!"


def calculate_score(
    questions: Sequence[Question],
    answers: Mapping[int, int],
) -> ScoreBreakdown:
    """Score an answer map against the quiz questions.

    Unanswered questions earn nothing. The percentage is rounded half up and a
    quiz without any points scores 0.
    """
    outcomes: list[QuestionOutcome] = []
    earned_points = 0
    total_points = 0
    for index, question in enumerate(questions):
        total_points += question.points
        selected = answers.get(index)
        is_correct = selected is not None and selected == question.correct_option_index
        earned = question.points if is_correct else 0
        earned_points += earned
        outcomes.append(
            QuestionOutcome(
                question_index=index,
                selected_option_index=selected,
                is_correct=is_correct,
                earned_points=earned,
            )
        )

    return ScoreBreakdown(
        earned_points=earned_points,
        total_points=total_points,
        score=percentage_half_up(earned_points, total_points),
        correct_count=sum(1 for outcome in outcomes if outcome.is_correct),
        outcomes=tuple(outcomes),
    )


def percentage_half_up(earned: int, total: int) -> int:
    if total <= 0:
        return 0
    # Integer form of floor(earned / total * 100 + 0.5), free of float error.
    return (earned * 200 + total) // (2 * total)


def performance_band(score: int) -> str:
    """Return the headline message shown for a score."""
    for threshold, message in _PERFORMANCE_BANDS:
        if score >= threshold:
            return message
    return _LOWEST_BAND
