"""Domain models for the quiz engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class Difficulty(Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"

    @classmethod
    def from_label(cls, label: str) -> "Difficulty":
        cleaned = label.strip().lower()
        for member in cls:
            if member.value.lower() == cleaned:
                return member
        raise ValueError(f"Unknown difficulty '{label}'.")


class SessionStatus(Enum):
    """Lifecycle phase of a single attempt. Transitions only move forward."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"


class SubmitTrigger(Enum):
    MANUAL = "manual"
    TIMEOUT = "timeout"


@dataclass(frozen=True, slots=True)
class Question:
    """Multiple-choice question worth a fixed number of points."""

    id: int
    text: str
    options: tuple[str, ...]
    correct_option_index: int
    points: int


@dataclass(frozen=True, slots=True)
class QuizDefinition:
    """Read-only quiz borrowed from the quiz repository for an attempt."""

    id: int | None
    title: str
    description: str
    subject: str
    time_limit_minutes: int
    difficulty: Difficulty
    questions: tuple[Question, ...]

    @property
    def question_count(self) -> int:
        return len(self.questions)

    @property
    def total_points(self) -> int:
        return sum(question.points for question in self.questions)


@dataclass(frozen=True, slots=True)
class QuestionOutcome:
    """How a single question contributed to the score."""

    question_index: int
    selected_option_index: int | None
    is_correct: bool
    earned_points: int


@dataclass(frozen=True, slots=True)
class ScoreBreakdown:
    earned_points: int
    total_points: int
    score: int
    correct_count: int
    outcomes: tuple[QuestionOutcome, ...] = ()


def freeze_answers(answers: Mapping[int, int]) -> Mapping[int, int]:
    """Return a read-only copy that is decoupled from the source mapping."""
    return MappingProxyType(dict(answers))


@dataclass(frozen=True, slots=True)
class ResultDraft:
    """Result contents before the repository assigns id and completion time."""

    quiz_id: int
    score: int
    total_points: int
    earned_points: int
    time_spent_seconds: int
    answers: Mapping[int, int] = field(default_factory=lambda: freeze_answers({}))


@dataclass(frozen=True, slots=True)
class Result:
    """Persisted outcome of a finished attempt."""

    id: int
    quiz_id: int
    score: int
    total_points: int
    earned_points: int
    completed_at: datetime
    time_spent_seconds: int
    answers: Mapping[int, int]
