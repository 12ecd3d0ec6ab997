"""Quiz-related constants shared across the core and server layers."""

from pathlib import Path

DEFAULT_TIME_LIMIT_MINUTES: int = 30
DEFAULT_QUESTION_POINTS: int = 10
MIN_OPTION_COUNT: int = 2
MAX_OPTION_COUNT: int = 8
TICK_INTERVAL_SECONDS: float = 1.0
REPOSITORY_LATENCY_SECONDS: float = 0.0
DEFAULT_QUIZ_DIRECTORY: Path = Path(__file__).resolve().parent.parent / "data" / "quizzes"
