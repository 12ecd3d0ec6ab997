"""Exceptions raised by the quiz engine."""


class QuizEngineError(Exception):
    """Base exception for quiz engine errors."""


class QuizNotFoundError(QuizEngineError):
    """No quiz matches the requested identifier."""

    def __init__(self, quiz_id: int) -> None:
        super().__init__(f"Quiz {quiz_id} not found.")
        self.quiz_id = quiz_id


class ResultNotFoundError(QuizEngineError):
    """No stored result matches the requested identifier."""

    def __init__(self, result_id: int) -> None:
        super().__init__(f"Result {result_id} not found.")
        self.result_id = result_id


class InvalidTransitionError(QuizEngineError):
    """An operation was attempted in a session state that does not allow it."""


class PersistenceError(QuizEngineError):
    """Storing a result failed. The caller may retry the persistence step."""
