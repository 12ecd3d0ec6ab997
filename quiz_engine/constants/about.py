"""Static metadata describing the quiz engine."""

APP_NAME = "QuizEngine"
APP_VERSION = "0.1.0"
APP_ABOUT_TEXT = (
    "QuizEngine runs timed quiz attempts: a countdown per attempt, free navigation "
    "between questions, and a partial-credit score stored once the attempt is submitted."
)
