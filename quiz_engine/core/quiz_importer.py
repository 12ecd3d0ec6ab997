"""Utilities for importing quizzes from a human-friendly text file.

File format: a header block followed by question blocks. Blocks are separated
by blank lines or '---'.

    TITLE: Quiz title
    SUBJECT: Subject label
    DESCRIPTION: One line shown before the attempt starts (optional)
    DIFFICULTY: Easy|Medium|Hard   (optional, defaults to Medium)
    TIMELIMIT: minutes             (optional)
    ID: integer                    (optional, assigned on load otherwise)

    Q: Question text. Additional lines until the next marker are treated as
       part of the question.
    A: First option text
    B: Second option text
    ...up to H:
    CORRECT: letter of the correct option
    POINTS: positive integer       (optional)

Example:

    TITLE: Arithmetic warm-up
    SUBJECT: Mathematics
    TIMELIMIT: 5

    Q: What is 2 + 2?
    A: 3
    B: 4
    C: 5
    CORRECT: B
    POINTS: 10

Validation beyond the syntax (non-empty options, option count) is left to
the quiz repository so both imported and programmatic quizzes follow the
same rules.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path

from quiz_engine.constants.quiz_constants import (
    DEFAULT_QUESTION_POINTS,
    DEFAULT_TIME_LIMIT_MINUTES,
    MAX_OPTION_COUNT,
)
from quiz_engine.core.models import Difficulty, Question, QuizDefinition

logger = logging.getLogger(__name__)


class QuizImportError(Exception):
    """Raised when a quiz definition cannot be parsed."""


@dataclass(slots=True)
class ImportedQuiz:
    """Container for imported quiz metadata and questions."""

    source_path: Path
    quiz: QuizDefinition


_OPTION_LETTERS = "ABCDEFGH"[:MAX_OPTION_COUNT]
_HEADER_KEYS = ("TITLE", "SUBJECT", "DESCRIPTION", "DIFFICULTY", "TIMELIMIT", "ID")


def load_quiz_from_file(file_path: Path) -> ImportedQuiz:
    text = file_path.read_text(encoding="utf-8")
    try:
        quiz = parse_quiz_text(text)
    except QuizImportError as exc:
        raise QuizImportError(f"{file_path.name}: {exc}") from exc
    return ImportedQuiz(source_path=file_path, quiz=quiz)


def load_quizzes_from_directory(directory: Path) -> list[ImportedQuiz]:
    """Import every ``*.txt`` quiz in a directory, in file name order."""
    if not directory.is_dir():
        raise QuizImportError(f"Quiz directory '{directory}' does not exist.")
    imported = [load_quiz_from_file(path) for path in sorted(directory.glob("*.txt"))]
    logger.info("Imported %s quiz file(s) from %s", len(imported), directory)
    return imported


def parse_quiz_text(text: str) -> QuizDefinition:
    blocks = _split_blocks(text)
    if not blocks:
        raise QuizImportError("Quiz file is empty.")

    header = _parse_header(blocks[0])
    questions = tuple(_parse_question_block(block) for block in blocks[1:])
    if not questions:
        raise QuizImportError("Quiz file did not contain any questions.")

    return QuizDefinition(
        id=header["id"],
        title=header["title"],
        description=header["description"],
        subject=header["subject"],
        time_limit_minutes=header["time_limit"],
        difficulty=header["difficulty"],
        questions=questions,
    )


def _split_blocks(text: str) -> list[str]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---":
            if current_block:
                blocks.append("\n".join(current_block).strip())
                current_block = []
            continue
        if stripped:
            current_block.append(raw_line)
        elif current_block:
            blocks.append("\n".join(current_block).strip())
            current_block = []
    if current_block:
        blocks.append("\n".join(current_block).strip())
    return [block for block in blocks if block]


def _parse_header(block: str) -> dict:
    values: dict[str, str] = {}
    for raw_line in block.splitlines():
        line = raw_line.strip()
        key, separator, value = line.partition(":")
        key = key.strip().upper()
        if not separator or key not in _HEADER_KEYS:
            raise QuizImportError(f"Unexpected line in quiz header: '{line}'.")
        values[key] = value.strip()

    title = values.get("TITLE", "")
    if not title:
        raise QuizImportError("Quiz header must start with a TITLE.")

    difficulty = Difficulty.MEDIUM
    if values.get("DIFFICULTY"):
        try:
            difficulty = Difficulty.from_label(values["DIFFICULTY"])
        except ValueError as exc:
            raise QuizImportError("DIFFICULTY must be Easy, Medium or Hard.") from exc

    time_limit = DEFAULT_TIME_LIMIT_MINUTES
    if "TIMELIMIT" in values:
        time_limit = _parse_positive_int(values["TIMELIMIT"], "TIMELIMIT")

    quiz_id = None
    if "ID" in values:
        quiz_id = _parse_positive_int(values["ID"], "ID")

    return {
        "id": quiz_id,
        "title": title,
        "subject": values.get("SUBJECT", ""),
        "description": values.get("DESCRIPTION", ""),
        "difficulty": difficulty,
        "time_limit": time_limit,
    }


def _parse_question_block(block: str) -> Question:
    question_lines: list[str] = []
    options: dict[str, str] = {}
    correct_letter: str | None = None
    points = DEFAULT_QUESTION_POINTS
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        upper = line.upper()
        if upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        if upper.startswith("CORRECT:"):
            correct_letter = line.split(":", 1)[1].strip().upper()
            current_section = None
            continue

        if upper.startswith("POINTS:"):
            points = _parse_positive_int(line.split(":", 1)[1].strip(), "POINTS")
            current_section = None
            continue

        if len(line) >= 2 and line[0].upper() in _OPTION_LETTERS and line[1] == ":":
            letter = line[0].upper()
            options[letter] = line[2:].strip()
            current_section = letter
            continue

        if current_section == "Q":
            question_lines.append(line)
        elif current_section in options:
            options[current_section] = options[current_section] + f"\n{line}"
        else:
            raise QuizImportError(
                f"Encountered text outside of a known section: '{line}'."
            )

    question_text = "\n".join(question_lines).strip()
    if not question_text:
        raise QuizImportError("Question text missing (Q: ...)")
    if not options:
        raise QuizImportError(f"Question '{question_text}' defines no options.")

    # Letters that were skipped become empty options and are dropped on load.
    last_index = max(_OPTION_LETTERS.index(letter) for letter in options)
    option_list = tuple(options.get(letter, "").strip() for letter in _OPTION_LETTERS[: last_index + 1])

    if correct_letter is None:
        raise QuizImportError(f"Question '{question_text}' is missing CORRECT.")
    if correct_letter not in options:
        raise QuizImportError(f"CORRECT must name one of the defined options, got '{correct_letter}'.")
    if not options[correct_letter].strip():
        raise QuizImportError(f"CORRECT names option '{correct_letter}', which is empty.")

    return Question(
        id=0,  # assigned when the quiz is added to the repository
        text=question_text,
        options=option_list,
        correct_option_index=_OPTION_LETTERS.index(correct_letter),
        points=points,
    )


def _parse_positive_int(raw_value: str, field_name: str) -> int:
    if not raw_value:
        raise QuizImportError(f"{field_name} must include an integer value.")
    try:
        parsed_value = int(raw_value)
    except ValueError as exc:
        raise QuizImportError(f"{field_name} must be an integer.") from exc
    if parsed_value <= 0:
        raise QuizImportError(f"{field_name} must be a positive integer.")
    return parsed_value
