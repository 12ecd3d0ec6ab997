"""Application entry point for the quiz engine API."""

from __future__ import annotations

import argparse
from pathlib import Path
import socket

from quiz_engine.constants.about import APP_NAME, APP_VERSION
from quiz_engine.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from quiz_engine.constants.quiz_constants import DEFAULT_QUIZ_DIRECTORY
from quiz_engine.core.services.result_repository import InMemoryResultRepository
from quiz_engine.core.session_manager import SessionManager, load_quiz_repository
from quiz_engine.server.api_server import run_api_server
from quiz_engine.utils.logging_config import configure_logging


def _determine_public_url(port: int) -> str:
    """Best-effort determination of the local IP for the API URL."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(("8.8.8.8", 80))
            ip_address = sock.getsockname()[0]
    except OSError:
        ip_address = "127.0.0.1"
    return f"http://{ip_address}:{port}/"


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="quiz-engine", description=f"{APP_NAME} {APP_VERSION}")
    parser.add_argument(
        "quiz_directory",
        nargs="?",
        type=Path,
        default=DEFAULT_QUIZ_DIRECTORY,
        help="directory of *.txt quiz files to serve",
    )
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Initialize logging, load the quizzes, and serve the API."""
    args = _parse_args(argv)
    logger = configure_logging()
    logger.info("Starting %s %s", APP_NAME, APP_VERSION)

    quiz_repository = load_quiz_repository(args.quiz_directory)
    session_manager = SessionManager(quiz_repository, InMemoryResultRepository())
    logger.info("API available at %s", _determine_public_url(args.port))
    run_api_server(session_manager, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
