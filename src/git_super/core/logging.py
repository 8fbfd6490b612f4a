"""structlog configuration for the git-super CLI."""

import logging
import sys
from pathlib import Path
from typing import Any, TextIO

import structlog


_LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def setup_logging(
    json_logs: bool = False,
    log_level_name: str = "WARNING",
    log_file: str | Path | None = None,
) -> None:
    """Configure structlog for the whole process.

    Log lines go to stderr so they never interleave with command output on
    stdout. When ``log_file`` is given, events are appended there instead.

    Args:
        json_logs: Render events as JSON instead of the console format
        log_level_name: Minimum level name (DEBUG, INFO, WARNING, ...)
        log_file: Optional file to append log events to
    """
    level = _LOG_LEVELS.get(log_level_name.upper(), logging.WARNING)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_logs:
        processors.extend(
            [
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ]
        )
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(colors=log_file is None and sys.stderr.isatty())
        )

    output: TextIO
    if log_file is not None:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        output = path.open("a", encoding="utf-8")
    else:
        output = sys.stderr

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=output),
        cache_logger_on_first_use=True,
    )
