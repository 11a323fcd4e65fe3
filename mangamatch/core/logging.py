"""Logging configuration."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from structlog.typing import Processor

APP_LOG_FILE = "mangamatch.json.log"

# Processors shared by the console and JSON renderers
SHARED_PROCESSORS: list[Processor] = [
    structlog.contextvars.merge_contextvars,  # trace_id and other context
    structlog.stdlib.add_logger_name,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
]


def setup_logging(
    debug: bool = False,
    logs_dir: Path | None = None,
    level: str | None = None,
) -> None:
    """Setup structured logging with structlog.

    Logs go to stdout (pretty in debug, JSON otherwise), or only to a JSON
    file in ``logs_dir`` when one is given. JSON output carries exceptions as
    structured tracebacks under ``exception``.

    Args:
        debug: Enable debug logging
        logs_dir: Optional directory for log files
        level: Log level name (e.g. ``Settings.log_level``); overrides ``debug``
    """
    log_level = logging.DEBUG if debug else logging.INFO
    if level:
        log_level = logging.getLevelName(level.upper())

    handlers: list[logging.Handler] = []
    app_log_file = None

    if logs_dir:
        try:
            logs_dir.mkdir(parents=True, exist_ok=True)
            app_log_file = logs_dir / APP_LOG_FILE
            file_handler = logging.FileHandler(app_log_file, encoding="utf-8")
            file_handler.setLevel(log_level)
            handlers.append(file_handler)
        except OSError as e:
            # If file logging fails, log to stderr but don't crash
            sys.stderr.write(f"Warning: Failed to setup file logging: {e}\n")
            app_log_file = None

    if not handlers:
        stdout_handler = logging.StreamHandler(sys.stdout)
        stdout_handler.setLevel(log_level)
        handlers.append(stdout_handler)

    logging.basicConfig(
        format="%(message)s",
        level=log_level,
        handlers=handlers,
        force=True,
    )

    # File logs are always JSON; console is pretty in debug mode
    if app_log_file is None and debug:
        processors = [*SHARED_PROCESSORS, structlog.dev.ConsoleRenderer(colors=True)]
    else:
        processors = [
            *SHARED_PROCESSORS,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    logger = structlog.get_logger("mangamatch.logging")
    logger.info(
        "Logging configured",
        level=logging.getLevelName(log_level),
        debug=debug,
        file_logging=app_log_file is not None,
        log_file=str(app_log_file) if app_log_file else None,
    )
