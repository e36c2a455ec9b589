"""
Structured logging for SnapBox using structlog.
"""

import logging
import os
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import structlog

from .errors import SnapshotError, SubprocessFailure

LOGGER_NAME = "snapbox"
LOG_LEVEL_ENV = "SNAPBOX_LOG_LEVEL"


def configure_logging(
    level: Optional[str] = None,
    json_output: bool = False,
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Route SnapBox's structlog events to the ``snapbox`` stdlib logger.

    Only the ``snapbox`` logger tree is touched, so an embedding
    application keeps its own root configuration.

    Args:
        level: Log level name; defaults to ``$SNAPBOX_LOG_LEVEL`` or INFO
        json_output: Render JSON on stderr instead of the console format
        log_file: Optional file that always receives JSON lines
    """
    level_name = (level or os.environ.get(LOG_LEVEL_ENV) or "INFO").upper()
    numeric_level = logging.getLevelName(level_name)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level_name}")

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    def handler_for(handler: logging.Handler, processor) -> logging.Handler:
        handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(processor=processor, foreign_pre_chain=shared_processors)
        )
        return handler

    logger = logging.getLogger(LOGGER_NAME)
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()
    logger.addHandler(handler_for(logging.StreamHandler(sys.stderr), renderer))
    if log_file:
        logger.addHandler(
            handler_for(logging.FileHandler(log_file), structlog.processors.JSONRenderer())
        )
    logger.setLevel(numeric_level)
    logger.propagate = False
    return logger


def get_logger(name: str = LOGGER_NAME) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


@contextmanager
def log_operation(logger, operation: str, **context) -> Iterator:
    """
    Log ``<operation>.started`` and then ``.completed`` or ``.failed``.

    Subprocess failures add the exit status and diagnostics to the failure
    event. The exception is always re-raised.

    Usage:
        with log_operation(log, "snapshot.capture", vm="vm1", snapshot="s1"):
            ...
    """
    log = logger.bind(operation=operation, **context)
    started = time.monotonic()
    log.info(f"{operation}.started")

    try:
        yield log
    except Exception as e:
        details = {}
        if isinstance(e, SubprocessFailure):
            details = {"returncode": e.returncode, "tag": e.tag, "output": e.output}
        log.error(
            f"{operation}.failed",
            error=str(e),
            error_type=type(e).__name__,
            expected=isinstance(e, SnapshotError),
            duration_ms=_elapsed_ms(started),
            **details,
        )
        raise

    log.info(f"{operation}.completed", duration_ms=_elapsed_ms(started))


def _elapsed_ms(started: float) -> float:
    return round((time.monotonic() - started) * 1000, 2)
