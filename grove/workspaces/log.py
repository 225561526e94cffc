"""Logging configuration using loguru.

Intercepts stdlib logging so anything emitted through ``logging`` ends up
in the same stderr sink as grove's own messages.
"""

from __future__ import annotations

import logging
import sys

from loguru import logger


class _InterceptHandler(logging.Handler):
    """Bridge stdlib logging records into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk past logging's own frames so loguru reports the real call-site
        frame = logging.currentframe()
        depth = 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru as the sole logging sink.

    Called once per CLI invocation, before any command runs.  Log lines go to
    stderr so that stdout stays clean for values like ``grove switch``'s path
    or the guard's decision object.
    """
    level = level.upper()

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<level>{level: <8}</level> | <cyan>{name}</cyan> - <level>{message}</level>",
    )

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)
    logger.debug("Logging initialised (level={})", level)
