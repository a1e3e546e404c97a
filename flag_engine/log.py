"""Loguru setup shared by the engine, the web app and the CLI."""

from __future__ import annotations

import logging
import sys
from typing import Union

from loguru import logger

from flag_engine.settings import LogLevel, settings


class InterceptHandler(logging.Handler):
    """Forward records emitted through stdlib ``logging`` to loguru."""

    def emit(self, record: logging.LogRecord) -> None:  # pragma: no cover
        try:
            level: Union[str, int] = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk back to the frame that actually issued the log call.
        frame, depth = logging.currentframe(), 2
        while frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back  # type: ignore[assignment]
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level,
            record.getMessage(),
        )


def configure_logging(level: LogLevel | str | None = None) -> None:
    """Install a single stderr sink and route stdlib loggers through it."""

    resolved = level or settings.log_level
    level_name = resolved.value if isinstance(resolved, LogLevel) else str(resolved).upper()

    intercept_handler = InterceptHandler()
    logging.basicConfig(handlers=[intercept_handler], level=logging.NOTSET, force=True)

    for logger_name in logging.root.manager.loggerDict:
        if logger_name.startswith(("uvicorn", "redis")):
            stdlib_logger = logging.getLogger(logger_name)
            stdlib_logger.handlers = []
            stdlib_logger.propagate = True

    logger.remove()
    logger.add(sys.stderr, level=level_name)
