"""Logging setup and the pluggable logger interface.

Handlers and peer loops log through a ``CoverageLogger``: anything with
printf-style ``info`` and ``error`` methods. A ``logging.Logger`` already
satisfies it, so the default is simply the ``podcoverage`` logger configured
by :func:`setup_logging`.

Usage:
    from podcoverage.config import set_logger
    from podcoverage.logging_config import setup_logging

    set_logger(setup_logging("my_service.coverage", level="DEBUG"))
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_LOGGER_NAME = "podcoverage"


@runtime_checkable
class CoverageLogger(Protocol):
    """Leveled formatted logging used by the coverage components."""

    def info(self, msg: str, *args: Any) -> None: ...

    def error(self, msg: str, *args: Any) -> None: ...


def setup_logging(
    name: str = DEFAULT_LOGGER_NAME,
    level: int | str = logging.INFO,
    fmt: str = DEFAULT_FORMAT,
    console: bool = True,
    log_file: str | Path | None = None,
) -> logging.Logger:
    """Configure and return a named logger.

    Calling it again for the same name does not stack duplicate handlers.
    """
    logger = logging.getLogger(name)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logger.setLevel(level)

    formatter = logging.Formatter(fmt)
    has_console = any(
        type(h) is logging.StreamHandler for h in logger.handlers
    )
    if console and not has_console:
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    if log_file is not None:
        path = Path(log_file)
        has_file = any(
            isinstance(h, logging.FileHandler)
            and Path(h.baseFilename) == path.resolve()
            for h in logger.handlers
        )
        if not has_file:
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(path)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger


def get_default_logger() -> logging.Logger:
    return setup_logging(DEFAULT_LOGGER_NAME)
