"""Logging set-up shared by the compgraph CLI, the HTTP service and the pipeline.

Modules log through ``get_logger("orchestrator")`` and friends; nothing is
emitted until the CLI (or ``compgraph serve``) calls ``configure_logging``.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

_LOGGER_NAME = "compgraph"
# httpx reports every raw/contents request at INFO.
_CHATTY_LOGGERS = ("httpx", "httpcore")


def get_logger(name: str | None = None) -> logging.Logger:
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Send compgraph records to stderr, leaving stdout free for ``--json`` output.

    Verbose mode lowers the level to DEBUG and lets per-request HTTP logging
    through; otherwise the HTTP client is held at WARNING.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Repeated main() calls in one process must not stack handlers.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setLevel(level)
    stream_handler.setFormatter(logging.Formatter("[compgraph] %(levelname)s %(message)s"))
    logger.addHandler(stream_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)

    return logger


def log_exception(logger: logging.Logger, message: str, exc: BaseException) -> None:
    """Log a run-level failure; the traceback is only shown with ``--verbose``."""
    if logger.isEnabledFor(logging.DEBUG):
        logger.exception("%s: %s", message, exc)
    else:
        logger.error("%s: %s", message, exc)


__all__ = ["configure_logging", "get_logger", "log_exception"]
