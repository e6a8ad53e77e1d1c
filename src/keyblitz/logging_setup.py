"""Logging configuration for the CLI."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s [%(threadName)s] %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_configured_handlers: list[logging.Handler] = []


def setup_logging(level: int = logging.WARNING, log_path: Path | None = None) -> None:
    """Configure the ``keyblitz`` logger with a stderr handler and optional log file.

    Calling again replaces previously installed handlers instead of stacking them.
    Stderr only shows warnings and above so log lines do not interleave with prompts.
    """
    logger = logging.getLogger("keyblitz")
    for handler in _configured_handlers:
        logger.removeHandler(handler)
        handler.close()
    _configured_handlers.clear()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    stderr_handler = logging.StreamHandler(stream=sys.stderr)
    stderr_handler.setFormatter(formatter)
    stderr_handler.setLevel(max(level, logging.WARNING))
    _configured_handlers.append(stderr_handler)

    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        _configured_handlers.append(file_handler)

    for handler in _configured_handlers:
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    logging.captureWarnings(True)
