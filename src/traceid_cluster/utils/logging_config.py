"""
Logging helpers for traceid-cluster.

Library modules only ever call ``get_logger(__name__)``; handlers are attached
by ``setup_logging`` which is meant to be called once by an entry point
(the CLI, a notebook, a script).
"""

from __future__ import annotations

import logging
import sys
from typing import Union

ROOT_LOGGER_NAME = "traceid_cluster"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str) -> logging.Logger:
    """
    Return a logger nested under the package root logger.

    Args:
        name: Usually ``__name__`` of the calling module

    Returns:
        Logger instance
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def setup_logging(level: Union[int, str] = logging.WARNING) -> logging.Logger:
    """
    Configure the package root logger to write to stderr.

    Safe to call more than once: the stderr handler is only added the first
    time, later calls just update the level.

    Args:
        level: Logging level name ("DEBUG", "info", ...) or numeric level

    Returns:
        The configured root package logger

    Raises:
        ValueError: If *level* is not a known level name
    """
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level}")
        level = resolved

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level)

    if not any(getattr(h, "_traceid_handler", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        handler._traceid_handler = True  # type: ignore[attr-defined]
        root.addHandler(handler)

    return root
