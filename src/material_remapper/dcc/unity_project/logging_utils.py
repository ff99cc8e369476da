"""Logging helpers for the Material Remapper form."""

from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO, Union

BASE_LOGGER_NAME = "material_remapper"
LOG_FORMAT = "[MaterialRemapper] %(levelname)s: %(message)s"
_HANDLER_NAME = "material_remapper_console"

LOG_LEVELS = {
    "Error": logging.ERROR,
    "Warning": logging.WARNING,
    "Info": logging.INFO,
    "Debug": logging.DEBUG,
}


def _console_handler(base_logger: logging.Logger) -> Optional[logging.Handler]:
    for handler in base_logger.handlers:
        if handler.name == _HANDLER_NAME:
            return handler
    return None


def configure_logging(
    level: int = logging.INFO, stream: Optional[TextIO] = None
) -> logging.Logger:
    """Attach a single console handler to the package logger.

    Calling this again only updates the level and the target stream.

    Args:
        level: Level applied to the package logger.
        stream: Output stream, stdout when omitted.

    Returns:
        logging.Logger: The package logger.
    """
    base_logger = logging.getLogger(BASE_LOGGER_NAME)
    handler = _console_handler(base_logger)
    target = stream or sys.stdout
    if handler is None:
        handler = logging.StreamHandler(target)
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.name = _HANDLER_NAME
        base_logger.addHandler(handler)
    elif isinstance(handler, logging.StreamHandler) and handler.stream is not target:
        handler.setStream(target)

    base_logger.setLevel(level)
    base_logger.propagate = False
    return base_logger


def reset_logging() -> None:
    """Remove the console handler and hand records back to the root logger."""
    base_logger = logging.getLogger(BASE_LOGGER_NAME)
    handler = _console_handler(base_logger)
    if handler is not None:
        base_logger.removeHandler(handler)
    base_logger.setLevel(logging.NOTSET)
    base_logger.propagate = True


def set_log_level(level: Union[int, str]) -> int:
    """Set the package log level from a number or a menu label."""
    if isinstance(level, str):
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {level}")
        level = LOG_LEVELS[level]
    logging.getLogger(BASE_LOGGER_NAME).setLevel(level)
    return level
