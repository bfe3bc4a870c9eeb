"""Logging helpers."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Union

from .errors import ConfigurationError

LOGGER_NAME = "recapframe"
LOG_FILENAME = "recapframe.log"


def resolve_level(level: Union[int, str]) -> int:
    """Accept a numeric level or a name such as ``"debug"``."""
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    if not isinstance(resolved, int):
        raise ConfigurationError(f"Unknown log level: {level}")
    return resolved


def _file_handler_for(logger: logging.Logger, log_path: str):
    target = os.path.abspath(log_path)
    for handler in logger.handlers:
        if isinstance(handler, RotatingFileHandler) and handler.baseFilename == target:
            return handler
    return None


def setup_logging(
    log_dir: str = "logs",
    level: Union[int, str] = logging.INFO,
) -> tuple[logging.Logger, str]:
    """Attach one rotating file handler per log file to the package logger.

    Calling again for the same directory only updates the level.
    """
    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.join(log_dir, LOG_FILENAME)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(resolve_level(level))

    if _file_handler_for(logger, log_path) is None:
        handler = RotatingFileHandler(
            log_path, maxBytes=2_000_000, backupCount=3, encoding="utf-8"
        )
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(levelname)s %(name)s %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(handler)

    return logger, log_path
