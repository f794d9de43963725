"""
Logging configuration for confmigrate.

Console output honours the CLI flags; CONFMIGRATE_LOG_LEVEL sets the level
when no flag is given. An optional log file always records DEBUG messages.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional, Union

from confmigrate.utils.helpers import ensure_directory

LOGGER_NAME = "confmigrate"
LOG_LEVEL_ENV = "CONFMIGRATE_LOG_LEVEL"
CONSOLE_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s | %(name)-24s | %(levelname)-7s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_level(level: Union[str, int]) -> int:
    """
    Turn a level name or number into a logging level.

    Raises:
        ValueError: If level is not a known level name
    """
    if isinstance(level, int):
        return level
    numeric_level = logging.getLevelName(level.strip().upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")
    return numeric_level


def level_from_flags(verbose: bool = False, debug: bool = False) -> str:
    """Map the CLI verbosity flags, then CONFMIGRATE_LOG_LEVEL, to a level name."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    return os.environ.get(LOG_LEVEL_ENV, "WARNING")


def setup_logging(
    level: Union[str, int] = "INFO", log_file: Optional[Union[str, Path]] = None
) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        level: Console level, as a name (DEBUG, INFO, ...) or a number
        log_file: Optional file receiving every message down to DEBUG

    Returns:
        The configured "confmigrate" logger
    """
    console_level = resolve_level(level)
    logger = logging.getLogger(LOGGER_NAME)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter(fmt=CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(console_handler)

    if log_file is None:
        logger.setLevel(console_level)
    else:
        path = Path(log_file)
        ensure_directory(path.parent)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(file_handler)
        logger.setLevel(logging.DEBUG)

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get the package logger or one of its children.

    Args:
        name: Module name such as __name__, or a short name like "core.merger"
    """
    if not name or name == LOGGER_NAME:
        return logging.getLogger(LOGGER_NAME)
    if name.startswith(LOGGER_NAME + "."):
        name = name[len(LOGGER_NAME) + 1:]
    return logging.getLogger(f"{LOGGER_NAME}.{name}")
