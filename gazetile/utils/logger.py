"""
Logging for gazetile.

Every module logs through a child of the ``gazetile`` package logger, so one
call to ``setup_logger`` at startup configures the whole pipeline. Gaze
coordinates are only logged at DEBUG; file output is opt-in.
"""

import logging
import sys
from pathlib import Path
from typing import IO, Optional

PACKAGE_LOGGER = "gazetile"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Marks handlers installed here so reconfiguration only replaces its own
_HANDLER_FLAG = "_gazetile_handler"


def parse_level(level: str) -> int:
    """Map a level name to its numeric value, WARNING when unknown."""
    value = logging.getLevelName(str(level).upper())
    return value if isinstance(value, int) else logging.WARNING


def _install(logger: logging.Logger, handler: logging.Handler, level: int):
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    setattr(handler, _HANDLER_FLAG, True)
    logger.addHandler(handler)


def setup_logger(
    level: str = "WARNING",
    log_file: Optional[Path] = None,
    enable_file_logging: bool = False,
    stream: Optional[IO[str]] = None,
) -> logging.Logger:
    """
    Configure the package logger.

    Calling it again replaces the handlers installed by the previous call,
    so the level and destinations can be changed at runtime.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: File to append to when file logging is enabled
        enable_file_logging: Also write to ``log_file``
        stream: Console stream (default: stdout)

    Returns:
        The ``gazetile`` logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    numeric_level = parse_level(level)
    logger.setLevel(numeric_level)

    for handler in [h for h in logger.handlers if getattr(h, _HANDLER_FLAG, False)]:
        logger.removeHandler(handler)
        handler.close()

    _install(logger, logging.StreamHandler(stream or sys.stdout), numeric_level)

    if enable_file_logging and log_file:
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            _install(
                logger,
                logging.FileHandler(log_file, mode="a", encoding="utf-8"),
                numeric_level,
            )
            logger.info(f"File logging enabled: {log_file}")
        except OSError as e:
            logger.warning(f"Failed to enable file logging: {e}")

    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the package hierarchy.

    Names outside the package (e.g. ``__main__``) are nested under it so
    that they share the package configuration.
    """
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)
