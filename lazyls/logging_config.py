"""Logging setup that never writes to the terminal the TUI draws on."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(threadName)s]: %(message)s"


def configure_logging(
    *,
    level: str,
    log_file: str | None,
) -> None:
    """
    Configure root logging to write only to a specified file.

    When no file is provided, attach a null handler to suppress output.
    """
    numeric_level = getattr(logging, level.upper(), logging.WARNING)
    logger_root = logging.getLogger()
    logger_root.handlers.clear()
    logger_root.setLevel(numeric_level)
    if log_file:
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=1_000_000,
            backupCount=1,
            encoding="utf-8",
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger_root.addHandler(file_handler)
    else:
        logger_root.addHandler(logging.NullHandler())
    logging.getLogger("watchdog").setLevel(max(numeric_level, logging.INFO))


__all__ = ["configure_logging"]
