"""
Logging configuration for the TDD relay.

Standard output is the relay display, so log records go to standard error
and, optionally, to a file.

Environment Variables:
    TDD_RELAY_LOG_LEVEL - Log level (DEBUG, INFO, WARNING, ERROR). Default: WARNING
    TDD_RELAY_LOG_FILE - Optional log file receiving DEBUG and above
"""

import logging
import os
import sys
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
    name: str = "tdd_relay"
) -> logging.Logger:
    """
    Setup logging for the relay.

    Args:
        level: Console log level. Default from TDD_RELAY_LOG_LEVEL or WARNING.
        log_file: Optional path of a file that receives everything from DEBUG up.
        format_string: Custom format. Default: timestamp + level + name + message.
        name: Logger name.

    Returns:
        Configured logger instance.
    """
    if level is None:
        level = os.getenv("TDD_RELAY_LOG_LEVEL", "WARNING").upper()
    if log_file is None:
        log_file = os.getenv("TDD_RELAY_LOG_FILE") or None
    if format_string is None:
        format_string = DEFAULT_FORMAT

    console_level = getattr(logging, level, logging.WARNING)
    formatter = logging.Formatter(format_string, datefmt="%Y-%m-%d %H:%M:%S")

    logger = logging.getLogger(name)
    logger.handlers.clear()
    logger.propagate = False

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(console_level)
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(console_level)

    return logger


def get_logger(name: str = "tdd_relay") -> logging.Logger:
    """
    Get or create a logger.

    Args:
        name: Logger name (prefixed with 'tdd_relay.' if not already)

    Returns:
        Logger instance.
    """
    if not name.startswith("tdd_relay"):
        name = f"tdd_relay.{name}"

    logger = logging.getLogger(name)

    if not logging.getLogger("tdd_relay").handlers:
        setup_logging()

    return logger
