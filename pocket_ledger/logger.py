"""
Logging configuration.

Services log through module-level loggers
(logging.getLogger(__name__)); this module only installs
the handler once at application start.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Configure the package logger and return it.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR).

    Returns:
        The "pocket_ledger" logger.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger("pocket_ledger")
    logger.setLevel(log_level)

    # Avoid duplicate handlers when the app is created more than once
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(log_level)
        handler.setFormatter(
            logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
        )
        logger.addHandler(handler)

    return logger
