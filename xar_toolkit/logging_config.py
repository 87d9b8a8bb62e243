import logging
import os
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(log_level: Optional[str] = None) -> logging.Logger:
    """
    Set up logging for the xar_toolkit package.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to the
            XAR_LOG_LEVEL env var or WARNING

    Returns:
        The package logger
    """
    if log_level is None:
        log_level = os.getenv("XAR_LOG_LEVEL", "WARNING")

    level = getattr(logging, log_level.upper(), logging.WARNING)

    logger = logging.getLogger("xar_toolkit")
    logger.setLevel(level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
            if isinstance(handler, logging.StreamHandler):
                handler.setStream(sys.stderr)
        return logger

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))

    logger.addHandler(handler)

    return logger
