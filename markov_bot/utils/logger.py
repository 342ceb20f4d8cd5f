"""
Logging helpers shared by the service modules
"""

import logging
import sys

from markov_bot.config import settings

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_default_logger = logging.getLogger("markov_bot")


def setup_logger(name: str, level: str = None) -> logging.Logger:
    """
    Get a logger writing to stderr at the configured level

    Args:
        name: Logger name, usually __name__
        level: Level name; defaults to settings.LOG_LEVEL
    """
    logger = logging.getLogger(name)
    logger.setLevel((level or settings.LOG_LEVEL).upper())

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False

    return logger


def log_info(message: str, **context):
    _default_logger.info(_with_context(message, context))


def log_warning(message: str, **context):
    _default_logger.warning(_with_context(message, context))


def log_error(message: str, exc_info: bool = False, **context):
    _default_logger.error(_with_context(message, context), exc_info=exc_info)


def _with_context(message: str, context: dict) -> str:
    if not context:
        return message
    pairs = " ".join(f"{k}={v}" for k, v in context.items())
    return f"{message} ({pairs})"
