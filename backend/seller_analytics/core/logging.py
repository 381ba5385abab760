"""Logging configuration for the analytics core.

Components log through children of one package logger, so the cache and
fetch side channels share its handler and can be filtered by name.
"""
import logging
import sys
from typing import Optional

from ..config import get_settings

LOGGER_NAME = "seller_analytics"


def setup_logging(debug: Optional[bool] = None) -> logging.Logger:
    """Configure and return the package logger.

    Args:
        debug: Override debug setting. If None, uses settings.debug.

    Returns:
        Configured logger instance.
    """
    settings = get_settings()
    is_debug = debug if debug is not None else settings.debug

    logger = logging.getLogger(LOGGER_NAME)

    # Avoid duplicate handlers if called multiple times
    if logger.handlers:
        return logger

    level = logging.DEBUG if is_debug else logging.INFO
    logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    if is_debug:
        formatter = logging.Formatter(
            "[%(asctime)s] %(levelname)s %(name)s:%(lineno)d - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
    else:
        formatter = logging.Formatter(
            "[%(asctime)s] %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


def get_logger(component: Optional[str] = None) -> logging.Logger:
    """Get the package logger or one of its component children.

    Component loggers (``seller_analytics.cache``, ``seller_analytics.fetch``
    and so on) carry no handlers of their own and propagate to the package
    logger, which is configured on first use.

    Args:
        component: Component name, or None for the package logger itself
    """
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        logger = setup_logging()
    if component is None:
        return logger
    return logger.getChild(component)
