"""
Logging setup for the storefront client.

Usage:
    from storefront.logging import get_logger
    logger = get_logger(__name__)

    logger.info("Cart reconciled")
    logger.warning("Mirror failed for %s", sanitize_id_for_logging(product_id))

Environment:
    LOG_LEVEL             level name, INFO by default
    STOREFRONT_LOG_SIMPLE "1" drops timestamps (useful when the host adds them)
"""

import logging
import os
import sys
from functools import cache

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FORMAT_SIMPLE = "%(levelname)s - %(name)s - %(message)s"

# Transport libraries that log every request at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "hpack")

# Characters that would let a backend message forge extra log lines
_LOG_ESCAPES = str.maketrans({"\n": "\\n", "\r": "\\r", "\t": "\\t", "\x00": None})


def _level_from_env() -> int:
    name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _install_handler() -> None:
    """Attach one stdout handler to the root logger unless the host app already did."""
    root = logging.getLogger()
    if root.handlers:
        return

    level = _level_from_env()
    fmt = LOG_FORMAT_SIMPLE if os.environ.get("STOREFRONT_LOG_SIMPLE") == "1" else LOG_FORMAT

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt))
    root.setLevel(level)
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


_install_handler()


@cache
def get_logger(name: str) -> logging.Logger:
    """Module logger (typically get_logger(__name__))."""
    return logging.getLogger(name)


def sanitize_id_for_logging(id_value: str | None) -> str:
    """
    Product ids, order ids and tokens as they may appear in a log line.

    Control characters are escaped and the value is cut to 8 characters,
    so a token is never logged whole.

    Returns:
        Sanitized prefix, or "N/A" for an empty value
    """
    if not id_value:
        return "N/A"
    return str(id_value).translate(_LOG_ESCAPES)[:8]


def sanitize_string_for_logging(value: str | None, max_length: int = 50) -> str:
    """Escape a free-form string (backend message, exception text) and cap its length."""
    if not value:
        return "N/A"
    safe_value = str(value).translate(_LOG_ESCAPES)
    return safe_value if len(safe_value) <= max_length else safe_value[:max_length] + "..."


__all__ = [
    "LOG_FORMAT",
    "LOG_FORMAT_SIMPLE",
    "get_logger",
    "sanitize_id_for_logging",
    "sanitize_string_for_logging",
]
