"""
Central logging configuration for calendarmerge.

Sets up a single console handler whose records carry the request correlation
ID, and quiets chatty third-party loggers (aiohttp access logs, httpx request
lines) so cache and fetch activity stays readable.
"""

import logging
import os
import sys
from typing import Optional

from calendarmerge.api.middleware.correlation_id import get_request_id

LOG_FORMAT = "[%(asctime)s] [%(request_id)s] %(levelname)s - %(name)s - %(message)s"

NOISY_LOGGERS: dict[str, int] = {
    "aiohttp.access": logging.WARNING,
    "aiohttp.server": logging.WARNING,
    "aiohttp.web": logging.INFO,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
    "icalendar": logging.INFO,
}


class CorrelationIdFilter(logging.Filter):
    """Add the current request correlation ID to every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        return True


def configure_logging(level: Optional[str] = None, debug: bool = False) -> None:
    """
    Configure root and library log levels.

    Args:
        level: Root level name (DEBUG, INFO, WARNING, ERROR); defaults to INFO
        debug: Force DEBUG for calendarmerge loggers

    Environment Variables:
        CALMERGE_DEBUG: '1', 'true', 'yes' or 'on' forces debug logging
        CALMERGE_LOG_LEVEL: Overrides ``level``
    """
    env_debug = os.getenv("CALMERGE_DEBUG", "").strip().lower() in ("1", "true", "yes", "on")
    env_level = os.getenv("CALMERGE_LOG_LEVEL", "").upper()
    final_debug = debug or env_debug

    root_level = logging.DEBUG if final_debug else logging.INFO
    for candidate in (env_level, (level or "").upper()):
        if candidate in ("DEBUG", "INFO", "WARNING", "ERROR"):
            root_level = getattr(logging, candidate)
            break

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    correlation_filter = CorrelationIdFilter()
    if not root_logger.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.addFilter(correlation_filter)
        root_logger.addHandler(handler)
    else:
        for existing_handler in root_logger.handlers:
            if not any(isinstance(f, CorrelationIdFilter) for f in existing_handler.filters):
                existing_handler.addFilter(correlation_filter)

    for logger_name, logger_level in NOISY_LOGGERS.items():
        logging.getLogger(logger_name).setLevel(logger_level)

    logging.getLogger("calendarmerge").setLevel(logging.DEBUG if final_debug else root_level)

    root_logger.debug(
        "Logging configured: root=%s debug=%s",
        logging.getLevelName(root_level),
        final_debug,
    )
