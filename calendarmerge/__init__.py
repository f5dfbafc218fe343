"""calendarmerge - serve merged views of remote iCalendar feeds.

Each configured entry names a set of upstream ICS feeds. The server fetches
them lazily, caches the parsed result for an hour, and serves it either as a
single merged calendar (``GET /?name=<entry>``) or as the concatenated source
calendars (``GET /appended?name=<entry>``).
"""

__version__ = "0.1.0"

from typing import Any, Optional


def run_server(args: Optional[Any] = None) -> None:
    """Load settings and configuration, then start the server.

    Args:
        args: Optional argparse namespace with host, port, config, cache_ttl,
            failure_ttl and debug attributes. Missing or None attributes fall
            back to environment variables and defaults.

    Raises:
        ConfigError: If settings or the calendar configuration are invalid
    """
    import logging

    from calendarmerge.api.server import start_server
    from calendarmerge.core.config_manager import (
        ConfigError,
        ConfigManager,
        load_calendar_config,
    )
    from calendarmerge.logging_config import configure_logging

    overrides = {
        "host": getattr(args, "host", None),
        "port": getattr(args, "port", None),
        "config_path": getattr(args, "config", None),
        "cache_ttl": getattr(args, "cache_ttl", None),
        "failure_ttl": getattr(args, "failure_ttl", None),
        "debug": getattr(args, "debug", None) or None,
    }
    settings = ConfigManager().load_settings(overrides)
    configure_logging(settings.log_level, debug=settings.debug)

    logger = logging.getLogger(__name__)
    if settings.config_path is None:
        raise ConfigError("No calendar configuration given (use --config or CALMERGE_CONFIG)")

    calendar_config = load_calendar_config(settings.config_path)
    logger.debug("Starting calendarmerge %s", __version__)
    start_server(settings, calendar_config)
