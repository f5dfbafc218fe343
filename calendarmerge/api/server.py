"""calendarmerge.api.server: asyncio HTTP server for merged calendar feeds.

This module wires the pieces together:
- builds the calendar registry once at startup from the loaded configuration,
  sharing one pooled httpx client between all entries
- creates the aiohttp application with the registry injected under an app key
- runs the site until SIGINT/SIGTERM (or an external stop event) and then
  closes the runner and the shared HTTP clients
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from typing import Optional

import httpx
from aiohttp import web

from calendarmerge.api.middleware import correlation_id_middleware
from calendarmerge.api.routes import register_calendar_routes
from calendarmerge.core.config_manager import CalendarConfig, ServerSettings
from calendarmerge.core.http_client import build_timeout, close_all_clients, get_shared_client
from calendarmerge.core.registry import CalendarRegistry

logger = logging.getLogger(__name__)

UPSTREAM_CLIENT_ID = "upstream"


def build_registry(
    settings: ServerSettings,
    calendar_config: CalendarConfig,
    http_client: Optional[httpx.AsyncClient] = None,
) -> CalendarRegistry:
    """Build the registry for ``calendar_config`` using the cache settings."""
    return CalendarRegistry.from_config(
        calendar_config.entries(),
        ttl=settings.cache_ttl,
        failure_ttl=settings.failure_ttl,
        http_client=http_client,
        request_timeout=settings.request_timeout,
    )


def make_app(registry: CalendarRegistry) -> web.Application:
    """Create the aiohttp application serving ``registry``."""
    app = web.Application(middlewares=[correlation_id_middleware])
    register_calendar_routes(app, registry)

    async def _shutdown(_app: web.Application) -> None:
        logger.info("Application shutdown requested")

    app.on_shutdown.append(_shutdown)
    return app


async def serve(
    settings: ServerSettings,
    calendar_config: CalendarConfig,
    external_stop_event: Optional[asyncio.Event] = None,
) -> None:
    """Run the server until signalled to stop.

    Args:
        settings: Server settings
        calendar_config: Loaded calendar configuration
        external_stop_event: Optional event to signal shutdown. If provided,
            signal handlers are not registered (caller owns signal handling).
    """
    stop_event = external_stop_event or asyncio.Event()

    shared_client = await get_shared_client(
        UPSTREAM_CLIENT_ID, timeout=build_timeout(settings.request_timeout)
    )
    registry = build_registry(settings, calendar_config, shared_client)
    app = make_app(registry)

    runner = web.AppRunner(app)
    await runner.setup()
    try:
        site = web.TCPSite(runner, host=settings.host, port=settings.port)
        try:
            await site.start()
        except OSError:
            logger.exception("Failed to start server on %s:%d", settings.host, settings.port)
            raise

        logger.info(
            "Serving %d calendar entr(ies) on http://%s:%d",
            len(registry),
            settings.host,
            settings.port,
        )

        if external_stop_event is None:
            loop = asyncio.get_running_loop()

            def _on_signal() -> None:
                logger.info("Shutdown signal received")
                stop_event.set()

            for sig in (signal.SIGINT, signal.SIGTERM):
                with contextlib.suppress(NotImplementedError):
                    loop.add_signal_handler(sig, _on_signal)
        else:
            logger.debug("Using external stop event - skipping signal handler registration")

        await stop_event.wait()
        logger.info("Stop event received, shutting down")
    finally:
        await runner.cleanup()
        try:
            await close_all_clients()
        except Exception as e:
            logger.warning("Error cleaning up shared HTTP clients: %s", e)

    logger.info("Server shutdown complete")


def start_server(settings: ServerSettings, calendar_config: CalendarConfig) -> None:
    """Run the server in a new event loop; blocks until SIGINT/SIGTERM."""
    try:
        asyncio.run(serve(settings, calendar_config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
