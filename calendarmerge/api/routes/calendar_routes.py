"""Calendar download routes: merged (``/``) and appended (``/appended``)."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Optional

from aiohttp import web
from icalendar import Calendar

from calendarmerge.calendar.models import CalendarResult
from calendarmerge.calendar.transforms import (
    append_calendars,
    merge_calendars,
    serialize_calendar,
)
from calendarmerge.core.registry import DEFAULT_ENTRY_NAME, CalendarRegistry

logger = logging.getLogger(__name__)

REGISTRY_KEY = web.AppKey("registry", CalendarRegistry)

CALENDAR_CONTENT_TYPE = "text/calendar"
NOT_FOUND_MESSAGE = "Could not find Calendar"
INTERNAL_ERROR_MESSAGE = "Internal Server Error"

Renderer = Callable[[tuple[Calendar, ...], str], bytes]


def _entry_name(request: web.Request) -> str:
    return request.query.get("name", DEFAULT_ENTRY_NAME)


def _calendar_response(name: str, body: bytes) -> web.Response:
    return web.Response(
        body=body,
        content_type=CALENDAR_CONTENT_TYPE,
        headers={"Content-Disposition": f"attachment; filename={name}.ics"},
    )


def _render_merged(calendars: tuple[Calendar, ...], name: str) -> bytes:
    return serialize_calendar(merge_calendars(calendars, name))


def _render_appended(calendars: tuple[Calendar, ...], _name: str) -> bytes:
    return append_calendars(calendars)


def register_calendar_routes(app: web.Application, registry: CalendarRegistry) -> None:
    """Register the calendar download routes.

    Args:
        app: aiohttp web application
        registry: Calendar registry, stored under ``REGISTRY_KEY`` for the handlers
    """
    app[REGISTRY_KEY] = registry

    async def _serve_entry(request: web.Request, render: Renderer) -> web.Response:
        name = _entry_name(request)

        result: Optional[CalendarResult] = await request.app[REGISTRY_KEY].get(name)
        if result is None:
            logger.debug("Unknown calendar entry requested: %r", name)
            return web.Response(status=404, text=NOT_FOUND_MESSAGE)

        if not result.ok or result.calendars is None:
            logger.warning("Serving cached failure for entry '%s': %s", name, result.error)
            return web.Response(status=500, text=INTERNAL_ERROR_MESSAGE)

        return _calendar_response(name, render(result.calendars, name))

    async def merged(request: web.Request) -> web.Response:
        """Serve the entry as one calendar with source-prefixed titles."""
        return await _serve_entry(request, _render_merged)

    async def appended(request: web.Request) -> web.Response:
        """Serve the entry's source calendars concatenated."""
        return await _serve_entry(request, _render_appended)

    app.router.add_get("/", merged)
    app.router.add_get("/appended", appended)
