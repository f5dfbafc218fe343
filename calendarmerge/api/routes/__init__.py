"""Route modules for the calendarmerge server."""

from .calendar_routes import REGISTRY_KEY, register_calendar_routes

__all__ = ["REGISTRY_KEY", "register_calendar_routes"]
