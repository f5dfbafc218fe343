"""Data models for fetched calendar feeds."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from icalendar import Calendar
from pydantic import BaseModel, Field


class CalendarSource(BaseModel):
    """One upstream feed of a configuration entry."""

    label: str = Field(..., description="Human-readable source name, used as title prefix")
    url: str = Field(..., description="ICS feed URL")


@dataclass(frozen=True)
class CalendarResult:
    """Outcome of regenerating one entry: labelled calendars or an error.

    The error text is for logs only and is never sent to HTTP clients.
    """

    calendars: Optional[tuple[Calendar, ...]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        """True when every source was fetched and parsed."""
        return self.error is None and self.calendars is not None

    @classmethod
    def success(cls, calendars: list[Calendar]) -> CalendarResult:
        return cls(calendars=tuple(calendars))

    @classmethod
    def failure(cls, error: str) -> CalendarResult:
        return cls(error=error)


def is_failed_result(result: CalendarResult) -> bool:
    """Failure predicate used for the cache's failure TTL."""
    return not result.ok
