"""Combine the calendars of one entry into a response body.

Two shapes are supported:

- merge: one VCALENDAR holding every component of every source, where event
  and to-do titles are prefixed with the source label;
- append: the serialized source calendars back to back, untouched.

Both are pure with respect to their inputs. Cached calendars are shared
between requests, so merge works on deep copies of the components.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable

from icalendar import Calendar

from .fetcher import calendar_label, label_calendar

UNKNOWN_PLACEHOLDER = "UNKNOWN"
PRODID = "-//calendarmerge//calendarmerge//EN"
TITLED_COMPONENTS = frozenset({"VEVENT", "VTODO"})


def new_calendar(name: str) -> Calendar:
    calendar = Calendar()
    calendar.add("PRODID", PRODID)
    calendar.add("VERSION", "2.0")
    calendar.add("CALSCALE", "GREGORIAN")
    label_calendar(calendar, name)
    return calendar


def prefixed_summary(label: str | None, summary: str | None) -> str:
    """Return ``"<label> - <summary>"`` with placeholders for missing parts."""
    return "{} - {}".format(
        UNKNOWN_PLACEHOLDER if label is None else label,
        UNKNOWN_PLACEHOLDER if summary is None else summary,
    )


def merge_calendars(calendars: Iterable[Calendar], name: str) -> Calendar:
    """Merge source calendars into a single calendar named ``name``.

    Sources are processed in order and components keep their order within
    each source.
    """
    merged = new_calendar(name)

    for source in calendars:
        label = calendar_label(source)
        for component in source.subcomponents:
            component = copy.deepcopy(component)
            if component.name in TITLED_COMPONENTS:
                summary = component.get("SUMMARY")
                component.pop("SUMMARY", None)
                component.add(
                    "SUMMARY",
                    prefixed_summary(label, None if summary is None else str(summary)),
                )
            merged.add_component(component)

    return merged


def serialize_calendar(calendar: Calendar) -> bytes:
    return calendar.to_ical()


def append_calendars(calendars: Iterable[Calendar]) -> bytes:
    """Concatenate the serialized form of every source calendar."""
    return b"".join(serialize_calendar(calendar) for calendar in calendars)
