"""Per-entry regeneration: fetch and parse every source of one entry."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping

from icalendar import Calendar

from .fetcher import CalendarFetcher, CalendarFetchError
from .models import CalendarResult, CalendarSource

logger = logging.getLogger(__name__)

FetcherFactory = Callable[[], CalendarFetcher]


def make_generator(
    entry_name: str,
    sources: Mapping[str, str],
    fetcher_factory: FetcherFactory,
) -> Callable[[], Awaitable[CalendarResult]]:
    """Build the cache generator for one configuration entry.

    Args:
        entry_name: Entry name, used in log messages
        sources: Source label -> feed URL, fetched in this order
        fetcher_factory: Returns a fresh ``CalendarFetcher`` per regeneration

    Returns:
        Zero-argument coroutine function. A failure of any single source turns
        the whole result into a failure; sources that did succeed are dropped.
    """
    descriptor = tuple(CalendarSource(label=label, url=url) for label, url in sources.items())

    async def generate() -> CalendarResult:
        calendars: list[Calendar] = []
        async with fetcher_factory() as fetcher:
            for source in descriptor:
                try:
                    calendars.append(await fetcher.fetch_calendar(source))
                except CalendarFetchError as e:
                    logger.warning(
                        "Entry '%s': source '%s' failed (%s): %s",
                        entry_name,
                        source.label,
                        type(e).__name__,
                        e,
                    )
                    return CalendarResult.failure(f"{source.label}: {e}")

        logger.debug("Entry '%s': fetched %d source(s)", entry_name, len(calendars))
        return CalendarResult.success(calendars)

    return generate
