"""Registry of named calendar entries, each behind its own TTL cache."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator, Mapping
from types import MappingProxyType
from typing import Optional

import httpx

from calendarmerge.calendar.fetcher import CalendarFetcher
from calendarmerge.calendar.generator import make_generator
from calendarmerge.calendar.models import CalendarResult, is_failed_result

from .ttl_cache import TimedCache

logger = logging.getLogger(__name__)

DEFAULT_ENTRY_NAME = "index"
DEFAULT_TTL_SECONDS = 3600.0

CalendarCache = TimedCache[CalendarResult]


class CalendarRegistry:
    """Immutable mapping of entry name to its calendar cache.

    Built once at startup; lookups never create entries.
    """

    def __init__(self, entries: Mapping[str, CalendarCache]) -> None:
        self._entries: Mapping[str, CalendarCache] = MappingProxyType(dict(entries))

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Mapping[str, str]],
        *,
        ttl: float = DEFAULT_TTL_SECONDS,
        failure_ttl: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        request_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> CalendarRegistry:
        """Build one cache entry per configured name.

        Args:
            config: Entry name -> (source label -> feed URL)
            ttl: Seconds a successful result stays fresh
            failure_ttl: Seconds a failed result stays fresh (defaults to ``ttl``)
            http_client: Shared client for all upstream fetches
            request_timeout: Read timeout for private clients when no shared one is given
            clock: Monotonic clock for the caches
        """

        def fetcher_factory() -> CalendarFetcher:
            return CalendarFetcher(http_client, request_timeout=request_timeout)

        entries: dict[str, CalendarCache] = {}
        for name, sources in config.items():
            entries[name] = TimedCache(
                make_generator(name, dict(sources), fetcher_factory),
                ttl,
                failure_ttl=failure_ttl,
                is_failure=is_failed_result,
                clock=clock,
                name=name,
            )
            logger.debug("Registered entry '%s' with %d source(s)", name, len(sources))

        logger.info("Calendar registry built with %d entr(ies)", len(entries))
        return cls(entries)

    def lookup(self, name: str) -> Optional[CalendarCache]:
        """Return the cache for ``name``, or None if it is not configured."""
        return self._entries.get(name)

    async def get(self, name: str) -> Optional[CalendarResult]:
        """Return the current result for ``name``, refreshing it if stale.

        Unknown names return None without touching any generator.
        """
        entry = self.lookup(name)
        if entry is None:
            return None
        return (await entry.read_or_refresh()).value

    def names(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
