"""Single-value TTL cache with lazy, single-flight regeneration.

Each ``TimedCache`` owns one async generator function and the most recent
value it produced. Reads of a fresh snapshot never wait on anything. Once the
snapshot is missing or older than its TTL, the first reader takes the entry's
lock and regenerates; every other reader that arrives meanwhile queues on the
same lock and receives the snapshot produced by that single regeneration.
Waiters recognise it by identity rather than by age, so a zero TTL still
collapses a burst of readers onto one generator call.

The cache imposes no timeout of its own. A generator call that never returns
blocks every waiter of that entry; bound upstream I/O inside the generator
(e.g. with the httpx client timeout) instead.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

CacheGenerator = Callable[[], Awaitable[T]]


@dataclass(frozen=True)
class CacheSnapshot(Generic[T]):
    """A produced value and the clock reading taken when it was stored."""

    value: T
    produced_at: float


class TimedCache(Generic[T]):
    """TTL cache entry wrapping one generator.

    Args:
        generator: Zero-argument coroutine function producing the value. Failures
            are expected to be encoded in the returned value, not raised.
        ttl: Seconds a snapshot stays fresh.
        failure_ttl: Seconds a snapshot classified as a failure stays fresh.
            Defaults to ``ttl`` so failures are cached for the full window.
        is_failure: Predicate classifying a value as a failure for ``failure_ttl``.
        clock: Monotonic clock used for ages and production timestamps.
        name: Label used in log messages.
    """

    def __init__(
        self,
        generator: CacheGenerator[T],
        ttl: float,
        *,
        failure_ttl: Optional[float] = None,
        is_failure: Optional[Callable[[T], bool]] = None,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ) -> None:
        if ttl < 0:
            raise ValueError("ttl must be non-negative")
        if failure_ttl is not None and failure_ttl < 0:
            raise ValueError("failure_ttl must be non-negative")

        self._generator = generator
        self.ttl = ttl
        self.failure_ttl = ttl if failure_ttl is None else failure_ttl
        self._is_failure = is_failure
        self._clock = clock
        self.name = name

        self._snapshot: Optional[CacheSnapshot[T]] = None
        self._lock = asyncio.Lock()
        self.regenerations = 0

    def _ttl_for(self, value: T) -> float:
        if self._is_failure is not None and self._is_failure(value):
            return self.failure_ttl
        return self.ttl

    def is_fresh(self, snapshot: Optional[CacheSnapshot[T]]) -> bool:
        """Return True if ``snapshot`` exists and has not outlived its TTL."""
        if snapshot is None:
            return False
        age = self._clock() - snapshot.produced_at
        return age <= self._ttl_for(snapshot.value)

    def peek(self) -> Optional[CacheSnapshot[T]]:
        """Return the current snapshot without triggering a regeneration."""
        return self._snapshot

    async def read_or_refresh(self) -> CacheSnapshot[T]:
        """Return the current snapshot, regenerating it first if stale or missing.

        The returned snapshot is shared with every other reader and must be
        treated as read-only.
        """
        snapshot = self._snapshot
        if self.is_fresh(snapshot):
            logger.debug("Cache hit for '%s'", self.name)
            return snapshot  # type: ignore[return-value]

        seen = snapshot
        async with self._lock:
            # A snapshot stored while we waited belongs to this request, even
            # when a zero TTL already reports it stale.
            snapshot = self._snapshot
            if snapshot is not seen or self.is_fresh(snapshot):
                logger.debug("Cache for '%s' refreshed by concurrent caller", self.name)
                return snapshot  # type: ignore[return-value]

            return await self._regenerate()

    async def get(self) -> T:
        """Return the current value, regenerating it first if needed."""
        return (await self.read_or_refresh()).value

    async def _regenerate(self) -> CacheSnapshot[T]:
        started = self._clock()
        logger.debug("Regenerating cache '%s'", self.name)

        value = await self._generator()

        snapshot = CacheSnapshot(value=value, produced_at=self._clock())
        self._snapshot = snapshot
        self.regenerations += 1

        if self._is_failure is not None and self._is_failure(value):
            logger.warning(
                "Cache '%s' regenerated with a failure; cached for %.0fs",
                self.name,
                self.failure_ttl,
            )
        else:
            logger.info(
                "Cache '%s' regenerated in %.2fs (ttl=%.0fs)",
                self.name,
                snapshot.produced_at - started,
                self.ttl,
            )
        return snapshot
