"""Shared fixtures for calendarmerge tests."""

from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx
import pytest

from calendarmerge.core.http_client import close_all_clients


class FakeClock:
    """Manually advanced monotonic clock for TTL tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FeedServer:
    """Serves ICS bodies by URL through an ``httpx.MockTransport``.

    ``feeds`` maps URL to either a body string or an ``httpx.Response``;
    unknown URLs get a 404. Every request is recorded in ``requests``.
    """

    def __init__(self, feeds: dict[str, Any]) -> None:
        self.feeds = feeds
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        feed = self.feeds.get(str(request.url))
        if feed is None:
            return httpx.Response(404, text="not found")
        if isinstance(feed, httpx.Response):
            return feed
        if isinstance(feed, Exception):
            raise feed
        return httpx.Response(200, text=feed, headers={"content-type": "text/calendar"})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def calls_to(self, url: str) -> int:
        return sum(1 for r in self.requests if str(r.url) == url)


def make_ics(*events: tuple[str, str | None], extra: str = "") -> str:
    """Build a small VCALENDAR with one VEVENT per (uid, summary) pair.

    A summary of None produces an event without SUMMARY.
    """
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//calendarmerge test//EN",
    ]
    for index, (uid, summary) in enumerate(events):
        lines += [
            "BEGIN:VEVENT",
            f"UID:{uid}",
            "DTSTAMP:20240115T090000Z",
            f"DTSTART:2024011{5 + index}T100000Z",
            f"DTEND:2024011{5 + index}T110000Z",
        ]
        if summary is not None:
            lines.append(f"SUMMARY:{summary}")
        lines.append("END:VEVENT")
    if extra:
        lines.append(extra.strip())
    lines.append("END:VCALENDAR")
    return "\r\n".join(lines) + "\r\n"


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ics_factory() -> Callable[..., str]:
    return make_ics


@pytest.fixture
def lunch_ics() -> str:
    """Source with a single event titled "Lunch"."""
    return make_ics(("lunch-1@test", "Lunch"))


@pytest.fixture
def call_ics() -> str:
    """Source with a single event titled "Call"."""
    return make_ics(("call-1@test", "Call"))


@pytest.fixture
def feed_server_factory() -> Callable[[dict[str, Any]], FeedServer]:
    return FeedServer


@pytest.fixture(autouse=True)
async def cleanup_shared_http_clients() -> AsyncIterator[None]:
    """Close shared httpx clients created during a test."""
    yield
    await close_all_clients()
