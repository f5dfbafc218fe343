"""Integration tests for the calendar HTTP endpoints."""

import httpx
import pytest
from aiohttp.test_utils import TestClient, TestServer
from icalendar import Calendar

from calendarmerge.api.routes import REGISTRY_KEY
from calendarmerge.api.server import make_app
from calendarmerge.core.registry import CalendarRegistry

pytestmark = pytest.mark.integration

URL_A = "https://a.example.com/a.ics"
URL_B = "https://b.example.com/b.ics"
URL_BROKEN = "https://broken.example.com/x.ics"


@pytest.fixture
def feeds(lunch_ics, call_ics):
    return {
        URL_A: lunch_ics,
        URL_B: call_ics,
        URL_BROKEN: httpx.Response(500, text="secret upstream stack trace"),
    }


@pytest.fixture
def calendar_config():
    return {
        "index": {"A": URL_A, "B": URL_B},
        "solo": {"A": URL_A},
        "broken": {"A": URL_A, "X": URL_BROKEN},
    }


@pytest.fixture
async def served(feed_server_factory, feeds, calendar_config):
    """Yield (test client, feed server) for an app over the test registry."""
    server = feed_server_factory(feeds)
    async with server.client() as http_client:
        registry = CalendarRegistry.from_config(calendar_config, http_client=http_client)
        async with TestClient(TestServer(make_app(registry))) as client:
            yield client, server


def _summaries(body: bytes) -> list[str]:
    calendar = Calendar.from_ical(body)
    return [str(c["SUMMARY"]) for c in calendar.subcomponents if c.name == "VEVENT"]


class TestMergedEndpoint:
    """GET /"""

    async def test_default_entry_is_index(self, served):
        client, _ = served
        resp = await client.get("/")
        body = await resp.read()

        assert resp.status == 200
        assert resp.content_type == "text/calendar"
        assert resp.headers["Content-Disposition"] == "attachment; filename=index.ics"
        assert _summaries(body) == ["A - Lunch", "B - Call"]
        assert b"X-WR-CALNAME:index" in body

    async def test_named_entry(self, served):
        client, _ = served
        resp = await client.get("/", params={"name": "solo"})

        assert resp.status == 200
        assert resp.headers["Content-Disposition"] == "attachment; filename=solo.ics"
        assert _summaries(await resp.read()) == ["A - Lunch"]

    async def test_unknown_entry_is_404_without_upstream_fetch(self, served):
        client, server = served
        resp = await client.get("/", params={"name": "Index"})

        assert resp.status == 404
        assert await resp.text() == "Could not find Calendar"
        assert server.requests == []

    async def test_failed_entry_is_500_with_generic_body(self, served):
        client, _ = served
        resp = await client.get("/", params={"name": "broken"})
        text = await resp.text()

        assert resp.status == 500
        assert text == "Internal Server Error"
        assert "secret" not in text

    async def test_repeated_requests_use_cache(self, served):
        client, server = served
        for _ in range(3):
            resp = await client.get("/")
            assert resp.status == 200

        assert server.calls_to(URL_A) == 1
        assert server.calls_to(URL_B) == 1

    async def test_failure_is_cached_across_requests(self, served):
        client, server = served
        for _ in range(2):
            resp = await client.get("/", params={"name": "broken"})
            assert resp.status == 500

        assert server.calls_to(URL_BROKEN) == 1

    async def test_request_id_echoed(self, served):
        client, _ = served
        resp = await client.get("/", headers={"X-Request-ID": "trace-1"})

        assert resp.headers["X-Request-ID"] == "trace-1"


class TestAppendedEndpoint:
    """GET /appended"""

    async def test_appended_concatenates_sources(self, served, lunch_ics, call_ics):
        client, _ = served
        resp = await client.get("/appended")
        body = await resp.read()

        assert resp.status == 200
        assert resp.content_type == "text/calendar"
        assert resp.headers["Content-Disposition"] == "attachment; filename=index.ics"
        assert body.count(b"BEGIN:VCALENDAR") == 2
        assert body.index(b"SUMMARY:Lunch") < body.index(b"SUMMARY:Call")
        assert b"A - Lunch" not in body

    async def test_appended_unknown_entry_is_404(self, served):
        client, server = served
        resp = await client.get("/appended", params={"name": "missing"})

        assert resp.status == 404
        assert await resp.text() == "Could not find Calendar"
        assert server.requests == []

    async def test_appended_failed_entry_is_500(self, served):
        client, _ = served
        resp = await client.get("/appended", params={"name": "broken"})

        assert resp.status == 500
        assert await resp.text() == "Internal Server Error"

    async def test_endpoints_share_one_cache_entry(self, served):
        client, server = served
        await client.get("/")
        await client.get("/appended")

        assert server.calls_to(URL_A) == 1


def test_registry_injected_into_app():
    registry = CalendarRegistry({})
    app = make_app(registry)

    assert app[REGISTRY_KEY] is registry


async def test_handlers_resolve_registry_from_app(feed_server_factory, lunch_ics):
    server = feed_server_factory({URL_A: lunch_ics})
    async with server.client() as http_client:
        app = make_app(CalendarRegistry({}))
        app[REGISTRY_KEY] = CalendarRegistry.from_config(
            {"index": {"A": URL_A}}, http_client=http_client
        )

        async with TestClient(TestServer(app)) as client:
            resp = await client.get("/")
            body = await resp.read()

    assert resp.status == 200
    assert _summaries(body) == ["A - Lunch"]
