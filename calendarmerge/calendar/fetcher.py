"""HTTP fetching and parsing of upstream ICS feeds."""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import urlparse

import httpx
from icalendar import Calendar

from calendarmerge.api.middleware.correlation_id import get_request_id
from calendarmerge.core.http_client import build_timeout, create_client

from .models import CalendarSource

logger = logging.getLogger(__name__)

CALENDAR_NAME_PROPERTIES = ("NAME", "X-WR-CALNAME")


class CalendarFetchError(Exception):
    """Base exception for feed fetch and parse errors."""


class CalendarURLError(CalendarFetchError):
    """Feed URL rejected before any request was made."""


class CalendarNetworkError(CalendarFetchError):
    """Network error during feed fetch."""


class CalendarTimeoutError(CalendarFetchError):
    """Timeout during feed fetch."""


class CalendarHTTPStatusError(CalendarFetchError):
    """Upstream answered with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CalendarParseError(CalendarFetchError):
    """Feed body is not a parsable iCalendar document."""


def label_calendar(calendar: Calendar, label: str) -> Calendar:
    """Set the calendar display name (``NAME`` and ``X-WR-CALNAME``) to ``label``."""
    for prop in CALENDAR_NAME_PROPERTIES:
        calendar.pop(prop, None)
        calendar.add(prop, label)
    return calendar


def calendar_label(calendar: Calendar) -> Optional[str]:
    """Return the display name set by ``label_calendar``, if any."""
    for prop in CALENDAR_NAME_PROPERTIES:
        value = calendar.get(prop)
        if value is not None:
            return str(value)
    return None


def parse_calendar(text: str, label: Optional[str] = None) -> Calendar:
    """Parse ICS text into a calendar, optionally labelling it.

    Raises:
        CalendarParseError: If the text does not hold a VCALENDAR
    """
    if "BEGIN:VCALENDAR" not in text:
        raise CalendarParseError("Content does not contain a VCALENDAR")

    try:
        calendar = Calendar.from_ical(text)
    except (ValueError, IndexError, KeyError) as e:
        raise CalendarParseError(f"Invalid iCalendar data: {e}") from e

    if getattr(calendar, "name", None) != "VCALENDAR":
        raise CalendarParseError("Top-level component is not a VCALENDAR")

    if label is not None:
        label_calendar(calendar, label)
    return calendar


class CalendarFetcher:
    """Async downloader for ICS feeds.

    Uses ``shared_client`` when given (the caller owns its lifetime); otherwise a
    private client is created on entry and closed on exit.
    """

    def __init__(
        self,
        shared_client: Optional[httpx.AsyncClient] = None,
        request_timeout: Optional[float] = None,
    ) -> None:
        self.client: Optional[httpx.AsyncClient] = shared_client
        self._use_shared_client = shared_client is not None
        self._timeout = build_timeout(request_timeout) if request_timeout else None

    async def __aenter__(self) -> CalendarFetcher:
        if self.client is None or self.client.is_closed:
            self.client = create_client(self._timeout)
            self._use_shared_client = False
        return self

    async def __aexit__(self, _exc_type: Any, _exc_val: Any, _exc_tb: Any) -> None:
        if self.client is not None and not self._use_shared_client:
            if not self.client.is_closed:
                await self.client.aclose()
            self.client = None

    @staticmethod
    def validate_url(url: str) -> bool:
        """Allow only absolute http(s) URLs with a hostname."""
        try:
            parsed = urlparse(url)
        except ValueError:
            return False
        return parsed.scheme in ("http", "https") and bool(parsed.hostname)

    async def fetch_text(self, url: str) -> str:
        """Download a feed body as text.

        Raises:
            CalendarURLError: URL is not http(s)
            CalendarTimeoutError: Request timed out
            CalendarHTTPStatusError: Non-2xx response
            CalendarNetworkError: Connection-level failure
        """
        if not self.validate_url(url):
            raise CalendarURLError(f"Unsupported feed URL: {url!r}")
        if self.client is None:
            raise CalendarFetchError("HTTP client not initialized")

        headers: dict[str, str] = {}
        request_id = get_request_id()
        if request_id != "no-request-id":
            headers["X-Request-ID"] = request_id

        try:
            logger.debug("Fetching ICS from %s", url)
            response = await self.client.get(url, headers=headers)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise CalendarTimeoutError(f"Timeout fetching {url}") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise CalendarHTTPStatusError(
                f"HTTP {status}: {e.response.reason_phrase}", status
            ) from e
        except httpx.HTTPError as e:
            raise CalendarNetworkError(f"Network error: {e}") from e

        content_type = response.headers.get("content-type", "").lower()
        if content_type and not any(ct in content_type for ct in ("text/calendar", "text/plain")):
            logger.debug("Unexpected content type %s from %s", content_type, url)

        logger.debug("Fetched %d bytes from %s", len(response.content), url)
        return response.text

    async def fetch_calendar(self, source: CalendarSource) -> Calendar:
        """Fetch and parse one source, labelled with its source label."""
        text = await self.fetch_text(source.url)
        return parse_calendar(text, label=source.label)
