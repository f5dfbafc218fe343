"""Tests for correlation ID middleware and logging configuration."""

import logging
import uuid

import pytest
from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer

from calendarmerge.api.middleware.correlation_id import (
    correlation_id_middleware,
    get_request_id,
    request_id_var,
)
from calendarmerge.logging_config import CorrelationIdFilter, configure_logging

pytestmark = pytest.mark.unit


def _app() -> web.Application:
    app = web.Application(middlewares=[correlation_id_middleware])

    async def handler(request: web.Request) -> web.Response:
        return web.json_response(
            {"correlation_id": request["correlation_id"], "context_id": get_request_id()}
        )

    app.router.add_get("/test", handler)
    return app


class TestCorrelationIdMiddleware:
    """correlation_id_middleware behaviour."""

    async def test_uses_x_request_id_header(self):
        async with TestClient(TestServer(_app())) as client:
            resp = await client.get("/test", headers={"X-Request-ID": "abc-123"})
            data = await resp.json()

        assert data == {"correlation_id": "abc-123", "context_id": "abc-123"}
        assert resp.headers["X-Request-ID"] == "abc-123"

    async def test_uses_x_correlation_id_header(self):
        async with TestClient(TestServer(_app())) as client:
            resp = await client.get("/test", headers={"X-Correlation-ID": "corr-9"})
            data = await resp.json()

        assert data["correlation_id"] == "corr-9"

    async def test_generates_uuid_when_absent(self):
        async with TestClient(TestServer(_app())) as client:
            resp = await client.get("/test")
            data = await resp.json()

        uuid.UUID(data["correlation_id"])
        assert resp.headers["X-Request-ID"] == data["correlation_id"]

    def test_get_request_id_outside_request(self):
        assert get_request_id() == "no-request-id"


class TestLogging:
    """CorrelationIdFilter and configure_logging."""

    def test_filter_adds_request_id(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        token = request_id_var.set("req-42")
        try:
            assert CorrelationIdFilter().filter(record) is True
        finally:
            request_id_var.reset(token)

        assert record.request_id == "req-42"

    def test_filter_default_request_id(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        CorrelationIdFilter().filter(record)
        assert record.request_id == "no-request-id"

    def test_configure_logging_levels(self, monkeypatch):
        monkeypatch.delenv("CALMERGE_DEBUG", raising=False)
        monkeypatch.delenv("CALMERGE_LOG_LEVEL", raising=False)
        root = logging.getLogger()
        original_level = root.level

        try:
            configure_logging("WARNING")
            assert root.level == logging.WARNING
            assert logging.getLogger("httpx").level == logging.WARNING

            configure_logging(debug=True)
            assert logging.getLogger("calendarmerge").level == logging.DEBUG
        finally:
            root.setLevel(original_level)
            logging.getLogger("calendarmerge").setLevel(logging.NOTSET)

    def test_configure_logging_env_level_wins(self, monkeypatch):
        monkeypatch.setenv("CALMERGE_LOG_LEVEL", "error")
        root = logging.getLogger()
        original_level = root.level

        try:
            configure_logging("DEBUG")
            assert root.level == logging.ERROR
        finally:
            root.setLevel(original_level)
            logging.getLogger("calendarmerge").setLevel(logging.NOTSET)

    def test_filter_attached_once(self, monkeypatch):
        monkeypatch.delenv("CALMERGE_LOG_LEVEL", raising=False)
        root = logging.getLogger()
        original_level = root.level
        handler = logging.StreamHandler()
        root.addHandler(handler)

        try:
            configure_logging()
            configure_logging()
            assert sum(isinstance(f, CorrelationIdFilter) for f in handler.filters) == 1
        finally:
            root.removeHandler(handler)
            root.setLevel(original_level)
            logging.getLogger("calendarmerge").setLevel(logging.NOTSET)
