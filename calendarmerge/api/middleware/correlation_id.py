"""Request correlation ID middleware.

Each request gets an ID taken from the client (``X-Request-ID`` or
``X-Correlation-ID``) or freshly generated. The ID is stored in a context
variable so log records and upstream feed requests made while serving the
request carry it, and it is echoed back in the ``X-Request-ID`` response header.
"""

import uuid
from collections.abc import Awaitable, Callable
from contextvars import ContextVar

from aiohttp import web

NO_REQUEST_ID = "no-request-id"

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


@web.middleware
async def correlation_id_middleware(
    request: web.Request, handler: Callable[[web.Request], Awaitable[web.StreamResponse]]
) -> web.StreamResponse:
    """Extract or generate the correlation ID and attach it to the response."""
    correlation_id = (
        request.headers.get("X-Request-ID")
        or request.headers.get("X-Correlation-ID")
        or str(uuid.uuid4())
    )

    token = request_id_var.set(correlation_id)
    request["correlation_id"] = correlation_id
    try:
        response = await handler(request)
    finally:
        request_id_var.reset(token)

    response.headers["X-Request-ID"] = correlation_id
    return response


def get_request_id() -> str:
    """Return the current request's correlation ID, or ``"no-request-id"``."""
    request_id = request_id_var.get()
    return request_id if request_id else NO_REQUEST_ID
