"""Middleware components for request processing.

Provides request correlation ID tracking so log lines emitted while serving a
request (including upstream fetches it triggers) can be tied together.
"""

from .correlation_id import correlation_id_middleware, get_request_id

__all__ = ["correlation_id_middleware", "get_request_id"]
