"""Shared HTTP client manager for upstream calendar feeds.

Every cache regeneration fetches through one pooled ``httpx.AsyncClient`` so
connections to the same feed hosts are reused across entries. The client
timeout is the only bound on how long a regeneration may block its waiters.
"""

import asyncio
import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

_shared_clients: dict[str, httpx.AsyncClient] = {}
_client_lock = asyncio.Lock()

DEFAULT_LIMITS = httpx.Limits(
    max_connections=10,
    max_keepalive_connections=5,
)

DEFAULT_REQUEST_TIMEOUT = 30.0

# Some providers (e.g. Office365) reject requests without a calendar Accept header
DEFAULT_HEADERS: dict[str, str] = {
    "User-Agent": "calendarmerge/0.1",
    "Accept": "text/calendar, text/plain, application/octet-stream, */*",
    "Accept-Encoding": "gzip, deflate",
}


def build_timeout(request_timeout: float = DEFAULT_REQUEST_TIMEOUT) -> httpx.Timeout:
    """Build the client timeout, using ``request_timeout`` for reads and the pool.

    Args:
        request_timeout: Read timeout in seconds

    Returns:
        httpx.Timeout for upstream feed requests
    """
    return httpx.Timeout(
        connect=10.0,
        read=request_timeout,
        write=10.0,
        pool=request_timeout,
    )


def create_client(timeout: Optional[httpx.Timeout] = None) -> httpx.AsyncClient:
    """Create a standalone client configured like the shared one."""
    return httpx.AsyncClient(
        limits=DEFAULT_LIMITS,
        timeout=timeout or build_timeout(),
        follow_redirects=True,
        headers=DEFAULT_HEADERS,
    )


async def get_shared_client(
    client_id: str = "default",
    timeout: Optional[httpx.Timeout] = None,
) -> httpx.AsyncClient:
    """Get or create a shared HTTP client with connection pooling.

    Args:
        client_id: Identifier for the client (allows multiple clients if needed)
        timeout: Timeout used when the client has to be created

    Returns:
        Shared httpx.AsyncClient

    Raises:
        RuntimeError: If client creation fails
    """
    async with _client_lock:
        client = _shared_clients.get(client_id)
        if client is None or client.is_closed:
            try:
                client = create_client(timeout)
            except Exception as e:
                logger.exception("Failed to create shared HTTP client '%s'", client_id)
                raise RuntimeError(f"Failed to create shared HTTP client: {e}") from e

            _shared_clients[client_id] = client
            logger.info("Created shared HTTP client '%s'", client_id)

        return client


async def close_all_clients() -> None:
    """Close all shared HTTP clients.

    Called during application shutdown.
    """
    async with _client_lock:
        for client_id, client in _shared_clients.items():
            try:
                if not client.is_closed:
                    await client.aclose()
                    logger.debug("Closed shared HTTP client '%s'", client_id)
            except Exception as e:
                logger.warning("Error closing shared HTTP client '%s': %s", client_id, e)

        _shared_clients.clear()
        logger.debug("All shared HTTP clients closed")
