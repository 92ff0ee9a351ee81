"""Shared async HTTP client for outbound image fetches."""

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

USER_AGENT = "profile-images/1.0"

_client: Optional[httpx.AsyncClient] = None


def build_http_client(
    timeout: float = 10.0,
    max_connections: int = 20,
    max_keepalive_connections: int = 10,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Build an ``httpx.AsyncClient`` for image fetches.

    Redirects are never followed: a redirect could point anywhere, and only
    template-built URLs on trusted hosts may be requested. Proxy settings from
    the environment are ignored for the same reason.
    """
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        limits=httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=max_keepalive_connections,
        ),
        follow_redirects=False,
        trust_env=False,
        headers={"User-Agent": USER_AGENT, "Accept": "image/*"},
        transport=transport,
    )


def get_http_client(timeout: float = 10.0) -> httpx.AsyncClient:
    """Get or create the process-wide client (connection pooling across requests)."""
    global _client
    if _client is not None and not _client.is_closed:
        return _client

    _client = build_http_client(timeout=timeout)
    logger.info("Created shared HTTP client (timeout=%.1fs)", timeout)
    return _client


async def close_http_client() -> None:
    """Close the shared HTTP client."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
        logger.info("Closed shared HTTP client")
