"""
Shared HTTP client pool.

One AsyncClient is reused for FRED and model-provider calls so connections are
kept alive between requests. Created on first use, closed by the app lifespan.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


class HTTPClientPool:
    """Process-wide holder for the shared httpx.AsyncClient."""

    _client: Optional[httpx.AsyncClient] = None

    @staticmethod
    def _initialize_client() -> None:
        limits = httpx.Limits(
            max_connections=50,
            max_keepalive_connections=20,
            keepalive_expiry=5.0,
        )

        timeout = httpx.Timeout(
            timeout=30.0,  # Total request timeout
            connect=10.0,
            read=20.0,
            write=10.0,
            pool=5.0,
        )

        HTTPClientPool._client = httpx.AsyncClient(
            limits=limits,
            timeout=timeout,
            http2=True,
            verify=True,
            follow_redirects=True,
        )

        logger.info("HTTP Client Pool initialized: max_connections=50, timeout=30s")

    @classmethod
    def get_client(cls) -> httpx.AsyncClient:
        """Get the shared HTTP client instance."""
        if cls._client is None or cls._client.is_closed:
            cls._initialize_client()
        return cls._client

    @classmethod
    async def close(cls) -> None:
        """Close the shared HTTP client pool."""
        if cls._client:
            await cls._client.aclose()
            cls._client = None
            logger.info("HTTP Client Pool closed")


def get_http_client() -> httpx.AsyncClient:
    """
    Get the shared HTTP client pool.

    Use this instead of creating new AsyncClient instances.
    """
    return HTTPClientPool.get_client()


async def close_http_pool() -> None:
    """Close the HTTP client pool (called on application shutdown)."""
    await HTTPClientPool.close()
