"""
Shared async Redis client for event fan-out.

``redis.from_url`` only builds a connection pool; sockets are opened on
first command. Creating the client therefore never awaits, and a plain
module global is enough to keep one client per process.
"""

from __future__ import annotations

import redis.asyncio as redis

from shared.config.settings import settings, REDIS_URL
from shared.config.logging import get_logger

logger = get_logger(__name__)

_client: redis.Redis | None = None


def _build_client() -> redis.Redis:
    return redis.from_url(
        REDIS_URL,
        max_connections=settings.redis_pool_max_connections,
        decode_responses=True,
        socket_connect_timeout=settings.redis_socket_timeout,
        socket_timeout=settings.redis_socket_timeout,
        health_check_interval=30,
    )


async def get_redis_pool() -> redis.Redis:
    """Return the process-wide client, building it on first use."""
    global _client
    if _client is None:
        _client = _build_client()
        logger.info(
            "Redis client ready",
            max_connections=settings.redis_pool_max_connections,
            timeout=settings.redis_socket_timeout,
        )
    return _client


async def close_redis_pool() -> None:
    """Drop the shared client and close its connections (shutdown hook)."""
    global _client
    client, _client = _client, None
    if client is not None:
        await client.aclose()
        logger.info("Redis client closed")
