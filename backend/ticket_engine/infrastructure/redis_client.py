"""
Redis connection shared by gate tallies and domain event publication.

Redis is optional: when REDIS_ENABLED is false or the server cannot be
reached, get_redis() returns None and callers fall back to in-process state.
"""

from typing import Optional

import redis.asyncio as redis

from ticket_engine.core.config import get_settings
from ticket_engine.core.logging import get_logger

logger = get_logger(__name__)

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create the Redis connection. Returns None if Redis is disabled or down."""
    global _redis_client
    settings = get_settings()

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
        )
        try:
            await client.ping()
        except (redis.ConnectionError, redis.TimeoutError, OSError) as e:
            logger.error("redis_connection_failed", url=settings.REDIS_URL, error=str(e))
            await client.aclose()
            return None
        _redis_client = client
        logger.info("redis_connected", url=settings.REDIS_URL)

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


async def redis_status() -> dict:
    """Connection summary for the health endpoint."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("server")
    except redis.RedisError as e:
        return {"status": "error", "error": str(e)}
    return {"status": "connected", "version": info.get("redis_version")}
