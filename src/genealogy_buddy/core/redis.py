"""Redis connection management."""

import redis.asyncio as redis
from redis.asyncio import Redis

from genealogy_buddy.core.config import get_settings
from genealogy_buddy.core.logging import get_logger

settings = get_settings()
logger = get_logger(__name__)

_redis_client: Redis | None = None


async def get_redis() -> Redis:
    """Get Redis client instance."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(  # type: ignore[no-untyped-call]
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
    return _redis_client


async def close_redis() -> None:
    """Close Redis connection."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


async def check_redis_connection() -> bool:
    """Check if Redis connection is healthy."""
    try:
        client = await get_redis()
        await client.ping()
        return True
    except Exception as exc:
        logger.warning("redis_health_check_failed", error=str(exc))
        return False
