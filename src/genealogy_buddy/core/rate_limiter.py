"""Per-identity rate limiting for tool routes using Redis."""

from redis.asyncio import Redis
from redis.exceptions import RedisError

from genealogy_buddy.core.config import get_settings
from genealogy_buddy.core.exceptions import RateLimitError, StorageError
from genealogy_buddy.core.logging import get_logger

settings = get_settings()
logger = get_logger(__name__)


def _rate_limit_key(identity_id: str) -> str:
    return f"rate_limit:tools:{identity_id}"


async def check_rate_limit(
    redis_client: Redis,
    identity_id: str,
    limit: int | None = None,
    window_seconds: int | None = None,
) -> dict[str, int]:
    """
    Count a tool request against the identity's fixed window.

    The window expiry is applied whenever the key has none, so a key left
    without a TTL by an earlier failure is repaired on the next request.

    Args:
        redis_client: Redis client instance
        identity_id: User id or anonymous key making the request
        limit: Maximum requests per window (defaults to settings.tool_rate_limit)
        window_seconds: Window length (defaults to settings.tool_rate_limit_window_seconds)

    Returns:
        Window state: limit, remaining, used and reset_in_seconds

    Raises:
        RateLimitError: If the identity exceeded the limit
        StorageError: If Redis is unreachable (requests are not let through)
    """
    if limit is None:
        limit = settings.tool_rate_limit
    if window_seconds is None:
        window_seconds = settings.tool_rate_limit_window_seconds

    key = _rate_limit_key(identity_id)

    try:
        count = int(await redis_client.incr(key))
        ttl = await redis_client.ttl(key)
        if ttl < 0:
            await redis_client.expire(key, window_seconds)
            ttl = window_seconds
    except RedisError as exc:
        logger.error("rate_limit_store_unavailable", identity_id=identity_id, error=str(exc))
        raise StorageError("Rate limit store unavailable") from exc

    if count > limit:
        logger.info(
            "rate_limit_exceeded",
            identity_id=identity_id,
            count=count,
            limit=limit,
        )
        raise RateLimitError(
            f"Rate limit exceeded. Maximum {limit} tool requests per {window_seconds} seconds.",
            retry_after=ttl,
            limit=limit,
            window_seconds=window_seconds,
        )

    return {
        "limit": limit,
        "remaining": max(0, limit - count),
        "used": count,
        "reset_in_seconds": ttl,
    }
