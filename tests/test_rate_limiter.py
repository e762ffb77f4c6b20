"""Tests for per-identity tool rate limiting."""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from conftest import StatefulRedisMock
from genealogy_buddy.core.exceptions import RateLimitError, StorageError
from genealogy_buddy.core.rate_limiter import check_rate_limit

IDENTITY = "anon_0123456789abcdef0123456789abcdef"
KEY = f"rate_limit:tools:{IDENTITY}"


class ExpireFailsOnceRedis(StatefulRedisMock):
    """Redis mock whose first EXPIRE is lost to a dropped connection."""

    def __init__(self) -> None:
        super().__init__()
        self.expire_failures = 1

    async def expire(self, key: str, seconds: int) -> bool:
        if self.expire_failures:
            self.expire_failures -= 1
            raise RedisConnectionError("connection reset")
        return await super().expire(key, seconds)


class TestCheckRateLimit:
    """Tests for check_rate_limit."""

    @pytest.mark.asyncio
    async def test_counts_requests(self, redis_client: StatefulRedisMock) -> None:
        """Test each call increments the window counter."""
        first = await check_rate_limit(redis_client, IDENTITY, limit=3, window_seconds=60)
        second = await check_rate_limit(redis_client, IDENTITY, limit=3, window_seconds=60)

        assert first == {"limit": 3, "remaining": 2, "used": 1, "reset_in_seconds": 60}
        assert second["used"] == 2
        assert second["remaining"] == 1

    @pytest.mark.asyncio
    async def test_first_hit_sets_expiry(self, redis_client: StatefulRedisMock) -> None:
        """Test the window expiry is set on the first request."""
        await check_rate_limit(redis_client, IDENTITY, limit=3, window_seconds=60)
        assert await redis_client.ttl(KEY) == 60

    @pytest.mark.asyncio
    async def test_lost_expiry_is_repaired(self) -> None:
        """Test a window whose EXPIRE failed gets a TTL on the next request."""
        redis_client = ExpireFailsOnceRedis()

        with pytest.raises(StorageError):
            await check_rate_limit(redis_client, IDENTITY, limit=3, window_seconds=60)
        assert await redis_client.ttl(KEY) == -1

        await check_rate_limit(redis_client, IDENTITY, limit=3, window_seconds=60)
        assert await redis_client.ttl(KEY) == 60

        await check_rate_limit(redis_client, IDENTITY, limit=3, window_seconds=60)
        with pytest.raises(RateLimitError) as exc_info:
            await check_rate_limit(redis_client, IDENTITY, limit=3, window_seconds=60)
        assert exc_info.value.retry_after == 60

    @pytest.mark.asyncio
    async def test_over_limit_raises_with_retry_after(
        self, redis_client: StatefulRedisMock
    ) -> None:
        """Test the request after the limit is rejected with Retry-After."""
        for _ in range(2):
            await check_rate_limit(redis_client, IDENTITY, limit=2, window_seconds=60)

        with pytest.raises(RateLimitError) as exc_info:
            await check_rate_limit(redis_client, IDENTITY, limit=2, window_seconds=60)

        exc = exc_info.value
        assert exc.http_status == 429
        assert exc.retry_after == 60
        assert exc.headers["Retry-After"] == "60"
        assert exc.to_dict()["errorCode"] == "RATE_LIMITED"

    @pytest.mark.asyncio
    async def test_identities_have_separate_windows(
        self, redis_client: StatefulRedisMock
    ) -> None:
        """Test one identity's traffic does not limit another."""
        await check_rate_limit(redis_client, IDENTITY, limit=1, window_seconds=60)
        window = await check_rate_limit(redis_client, "other", limit=1, window_seconds=60)
        assert window["used"] == 1

    @pytest.mark.asyncio
    async def test_redis_outage_fails_closed(self, redis_client: StatefulRedisMock) -> None:
        """Test an unreachable store rejects the request."""
        redis_client.fail_with = RedisConnectionError("connection refused")
        with pytest.raises(StorageError):
            await check_rate_limit(redis_client, IDENTITY, limit=5, window_seconds=60)
