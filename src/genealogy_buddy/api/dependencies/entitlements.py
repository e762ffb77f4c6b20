"""Entitlement and AI provider dependencies."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Response
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from genealogy_buddy.ai.anthropic_provider import AnthropicProvider
from genealogy_buddy.ai.provider import AIProvider
from genealogy_buddy.api.dependencies.database import get_db
from genealogy_buddy.api.dependencies.identity import CurrentIdentity
from genealogy_buddy.core.rate_limiter import check_rate_limit
from genealogy_buddy.core.redis import get_redis
from genealogy_buddy.entitlements.identity import Identity
from genealogy_buddy.entitlements.periods import Clock, utc_now
from genealogy_buddy.entitlements.reporter import UsageReporter
from genealogy_buddy.entitlements.service import EntitlementService
from genealogy_buddy.entitlements.subscriptions import SubscriptionService


def get_clock() -> Clock:
    """Clock used for period boundaries."""
    return utc_now


@lru_cache
def get_ai_provider() -> AIProvider:
    """Shared AI provider; one HTTP client pool per process."""
    return AnthropicProvider()


async def get_entitlement_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> EntitlementService:
    return EntitlementService(db, clock=clock)


async def get_usage_reporter(
    db: Annotated[AsyncSession, Depends(get_db)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> UsageReporter:
    return UsageReporter(db, clock=clock)


async def get_subscription_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> SubscriptionService:
    return SubscriptionService(db, clock=clock)


async def enforce_tool_rate_limit(
    identity: CurrentIdentity,
    response: Response,
    redis_client: Annotated[Redis, Depends(get_redis)],
) -> Identity:
    """Count the request against the identity's hourly tool budget."""
    window = await check_rate_limit(redis_client, identity.identity_id)
    response.headers["X-RateLimit-Limit"] = str(window["limit"])
    response.headers["X-RateLimit-Remaining"] = str(window["remaining"])
    response.headers["X-RateLimit-Reset"] = str(window["reset_in_seconds"])
    return identity


RateLimitedIdentity = Annotated[Identity, Depends(enforce_tool_rate_limit)]
EntitlementServiceDep = Annotated[EntitlementService, Depends(get_entitlement_service)]
AIProviderDep = Annotated[AIProvider, Depends(get_ai_provider)]
