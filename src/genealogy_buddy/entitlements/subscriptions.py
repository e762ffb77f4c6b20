"""Read side of subscriptions: which tier applies to a user right now."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from genealogy_buddy.core.logging import LoggerMixin
from genealogy_buddy.entitlements.models import Subscription, SubscriptionStatus
from genealogy_buddy.entitlements.periods import Clock, ensure_utc, utc_now
from genealogy_buddy.entitlements.tier_catalog import SubscriptionTier, parse_tier

_NON_EXPIRING_TIERS = frozenset({SubscriptionTier.FREE, SubscriptionTier.ADMIN})
_ACTIVE_STATUSES = frozenset({SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING})


def resolve_effective_tier(
    subscription: Subscription | None,
    now: datetime,
) -> SubscriptionTier:
    """Tier whose limits apply to a subscription at ``now``.

    A missing subscription is FREE. A paid tier that is not active, or whose
    billing period ended, is FREE as well. FREE and ADMIN never expire.
    """
    if subscription is None:
        return SubscriptionTier.FREE

    tier = parse_tier(subscription.tier)
    if tier in _NON_EXPIRING_TIERS:
        return tier

    if subscription.status not in _ACTIVE_STATUSES:
        return SubscriptionTier.FREE

    if subscription.current_period_end is not None and ensure_utc(
        subscription.current_period_end
    ) <= ensure_utc(now):
        return SubscriptionTier.FREE

    return tier


class SubscriptionService(LoggerMixin):
    """Subscription lookups for entitlement checks and reporting."""

    def __init__(self, db: AsyncSession, *, clock: Clock = utc_now) -> None:
        self.db = db
        self.clock = clock

    async def get_subscription(self, user_id: UUID) -> Subscription | None:
        result = await self.db.execute(
            select(Subscription).where(Subscription.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_effective_tier(self, user_id: UUID) -> SubscriptionTier:
        """Effective tier of a user. Never writes."""
        subscription = await self.get_subscription(user_id)
        return resolve_effective_tier(subscription, self.clock())

    async def ensure_subscription(self, user_id: UUID) -> Subscription:
        """Get the user's subscription, creating the default FREE one if absent.

        Two first requests racing to create the row are resolved by the unique
        constraint on ``user_id``; the loser reads the winner's row.
        """
        subscription = await self.get_subscription(user_id)
        if subscription is not None:
            return subscription

        subscription = Subscription(
            user_id=user_id,
            tier=SubscriptionTier.FREE.value,
            status=SubscriptionStatus.ACTIVE,
        )
        self.db.add(subscription)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            self.logger.debug("subscription_create_raced", user_id=str(user_id))
            existing = await self.get_subscription(user_id)
            if existing is None:
                raise
            return existing

        self.logger.info("subscription_created", user_id=str(user_id), tier="FREE")
        return subscription
