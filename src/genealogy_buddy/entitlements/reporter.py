"""Usage reporting for the dashboard and the ``/usage/current`` route."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from genealogy_buddy.core.logging import LoggerMixin
from genealogy_buddy.entitlements.identity import Identity
from genealogy_buddy.entitlements.periods import (
    Clock,
    period_end,
    period_start,
    utc_now,
)
from genealogy_buddy.entitlements.subscriptions import SubscriptionService
from genealogy_buddy.entitlements.tier_catalog import (
    UNLIMITED,
    FeatureFlag,
    FeatureKey,
    SubscriptionTier,
    limits_for,
)
from genealogy_buddy.entitlements.usage_counter import UsageCounter


@dataclass(frozen=True)
class FeatureUsage:
    """Usage of one feature in the current period."""

    feature: FeatureKey
    used: int
    limit: int

    @property
    def unlimited(self) -> bool:
        return self.limit == UNLIMITED

    @property
    def available(self) -> bool:
        return self.limit != 0

    @property
    def remaining(self) -> int:
        if self.unlimited:
            return UNLIMITED
        return max(0, self.limit - self.used)

    def to_dict(self) -> dict[str, Any]:
        return {
            "used": self.used,
            "limit": self.limit,
            "unlimited": self.unlimited,
            "available": self.available,
            "remaining": self.remaining,
        }


@dataclass(frozen=True)
class UsageReport:
    """Snapshot of an identity's usage for one period."""

    tier: SubscriptionTier
    period_start: datetime
    period_end: datetime
    features: dict[FeatureKey, FeatureUsage]
    flags: dict[FeatureFlag, bool]

    @property
    def total_usage_percentage(self) -> float:
        """Share of the combined limited allowance already used, 0 to 100.

        Unlimited and unavailable features are left out. Zero when nothing
        is limited.
        """
        limited = [f for f in self.features.values() if f.limit > 0]
        total_limit = sum(f.limit for f in limited)
        if total_limit == 0:
            return 0.0
        total_used = sum(min(f.used, f.limit) for f in limited)
        return round(total_used / total_limit * 100, 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tier": self.tier.value,
            "periodStart": self.period_start.isoformat(),
            "periodEnd": self.period_end.isoformat(),
            "resetAt": self.period_end.isoformat(),
            "usage": {key.value: usage.to_dict() for key, usage in self.features.items()},
            "features": {flag.value: enabled for flag, enabled in self.flags.items()},
            "totalUsagePercentage": self.total_usage_percentage,
        }


class UsageReporter(LoggerMixin):
    """Builds usage reports. Read only."""

    def __init__(
        self,
        db: AsyncSession,
        *,
        clock: Clock = utc_now,
        subscriptions: SubscriptionService | None = None,
        counter: UsageCounter | None = None,
    ) -> None:
        self.db = db
        self.clock = clock
        self.subscriptions = subscriptions or SubscriptionService(db, clock=clock)
        self.counter = counter or UsageCounter(db, clock=clock)

    async def report(self, identity: Identity) -> UsageReport:
        now = self.clock()

        if identity.is_admin:
            tier = SubscriptionTier.ADMIN
        elif identity.user_id is not None:
            tier = await self.subscriptions.get_effective_tier(identity.user_id)
        else:
            tier = SubscriptionTier.FREE

        table = limits_for(tier)
        counts = await self.counter.counts_for_period(identity.identity_id, at=now)

        return UsageReport(
            tier=tier,
            period_start=period_start(now),
            period_end=period_end(now),
            features={
                feature: FeatureUsage(
                    feature=feature,
                    used=counts[feature],
                    limit=table.limit(feature),
                )
                for feature in FeatureKey
            },
            flags={flag: table.has_flag(flag) for flag in FeatureFlag},
        )
