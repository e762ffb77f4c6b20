"""Access decisions.

``evaluate_access`` is the pure rule; ``AccessEvaluator`` feeds it from the
data store and turns any store failure into a denial. Neither writes
anything, so a check can be repeated any number of times without changing
the outcome.
"""

import enum
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from genealogy_buddy.core.logging import LoggerMixin
from genealogy_buddy.core.metrics import track_access_decision
from genealogy_buddy.entitlements.identity import Identity
from genealogy_buddy.entitlements.periods import Clock, next_reset_at, utc_now
from genealogy_buddy.entitlements.subscriptions import SubscriptionService
from genealogy_buddy.entitlements.tier_catalog import (
    UNAVAILABLE,
    UNLIMITED,
    FeatureKey,
    SubscriptionTier,
    limits_for,
    parse_tier,
)
from genealogy_buddy.entitlements.usage_counter import UsageCounter


class ReasonCode(str, enum.Enum):
    """Why a decision came out the way it did."""

    OK = "OK"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    FEATURE_UNAVAILABLE = "FEATURE_UNAVAILABLE"
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of one access check. Computed per request, never cached.

    ``evaluated_at`` is the instant the check ran; a use allowed by this
    decision is counted in the period containing it.
    """

    allowed: bool
    reason: ReasonCode
    feature: FeatureKey
    tier: SubscriptionTier
    current_usage: int
    limit: int
    reset_at: datetime | None = None
    evaluated_at: datetime | None = None

    @property
    def unlimited(self) -> bool:
        return self.limit == UNLIMITED

    @property
    def remaining(self) -> int:
        """Remaining uses this period, ``-1`` when unlimited."""
        if self.unlimited:
            return UNLIMITED
        return max(0, self.limit - self.current_usage)


def evaluate_access(
    identity: Identity | None,
    feature: FeatureKey,
    tier: SubscriptionTier | str | None,
    current_usage: int,
    *,
    requires_auth: bool = True,
    reset_at: datetime | None = None,
    evaluated_at: datetime | None = None,
) -> AccessDecision:
    """Decide whether ``identity`` may use ``feature`` once more this period."""
    resolved_tier = parse_tier(tier)
    limit = limits_for(resolved_tier).limit(feature)

    def decide(allowed: bool, reason: ReasonCode) -> AccessDecision:
        return AccessDecision(
            allowed=allowed,
            reason=reason,
            feature=feature,
            tier=resolved_tier,
            current_usage=current_usage,
            limit=limit,
            reset_at=reset_at,
            evaluated_at=evaluated_at,
        )

    if requires_auth and (identity is None or not identity.is_authenticated):
        return decide(False, ReasonCode.UNAUTHENTICATED)
    if limit == UNAVAILABLE:
        return decide(False, ReasonCode.FEATURE_UNAVAILABLE)
    if limit == UNLIMITED:
        return decide(True, ReasonCode.OK)
    if current_usage >= limit:
        return decide(False, ReasonCode.LIMIT_EXCEEDED)
    return decide(True, ReasonCode.OK)


class AccessEvaluator(LoggerMixin):
    """Store-backed evaluator. Fails closed on any store error."""

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

    async def evaluate(
        self,
        identity: Identity | None,
        feature: FeatureKey,
        *,
        requires_auth: bool = True,
    ) -> AccessDecision:
        """Evaluate access for the current period.

        Args:
            identity: Resolved request identity, None if none could be resolved
            feature: Metered feature being requested
            requires_auth: Whether anonymous identities are turned away

        Returns:
            The decision; ``allowed`` is False whenever the store could not be read
        """
        now = self.clock()
        reset_at = next_reset_at(now)

        if requires_auth and (identity is None or not identity.is_authenticated):
            decision = evaluate_access(
                identity,
                feature,
                SubscriptionTier.FREE,
                0,
                requires_auth=True,
                reset_at=reset_at,
                evaluated_at=now,
            )
            self._track(decision)
            return decision

        try:
            if identity is not None and identity.is_admin:
                tier = SubscriptionTier.ADMIN
            elif identity is not None and identity.user_id is not None:
                tier = await self.subscriptions.get_effective_tier(identity.user_id)
            else:
                tier = SubscriptionTier.FREE

            current_usage = 0
            if identity is not None:
                current_usage = await self.counter.current_count(
                    identity.identity_id, feature, at=now
                )
        except Exception as exc:
            self.logger.error(
                "access_check_failed",
                feature=feature.value,
                identity_id=identity.identity_id if identity else None,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            decision = AccessDecision(
                allowed=False,
                reason=ReasonCode.UNKNOWN_ERROR,
                feature=feature,
                tier=SubscriptionTier.FREE,
                current_usage=0,
                limit=limits_for(SubscriptionTier.FREE).limit(feature),
                reset_at=reset_at,
                evaluated_at=now,
            )
            self._track(decision)
            return decision

        decision = evaluate_access(
            identity,
            feature,
            tier,
            current_usage,
            requires_auth=requires_auth,
            reset_at=reset_at,
            evaluated_at=now,
        )
        self.logger.debug(
            "access_evaluated",
            feature=feature.value,
            tier=decision.tier.value,
            reason=decision.reason.value,
            current_usage=decision.current_usage,
            limit=decision.limit,
        )
        self._track(decision)
        return decision

    def _track(self, decision: AccessDecision) -> None:
        track_access_decision(
            decision.tier.value,
            decision.feature.value,
            decision.reason.value,
        )
