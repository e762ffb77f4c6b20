"""Metered execution of paid tool operations.

``EntitlementService.run_metered`` is the only way a tool route invokes the
AI provider: evaluate access, run the operation under the request timeout,
then record one use. Usage is never recorded for a denied, failed or
timed-out invocation.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from genealogy_buddy.core.config import get_settings
from genealogy_buddy.core.exceptions import (
    AccessCheckFailedError,
    EntitlementDeniedError,
    FeatureUnavailableError,
    GenealogyBuddyException,
    LimitExceededError,
    SignInRequiredError,
    StorageError,
    UpstreamTimeoutError,
)
from genealogy_buddy.core.logging import LoggerMixin
from genealogy_buddy.core.metrics import track_usage_record_failure
from genealogy_buddy.entitlements.decision import (
    AccessDecision,
    AccessEvaluator,
    ReasonCode,
)
from genealogy_buddy.entitlements.identity import Identity
from genealogy_buddy.entitlements.periods import Clock, utc_now
from genealogy_buddy.entitlements.tier_catalog import (
    UNLIMITED,
    FeatureKey,
    SubscriptionTier,
)
from genealogy_buddy.entitlements.usage_counter import UsageCounter

T = TypeVar("T")


@dataclass(frozen=True)
class MeteredResult(Generic[T]):
    """Value of a metered operation plus the usage numbers after it ran."""

    value: T
    feature: FeatureKey
    tier: SubscriptionTier
    current_usage: int
    limit: int
    usage_recorded: bool
    reset_at: datetime | None = None

    @property
    def unlimited(self) -> bool:
        return self.limit == UNLIMITED

    @property
    def remaining(self) -> int:
        if self.unlimited:
            return UNLIMITED
        return max(0, self.limit - self.current_usage)

    def usage_headers(self) -> dict[str, str]:
        headers = {
            "X-Usage-Current": str(self.current_usage),
            "X-Usage-Limit": str(self.limit),
            "X-Usage-Remaining": str(self.remaining),
        }
        if not self.usage_recorded:
            headers["X-Usage-Recorded"] = "false"
        return headers

    def usage_summary(self) -> dict[str, Any]:
        return {
            "feature": self.feature.value,
            "tier": self.tier.value,
            "current": self.current_usage,
            "limit": self.limit,
            "remaining": self.remaining,
            "unlimited": self.unlimited,
            "recorded": self.usage_recorded,
            "resetAt": self.reset_at.isoformat() if self.reset_at else None,
        }


def denial_to_exception(decision: AccessDecision) -> EntitlementDeniedError:
    """Map a denying decision to the error returned to the client."""
    if decision.reason == ReasonCode.UNAUTHENTICATED:
        return SignInRequiredError()

    if decision.reason == ReasonCode.FEATURE_UNAVAILABLE:
        return FeatureUnavailableError(
            tier=decision.tier.value,
            feature=decision.feature.value,
            current_usage=decision.current_usage,
            limit=decision.limit,
        )

    if decision.reason == ReasonCode.LIMIT_EXCEEDED:
        return LimitExceededError(
            tier=decision.tier.value,
            feature=decision.feature.value,
            current_usage=decision.current_usage,
            limit=decision.limit,
            reset_at=decision.reset_at,
        )

    return AccessCheckFailedError(feature=decision.feature.value)


class EntitlementService(LoggerMixin):
    """Evaluate, run, record."""

    def __init__(
        self,
        db: AsyncSession,
        *,
        clock: Clock = utc_now,
        timeout_seconds: float | None = None,
        evaluator: AccessEvaluator | None = None,
        counter: UsageCounter | None = None,
    ) -> None:
        self.db = db
        self.clock = clock
        self.timeout_seconds = (
            timeout_seconds
            if timeout_seconds is not None
            else get_settings().ai_timeout_seconds
        )
        self.counter = counter or UsageCounter(db, clock=clock)
        self.evaluator = evaluator or AccessEvaluator(db, clock=clock, counter=self.counter)

    async def check(
        self,
        identity: Identity | None,
        feature: FeatureKey,
        *,
        requires_auth: bool = True,
    ) -> AccessDecision:
        """Evaluate access and raise if denied.

        Raises:
            EntitlementDeniedError: Subclass matching the decision's reason
        """
        decision = await self.evaluator.evaluate(
            identity, feature, requires_auth=requires_auth
        )
        if not decision.allowed:
            self.logger.info(
                "access_denied",
                feature=feature.value,
                tier=decision.tier.value,
                reason=decision.reason.value,
                current_usage=decision.current_usage,
                limit=decision.limit,
            )
            raise denial_to_exception(decision)
        return decision

    async def run_metered(
        self,
        identity: Identity,
        feature: FeatureKey,
        operation: Callable[[], Awaitable[T]],
        *,
        requires_auth: bool = True,
    ) -> MeteredResult[T]:
        """Run a paid operation under the entitlement rules.

        Args:
            identity: Identity the use is counted against
            feature: Metered feature
            operation: Zero-argument coroutine function doing the paid work
            requires_auth: Whether anonymous identities are turned away

        Returns:
            The operation's value with post-increment usage numbers

        Raises:
            EntitlementDeniedError: Access was denied; nothing ran
            UpstreamTimeoutError: The operation exceeded the request timeout
            UpstreamFailureError: The AI provider failed
            StorageError: Persisting the operation's result failed
        """
        decision = await self.check(identity, feature, requires_auth=requires_auth)

        try:
            async with asyncio.timeout(self.timeout_seconds):
                value = await operation()
        except TimeoutError:
            await self._rollback()
            self.logger.warning(
                "metered_operation_timeout",
                feature=feature.value,
                timeout_seconds=self.timeout_seconds,
            )
            raise UpstreamTimeoutError() from None
        except GenealogyBuddyException:
            await self._rollback()
            raise
        except SQLAlchemyError as e:
            await self._rollback()
            self.logger.error(
                "metered_operation_storage_error",
                feature=feature.value,
                error=str(e),
            )
            raise StorageError() from e

        try:
            current_usage = await self.counter.record(
                identity.identity_id, feature, at=decision.evaluated_at
            )
            recorded = True
        except Exception as e:
            await self._rollback()
            track_usage_record_failure(feature.value)
            self.logger.error(
                "usage_record_failed",
                identity_id=identity.identity_id,
                feature=feature.value,
                error_type=type(e).__name__,
                error=str(e),
            )
            current_usage = decision.current_usage + 1
            recorded = False

        return MeteredResult(
            value=value,
            feature=feature,
            tier=decision.tier,
            current_usage=current_usage,
            limit=decision.limit,
            usage_recorded=recorded,
            reset_at=decision.reset_at,
        )

    async def _rollback(self) -> None:
        try:
            await self.db.rollback()
        except SQLAlchemyError as e:
            self.logger.warning("rollback_failed", error=str(e))
