"""Tests for access decisions."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import FixedClock
from genealogy_buddy.entitlements.decision import (
    AccessEvaluator,
    ReasonCode,
    evaluate_access,
)
from genealogy_buddy.entitlements.identity import Identity, new_anon_key
from genealogy_buddy.entitlements.models import SubscriptionStatus
from genealogy_buddy.entitlements.tier_catalog import (
    UNLIMITED,
    FeatureKey,
    SubscriptionTier,
)
from genealogy_buddy.entitlements.usage_counter import UsageCounter

USER = Identity.for_user(uuid4())
ANON = Identity.anonymous(new_anon_key())


class TestEvaluateAccess:
    """Tests for the pure decision rule."""

    def test_allows_under_limit(self) -> None:
        """Test usage below the limit is allowed."""
        decision = evaluate_access(USER, FeatureKey.DOCUMENTS, SubscriptionTier.FREE, 1)
        assert decision.allowed
        assert decision.reason == ReasonCode.OK
        assert decision.limit == 2
        assert decision.remaining == 1

    def test_denies_at_limit(self) -> None:
        """Test usage equal to the limit is denied."""
        decision = evaluate_access(USER, FeatureKey.DOCUMENTS, SubscriptionTier.FREE, 2)
        assert not decision.allowed
        assert decision.reason == ReasonCode.LIMIT_EXCEEDED
        assert decision.current_usage == 2
        assert decision.remaining == 0

    def test_zero_limit_is_feature_unavailable(self) -> None:
        """Test a zero limit denies regardless of usage."""
        decision = evaluate_access(USER, FeatureKey.DNA, SubscriptionTier.FREE, 0)
        assert not decision.allowed
        assert decision.reason == ReasonCode.FEATURE_UNAVAILABLE

    def test_unlimited_ignores_usage(self) -> None:
        """Test unlimited features allow any usage count."""
        decision = evaluate_access(
            USER, FeatureKey.RESEARCH, SubscriptionTier.EXPLORER, 10_000
        )
        assert decision.allowed
        assert decision.limit == UNLIMITED
        assert decision.remaining == UNLIMITED

    def test_anonymous_denied_on_auth_route(self) -> None:
        """Test anonymous identities are turned away before limits apply."""
        decision = evaluate_access(ANON, FeatureKey.DOCUMENTS, SubscriptionTier.FREE, 0)
        assert not decision.allowed
        assert decision.reason == ReasonCode.UNAUTHENTICATED

    def test_missing_identity_denied(self) -> None:
        """Test that no identity at all is unauthenticated."""
        decision = evaluate_access(None, FeatureKey.DOCUMENTS, SubscriptionTier.FREE, 0)
        assert decision.reason == ReasonCode.UNAUTHENTICATED

    def test_anonymous_allowed_on_open_route(self) -> None:
        """Test anonymous identities use FREE limits on open routes."""
        decision = evaluate_access(
            ANON, FeatureKey.RESEARCH, SubscriptionTier.FREE, 4, requires_auth=False
        )
        assert decision.allowed
        assert decision.limit == 5

    def test_unknown_tier_gets_free_limits(self) -> None:
        """Test an unrecognized tier evaluates as FREE."""
        decision = evaluate_access(USER, FeatureKey.DOCUMENTS, "PLATINUM", 2)
        assert decision.tier == SubscriptionTier.FREE
        assert decision.reason == ReasonCode.LIMIT_EXCEEDED


class TestAccessEvaluator:
    """Tests for the store-backed evaluator."""

    @pytest.mark.asyncio
    async def test_reads_tier_and_usage(
        self, db_session: AsyncSession, make_user, clock: FixedClock
    ) -> None:
        """Test the evaluator combines subscription and counter."""
        user = await make_user("EXPLORER")
        identity = Identity.for_user(user.id)
        counter = UsageCounter(db_session, clock=clock)
        for _ in range(5):
            await counter.record(identity.identity_id, FeatureKey.DNA)

        evaluator = AccessEvaluator(db_session, clock=clock)
        decision = await evaluator.evaluate(identity, FeatureKey.DNA)

        assert decision.tier == SubscriptionTier.EXPLORER
        assert decision.current_usage == 5
        assert decision.reason == ReasonCode.LIMIT_EXCEEDED

    @pytest.mark.asyncio
    async def test_user_without_subscription_is_free(
        self, db_session: AsyncSession, make_user, clock: FixedClock
    ) -> None:
        """Test a missing subscription row evaluates as FREE."""
        user = await make_user(None)
        evaluator = AccessEvaluator(db_session, clock=clock)
        decision = await evaluator.evaluate(Identity.for_user(user.id), FeatureKey.PHOTOS)
        assert decision.tier == SubscriptionTier.FREE
        assert decision.reason == ReasonCode.FEATURE_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_expired_paid_subscription_is_free(
        self, db_session: AsyncSession, make_user, clock: FixedClock
    ) -> None:
        """Test a paid tier past its period end falls back to FREE."""
        user = await make_user(
            "RESEARCHER", current_period_end=clock.now - timedelta(days=1)
        )
        evaluator = AccessEvaluator(db_session, clock=clock)
        decision = await evaluator.evaluate(Identity.for_user(user.id), FeatureKey.DNA)
        assert decision.tier == SubscriptionTier.FREE
        assert not decision.allowed

    @pytest.mark.asyncio
    async def test_canceled_subscription_is_free(
        self, db_session: AsyncSession, make_user, clock: FixedClock
    ) -> None:
        """Test a non-active paid subscription falls back to FREE."""
        user = await make_user("PROFESSIONAL", status=SubscriptionStatus.CANCELED)
        evaluator = AccessEvaluator(db_session, clock=clock)
        decision = await evaluator.evaluate(Identity.for_user(user.id), FeatureKey.TREES)
        assert decision.tier == SubscriptionTier.FREE
        assert decision.limit == 1

    @pytest.mark.asyncio
    async def test_admin_user_is_unlimited(
        self, db_session: AsyncSession, make_user, clock: FixedClock
    ) -> None:
        """Test admin identities get ADMIN limits."""
        user = await make_user("FREE", is_admin=True)
        evaluator = AccessEvaluator(db_session, clock=clock)
        decision = await evaluator.evaluate(
            Identity.for_user(user.id, is_admin=True), FeatureKey.DNA
        )
        assert decision.tier == SubscriptionTier.ADMIN
        assert decision.allowed

    @pytest.mark.asyncio
    async def test_evaluation_does_not_write(
        self, db_session: AsyncSession, make_user, clock: FixedClock
    ) -> None:
        """Test repeated evaluations neither create rows nor change the outcome."""
        user = await make_user("FREE")
        identity = Identity.for_user(user.id)
        evaluator = AccessEvaluator(db_session, clock=clock)
        counter = UsageCounter(db_session, clock=clock)

        first = await evaluator.evaluate(identity, FeatureKey.DOCUMENTS)
        second = await evaluator.evaluate(identity, FeatureKey.DOCUMENTS)

        assert first == second
        assert await counter.counts_for_period(identity.identity_id) == {
            feature: 0 for feature in FeatureKey
        }

    @pytest.mark.asyncio
    async def test_store_failure_fails_closed(
        self, db_session: AsyncSession, clock: FixedClock
    ) -> None:
        """Test any store error yields a denial with UNKNOWN_ERROR."""

        class BrokenCounter(UsageCounter):
            async def current_count(self, *args, **kwargs) -> int:
                raise OperationalError("SELECT", {}, Exception("database is down"))

        evaluator = AccessEvaluator(
            db_session, clock=clock, counter=BrokenCounter(db_session, clock=clock)
        )
        decision = await evaluator.evaluate(
            ANON, FeatureKey.RESEARCH, requires_auth=False
        )
        assert not decision.allowed
        assert decision.reason == ReasonCode.UNKNOWN_ERROR

    @pytest.mark.asyncio
    async def test_unauthenticated_short_circuits_store(
        self, db_session: AsyncSession, clock: FixedClock
    ) -> None:
        """Test auth-only routes deny anonymous identities without reading usage."""

        class ExplodingCounter(UsageCounter):
            async def current_count(self, *args, **kwargs) -> int:
                raise AssertionError("usage must not be read")

        evaluator = AccessEvaluator(
            db_session, clock=clock, counter=ExplodingCounter(db_session, clock=clock)
        )
        decision = await evaluator.evaluate(ANON, FeatureKey.DOCUMENTS)
        assert decision.reason == ReasonCode.UNAUTHENTICATED

    @pytest.mark.asyncio
    async def test_reset_at_is_next_period(
        self, db_session: AsyncSession, clock: FixedClock
    ) -> None:
        """Test decisions carry the next reset instant."""
        evaluator = AccessEvaluator(db_session, clock=clock)
        decision = await evaluator.evaluate(ANON, FeatureKey.RESEARCH, requires_auth=False)
        assert decision.reset_at is not None
        assert decision.reset_at.month == 4
        assert decision.reset_at.day == 1


class TestMonthlyReset:
    """Tests for evaluation across the monthly reset."""

    @pytest.mark.asyncio
    async def test_exhausted_feature_is_allowed_next_month(
        self, db_session: AsyncSession, make_user
    ) -> None:
        """Test a limit reached in March no longer applies on April 1st."""
        clock = FixedClock(datetime(2026, 3, 31, 23, 0, tzinfo=UTC))
        user = await make_user("FREE")
        identity = Identity.for_user(user.id)
        counter = UsageCounter(db_session, clock=clock)
        await counter.record(identity.identity_id, FeatureKey.DOCUMENTS)
        await counter.record(identity.identity_id, FeatureKey.DOCUMENTS)
        evaluator = AccessEvaluator(db_session, clock=clock)

        before = await evaluator.evaluate(identity, FeatureKey.DOCUMENTS)
        clock.advance(hours=1)
        after = await evaluator.evaluate(identity, FeatureKey.DOCUMENTS)

        assert before.reason == ReasonCode.LIMIT_EXCEEDED
        assert after.allowed
        assert after.reason == ReasonCode.OK
        assert after.current_usage == 0
        assert after.evaluated_at == datetime(2026, 4, 1, 0, 0, tzinfo=UTC)
