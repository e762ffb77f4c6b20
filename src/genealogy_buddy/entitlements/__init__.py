"""Entitlements: tier limits, monthly usage counters and access decisions."""

from genealogy_buddy.entitlements.decision import (
    AccessDecision,
    AccessEvaluator,
    ReasonCode,
    evaluate_access,
)
from genealogy_buddy.entitlements.identity import Identity
from genealogy_buddy.entitlements.models import (
    Subscription,
    SubscriptionStatus,
    UsageRecord,
)
from genealogy_buddy.entitlements.reporter import UsageReport, UsageReporter
from genealogy_buddy.entitlements.service import (
    EntitlementService,
    MeteredResult,
    denial_to_exception,
)
from genealogy_buddy.entitlements.subscriptions import (
    SubscriptionService,
    resolve_effective_tier,
)
from genealogy_buddy.entitlements.tier_catalog import (
    TIER_CATALOG,
    UNLIMITED,
    FeatureFlag,
    FeatureKey,
    LimitTable,
    SubscriptionTier,
    is_feature_enabled,
    limits_for,
)
from genealogy_buddy.entitlements.usage_counter import UsageCounter

__all__ = [
    "AccessDecision",
    "AccessEvaluator",
    "EntitlementService",
    "FeatureFlag",
    "FeatureKey",
    "Identity",
    "LimitTable",
    "MeteredResult",
    "ReasonCode",
    "Subscription",
    "SubscriptionService",
    "SubscriptionStatus",
    "SubscriptionTier",
    "TIER_CATALOG",
    "UNLIMITED",
    "UsageCounter",
    "UsageRecord",
    "UsageReport",
    "UsageReporter",
    "denial_to_exception",
    "evaluate_access",
    "is_feature_enabled",
    "limits_for",
    "resolve_effective_tier",
]
