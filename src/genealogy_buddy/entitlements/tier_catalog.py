"""Tier catalog: the single source of truth for per-tier limits.

Counted limits use ``-1`` for unlimited and ``0`` for "not included in this
tier". The catalog is built once at import time, validated, and exposed
read-only.
"""

import enum
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

from genealogy_buddy.core.logging import get_logger

logger = get_logger(__name__)

UNLIMITED = -1
UNAVAILABLE = 0


class SubscriptionTier(str, enum.Enum):
    """Subscription tier enum."""

    FREE = "FREE"
    EXPLORER = "EXPLORER"
    RESEARCHER = "RESEARCHER"
    PROFESSIONAL = "PROFESSIONAL"
    ADMIN = "ADMIN"


class FeatureKey(str, enum.Enum):
    """Metered tools, counted per calendar month."""

    DOCUMENTS = "documents"
    DNA = "dna"
    PHOTOS = "photos"
    RESEARCH = "research"
    TREES = "trees"


class FeatureFlag(str, enum.Enum):
    """Boolean capabilities that are either in a tier or not."""

    GEDCOM_EXPORT = "gedcom_export"
    PRIORITY_SUPPORT = "priority_support"


@dataclass(frozen=True)
class LimitTable:
    """Limits of one tier."""

    tier: SubscriptionTier
    limits: Mapping[FeatureKey, int]
    flags: Mapping[FeatureFlag, bool]

    def limit(self, feature: FeatureKey) -> int:
        return self.limits[feature]

    def is_unlimited(self, feature: FeatureKey) -> bool:
        return self.limits[feature] == UNLIMITED

    def is_available(self, feature: FeatureKey) -> bool:
        return self.limits[feature] != UNAVAILABLE

    def has_flag(self, flag: FeatureFlag) -> bool:
        return self.flags[flag]


_RAW_TIER_LIMITS: dict[SubscriptionTier, dict[str, int | bool]] = {
    SubscriptionTier.FREE: {
        "documents": 2,
        "dna": 0,
        "photos": 0,
        "research": 5,
        "trees": 1,
        "gedcom_export": False,
        "priority_support": False,
    },
    SubscriptionTier.EXPLORER: {
        "documents": 10,
        "dna": 5,
        "photos": 5,
        "research": UNLIMITED,
        "trees": 3,
        "gedcom_export": False,
        "priority_support": False,
    },
    SubscriptionTier.RESEARCHER: {
        "documents": 50,
        "dna": 15,
        "photos": 25,
        "research": UNLIMITED,
        "trees": 10,
        "gedcom_export": True,
        "priority_support": False,
    },
    SubscriptionTier.PROFESSIONAL: {
        "documents": UNLIMITED,
        "dna": UNLIMITED,
        "photos": UNLIMITED,
        "research": UNLIMITED,
        "trees": UNLIMITED,
        "gedcom_export": True,
        "priority_support": True,
    },
    SubscriptionTier.ADMIN: {
        "documents": UNLIMITED,
        "dna": UNLIMITED,
        "photos": UNLIMITED,
        "research": UNLIMITED,
        "trees": UNLIMITED,
        "gedcom_export": True,
        "priority_support": True,
    },
}


def _build_catalog(
    raw: Mapping[SubscriptionTier, Mapping[str, int | bool]],
) -> Mapping[SubscriptionTier, LimitTable]:
    """Validate the raw table and freeze it.

    Raises:
        ValueError: If a tier is missing, a key is missing, or a limit is invalid
    """
    catalog: dict[SubscriptionTier, LimitTable] = {}
    for tier in SubscriptionTier:
        if tier not in raw:
            raise ValueError(f"Tier {tier.value} has no limits defined")
        entry = raw[tier]

        limits: dict[FeatureKey, int] = {}
        for feature in FeatureKey:
            value = entry.get(feature.value)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"Tier {tier.value} is missing a limit for {feature.value}")
            if value < UNLIMITED:
                raise ValueError(
                    f"Tier {tier.value} has invalid limit {value} for {feature.value}"
                )
            limits[feature] = value

        flags: dict[FeatureFlag, bool] = {}
        for flag in FeatureFlag:
            value = entry.get(flag.value)
            if not isinstance(value, bool):
                raise ValueError(f"Tier {tier.value} is missing flag {flag.value}")
            flags[flag] = value

        catalog[tier] = LimitTable(
            tier=tier,
            limits=MappingProxyType(limits),
            flags=MappingProxyType(flags),
        )
    return MappingProxyType(catalog)


TIER_CATALOG: Mapping[SubscriptionTier, LimitTable] = _build_catalog(_RAW_TIER_LIMITS)


def parse_tier(value: SubscriptionTier | str | None) -> SubscriptionTier:
    """Resolve a stored tier value, falling back to FREE for anything unknown."""
    if isinstance(value, SubscriptionTier):
        return value
    if value is not None:
        try:
            return SubscriptionTier(str(value).strip().upper())
        except ValueError:
            pass
    logger.warning("unknown_tier_defaulted_to_free", tier=value)
    return SubscriptionTier.FREE


def limits_for(tier: SubscriptionTier | str | None) -> LimitTable:
    """Get the limit table for a tier.

    Unknown or missing tiers get the FREE table, never an unlimited one.
    """
    return TIER_CATALOG[parse_tier(tier)]


def is_feature_enabled(tier: SubscriptionTier | str | None, flag: FeatureFlag) -> bool:
    """Check a boolean capability for a tier."""
    return limits_for(tier).has_flag(flag)
