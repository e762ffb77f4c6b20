"""Public tier catalog."""

from fastapi import APIRouter

from genealogy_buddy.entitlements.tier_catalog import TIER_CATALOG
from genealogy_buddy.schemas.usage import TierResponse

router = APIRouter()


@router.get("", response_model=list[TierResponse])
async def list_tiers() -> list[TierResponse]:
    """Limits and feature flags of every tier. ``-1`` means unlimited."""
    return [
        TierResponse(
            tier=tier.value,
            limits={feature.value: limit for feature, limit in table.limits.items()},
            features={flag.value: enabled for flag, enabled in table.flags.items()},
        )
        for tier, table in TIER_CATALOG.items()
    ]
