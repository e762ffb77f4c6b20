"""Subscription routes."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError

from genealogy_buddy.api.dependencies.entitlements import get_subscription_service
from genealogy_buddy.api.dependencies.identity import SignedInIdentity
from genealogy_buddy.core.exceptions import StorageError
from genealogy_buddy.core.logging import get_logger
from genealogy_buddy.entitlements.subscriptions import (
    SubscriptionService,
    resolve_effective_tier,
)
from genealogy_buddy.entitlements.tier_catalog import SubscriptionTier, limits_for
from genealogy_buddy.schemas.usage import SubscriptionResponse

logger = get_logger(__name__)

router = APIRouter()


@router.get("/current", response_model=SubscriptionResponse)
async def get_current_subscription(
    identity: SignedInIdentity,
    subscriptions: Annotated[SubscriptionService, Depends(get_subscription_service)],
) -> SubscriptionResponse:
    """
    The signed-in user's subscription.

    A user without one gets the default FREE subscription created on first
    read. ``effectiveTier`` is the tier whose limits currently apply.
    """
    assert identity.user_id is not None
    try:
        subscription = await subscriptions.ensure_subscription(identity.user_id)
    except SQLAlchemyError as exc:
        logger.error("subscription_lookup_failed", error=str(exc))
        raise StorageError() from exc

    if identity.is_admin:
        effective = SubscriptionTier.ADMIN
    else:
        effective = resolve_effective_tier(subscription, subscriptions.clock())
    table = limits_for(effective)

    return SubscriptionResponse(
        tier=subscription.tier,
        effective_tier=effective.value,
        status=subscription.status.value,
        current_period_end=subscription.current_period_end,
        limits={feature.value: limit for feature, limit in table.limits.items()},
        features={flag.value: enabled for flag, enabled in table.flags.items()},
    )
