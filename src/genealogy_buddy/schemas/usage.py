"""Usage, subscription and tier schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class FeatureUsageResponse(BaseModel):
    used: int
    limit: int
    unlimited: bool
    available: bool
    remaining: int


class UsageReportResponse(BaseModel):
    """Current period usage of the requesting identity."""

    model_config = ConfigDict(populate_by_name=True)

    tier: str
    authenticated: bool
    period_start: datetime = Field(..., alias="periodStart")
    period_end: datetime = Field(..., alias="periodEnd")
    reset_at: datetime = Field(..., alias="resetAt")
    usage: dict[str, FeatureUsageResponse]
    features: dict[str, bool]
    total_usage_percentage: float = Field(..., alias="totalUsagePercentage")


class SubscriptionResponse(BaseModel):
    """The signed-in user's subscription."""

    model_config = ConfigDict(populate_by_name=True)

    tier: str
    effective_tier: str = Field(..., alias="effectiveTier")
    status: str
    current_period_end: datetime | None = Field(None, alias="currentPeriodEnd")
    limits: dict[str, int]
    features: dict[str, bool]


class TierResponse(BaseModel):
    """Public description of one tier."""

    tier: str
    limits: dict[str, int]
    features: dict[str, bool]
