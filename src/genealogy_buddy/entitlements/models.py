"""Subscription and usage accounting models."""

import enum
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from genealogy_buddy.entitlements.tier_catalog import SubscriptionTier
from genealogy_buddy.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from genealogy_buddy.models.user import User


class SubscriptionStatus(str, enum.Enum):
    """Subscription status enum."""

    ACTIVE = "active"
    TRIALING = "trialing"
    PAST_DUE = "past_due"
    CANCELED = "canceled"


class Subscription(Base, TimestampMixin):
    """A user's plan. Written by the billing integration, read here."""

    __tablename__ = "subscriptions"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    # Stored as text so that a tier unknown to this build still loads and
    # resolves to FREE limits.
    tier: Mapped[str] = mapped_column(
        String(32),
        default=SubscriptionTier.FREE.value,
        nullable=False,
    )
    status: Mapped[SubscriptionStatus] = mapped_column(
        Enum(
            SubscriptionStatus,
            values_callable=lambda x: [e.value for e in x],
            native_enum=False,
        ),
        default=SubscriptionStatus.ACTIVE,
        nullable=False,
    )
    current_period_end: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    billing_customer_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    billing_subscription_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    user: Mapped["User"] = relationship()


class UsageRecord(Base):
    """Monthly counter for one identity and one metered feature.

    Rows are only ever created by the atomic upsert in ``UsageCounter`` and
    are kept as history once their month is over.
    """

    __tablename__ = "usage_records"
    __table_args__ = (
        CheckConstraint("count >= 0", name="count_non_negative"),
        UniqueConstraint(
            "identity_id",
            "feature_key",
            "period_start",
            name="uq_usage_records_identity_feature_period",
        ),
    )

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )
    identity_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    feature_key: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
    )
    period_start: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    count: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
