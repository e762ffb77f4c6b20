"""Monthly usage counters.

Every increment is a single ``INSERT ... ON CONFLICT DO UPDATE`` keyed by
(identity, feature, period start), so concurrent increments for the same
identity never lose an update and the first use of a month creates the row.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from genealogy_buddy.core.exceptions import StorageError
from genealogy_buddy.core.logging import LoggerMixin
from genealogy_buddy.core.metrics import track_usage_increment
from genealogy_buddy.entitlements.models import UsageRecord
from genealogy_buddy.entitlements.periods import Clock, period_start, utc_now
from genealogy_buddy.entitlements.tier_catalog import FeatureKey

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class UsageCounter(LoggerMixin):
    """Reads and increments ``usage_records``."""

    def __init__(self, db: AsyncSession, *, clock: Clock = utc_now) -> None:
        self.db = db
        self.clock = clock

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        try:
            return _UPSERT_DIALECTS[dialect]
        except KeyError:
            raise StorageError(
                f"Atomic usage upsert is not supported on {dialect}"
            ) from None

    async def record(
        self,
        identity_id: str,
        feature: FeatureKey,
        *,
        at: datetime | None = None,
    ) -> int:
        """Add one use of ``feature`` for the period containing ``at``.

        ``at`` defaults to now. Callers pass the time of the access check so a
        use allowed in one period is never counted in the next.

        Commits on its own so the increment is durable before the response
        is sent.

        Returns:
            The counter value after the increment
        """
        now = self.clock()
        start = period_start(at or now)

        insert = self._insert()
        stmt = insert(UsageRecord).values(
            id=uuid4(),
            identity_id=identity_id,
            feature_key=feature.value,
            period_start=start,
            count=1,
            last_updated=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[
                UsageRecord.identity_id,
                UsageRecord.feature_key,
                UsageRecord.period_start,
            ],
            set_={
                "count": UsageRecord.count + 1,
                "last_updated": now,
            },
        ).returning(UsageRecord.count)

        result = await self.db.execute(stmt)
        new_count = result.scalar_one()
        await self.db.commit()

        track_usage_increment(feature.value)
        self.logger.info(
            "usage_recorded",
            identity_id=identity_id,
            feature=feature.value,
            period_start=start.isoformat(),
            count=new_count,
        )
        return new_count

    async def current_count(
        self,
        identity_id: str,
        feature: FeatureKey,
        *,
        at: datetime | None = None,
    ) -> int:
        """Count for the period containing ``at``. A missing row is zero."""
        start = period_start(at or self.clock())
        result = await self.db.execute(
            select(UsageRecord.count).where(
                UsageRecord.identity_id == identity_id,
                UsageRecord.feature_key == feature.value,
                UsageRecord.period_start == start,
            )
        )
        return result.scalar_one_or_none() or 0

    async def counts_for_period(
        self,
        identity_id: str,
        *,
        at: datetime | None = None,
    ) -> dict[FeatureKey, int]:
        """Counts of every feature for the period containing ``at``."""
        start = period_start(at or self.clock())
        result = await self.db.execute(
            select(UsageRecord.feature_key, UsageRecord.count).where(
                UsageRecord.identity_id == identity_id,
                UsageRecord.period_start == start,
            )
        )
        counts = {feature: 0 for feature in FeatureKey}
        for feature_key, count in result.all():
            try:
                counts[FeatureKey(feature_key)] = count
            except ValueError:
                self.logger.warning("unknown_feature_in_usage", feature_key=feature_key)
        return counts
