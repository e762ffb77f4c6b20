"""Tests for monthly usage counters."""

import asyncio
from datetime import UTC, datetime

from unittest.mock import MagicMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from conftest import FixedClock
from genealogy_buddy.core.exceptions import StorageError
from genealogy_buddy.entitlements.models import UsageRecord
from genealogy_buddy.entitlements.tier_catalog import FeatureKey
from genealogy_buddy.entitlements.usage_counter import UsageCounter
from genealogy_buddy.models.base import Base

IDENTITY = "anon_0123456789abcdef0123456789abcdef"


class TestUsageCounter:
    """Tests for UsageCounter against a single session."""

    @pytest.mark.asyncio
    async def test_first_record_creates_row(
        self, db_session: AsyncSession, clock: FixedClock
    ) -> None:
        """Test the first use of a month creates the counter at 1."""
        counter = UsageCounter(db_session, clock=clock)
        assert await counter.current_count(IDENTITY, FeatureKey.RESEARCH) == 0

        assert await counter.record(IDENTITY, FeatureKey.RESEARCH) == 1
        assert await counter.current_count(IDENTITY, FeatureKey.RESEARCH) == 1

    @pytest.mark.asyncio
    async def test_increments_existing_row(
        self, db_session: AsyncSession, clock: FixedClock
    ) -> None:
        """Test later uses increment one row instead of adding rows."""
        counter = UsageCounter(db_session, clock=clock)
        counts = [await counter.record(IDENTITY, FeatureKey.DOCUMENTS) for _ in range(3)]

        assert counts == [1, 2, 3]
        rows = await db_session.scalar(select(func.count()).select_from(UsageRecord))
        assert rows == 1

    @pytest.mark.asyncio
    async def test_features_are_counted_separately(
        self, db_session: AsyncSession, clock: FixedClock
    ) -> None:
        """Test each feature has its own counter."""
        counter = UsageCounter(db_session, clock=clock)
        await counter.record(IDENTITY, FeatureKey.DOCUMENTS)
        await counter.record(IDENTITY, FeatureKey.DOCUMENTS)
        await counter.record(IDENTITY, FeatureKey.TREES)

        counts = await counter.counts_for_period(IDENTITY)
        assert counts[FeatureKey.DOCUMENTS] == 2
        assert counts[FeatureKey.TREES] == 1
        assert counts[FeatureKey.DNA] == 0

    @pytest.mark.asyncio
    async def test_identities_are_counted_separately(
        self, db_session: AsyncSession, clock: FixedClock
    ) -> None:
        """Test identities never share counters."""
        counter = UsageCounter(db_session, clock=clock)
        other = "anon_ffffffffffffffffffffffffffffffff"
        await counter.record(IDENTITY, FeatureKey.RESEARCH)

        assert await counter.current_count(other, FeatureKey.RESEARCH) == 0

    @pytest.mark.asyncio
    async def test_new_month_starts_from_zero(
        self, db_session: AsyncSession
    ) -> None:
        """Test the monthly rollover keeps history and resets the current count."""
        clock = FixedClock(datetime(2026, 1, 31, 23, 59, 59, tzinfo=UTC))
        counter = UsageCounter(db_session, clock=clock)
        await counter.record(IDENTITY, FeatureKey.DOCUMENTS)
        await counter.record(IDENTITY, FeatureKey.DOCUMENTS)

        clock.now = datetime(2026, 2, 1, 0, 0, 1, tzinfo=UTC)
        assert await counter.current_count(IDENTITY, FeatureKey.DOCUMENTS) == 0
        assert await counter.record(IDENTITY, FeatureKey.DOCUMENTS) == 1

        january = datetime(2026, 1, 15, tzinfo=UTC)
        assert await counter.current_count(IDENTITY, FeatureKey.DOCUMENTS, at=january) == 2
        rows = await db_session.scalar(select(func.count()).select_from(UsageRecord))
        assert rows == 2

    @pytest.mark.asyncio
    async def test_unsupported_dialect_is_storage_error(self, clock: FixedClock) -> None:
        """Test a store without an atomic upsert is reported as a storage failure."""
        db = MagicMock()
        db.get_bind.return_value.dialect.name = "mysql"
        counter = UsageCounter(db, clock=clock)

        with pytest.raises(StorageError, match="not supported on mysql"):
            await counter.record(IDENTITY, FeatureKey.DOCUMENTS)

        db.execute.assert_not_called()


class TestConcurrentIncrements:
    """Tests for concurrent increments from independent sessions."""

    @pytest.mark.asyncio
    async def test_no_increment_is_lost(self, tmp_path, clock: FixedClock) -> None:
        """Test N concurrent increments raise the counter by exactly N."""
        engine = create_async_engine(
            f"sqlite+aiosqlite:///{tmp_path / 'usage.db'}",
            connect_args={"timeout": 30},
        )
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        session_factory = async_sessionmaker(engine, expire_on_commit=False)

        async def one_increment() -> int:
            async with session_factory() as session:
                return await UsageCounter(session, clock=clock).record(
                    IDENTITY, FeatureKey.DOCUMENTS
                )

        try:
            results = await asyncio.gather(*(one_increment() for _ in range(10)))

            async with session_factory() as session:
                final = await UsageCounter(session, clock=clock).current_count(
                    IDENTITY, FeatureKey.DOCUMENTS
                )
        finally:
            await engine.dispose()

        assert final == 10
        assert sorted(results) == list(range(1, 11))
