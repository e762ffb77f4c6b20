"""Test configuration and fixtures."""

from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-genealogy-buddy-tests")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import genealogy_buddy.entitlements.models  # noqa: F401
from genealogy_buddy.ai.provider import AIResult, AnalysisKind, ImageInput
from genealogy_buddy.api.dependencies.database import get_db
from genealogy_buddy.api.dependencies.entitlements import get_ai_provider, get_clock
from genealogy_buddy.api.main import app
from genealogy_buddy.core.redis import get_redis
from genealogy_buddy.core.security import create_access_token
from genealogy_buddy.entitlements.models import Subscription, SubscriptionStatus
from genealogy_buddy.models.base import Base
from genealogy_buddy.models.user import User

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

FIXED_NOW = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)


class FixedClock:
    """Controllable clock for period arithmetic."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeAIProvider:
    """In-memory AI provider recording every call."""

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.content: dict[str, Any] = {"summary": "John Smith, born 1850 in Cork"}
        self.error: Exception | None = None
        self.delay: float = 0.0

    async def analyze(
        self,
        kind: AnalysisKind,
        payload: dict[str, Any],
        *,
        images: list[ImageInput] | None = None,
        history: list[dict[str, str]] | None = None,
    ) -> AIResult:
        self.calls.append(
            {"kind": kind, "payload": payload, "images": images, "history": history}
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return AIResult(
            content=dict(self.content),
            model="fake-model",
            input_tokens=10,
            output_tokens=20,
        )


class StatefulRedisMock:
    """A stateful Redis mock that tracks counters and expiries."""

    def __init__(self) -> None:
        self._data: dict[str, str | int] = {}
        self._ttls: dict[str, int] = {}
        self.fail_with: Exception | None = None

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    async def get(self, key: str) -> str | int | None:
        self._check()
        return self._data.get(key)

    async def incr(self, key: str) -> int:
        self._check()
        value = int(self._data.get(key, 0)) + 1
        self._data[key] = value
        return value

    async def expire(self, key: str, seconds: int) -> bool:
        self._check()
        if key not in self._data:
            return False
        self._ttls[key] = seconds
        return True

    async def ttl(self, key: str) -> int:
        self._check()
        if key not in self._data:
            return -2
        return self._ttls.get(key, -1)

    async def delete(self, *keys: str) -> int:
        count = 0
        for key in keys:
            if self._data.pop(key, None) is not None:
                self._ttls.pop(key, None)
                count += 1
        return count

    async def ping(self) -> bool:
        self._check()
        return True

    async def aclose(self) -> None:
        pass


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with async_session() as session:
        yield session


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def ai_provider() -> FakeAIProvider:
    return FakeAIProvider()


@pytest.fixture
def redis_client() -> StatefulRedisMock:
    return StatefulRedisMock()


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    redis_client: StatefulRedisMock,
    ai_provider: FakeAIProvider,
    clock: FixedClock,
) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database, redis, provider and clock overrides."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    async def override_get_redis() -> StatefulRedisMock:
        return redis_client

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    app.dependency_overrides[get_ai_provider] = lambda: ai_provider
    app.dependency_overrides[get_clock] = lambda: clock

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory creating a user and, unless ``tier`` is None, a subscription."""

    async def _make_user(
        tier: str | None = "FREE",
        *,
        status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
        current_period_end: datetime | None = None,
        is_active: bool = True,
        is_admin: bool = False,
    ) -> User:
        user = User(
            id=uuid4(),
            email=f"{uuid4().hex[:12]}@example.com",
            name="Test Researcher",
            is_active=is_active,
            is_admin=is_admin,
        )
        db_session.add(user)
        if tier is not None:
            db_session.add(
                Subscription(
                    user_id=user.id,
                    tier=tier,
                    status=status,
                    current_period_end=current_period_end,
                )
            )
        await db_session.commit()
        return user

    return _make_user


@pytest_asyncio.fixture(scope="function")
async def test_user(make_user: Callable[..., Any]) -> User:
    """A signed-in FREE tier user."""
    return await make_user("FREE")


@pytest.fixture
def auth_headers() -> Callable[[User], dict[str, str]]:
    """Bearer header builder for a user."""

    def _headers(user: User) -> dict[str, str]:
        token = create_access_token({"sub": str(user.id)})
        return {"Authorization": f"Bearer {token}"}

    return _headers
