"""Database session dependency."""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from genealogy_buddy.core.database import get_session


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Per-request session, committed on success and rolled back on error."""
    async for session in get_session():
        yield session
