"""
Database connection, session management, and the unit-of-work helper.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from app.core.config import get_settings

settings = get_settings()

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db():
    """Create all tables (development only; production uses migrations)."""
    import app.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


@asynccontextmanager
async def unit_of_work(
    session_factory: async_sessionmaker[AsyncSession],
    session: Optional[AsyncSession] = None,
) -> AsyncIterator[AsyncSession]:
    """Run a block against the caller's session, or inside a fresh transaction.

    A passed-in session is yielded untouched: the caller owns its
    transaction. Without one, a new session is opened and the block runs
    in ``session.begin()``, committed on exit and rolled back on error.
    """
    if session is not None:
        yield session
        return

    async with session_factory() as new_session:
        async with new_session.begin():
            yield new_session
