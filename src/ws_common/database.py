"""Async engine and per-request sessions.

Every write path in this service is a sequence of short, separately
committed steps (see the sagas in ws_webhooks and ws_copytrade), so sessions
never autoflush and objects stay readable after commit.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from config.settings import settings

engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    # Gateways retry into long-idle workers; drop dead connections first.
    pool_pre_ping=True,
)

session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request.

    The session is not wrapped in a transaction block: the services commit
    each saga step themselves and roll back on the step that fails.
    """
    async with session_factory() as session:
        yield session
