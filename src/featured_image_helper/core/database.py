"""Database engine and session management."""

from collections.abc import AsyncIterator
from typing import Any

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from featured_image_helper.core.config import settings

logger = structlog.get_logger()


def _get_engine_kwargs(database_url: str) -> dict[str, Any]:
    """Engine kwargs for the given database URL."""
    kwargs: dict[str, Any] = {"echo": settings.debug}

    # SQLite doesn't support connection pooling options
    if not database_url.startswith("sqlite"):
        kwargs.update(
            {
                "pool_size": 5,
                "max_overflow": 10,
                "pool_pre_ping": True,
            }
        )

    return kwargs


engine = create_async_engine(settings.database_url, **_get_engine_kwargs(settings.database_url))

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_session() -> AsyncIterator[AsyncSession]:
    """Yield a session for one request."""
    async with async_session_factory() as session:
        yield session


async def check_database_connection(session: AsyncSession) -> bool:
    """Whether the session's database answers a trivial query."""
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("Database health check failed", error=str(e))
        return False
    return True


async def close_database() -> None:
    """Dispose of pooled connections on shutdown."""
    await engine.dispose()
