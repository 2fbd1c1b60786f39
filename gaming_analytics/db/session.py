"""Engine, session factory and FastAPI dependencies for the record store."""

import logging
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from gaming_analytics.core.config import settings
from gaming_analytics.db.store import RecordStore

logger = logging.getLogger(__name__)


def connect_args_for(url: str) -> dict[str, Any]:
    """Driver arguments for ``url``; asyncpg sessions run in UTC."""
    if url.startswith("postgresql+asyncpg"):
        return {"server_settings": {"timezone": "UTC"}}
    return {}


# A single report may hold several connections at once while its reads fan out
engine = create_async_engine(
    str(settings.DATABASE_URL),
    connect_args=connect_args_for(str(settings.DATABASE_URL)),
    pool_pre_ping=True,
    pool_size=settings.DATABASE_POOL_SIZE,
    max_overflow=settings.DATABASE_MAX_OVERFLOW,
    pool_recycle=1800,
    pool_use_lifo=True,
)

AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session, used by the database health probe."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            logger.exception("Rolled back request session")
            raise


def get_store() -> RecordStore:
    """Record store backed by the shared session factory."""
    return RecordStore(AsyncSessionLocal)
