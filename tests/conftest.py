"""Pytest configuration and fixtures for analytics tests."""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest
import pytest_asyncio
from fakeredis import aioredis as fakeredis
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from gaming_analytics.db.base import Base
from gaming_analytics.db.session import get_db, get_store
from gaming_analytics.db.store import RecordStore
from gaming_analytics.main import app
from gaming_analytics.models import (
    Bet,
    BetStatus,
    Tenant,
    TenantStatus,
    Transaction,
    TransactionStatus,
    TransactionType,
    User,
    UserRole,
    UserStatus,
)

# Fixed "now" so time-relative reports are reproducible (a Monday)
NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path: Path) -> AsyncGenerator[Any, None]:
    """Create a test database engine.

    A file database (one per test) rather than ``:memory:`` so the
    concurrent sessions opened by the record store all see the same data.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'analytics.db'}",
        echo=False,
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: Any) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def test_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """Session used to seed records."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def store(session_factory: async_sessionmaker[AsyncSession]) -> RecordStore:
    return RecordStore(session_factory)


@pytest_asyncio.fixture(scope="function")
async def test_redis() -> AsyncGenerator[Any, None]:
    """Create fake Redis client for testing."""
    redis_client = fakeredis.FakeRedis(decode_responses=True)
    yield redis_client
    await redis_client.flushall()
    await redis_client.aclose()


@pytest_asyncio.fixture(scope="function")
async def test_client(
    test_session: AsyncSession,
    store: RecordStore,
    test_redis: Any,
) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with dependency overrides."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield test_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_store] = lambda: store

    with patch("gaming_analytics.core.cache.get_redis", return_value=test_redis):
        transport = ASGITransport(app=app)  # type: ignore[arg-type]
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client

    app.dependency_overrides.clear()


async def _save(session: AsyncSession, entity: Any) -> Any:
    session.add(entity)
    await session.commit()
    await session.refresh(entity)
    return entity


@pytest_asyncio.fixture
async def create_tenant(test_session: AsyncSession) -> Any:
    """Factory fixture to create tenants."""

    async def _create_tenant(**kwargs: Any) -> Tenant:
        data: dict[str, Any] = {
            "name": "Test Tenant",
            "status": TenantStatus.ACTIVE.value,
            "provider_percentage": Decimal("10"),
        }
        data.update(kwargs)
        return await _save(test_session, Tenant(**data))

    return _create_tenant


@pytest_asyncio.fixture
async def create_user(test_session: AsyncSession) -> Any:
    """Factory fixture to create users (players unless a role is given)."""

    async def _create_user(**kwargs: Any) -> User:
        data: dict[str, Any] = {
            "role": UserRole.PLAYER.value,
            "status": UserStatus.ACTIVE.value,
            "full_name": "Test Player",
            "email": "player@example.com",
            "created_at": NOW - timedelta(days=60),
        }
        data.update(kwargs)
        return await _save(test_session, User(**data))

    return _create_user


@pytest_asyncio.fixture
async def create_bet(test_session: AsyncSession) -> Any:
    """Factory fixture to create bets."""

    async def _create_bet(user: User, **kwargs: Any) -> Bet:
        stake = Decimal(str(kwargs.pop("stake", "10")))
        odds = Decimal(str(kwargs.pop("total_odds", "2.00")))
        data: dict[str, Any] = {
            "user_id": user.id,
            "tenant_id": user.tenant_id,
            "stake": stake,
            "total_odds": odds,
            "potential_win": stake * odds,
            "status": BetStatus.LOST.value,
            "created_at": NOW - timedelta(days=1),
        }
        data.update(kwargs)
        if data.get("actual_win") is not None:
            data["actual_win"] = Decimal(str(data["actual_win"]))
        return await _save(test_session, Bet(**data))

    return _create_bet


@pytest_asyncio.fixture
async def create_transaction(test_session: AsyncSession) -> Any:
    """Factory fixture to create wallet transactions (completed deposits by default)."""

    async def _create_transaction(user: User, **kwargs: Any) -> Transaction:
        data: dict[str, Any] = {
            "user_id": user.id,
            "tenant_id": user.tenant_id,
            "type": TransactionType.DEPOSIT.value,
            "status": TransactionStatus.COMPLETED.value,
            "amount": Decimal("100"),
            "created_at": NOW - timedelta(days=1),
        }
        data.update(kwargs)
        data["amount"] = Decimal(str(data["amount"]))
        return await _save(test_session, Transaction(**data))

    return _create_transaction
