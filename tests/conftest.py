"""Pytest configuration: test environment, in-memory database and cache fixtures."""

import os

# Set test environment BEFORE any imports from src
# src.services builds its engine from these at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["API_TOKENS"] = "test-token,second-token"
os.environ.setdefault("LOG_LEVEL", "INFO")

from datetime import datetime, timezone  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from src.models import Base, Tenant  # noqa: E402
from src.services.billing_cache import BillingCache  # noqa: E402
from src.services.config import AppSettings  # noqa: E402

TEST_TOKEN = "test-token"
NOW = datetime(2025, 3, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def cache(fake_clock):
    """Billing cache on a fake clock with the default 5 minute TTL."""
    return BillingCache(clock=fake_clock)


@pytest.fixture
def settings():
    return AppSettings(
        database_url="sqlite+aiosqlite:///:memory:",
        api_tokens="test-token,second-token",
        billing_cache_ttl_seconds=300,
        billing_cache_sweep_interval_seconds=600,
    )


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {TEST_TOKEN}"}


@pytest_asyncio.fixture
async def db_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def tenant(db_session):
    """Tenant T1 with no schedules."""
    tenant = Tenant(id="T1", name="Sunrise High School", domain="sunrise")
    db_session.add(tenant)
    await db_session.commit()
    return tenant
