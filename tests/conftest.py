"""Pytest configuration and fixtures."""

import os

# Point settings at SQLite before the app is imported
os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import Settings
from app.db.base import Base
from app.db.session import get_db
from app.main import app
from app.models.booking import Booking, BookingStatus
from app.models.cancellation_policy import CancellationPolicyRecord
from app.policy.loader import default_policy
from app.services.booking_lifecycle import BookingLifecycleService

# Use SQLite for testing (simpler than spinning up postgres)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Fixed "now" for service tests
NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="function")
async def async_engine():
    """Create async test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
async def async_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests."""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session_maker() as session:
        yield session


@pytest.fixture(scope="function")
async def client(async_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app with the test session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield async_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(env="test", database_url=TEST_DATABASE_URL)


@pytest.fixture
def lifecycle_service(async_session: AsyncSession, test_settings: Settings) -> BookingLifecycleService:
    """Lifecycle service with the clock frozen at NOW."""
    return BookingLifecycleService(async_session, settings=test_settings, clock=lambda: NOW)


@pytest.fixture
def provider_id() -> str:
    return str(uuid4())


@pytest.fixture
def client_id() -> str:
    return str(uuid4())


@pytest.fixture
def service_id() -> str:
    return str(uuid4())


@pytest.fixture
async def standard_policy(
    async_session: AsyncSession, provider_id: str
) -> CancellationPolicyRecord:
    """Provider default policy built from the standard template."""
    record = CancellationPolicyRecord.from_policy(provider_id, default_policy())
    async_session.add(record)
    await async_session.commit()
    await async_session.refresh(record)
    return record


BookingFactory = Callable[..., Awaitable[Booking]]


@pytest.fixture
def make_booking(
    async_session: AsyncSession,
    client_id: str,
    provider_id: str,
    service_id: str,
) -> BookingFactory:
    """Factory creating bookings scheduled relative to a reference time."""

    async def _make(
        hours_ahead: float = 72,
        price: Decimal = Decimal("100.00"),
        status: BookingStatus = BookingStatus.CONFIRMED,
        reschedule_count: int = 0,
        now: datetime = NOW,
    ) -> Booking:
        booking = Booking(
            client_id=client_id,
            provider_id=provider_id,
            service_id=service_id,
            status=status.value,
            scheduled_time=now + timedelta(hours=hours_ahead),
            duration_minutes=60,
            price=price,
            reschedule_count=reschedule_count,
        )
        async_session.add(booking)
        await async_session.commit()
        await async_session.refresh(booking)
        return booking

    return _make
