import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timedelta
from uuid import uuid4

import pytest
import pytest_asyncio
from dotenv import load_dotenv

# Load environment variables from .env file, then pin what the app needs at import
load_dotenv()
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./healthfirst.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ["CACHE_ENABLED"] = "false"
os.environ.setdefault("LOG_FORMAT", "console")

from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from healthfirst.core.clock import FixedClock
from healthfirst.core.redis_client import get_cache_manager
from healthfirst.core.security import create_access_token
from healthfirst.database import create_engine_for_url, get_async_database_url, get_db
from healthfirst.dependencies import get_clock
from healthfirst.main import app
from healthfirst.models import metadata, patients, providers

# Set TEST_DATABASE_URL to run against PostgreSQL; by default every test gets
# a fresh SQLite file.
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")

# Bookings are evaluated against this instant
NOW = datetime(2024, 2, 1, 8, 0)


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create a test engine with a clean schema."""
    if TEST_DATABASE_URL:
        test_engine = create_async_engine(
            get_async_database_url(TEST_DATABASE_URL),
            poolclass=NullPool,
        )
    else:
        test_engine = create_engine_for_url(
            f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
            poolclass=NullPool,
        )

    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FixedClock:
    """Clock pinned to 2024-02-01 08:00."""
    return FixedClock(NOW)


@pytest.fixture
def make_provider(
    db_session: AsyncSession,
) -> Callable[..., Awaitable[dict]]:
    """Factory inserting a provider row."""

    async def _make(**overrides) -> dict:
        provider_id = uuid4()
        values = {
            "id": provider_id,
            "first_name": "Jane",
            "last_name": "Doe",
            "email": f"provider-{provider_id.hex[:12]}@example.com",
            "phone_number": "+15550100",
            "specialization": "Cardiology",
            "years_of_experience": 12,
            "clinic_street": "1 Main St",
            "clinic_city": "Springfield",
            "clinic_state": "IL",
            "clinic_zip": "62701",
            "is_active": True,
        }
        values.update(overrides)
        await db_session.execute(insert(providers).values(**values))
        await db_session.commit()
        return values

    return _make


@pytest.fixture
def make_patient(
    db_session: AsyncSession,
) -> Callable[..., Awaitable[dict]]:
    """Factory inserting a patient row."""

    async def _make(**overrides) -> dict:
        patient_id = uuid4()
        values = {
            "id": patient_id,
            "first_name": "John",
            "last_name": "Smith",
            "email": f"patient-{patient_id.hex[:12]}@example.com",
            "phone_number": "+15550199",
            "is_active": True,
        }
        values.update(overrides)
        await db_session.execute(insert(patients).values(**values))
        await db_session.commit()
        return values

    return _make


@pytest_asyncio.fixture
async def provider(make_provider) -> dict:
    """A test provider."""
    return await make_provider()


@pytest_asyncio.fixture
async def patient(make_patient) -> dict:
    """A test patient."""
    return await make_patient()


@pytest_asyncio.fixture
async def other_patient(make_patient) -> dict:
    """A second test patient."""
    return await make_patient(first_name="Mary", last_name="Major")


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    clock: FixedClock,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client; each request gets its own session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_cache_manager] = lambda: None

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def bearer(subject, role: str) -> dict:
    """Authorization header for a subject and role."""
    token = create_access_token(subject, role, expires_delta=timedelta(minutes=30))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def provider_headers(provider) -> dict:
    """Create authentication headers for the test provider."""
    return bearer(provider["id"], "provider")


@pytest.fixture
def patient_headers(patient) -> dict:
    """Create authentication headers for the test patient."""
    return bearer(patient["id"], "patient")


@pytest.fixture
def availability_payload() -> dict:
    """Window on 2024-02-15 from 09:00 to 10:00 with 30-minute slots."""
    return {
        "date": "2024-02-15",
        "start_time": "09:00",
        "end_time": "10:00",
        "timezone": "America/New_York",
        "slot_duration": 30,
        "break_duration": 0,
        "appointment_type": "consultation",
        "location": {"type": "clinic", "address": "1 Main St", "room_number": "2B"},
        "pricing": {"base_fee": "150.00", "insurance_accepted": True, "currency": "USD"},
        "special_requirements": ["bring_insurance_card"],
    }


@pytest.fixture
def auth_headers_for() -> Callable[[object, str], dict]:
    """Build authentication headers for any subject and role."""
    return bearer
