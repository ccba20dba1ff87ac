"""
Test configuration and fixtures

Every test gets its own SQLite file so that separate sessions (and so
concurrent conversions) really contend for the database.
"""

import pytest
import pytest_asyncio
from typing import AsyncGenerator
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock
from uuid import uuid4
import os

from sqlalchemy.ext.asyncio import AsyncSession
from httpx import AsyncClient, ASGITransport

# Set test environment before the application reads its settings
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-for-the-waitlist-suite-0123456789"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret-key-for-the-waitlist-suite-0123456789"
os.environ["RATE_LIMIT_BACKEND"] = "memory"
os.environ["SENDGRID_API_KEY"] = ""

from salon_waitlist.core.database import Base, DatabaseManager, create_engine_for, create_session_factory
from salon_waitlist.core.roles import UserRole
from salon_waitlist.core.security import create_access_token
from salon_waitlist.models import WaitlistEntry, WaitlistStatus  # noqa: F401  (registers tables)
from salon_waitlist.services.waitlist_service import WaitlistService
from salon_waitlist.services.waitlist_store import WaitlistStore


class FrozenClock:
    """Deterministic replacement for utcnow"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FrozenClock(datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc))


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """Async engine on a throwaway database file"""
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'waitlist.db'}", testing=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return create_session_factory(test_engine)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests"""
    async with session_factory() as session:
        try:
            yield session
        finally:
            if session.in_transaction():
                await session.rollback()


@pytest.fixture
def notifier():
    """Notification collaborator that records calls"""
    return AsyncMock()


@pytest_asyncio.fixture
async def waitlist(session_factory, notifier, clock) -> AsyncGenerator[WaitlistService, None]:
    """Waitlist service wired to the test database and clock"""
    service = WaitlistService(
        store=WaitlistStore(default_expiry_days=30),
        notifier=notifier,
        database=DatabaseManager(session_factory),
        clock=clock,
    )
    yield service
    await service.wait_for_notifications()


@pytest.fixture
def salon_id():
    return uuid4()


@pytest.fixture
def make_entry(waitlist, db_session, salon_id, clock):
    """
    Create an entry through the service; each call advances the clock a
    second so creation order is unambiguous.
    """
    from salon_waitlist.schemas.waitlist import WaitlistEntryCreate

    async def _make(**overrides) -> WaitlistEntry:
        data = {
            "customer_id": uuid4(),
            "salon_id": salon_id,
            "customer_email": f"customer_{uuid4().hex[:8]}@example.com",
        }
        data.update(overrides)
        entry = await waitlist.create_entry(db_session, WaitlistEntryCreate(**data))
        clock.advance(seconds=1)
        return entry

    return _make


@pytest.fixture
def slot(clock):
    """A one-hour slot tomorrow"""
    start = clock.now + timedelta(days=1)
    return start, start + timedelta(hours=1)


@pytest.fixture
def auth_headers():
    """Build bearer headers for an actor with the given role"""

    def _headers(role: UserRole = UserRole.SALON_EMPLOYEE, actor_id=None) -> dict:
        token = create_access_token(
            data={"sub": str(actor_id or uuid4()), "role": role.value}
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest_asyncio.fixture
async def client(session_factory, waitlist):
    """Create test client with dependency overrides"""
    from salon_waitlist.main import app
    from salon_waitlist.core.database import get_session
    from salon_waitlist.services.waitlist_service import get_waitlist_service

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_waitlist_service] = lambda: waitlist

    try:
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()
