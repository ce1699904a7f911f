"""
Centralized Test Configuration.
"""

import asyncio
from datetime import datetime, timezone

import pytest
from httpx import AsyncClient, ASGITransport
from redis.exceptions import LockError
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import Pool, StaticPool

from siteledger.app.main import app
from siteledger.app.db.session import get_db, Base
from siteledger.app.core.clock import FrozenClock
from siteledger.app.core.dependencies import get_clock, get_earnings_feed
from siteledger.app.core.redis_client import get_redis
import siteledger.app.core.redis_client as redis_client_module
from siteledger.app.domain.accounts.registry import AccountRegistry
from siteledger.app.domain.funds.service import FundService
from siteledger.app.domain.ledger.projector import BalanceProjector
from siteledger.app.domain.payments.recorder import PaymentRecorder
from siteledger.app.domain.rental.service import RentalService
from siteledger.app.services.earnings_feed import StaticEarningsFeed

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

START = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)


class MockLock:
    """In-process stand-in for redis-py's asyncio Lock."""

    def __init__(self, redis, name, timeout=None, blocking_timeout=None):
        self.redis = redis
        self.name = name
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout
        self.owned = False

    async def acquire(self):
        lock = self.redis.locks.setdefault(self.name, asyncio.Lock())
        try:
            if self.blocking_timeout is None:
                await lock.acquire()
            else:
                await asyncio.wait_for(lock.acquire(), self.blocking_timeout)
        except asyncio.TimeoutError:
            return False
        self.owned = True
        self.redis.acquired.append(self.name)
        return True

    async def release(self):
        if not self.owned:
            raise LockError("Cannot release an unlocked lock")
        self.owned = False
        self.redis.locks[self.name].release()


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self.locks = {}
        self.acquired = []
        self._closed = False

    async def ping(self):
        return not self._closed

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value
        return True

    async def delete(self, key):
        return 1 if self.store.pop(key, None) is not None else 0

    def lock(self, name, timeout=None, blocking_timeout=None):
        return MockLock(self, name, timeout=timeout, blocking_timeout=blocking_timeout)

    async def aclose(self):
        self._closed = True
        self.store = {}


@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def mock_redis():
    return MockRedis()


@pytest.fixture
def clock():
    return FrozenClock(START)


@pytest.fixture
def earnings_feed():
    return StaticEarningsFeed()


@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
def session_factory():
    return TestingSessionLocal


@pytest.fixture
def open_account(db_session):
    """Open an account and return its id."""
    async def _open(kind, name=None, **attributes):
        account = await AccountRegistry(db_session).open_account(
            kind, name or f"Test {kind.value}", **attributes
        )
        return account.id
    return _open


@pytest.fixture
def rental_service(db_session, mock_redis, clock):
    return RentalService(db_session, mock_redis, clock)


@pytest.fixture
def fund_service(db_session, mock_redis, clock):
    return FundService(db_session, mock_redis, clock)


@pytest.fixture
def payment_recorder(db_session, mock_redis, earnings_feed, clock):
    return PaymentRecorder(db_session, mock_redis, earnings_feed=earnings_feed, clock=clock)


@pytest.fixture
def projector(db_session):
    return BalanceProjector(db_session)


@pytest.fixture
async def client(mock_redis, clock, earnings_feed, monkeypatch):
    """Async client for testing, with every external dependency overridden."""
    monkeypatch.setattr(redis_client_module, "redis_client", mock_redis)

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    async def override_get_redis():
        return mock_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_earnings_feed] = lambda: earnings_feed

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides = {}
