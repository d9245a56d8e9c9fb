"""
Shared test fixtures.

These replace real infrastructure with lightweight alternatives:
- PostgreSQL (API side) → SQLite in memory (via aiosqlite)
- PostgreSQL (worker side) → SQLite file in tmp_path, so several threads
  can hold their own connections to the same database
- Redis → fakeredis (pure Python Redis mock)
- HTTP server → httpx.AsyncClient with ASGI transport (no network)

This means tests:
- Run without Docker
- Are fully isolated (each test gets a fresh database and a fresh Redis)
"""

import uuid

import fakeredis
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.orm import sessionmaker

from models.base import Base
from models.course import Course
from models.enums import UserRole
from models.user import User
from jobstore.retry import RetryPolicy
from jobstore.store import RedisJobStore
from api.main import create_app
from api.dependencies import get_db, get_job_store

# SQLite in-memory database, created fresh for each test
TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


class FakeClock:
    """Manually advanced replacement for time.time()."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ── Redis / job store ───────────────────────────────────────────

@pytest.fixture
def fake_redis():
    """Fake Redis speaking str, like the real client built with decode_responses=True."""
    r = fakeredis.FakeRedis(decode_responses=True)
    yield r
    r.flushall()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(fake_redis, clock):
    """Job store with no backoff: a retried job goes straight back to WAITING."""
    return RedisJobStore(
        fake_redis,
        queue_name="test-enrollment",
        retry_policy=RetryPolicy(max_attempts=3, backoff_base=0),
        clock=clock,
    )


# ── Sync database (worker side) ─────────────────────────────────

@pytest.fixture
def sync_engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'enrollment.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(sync_engine):
    return sessionmaker(sync_engine)


@pytest.fixture
def make_user(session_factory):
    """Insert a user and return its id."""

    def _make(username: str = "student", role: UserRole = UserRole.STUDENT) -> uuid.UUID:
        with session_factory() as session:
            user = User(
                id=uuid.uuid4(),
                username=username,
                email=f"{username}-{uuid.uuid4().hex[:8]}@example.com",
                role=role.value,
            )
            session.add(user)
            session.commit()
            return user.id

    return _make


@pytest.fixture
def make_course(session_factory):
    """Insert a course and return its id."""

    def _make(max_students=None, is_published: bool = True) -> uuid.UUID:
        with session_factory() as session:
            course = Course(
                id=uuid.uuid4(),
                title="Test course",
                max_students=max_students,
                is_published=is_published,
            )
            session.add(course)
            session.commit()
            return course.id

    return _make


# ── Async database + HTTP client (API side) ─────────────────────

@pytest_asyncio.fixture
async def async_engine():
    """Create a fresh in-memory database for each test."""
    engine = create_async_engine(TEST_DB_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def async_session(async_engine):
    """Create a database session bound to the test engine."""
    factory = async_sessionmaker(async_engine, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(async_session, store):
    """
    Create a test HTTP client that talks directly to the FastAPI app.

    dependency_overrides tells FastAPI: "instead of using the real get_db
    and get_job_store, use these test versions." The lifespan never runs
    under ASGITransport, so nothing connects to PostgreSQL or Redis.
    """
    app = create_app()

    async def override_get_db():
        yield async_session

    async def override_get_job_store():
        return store

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_job_store] = override_get_job_store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
