"""
Test infrastructure for the social feed API.

Strategy
--------
- SQLite in-memory via aiosqlite keeps the suite self-contained; SQLite
  understands ``INSERT ... ON CONFLICT DO NOTHING`` and ``IN (...)`` the
  same way Postgres does.
- StaticPool makes every session share the one in-memory connection,
  which is the only connection that can see the tables.
- ``get_session_factory`` is overridden so every request runs its
  transaction against the test engine; service tests take the same
  factory through the ``session_factory`` fixture.
- Tables are created before and dropped after each test.
- bcrypt is turned down to its minimum cost so signup/login stay fast.
"""
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from socialfeed.config import settings
from socialfeed.database import Base, get_session_factory
from socialfeed.main import app
from socialfeed.middleware import install_query_counter

settings.BCRYPT_ROUNDS = 4

# ---------------------------------------------------------------------------
# Test database engine: SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Register the per-request SQL query counter on the test engine.
install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ---------------------------------------------------------------------------
# Dependency override: every request uses the test session factory
# ---------------------------------------------------------------------------

app.dependency_overrides[get_session_factory] = lambda: async_session_test


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def session_factory() -> async_sessionmaker[AsyncSession]:
    """The factory services receive; pass it to ``run_in_transaction``."""
    return async_session_test


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """httpx.AsyncClient wired to the FastAPI app via ASGITransport."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
