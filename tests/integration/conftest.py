"""Integration test fixtures: real Postgres via testcontainers.

Requires Docker to be running; the suite is skipped otherwise.
Run with: pytest tests/integration -v
"""

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from shared.database import get_session
from tracker.domain.orm import Base


@pytest.fixture(scope="session")
def pg_container():
    """Session-scoped PostgreSQL container."""
    from testcontainers.postgres import PostgresContainer

    container = PostgresContainer("postgres:16-alpine")
    try:
        container.start()
    except Exception as exc:  # docker daemon not reachable
        pytest.skip(f"Docker unavailable: {exc}")
    yield container
    container.stop()


@pytest.fixture(scope="session")
def pg_url(pg_container):
    """Async connection URL for the testcontainers Postgres instance."""
    # testcontainers gives us a psycopg2 URL; convert to asyncpg
    url = pg_container.get_connection_url()
    return url.replace("psycopg2", "asyncpg")


@pytest.fixture
async def async_engine(pg_url):
    """Create engine and initialize schema."""
    engine = create_async_engine(pg_url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_session(async_engine) -> AsyncSession:
    session_factory = async_sessionmaker(async_engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
async def api_client(async_engine):
    """httpx client against the app, with sessions bound to the container database."""
    from main import app

    session_factory = async_sessionmaker(async_engine, expire_on_commit=False)

    async def override_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
