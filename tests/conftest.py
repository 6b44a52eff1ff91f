"""Shared pytest fixtures for API, store and service tests."""

import os
import tempfile
import uuid
from typing import AsyncGenerator

# Settings and the engine are built at import time, so point them at SQLite first.
_DB_PATH = os.path.join(tempfile.gettempdir(), f"shortlinks-test-{uuid.uuid4().hex}.db")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ["APP_ENV"] = "test"
os.environ["BASE_URL"] = "http://sho.rt"
os.environ["RATE_LIMIT_STORAGE_URI"] = "memory://"

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
import redis.asyncio as redis
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shortlinks.config import get_settings
from shortlinks.database import Base, build_engine, get_db
from shortlinks.dependencies import ServiceManager, get_service_manager
from shortlinks.main import app
from shortlinks.ratelimit import limiter

settings = get_settings()

test_engine = build_engine(settings.DATABASE_URL)

test_session = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with test_session() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory() -> async_sessionmaker[AsyncSession]:
    """Independent sessions, for tests that need concurrent store access."""
    return test_session


@pytest.fixture
def redis_client() -> AsyncMock:
    client = AsyncMock(spec=redis.Redis)
    client.ping = AsyncMock(return_value=True)
    client.aclose = AsyncMock(return_value=None)
    return client


@pytest_asyncio.fixture(scope="function")
async def service_manager(redis_client: AsyncMock) -> AsyncGenerator[ServiceManager, None]:
    manager = ServiceManager()
    manager.settings = settings
    manager.logger = manager._setup_logger()
    manager.cache = redis_client
    manager._initialized = True
    yield manager
    manager._initialized = False


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, service_manager: ServiceManager) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    async def override_get_service_manager() -> ServiceManager:
        return service_manager

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_service_manager] = override_get_service_manager
    limiter.reset()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _signup(client: AsyncClient, username: str) -> dict[str, str]:
    response = await client.post("/api/auth/signup", json={"username": username, "password": "Passw0rd!"})
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest_asyncio.fixture
async def auth_headers(client: AsyncClient) -> dict[str, str]:
    return await _signup(client, "alice")


@pytest_asyncio.fixture
async def other_auth_headers(client: AsyncClient) -> dict[str, str]:
    return await _signup(client, "bob")
