"""Redirect endpoint behavior tests."""

import asyncio
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shortlinks.database import get_db
from shortlinks.main import app
from shortlinks.store import LinkStore


async def _create(client: AsyncClient, headers: dict[str, str], url: str, code: str | None = None) -> str:
    body = {"original_url": url}
    if code is not None:
        body["custom_code"] = code
    response = await client.post("/api/shorten", json=body, headers=headers)
    assert response.status_code == 201
    return response.json()["short_code"]


async def _visit_count(client: AsyncClient, headers: dict[str, str], code: str) -> int:
    response = await client.get("/api/links", headers=headers)
    return next(link["visit_count"] for link in response.json() if link["short_code"] == code)


@pytest.mark.asyncio
async def test_redirect_valid_code(client: AsyncClient, auth_headers: dict[str, str]) -> None:
    short_code = await _create(client, auth_headers, "https://example.com")

    response = await client.get(f"/{short_code}", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == "https://example.com"
    assert await _visit_count(client, auth_headers, short_code) == 1


@pytest.mark.asyncio
async def test_redirect_unknown_code(client: AsyncClient, auth_headers: dict[str, str]) -> None:
    short_code = await _create(client, auth_headers, "https://example.com")

    response = await client.get("/doesnotexist", follow_redirects=False)
    assert response.status_code == 404
    assert response.json()["error"] == "NotFound"
    assert await _visit_count(client, auth_headers, short_code) == 0


@pytest.mark.asyncio
async def test_redirect_increments_visits(client: AsyncClient, auth_headers: dict[str, str]) -> None:
    short_code = await _create(client, auth_headers, "https://www.python.org")

    for _ in range(3):
        response = await client.get(f"/{short_code}", follow_redirects=False)
        assert response.headers["location"] == "https://www.python.org"

    assert await _visit_count(client, auth_headers, short_code) == 3


@pytest.mark.asyncio
async def test_redirect_with_custom_code(client: AsyncClient, auth_headers: dict[str, str]) -> None:
    await _create(client, auth_headers, "https://www.github.com", code="ghub")
    response = await client.get("/ghub", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == "https://www.github.com"


@pytest.mark.asyncio
async def test_concurrent_redirects_do_not_lose_updates(
    client: AsyncClient,
    auth_headers: dict[str, str],
    db_session: AsyncSession,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    short_code = await _create(client, auth_headers, "https://example.com")

    async def resolve_once() -> None:
        async with session_factory() as session:
            await LinkStore(session).increment_visit(short_code)

    await asyncio.gather(resolve_once(), resolve_once())

    async with session_factory() as session:
        link = await LinkStore(session).find_by_code(short_code)
    assert link is not None
    assert link.visit_count == 2


@pytest.mark.asyncio
async def test_redirect_store_failure_returns_generic_503(client: AsyncClient) -> None:
    broken = AsyncMock(spec=AsyncSession)
    broken.execute.side_effect = OperationalError("UPDATE links", {}, Exception("connection reset by peer"))

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield broken

    app.dependency_overrides[get_db] = override_get_db

    response = await client.get("/abc123", follow_redirects=False)
    assert response.status_code == 503
    assert response.json() == {"error": "StoreUnavailable", "detail": "Service temporarily unavailable"}
    assert "connection reset" not in response.text
    broken.rollback.assert_awaited_once()
