"""Shorten endpoint behavior tests."""

import re

import pytest
from httpx import AsyncClient

CODE_RE = re.compile(r"^[A-Za-z0-9_-]{3,20}$")


@pytest.mark.asyncio
async def test_shorten_valid_url(client: AsyncClient, auth_headers: dict[str, str]) -> None:
    response = await client.post("/api/shorten", json={"original_url": "https://example.com"}, headers=auth_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["original_url"] == "https://example.com"
    assert CODE_RE.match(data["short_code"])
    assert len(data["short_code"]) == 7
    assert data["visit_count"] == 0
    assert data["short_url"] == f"http://sho.rt/{data['short_code']}"
    assert "created_at" in data


@pytest.mark.asyncio
async def test_shorten_requires_authentication(client: AsyncClient) -> None:
    response = await client.post("/api/shorten", json={"original_url": "https://example.com"})
    assert response.status_code == 401
    assert response.json()["error"] == "Unauthenticated"
    assert response.headers["www-authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_shorten_rejects_invalid_token(client: AsyncClient) -> None:
    response = await client.post(
        "/api/shorten",
        json={"original_url": "https://example.com"},
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_shorten_invalid_url(client: AsyncClient, auth_headers: dict[str, str]) -> None:
    response = await client.post("/api/shorten", json={"original_url": "not-a-url"}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "InvalidFormat"


@pytest.mark.asyncio
async def test_shorten_empty_url(client: AsyncClient, auth_headers: dict[str, str]) -> None:
    response = await client.post("/api/shorten", json={"original_url": ""}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "InvalidFormat"


@pytest.mark.asyncio
async def test_shorten_missing_url_field(client: AsyncClient, auth_headers: dict[str, str]) -> None:
    response = await client.post("/api/shorten", json={}, headers=auth_headers)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_shorten_with_custom_code(client: AsyncClient, auth_headers: dict[str, str]) -> None:
    response = await client.post(
        "/api/shorten",
        json={"original_url": "https://www.github.com", "custom_code": "my_code-1"},
        headers=auth_headers,
    )
    assert response.status_code == 201
    assert response.json()["short_code"] == "my_code-1"


@pytest.mark.asyncio
async def test_shorten_blank_custom_code_generates_one(client: AsyncClient, auth_headers: dict[str, str]) -> None:
    response = await client.post(
        "/api/shorten",
        json={"original_url": "https://www.github.com", "custom_code": "  "},
        headers=auth_headers,
    )
    assert response.status_code == 201
    assert len(response.json()["short_code"]) == 7


@pytest.mark.asyncio
async def test_shorten_custom_code_taken_by_other_owner(
    client: AsyncClient, auth_headers: dict[str, str], other_auth_headers: dict[str, str]
) -> None:
    first = await client.post(
        "/api/shorten",
        json={"original_url": "https://example.com", "custom_code": "abc"},
        headers=auth_headers,
    )
    assert first.status_code == 201

    second = await client.post(
        "/api/shorten",
        json={"original_url": "https://example.com", "custom_code": "abc"},
        headers=other_auth_headers,
    )
    assert second.status_code == 400
    assert second.json()["error"] == "CodeTaken"


@pytest.mark.asyncio
@pytest.mark.parametrize("custom_code", ["ab", "a" * 21, "my code", "emoji!", "slash/code"])
async def test_shorten_custom_code_bad_format(
    client: AsyncClient, auth_headers: dict[str, str], custom_code: str
) -> None:
    response = await client.post(
        "/api/shorten",
        json={"original_url": "https://www.github.com", "custom_code": custom_code},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"] == "InvalidFormat"


@pytest.mark.asyncio
async def test_shorten_multiple_urls(client: AsyncClient, auth_headers: dict[str, str]) -> None:
    urls = [
        "https://www.google.com",
        "https://www.github.com",
        "https://www.python.org",
    ]
    codes = set()
    for url in urls:
        response = await client.post("/api/shorten", json={"original_url": url}, headers=auth_headers)
        assert response.status_code == 201
        codes.add(response.json()["short_code"])
    assert len(codes) == 3


@pytest.mark.asyncio
@pytest.mark.parametrize("code", ["health", "metrics", "docs", "redoc", "api", "Health"])
async def test_shorten_rejects_reserved_code(client: AsyncClient, auth_headers: dict[str, str], code: str) -> None:
    response = await client.post(
        "/api/shorten",
        json={"original_url": "https://example.com", "custom_code": code},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"] == "InvalidFormat"
    assert "reserved" in response.json()["detail"]

    availability = await client.get(f"/api/links/check-availability/{code}")
    assert availability.json() == {"code": code, "available": False, "reason": "Code is reserved"}


@pytest.mark.asyncio
async def test_openapi_documents_error_body(client: AsyncClient) -> None:
    schema = (await client.get("/openapi.json")).json()
    responses = schema["paths"]["/api/shorten"]["post"]["responses"]
    for status in ("400", "401", "429", "503"):
        assert responses[status]["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")
    assert set(schema["components"]["schemas"]["ErrorResponse"]["required"]) == {"error", "detail"}
