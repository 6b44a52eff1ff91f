"""Stats endpoint behavior tests."""

import datetime

import pytest
from httpx import AsyncClient


async def _create(client: AsyncClient, headers: dict[str, str], code: str) -> None:
    response = await client.post(
        "/api/shorten",
        json={"original_url": f"https://example.com/{code}", "custom_code": code},
        headers=headers,
    )
    assert response.status_code == 201


async def _visit(client: AsyncClient, code: str, times: int) -> None:
    for _ in range(times):
        response = await client.get(f"/{code}", follow_redirects=False)
        assert response.status_code == 302


@pytest.mark.asyncio
async def test_summary_without_links(client: AsyncClient, auth_headers: dict[str, str]) -> None:
    response = await client.get("/api/stats/summary", headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {
        "total_links": 0,
        "total_visits": 0,
        "recent_links": [],
        "top_links_by_visits": [],
    }


@pytest.mark.asyncio
async def test_summary_totals_and_lists(client: AsyncClient, auth_headers: dict[str, str]) -> None:
    codes = [f"link{i}" for i in range(7)]
    for code in codes:
        await _create(client, auth_headers, code)
    await _visit(client, "link0", 4)
    await _visit(client, "link3", 2)
    await _visit(client, "link5", 2)

    response = await client.get("/api/stats/summary", headers=auth_headers)
    data = response.json()
    assert data["total_links"] == 7
    assert data["total_visits"] == 8
    assert [link["short_code"] for link in data["recent_links"]] == ["link6", "link5", "link4", "link3", "link2"]
    # Equal visit counts fall back to newest first.
    assert [link["short_code"] for link in data["top_links_by_visits"]] == [
        "link0",
        "link5",
        "link3",
        "link6",
        "link4",
    ]


@pytest.mark.asyncio
async def test_summary_is_owner_scoped(
    client: AsyncClient, auth_headers: dict[str, str], other_auth_headers: dict[str, str]
) -> None:
    await _create(client, auth_headers, "alicecode")
    await _create(client, other_auth_headers, "bobcode")
    await _visit(client, "bobcode", 3)

    response = await client.get("/api/stats/summary", headers=auth_headers)
    data = response.json()
    assert data["total_links"] == 1
    assert data["total_visits"] == 0
    assert [link["short_code"] for link in data["recent_links"]] == ["alicecode"]


@pytest.mark.asyncio
async def test_summary_requires_authentication(client: AsyncClient) -> None:
    response = await client.get("/api/stats/summary")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_top_links(client: AsyncClient, auth_headers: dict[str, str]) -> None:
    await _create(client, auth_headers, "low")
    await _create(client, auth_headers, "high")
    await _visit(client, "high", 2)

    response = await client.get("/api/stats/top", headers=auth_headers)
    assert response.status_code == 200
    assert [link["short_code"] for link in response.json()] == ["high", "low"]
    assert response.json()[0]["visit_count"] == 2


@pytest.mark.asyncio
async def test_daily_visits(client: AsyncClient, auth_headers: dict[str, str]) -> None:
    await _create(client, auth_headers, "day1")
    await _create(client, auth_headers, "day2")
    await _visit(client, "day1", 2)
    await _visit(client, "day2", 1)

    response = await client.get("/api/stats/daily", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert len(data) == 1
    assert data[0]["visits"] == 3
    datetime.date.fromisoformat(data[0]["date"])
