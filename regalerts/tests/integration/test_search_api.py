from __future__ import annotations

from httpx import AsyncClient

from regalerts.persistence.db import Database
from regalerts.tests.utils.auth import FakeSessionVerifier, create_test_profile
from regalerts.tests.utils.rpc import FakeRpcClient


async def test_search_requires_session(client: AsyncClient, fake_rpc: FakeRpcClient) -> None:
    response = await client.post("/search", json={"query": "listeria"})

    assert response.status_code == 401
    assert fake_rpc.calls == []


async def test_search_rejects_blank_query(
    client: AsyncClient, database: Database, verifier: FakeSessionVerifier
) -> None:
    _user_id, headers = await create_test_profile(database, verifier, is_admin=False)

    response = await client.post("/search", json={"query": "   "}, headers=headers)

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "QUERY_REQUIRED"


async def test_search_caches_results_between_requests(
    client: AsyncClient, database: Database, verifier: FakeSessionVerifier, fake_rpc: FakeRpcClient
) -> None:
    _user_id, headers = await create_test_profile(database, verifier, is_admin=False)
    results = [{"id": "a-1", "title": "Listeria recall"}]
    fake_rpc.respond("search_alerts", results)

    first = await client.post(
        "/search", json={"query": "Listeria", "filters": {"source": "FDA", "days": 7}}, headers=headers
    )
    second = await client.post(
        "/search", json={"query": " listeria ", "filters": {"days": 7, "source": "FDA"}}, headers=headers
    )

    assert first.json() == {"results": results, "cached": False}
    assert second.json() == {"results": results, "cached": True}
    assert fake_rpc.calls_to("search_alerts") == [
        {"search_query": "Listeria", "filters": {"source": "FDA", "days": 7}}
    ]


async def test_search_failure_is_not_cached(
    client: AsyncClient, database: Database, verifier: FakeSessionVerifier, fake_rpc: FakeRpcClient
) -> None:
    _user_id, headers = await create_test_profile(database, verifier, is_admin=False)
    fake_rpc.respond("search_alerts", error="search_alerts: statement timeout")

    failed = await client.post("/search", json={"query": "recall"}, headers=headers)
    fake_rpc.respond("search_alerts", [])
    retried = await client.post("/search", json={"query": "recall"}, headers=headers)

    assert failed.status_code == 500
    assert retried.json() == {"results": [], "cached": False}
