from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import pytest
from httpx import AsyncClient

from regalerts.persistence.db import Database
from regalerts.tests.utils.auth import FakeSessionVerifier, create_test_profile
from regalerts.tests.utils.rpc import FakeRpcClient


@pytest.fixture
async def admin(database: Database, verifier: FakeSessionVerifier) -> tuple[str, dict[str, str]]:
    return await create_test_profile(database, verifier, is_admin=True)


def _source(name: str, status: str) -> dict[str, object]:
    return {"name": name, "source": name, "status": status, "latency": 120, "lastchecked": "2026-03-01T00:00:00Z"}


async def test_liveness_needs_no_session(client: AsyncClient) -> None:
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.parametrize(
    ("statuses", "expected"),
    [
        (["healthy", "healthy"], "healthy"),
        (["healthy", "unhealthy"], "degraded"),
        (["healthy", "unhealthy", "unknown"], "unhealthy"),
    ],
)
async def test_health_status_rolls_up_sources(
    client: AsyncClient, admin, fake_rpc: FakeRpcClient, statuses: list[str], expected: str
) -> None:
    _admin_id, headers = admin
    fake_rpc.respond("get_health_status", [_source(f"src-{i}", status) for i, status in enumerate(statuses)])

    response = await client.get("/admin/health", headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["overallStatus"] == expected
    assert len(body["sources"]) == len(statuses)
    assert body["sources"][0]["lastChecked"] == "2026-03-01T00:00:00Z"
    assert datetime.fromisoformat(body["lastUpdated"]).tzinfo is not None


async def test_health_status_with_no_sources(client: AsyncClient, admin, fake_rpc: FakeRpcClient) -> None:
    _admin_id, headers = admin
    fake_rpc.respond("get_health_status", [])

    response = await client.get("/admin/health", headers=headers)

    assert response.json()["sources"] == []
    assert response.json()["overallStatus"] == "healthy"


async def test_health_check_trigger_passes_results_through(
    client: AsyncClient, admin, fake_rpc: FakeRpcClient
) -> None:
    admin_id, headers = admin
    payload = {"status": "completed", "timestamp": "2026-03-01T00:00:00Z", "triggered_by": admin_id}
    fake_rpc.respond("run_health_check", payload)

    response = await client.post("/admin/health", headers=headers)

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Health check completed", "results": payload}
    assert fake_rpc.calls_to("run_health_check") == [{"triggered_by": admin_id}]


async def test_health_status_backend_failure(client: AsyncClient, admin, fake_rpc: FakeRpcClient) -> None:
    _admin_id, headers = admin
    fake_rpc.respond("get_health_status", error="get_health_status: connection refused")

    response = await client.get("/admin/health", headers=headers)

    assert response.status_code == 500
    assert response.json()["error"]["code"] == "BACKEND_ERROR"


async def test_health_rates_and_latencies_serialize_as_numbers(
    client: AsyncClient, admin, fake_rpc: FakeRpcClient
) -> None:
    _admin_id, headers = admin
    row = _source("FDA", "healthy")
    row.update({"successrate24h": Decimal("87.5"), "avglatency24h": Decimal("412.25")})
    fake_rpc.respond("get_health_status", [row])

    response = await client.get("/admin/health", headers=headers)

    source = response.json()["sources"][0]
    assert source["successRate24h"] == 87.5
    assert source["avgLatency24h"] == 412.25
