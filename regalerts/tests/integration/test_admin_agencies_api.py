from __future__ import annotations

from datetime import datetime, timezone

import pytest
from httpx import AsyncClient

from regalerts.domain.models import Alert
from regalerts.persistence.db import Database
from regalerts.tests.utils.auth import FakeSessionVerifier, create_test_profile
from regalerts.tests.utils.rpc import FakeRpcClient


@pytest.fixture
async def admin(database: Database, verifier: FakeSessionVerifier) -> tuple[str, dict[str, str]]:
    return await create_test_profile(database, verifier, is_admin=True)


async def _seed_alerts(database: Database) -> None:
    published = datetime(2026, 3, 1, tzinfo=timezone.utc)
    rows = [("FDA", "US"), ("USDA", "US"), ("EFSA", "EU"), ("FDA", "US"), ("CFIA", None)]
    async with database.session() as session:
        for index, (source, jurisdiction) in enumerate(rows):
            session.add(
                Alert(
                    external_id=f"ext-{index}",
                    source=source,
                    title=f"Alert {index}",
                    jurisdiction=jurisdiction,
                    date_published=published,
                )
            )
        await session.commit()


async def test_agencies_filter_options_ignore_the_current_filter(
    client: AsyncClient, admin, database: Database, fake_rpc: FakeRpcClient
) -> None:
    _admin_id, headers = admin
    await _seed_alerts(database)
    agencies = [{"name": "FDA", "source": "FDA", "jurisdiction": "US", "alert_count": 9}]
    fake_rpc.respond("get_agencies_with_stats", {"agencies": agencies, "total": 1})

    response = await client.get(
        "/admin/agencies",
        params={"search": "a", "source": "FDA", "status": "active", "page": 2, "pageSize": 10},
        headers=headers,
    )

    assert response.status_code == 200
    assert response.json() == {
        "agencies": agencies,
        "total": 1,
        "sources": ["CFIA", "EFSA", "FDA", "USDA"],
        "jurisdictions": ["EU", "US"],
    }
    assert fake_rpc.calls_to("get_agencies_with_stats") == [
        {
            "search_term": "a",
            "source_filter": "FDA",
            "status_filter": "active",
            "jurisdiction_filter": None,
            "page_number": 2,
            "page_size": 10,
        }
    ]


async def test_blank_filters_are_sent_as_null(client: AsyncClient, admin, fake_rpc: FakeRpcClient) -> None:
    _admin_id, headers = admin

    await client.get("/admin/agencies", params={"source": "  ", "jurisdiction": ""}, headers=headers)

    call = fake_rpc.calls_to("get_agencies_with_stats")[0]
    assert call["source_filter"] is None
    assert call["jurisdiction_filter"] is None


@pytest.mark.parametrize(
    ("params", "page_number", "page_size"),
    [
        ({"pageSize": 500}, 1, 100),
        ({"pageSize": 0, "page": 0}, 1, 1),
        ({}, 1, 25),
    ],
)
async def test_agencies_pagination_is_clamped(
    client: AsyncClient, admin, fake_rpc: FakeRpcClient, params: dict, page_number: int, page_size: int
) -> None:
    _admin_id, headers = admin

    response = await client.get("/admin/agencies", params=params, headers=headers)

    assert response.status_code == 200
    call = fake_rpc.calls_to("get_agencies_with_stats")[0]
    assert (call["page_number"], call["page_size"]) == (page_number, page_size)


async def test_agencies_empty_payload_defaults(client: AsyncClient, admin, fake_rpc: FakeRpcClient) -> None:
    _admin_id, headers = admin
    fake_rpc.respond("get_agencies_with_stats", {"agencies": None, "total": 0})

    response = await client.get("/admin/agencies", headers=headers)

    assert response.json() == {"agencies": [], "total": 0, "sources": [], "jurisdictions": []}
