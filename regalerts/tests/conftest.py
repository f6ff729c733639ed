from __future__ import annotations

from typing import AsyncIterator

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine

from regalerts.apps.api.deps import get_rpc_client
from regalerts.apps.api.main import create_app
from regalerts.core.config import Settings
from regalerts.domain.models import Base
from regalerts.persistence.db import Database
from regalerts.tests.utils.auth import FakeSessionVerifier
from regalerts.tests.utils.rpc import FakeRpcClient


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'regalerts.db'}",
        auth_jwt_secret="test-secret",
        log_level="WARNING",
    )


@pytest.fixture
async def database(settings: Settings) -> AsyncIterator[Database]:
    # Platform-owned tables are created locally so table-backed code runs for real.
    engine = create_async_engine(settings.database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    db = Database(engine)
    yield db
    await db.dispose()


@pytest.fixture
def verifier() -> FakeSessionVerifier:
    return FakeSessionVerifier()


@pytest.fixture
def fake_rpc() -> FakeRpcClient:
    return FakeRpcClient()


@pytest.fixture
def app(settings: Settings, database: Database, verifier: FakeSessionVerifier, fake_rpc: FakeRpcClient) -> FastAPI:
    app = create_app(settings, database=database, session_verifier=verifier)
    app.dependency_overrides[get_rpc_client] = lambda: fake_rpc
    return app


@pytest.fixture
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
