from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import create_async_engine

from regalerts.domain.models import SearchCacheEntry
from regalerts.persistence.db import Database
from regalerts.services.search_cache import SearchCache


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


async def _count_entries(database: Database) -> int:
    async with database.session() as session:
        result = await session.execute(select(func.count()).select_from(SearchCacheEntry))
        return int(result.scalar() or 0)


async def test_put_then_get_returns_payload(database: Database) -> None:
    clock = _Clock()
    async with database.session() as session:
        cache = SearchCache(session, clock=clock)
        await cache.put("Listeria", {"source": "FDA"}, [{"id": "a1"}])

        assert await cache.get("listeria", {"source": "FDA"}) == [{"id": "a1"}]
        assert await cache.get("listeria", {"source": "USDA"}) is None


async def test_put_overwrites_existing_key(database: Database) -> None:
    clock = _Clock()
    async with database.session() as session:
        cache = SearchCache(session, clock=clock)
        await cache.put("recall", {}, ["old"])
        await cache.put("recall", {}, ["new"])

        assert await cache.get("recall", {}) == ["new"]
    assert await _count_entries(database) == 1


async def test_expired_entry_is_not_returned_and_is_deleted(database: Database) -> None:
    clock = _Clock()
    async with database.session() as session:
        cache = SearchCache(session, ttl=timedelta(minutes=30), clock=clock)
        await cache.put("recall", {}, ["stale"])
        clock.advance(minutes=31)

        assert await cache.get("recall", {}) is None
    assert await _count_entries(database) == 0

    # A later read finds nothing to serve or delete.
    async with database.session() as session:
        cache = SearchCache(session, ttl=timedelta(minutes=30), clock=clock)
        assert await cache.get("recall", {}) is None
    assert await _count_entries(database) == 0


async def test_query_is_truncated_for_storage(database: Database) -> None:
    async with database.session() as session:
        cache = SearchCache(session, clock=_Clock())
        await cache.put("q" * 800, {}, [])

        result = await session.execute(select(SearchCacheEntry.query))
        assert len(result.scalar_one()) == 500


async def test_sweep_deletes_only_expired_rows(database: Database) -> None:
    clock = _Clock()
    async with database.session() as session:
        cache = SearchCache(session, ttl=timedelta(minutes=30), clock=clock)
        await cache.put("old", {}, [1])
        clock.advance(minutes=20)
        await cache.put("fresh", {}, [2])
        clock.advance(minutes=15)

        assert await cache.sweep() == 1
        assert await cache.get("fresh", {}) == [2]


async def test_storage_errors_are_swallowed(tmp_path) -> None:
    # No tables exist in this database, so every statement fails.
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    database = Database(engine)
    try:
        async with database.session() as session:
            cache = SearchCache(session, clock=_Clock())

            assert await cache.get("recall", {}) is None
            await cache.put("recall", {}, ["value"])
            assert await cache.sweep() == 0
    finally:
        await database.dispose()
