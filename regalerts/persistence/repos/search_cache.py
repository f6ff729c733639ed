from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from regalerts.domain.models import SearchCacheEntry


def _insert_for(session: AsyncSession):
    # ON CONFLICT syntax is dialect specific; hosted Postgres in production, SQLite in tests.
    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        return sqlite.insert(SearchCacheEntry)
    return postgresql.insert(SearchCacheEntry)


async def get_entry(session: AsyncSession, cache_key: str) -> SearchCacheEntry | None:
    result = await session.execute(select(SearchCacheEntry).where(SearchCacheEntry.cache_key == cache_key))
    return result.scalar_one_or_none()


async def upsert_entry(
    session: AsyncSession,
    *,
    cache_key: str,
    query: str,
    result_data: Any,
    expires_at: datetime,
) -> None:
    stmt = _insert_for(session).values(
        cache_key=cache_key,
        query=query,
        result_data=result_data,
        expires_at=expires_at,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[SearchCacheEntry.cache_key],
        set_={
            "query": stmt.excluded.query,
            "result_data": stmt.excluded.result_data,
            "expires_at": stmt.excluded.expires_at,
        },
    )
    await session.execute(stmt)


async def delete_entry(session: AsyncSession, cache_key: str) -> int:
    result = await session.execute(delete(SearchCacheEntry).where(SearchCacheEntry.cache_key == cache_key))
    return result.rowcount or 0


async def delete_expired(session: AsyncSession, *, now: datetime) -> int:
    result = await session.execute(delete(SearchCacheEntry).where(SearchCacheEntry.expires_at < now))
    return result.rowcount or 0
