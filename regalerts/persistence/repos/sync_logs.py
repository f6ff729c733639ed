from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from regalerts.domain.models import SyncLog


STATUS_RUNNING = "running"


async def has_running_job(session: AsyncSession, *, trigger_type: str | None = None) -> bool:
    # A single matching row is enough; the status/trigger index keeps this cheap.
    stmt = select(SyncLog.id).where(SyncLog.status == STATUS_RUNNING)
    if trigger_type:
        stmt = stmt.where(SyncLog.trigger_type == trigger_type)
    result = await session.execute(stmt.limit(1))
    return result.scalar_one_or_none() is not None


@dataclass(frozen=True)
class SyncLogFilters:
    search: str | None = None
    source: str | None = None
    status: str | None = None
    trigger_type: str | None = None
    started_from: datetime | None = None
    # Exclusive upper bound on run_started.
    started_before: datetime | None = None


def _apply_filters(stmt, filters: SyncLogFilters):
    if filters.search:
        pattern = f"%{filters.search}%"
        stmt = stmt.where(or_(SyncLog.source.ilike(pattern), SyncLog.status.ilike(pattern)))
    if filters.source:
        stmt = stmt.where(SyncLog.source == filters.source)
    if filters.status:
        stmt = stmt.where(SyncLog.status == filters.status)
    if filters.trigger_type:
        stmt = stmt.where(SyncLog.trigger_type == filters.trigger_type)
    if filters.started_from is not None:
        stmt = stmt.where(SyncLog.run_started >= filters.started_from)
    if filters.started_before is not None:
        stmt = stmt.where(SyncLog.run_started < filters.started_before)
    return stmt


async def list_logs(
    session: AsyncSession,
    filters: SyncLogFilters,
    *,
    offset: int = 0,
    limit: int = 25,
) -> tuple[list[SyncLog], int]:
    """Return one page of runs, newest first, plus the filtered total."""
    total_stmt = _apply_filters(select(func.count()).select_from(SyncLog), filters)
    total = int((await session.execute(total_stmt)).scalar() or 0)
    stmt = _apply_filters(select(SyncLog), filters)
    stmt = stmt.order_by(SyncLog.run_started.desc(), SyncLog.id.desc()).offset(offset).limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all()), total


async def distinct_sources(session: AsyncSession) -> list[str]:
    stmt = select(SyncLog.source).where(SyncLog.source.is_not(None)).distinct().order_by(SyncLog.source)
    return [value for value in (await session.execute(stmt)).scalars().all() if value]


async def distinct_statuses(session: AsyncSession) -> list[str]:
    stmt = select(SyncLog.status).distinct().order_by(SyncLog.status)
    return [value for value in (await session.execute(stmt)).scalars().all() if value]


async def last_finished_at(session: AsyncSession) -> datetime | None:
    result = await session.execute(select(func.max(SyncLog.run_finished)))
    return result.scalar_one_or_none()
