from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
import logging
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from regalerts.apps.api.deps import AdminProfile, get_app_settings, get_db, require_admin
from regalerts.apps.api.errors import backend_error
from regalerts.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from regalerts.apps.api.response import ApiModel, blank_to_none, clamp_page_size
from regalerts.core.config import Settings
from regalerts.domain.models import SyncLog
from regalerts.persistence.repos import sync_logs as sync_logs_repo


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], responses=DEFAULT_ERROR_RESPONSES)


class SyncLogEntry(BaseModel):
    # The logs table reads raw column names, so entries stay snake_case.
    id: str
    source: str | None
    status: str
    trigger_type: str | None
    triggered_by: str | None
    run_started: str | None
    run_finished: str | None
    alerts_fetched: int
    alerts_inserted: int
    alerts_updated: int
    alerts_skipped: int
    errors: list[str]
    metadata: dict[str, Any]


class SyncLogsResponse(ApiModel):
    logs: list[SyncLogEntry]
    total: int
    sources: list[str]
    statuses: list[str]


def _isoformat(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _to_entry(log: SyncLog) -> SyncLogEntry:
    return SyncLogEntry(
        id=str(log.id),
        source=log.source,
        status=log.status,
        trigger_type=log.trigger_type,
        triggered_by=log.triggered_by,
        run_started=_isoformat(log.run_started),
        run_finished=_isoformat(log.run_finished),
        alerts_fetched=log.alerts_fetched or 0,
        alerts_inserted=log.alerts_inserted or 0,
        alerts_updated=log.alerts_updated or 0,
        alerts_skipped=log.alerts_skipped or 0,
        errors=list(log.errors or []),
        metadata=log.run_metadata or {},
    )


def _day_start(value: date) -> datetime:
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


@router.get("/logs", response_model=SyncLogsResponse)
async def list_sync_logs(
    search: str | None = None,
    source: str | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    date_from: date | None = Query(default=None, alias="dateFrom"),
    date_to: date | None = Query(default=None, alias="dateTo"),
    trigger_type: str | None = Query(default=None, alias="triggerType"),
    page: int = 1,
    page_size: int | None = Query(default=None, alias="pageSize"),
    admin: AdminProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> SyncLogsResponse:
    # Date bounds are whole UTC days; dateTo includes the named day.
    filters = sync_logs_repo.SyncLogFilters(
        search=blank_to_none(search),
        source=blank_to_none(source),
        status=blank_to_none(status_filter),
        trigger_type=blank_to_none(trigger_type),
        started_from=_day_start(date_from) if date_from else None,
        started_before=_day_start(date_to + timedelta(days=1)) if date_to else None,
    )
    limit = clamp_page_size(
        page_size,
        default=settings.logs_default_page_size,
        maximum=settings.logs_max_page_size,
    )
    try:
        logs, total = await sync_logs_repo.list_logs(
            db, filters, offset=(max(1, page) - 1) * limit, limit=limit
        )
        sources = await sync_logs_repo.distinct_sources(db)
        statuses = await sync_logs_repo.distinct_statuses(db)
    except SQLAlchemyError as exc:
        logger.error("sync_logs_query_failed", exc_info=exc)
        raise backend_error() from exc
    return SyncLogsResponse(
        logs=[_to_entry(log) for log in logs],
        total=total,
        sources=sources,
        statuses=statuses,
    )
