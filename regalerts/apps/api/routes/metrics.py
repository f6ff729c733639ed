from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from regalerts.apps.api.deps import AdminProfile, get_app_settings, get_db, get_rpc_client, require_admin
from regalerts.apps.api.errors import backend_error, raise_for_rpc
from regalerts.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from regalerts.apps.api.response import ApiModel, payload_int, payload_str
from regalerts.core.config import Settings
from regalerts.persistence.repos import sync_logs as sync_logs_repo
from regalerts.persistence.rpc import RpcClient


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], responses=DEFAULT_ERROR_RESPONSES)


class SourceHealth(ApiModel):
    source: str
    last_success: datetime | str | None = None
    last_failure: datetime | str | None = None
    # Explicit aliases: the generated camelCase would capitalize the "h" after "24".
    last_24h_inserts: int = Field(default=0, alias="last24hInserts")
    last_24h_failures: int = Field(default=0, alias="last24hFailures")
    status: str | None = None


class DailyAlertCount(ApiModel):
    date: str
    alerts: int


class MetricsResponse(ApiModel):
    total_alerts: int
    last_24h_alerts: int = Field(alias="last24hAlerts")
    sources_health: list[SourceHealth]
    sparkline_data: list[DailyAlertCount]
    duplicates_count: int
    last_sync_time: datetime | None


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def _source_health(row: dict[str, Any]) -> SourceHealth:
    return SourceHealth(
        source=payload_str(row, "source") or "unknown",
        last_success=row.get("last_success"),
        last_failure=row.get("last_failure"),
        last_24h_inserts=payload_int(row, "last_24h_inserts"),
        last_24h_failures=payload_int(row, "last_24h_failures"),
        status=payload_str(row, "status"),
    )


@router.get("/metrics", response_model=MetricsResponse)
async def get_metrics(
    admin: AdminProfile = Depends(require_admin),
    rpc: RpcClient = Depends(get_rpc_client),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> MetricsResponse:
    """Dashboard KPIs: alert totals, per-source health, a daily sparkline and duplicate count."""
    stats_rows = raise_for_rpc(await rpc.get_database_stats(), operation="get_database_stats") or []
    health_rows = raise_for_rpc(await rpc.get_sources_health(), operation="get_sources_health") or []
    end_date = _utc_today()
    start_date = end_date - timedelta(days=max(1, settings.metrics_sparkline_days) - 1)
    daily_rows = raise_for_rpc(
        await rpc.get_daily_alert_counts(start_date=start_date, end_date=end_date),
        operation="get_daily_alert_counts",
    ) or []
    duplicates = raise_for_rpc(
        await rpc.count_potential_duplicates(), operation="count_potential_duplicates"
    )
    try:
        last_sync = await sync_logs_repo.last_finished_at(db)
    except SQLAlchemyError as exc:
        logger.error("last_sync_lookup_failed", exc_info=exc)
        raise backend_error() from exc
    if last_sync is not None and last_sync.tzinfo is None:
        last_sync = last_sync.replace(tzinfo=timezone.utc)

    sources = [_source_health(row) for row in health_rows]
    return MetricsResponse(
        total_alerts=payload_int(stats_rows[0] if stats_rows else {}, "total_alerts"),
        last_24h_alerts=sum(source.last_24h_inserts for source in sources),
        sources_health=sources,
        sparkline_data=[
            DailyAlertCount(date=str(row.get("date")), alerts=payload_int(row, "alerts")) for row in daily_rows
        ],
        duplicates_count=int(duplicates or 0),
        last_sync_time=last_sync,
    )
