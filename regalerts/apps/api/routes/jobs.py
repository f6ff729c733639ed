from __future__ import annotations

import logging
import math
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from regalerts.apps.api.deps import AdminProfile, get_app_settings, get_db, get_rpc_client, require_admin
from regalerts.apps.api.errors import backend_error, raise_for_rpc, validation_error
from regalerts.apps.api.openapi import DEFAULT_ERROR_RESPONSES, JOB_CONFLICT_RESPONSES
from regalerts.apps.api.response import ApiModel, payload_int, payload_list, payload_str
from regalerts.core.config import Settings
from regalerts.persistence.rpc import RpcClient
from regalerts.services.job_guard import TRIGGER_BACKFILL, ensure_no_running_job


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], responses=DEFAULT_ERROR_RESPONSES)

DEFAULT_SYNC_DAYS = 1
DEFAULT_BACKFILL_DAYS = 30


class JobRequest(BaseModel):
    # The console posts `sinceDays`; `days` is accepted as well.
    model_config = ConfigDict(populate_by_name=True)

    days: int | None = Field(default=None, validation_alias=AliasChoices("days", "sinceDays"))
    sources: list[str] | None = None


class DedupeResponse(ApiModel):
    success: bool = True
    removed_count: int
    message: str
    details: dict[str, Any]


class ReindexResponse(ApiModel):
    success: bool = True
    indexes_created: int
    message: str
    duration: str
    details: dict[str, Any]


class BackfillResponse(ApiModel):
    success: bool = True
    backfill_id: str | None
    message: str
    estimated_duration: str
    results: list[Any]


class SyncResponse(ApiModel):
    success: bool = True
    sync_id: str | None
    message: str
    results: list[Any]


def estimated_duration(days: int, days_per_minute: int) -> str:
    return f"{math.ceil(days / days_per_minute)} minutes"


def _clean_sources(sources: list[str] | None) -> list[str] | None:
    if not sources:
        return None
    cleaned = [source.strip() for source in sources if source and source.strip()]
    return cleaned or None


async def _guard_job_start(db: AsyncSession, *, trigger_type: str | None) -> None:
    # JobAlreadyRunningError propagates to the 409 handler; storage errors become 500.
    try:
        await ensure_no_running_job(db, trigger_type=trigger_type)
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("job_guard_failed trigger_type=%s", trigger_type or "any", exc_info=exc)
        raise backend_error() from exc


@router.post("/dedupe", response_model=DedupeResponse)
async def run_dedupe(
    admin: AdminProfile = Depends(require_admin),
    rpc: RpcClient = Depends(get_rpc_client),
) -> DedupeResponse:
    payload = raise_for_rpc(await rpc.deduplicate_alerts(triggered_by=admin.id), operation="deduplicate_alerts")
    removed_count = payload_int(payload, "removed_count", "removedCount")
    logger.info("dedupe_completed removed_count=%s admin_id=%s", removed_count, admin.id)
    return DedupeResponse(
        removed_count=removed_count,
        message=payload_str(payload, "message") or f"Removed {removed_count} duplicate alerts",
        details=payload if isinstance(payload, dict) else {},
    )


@router.post("/reindex", response_model=ReindexResponse)
async def run_reindex(
    admin: AdminProfile = Depends(require_admin),
    rpc: RpcClient = Depends(get_rpc_client),
) -> ReindexResponse:
    payload = raise_for_rpc(await rpc.reindex_database(triggered_by=admin.id), operation="reindex_database")
    indexes_created = payload_int(payload, "indexes_created", "indexesCreated")
    logger.info("reindex_completed indexes_created=%s admin_id=%s", indexes_created, admin.id)
    return ReindexResponse(
        indexes_created=indexes_created,
        message=payload_str(payload, "message") or f"Created {indexes_created} database indexes",
        duration=payload_str(payload, "duration") or "0s",
        details=payload if isinstance(payload, dict) else {},
    )


@router.post("/backfill", response_model=BackfillResponse, responses=JOB_CONFLICT_RESPONSES)
async def trigger_backfill(
    body: JobRequest | None = None,
    admin: AdminProfile = Depends(require_admin),
    rpc: RpcClient = Depends(get_rpc_client),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> BackfillResponse:
    body = body or JobRequest()
    days = DEFAULT_BACKFILL_DAYS if body.days is None else body.days
    if days < 1 or days > settings.backfill_max_days:
        raise validation_error(
            "INVALID_DAYS",
            f"Days must be between 1 and {settings.backfill_max_days}",
            field="days",
        )
    await _guard_job_start(db, trigger_type=TRIGGER_BACKFILL)

    payload = raise_for_rpc(
        await rpc.trigger_backfill(
            days_back=days,
            source_filter=_clean_sources(body.sources),
            triggered_by=admin.id,
        ),
        operation="trigger_backfill",
    )
    backfill_id = payload_str(payload, "backfill_id", "backfillId")
    logger.info("backfill_triggered backfill_id=%s days=%s admin_id=%s", backfill_id, days, admin.id)
    return BackfillResponse(
        backfill_id=backfill_id,
        message=payload_str(payload, "message") or f"Backfill started for the last {days} days",
        estimated_duration=estimated_duration(days, settings.backfill_days_per_minute),
        results=payload_list(payload, "results"),
    )


@router.post("/sync", response_model=SyncResponse, responses=JOB_CONFLICT_RESPONSES)
async def trigger_sync(
    body: JobRequest | None = None,
    admin: AdminProfile = Depends(require_admin),
    rpc: RpcClient = Depends(get_rpc_client),
    db: AsyncSession = Depends(get_db),
) -> SyncResponse:
    body = body or JobRequest()
    # Unlike backfill, the sync window is passed through unchecked.
    days = DEFAULT_SYNC_DAYS if body.days is None else body.days
    await _guard_job_start(db, trigger_type=None)

    payload = raise_for_rpc(
        await rpc.trigger_manual_sync(
            days_back=days,
            source_filter=_clean_sources(body.sources),
            triggered_by=admin.id,
        ),
        operation="trigger_manual_sync",
    )
    sync_id = payload_str(payload, "sync_id", "syncId")
    logger.info("sync_triggered sync_id=%s days=%s admin_id=%s", sync_id, days, admin.id)
    return SyncResponse(
        sync_id=sync_id,
        message=payload_str(payload, "message") or "Manual sync started",
        results=payload_list(payload, "results"),
    )
