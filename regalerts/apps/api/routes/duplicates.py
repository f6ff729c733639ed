from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from regalerts.apps.api.deps import AdminProfile, get_db, get_rpc_client, require_admin
from regalerts.apps.api.errors import raise_for_rpc, validation_error
from regalerts.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from regalerts.apps.api.response import ApiModel, payload_int, payload_str
from regalerts.persistence.rpc import RpcClient
from regalerts.services.admin_audit import OPERATION_DUPLICATE_REMOVAL, record_admin_operation


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], responses=DEFAULT_ERROR_RESPONSES)


class DuplicateStats(ApiModel):
    total_duplicates: int = 0
    space_saved: int = 0


class DuplicateGroupsResponse(ApiModel):
    groups: list[dict[str, Any]]
    stats: DuplicateStats


class DuplicateAlertsResponse(ApiModel):
    alerts: list[dict[str, Any]]


class DuplicateRemovalResponse(ApiModel):
    success: bool = True
    removed_count: int
    message: str


class DuplicateScanResponse(BaseModel):
    # The console reads ``total_groups`` as written, so this body stays snake_case.
    success: bool = True
    total_groups: int
    total_duplicates: int
    groups: list[dict[str, Any]]
    message: str


def _group_id_required() -> HTTPException:
    return validation_error("GROUP_ID_REQUIRED", "Group ID is required", field="groupId")


def _require_group_id(group_id: str) -> str:
    cleaned = group_id.strip()
    if not cleaned:
        raise _group_id_required()
    return cleaned


@router.get("/duplicates", response_model=DuplicateGroupsResponse)
async def list_duplicate_groups(
    admin: AdminProfile = Depends(require_admin),
    rpc: RpcClient = Depends(get_rpc_client),
) -> DuplicateGroupsResponse:
    groups = raise_for_rpc(await rpc.get_duplicate_groups(), operation="get_duplicate_groups") or []
    stats_rows = raise_for_rpc(await rpc.get_duplicate_stats(), operation="get_duplicate_stats") or []
    stats_row = stats_rows[0] if stats_rows else {}
    return DuplicateGroupsResponse(
        groups=groups,
        stats=DuplicateStats(
            total_duplicates=payload_int(stats_row, "total_duplicates"),
            space_saved=payload_int(stats_row, "space_saved"),
        ),
    )


@router.post("/duplicates/scan", response_model=DuplicateScanResponse)
async def scan_duplicates(
    admin: AdminProfile = Depends(require_admin),
    rpc: RpcClient = Depends(get_rpc_client),
) -> DuplicateScanResponse:
    # Read-only: reports the current groups without removing anything.
    groups = raise_for_rpc(await rpc.get_duplicate_groups(), operation="get_duplicate_groups") or []
    total_duplicates = sum(max(0, payload_int(group, "count", "alert_count") - 1) for group in groups)
    logger.info("duplicate_scan_completed total_groups=%s admin_id=%s", len(groups), admin.id)
    return DuplicateScanResponse(
        total_groups=len(groups),
        total_duplicates=total_duplicates,
        groups=groups,
        message=f"Found {len(groups)} duplicate groups",
    )


@router.get("/duplicates/{group_id}/alerts", response_model=DuplicateAlertsResponse)
async def list_duplicate_group_alerts(
    group_id: str,
    admin: AdminProfile = Depends(require_admin),
    rpc: RpcClient = Depends(get_rpc_client),
) -> DuplicateAlertsResponse:
    group_id = _require_group_id(group_id)
    alerts = raise_for_rpc(
        await rpc.get_duplicate_group_alerts(group_id=group_id),
        operation="get_duplicate_group_alerts",
    )
    return DuplicateAlertsResponse(alerts=alerts or [])


@router.delete("/duplicates", response_model=DuplicateRemovalResponse, include_in_schema=False)
async def remove_duplicate_group_without_id(
    admin: AdminProfile = Depends(require_admin),
) -> DuplicateRemovalResponse:
    # A removal request that names no group is a client error, not a routing miss.
    raise _group_id_required()


@router.delete("/duplicates/{group_id}", response_model=DuplicateRemovalResponse)
async def remove_duplicate_group(
    group_id: str,
    admin: AdminProfile = Depends(require_admin),
    rpc: RpcClient = Depends(get_rpc_client),
    db: AsyncSession = Depends(get_db),
) -> DuplicateRemovalResponse:
    group_id = _require_group_id(group_id)
    payload = raise_for_rpc(
        await rpc.remove_duplicate_group(group_id=group_id, triggered_by=admin.id),
        operation="remove_duplicate_group",
    )
    removed_count = payload_int(payload, "removed_count", "removedCount")
    # The removal is committed by the procedure; a failed audit write only logs.
    await record_admin_operation(
        db,
        operation_type=OPERATION_DUPLICATE_REMOVAL,
        performed_by=admin.id,
        details={"group_id": group_id, "removed_count": removed_count},
    )
    logger.info(
        "duplicate_group_removed group_id=%s removed_count=%s admin_id=%s",
        group_id,
        removed_count,
        admin.id,
    )
    return DuplicateRemovalResponse(
        removed_count=removed_count,
        message=payload_str(payload, "message") or f"Removed {removed_count} duplicate alerts",
    )
