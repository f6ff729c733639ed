from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from regalerts.apps.api.deps import AdminProfile, get_rpc_client, require_admin
from regalerts.apps.api.errors import raise_for_rpc
from regalerts.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from regalerts.apps.api.response import ApiModel, payload_str
from regalerts.persistence.rpc import RpcClient
from regalerts.services.health import normalize_source_row, overall_status


logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])
admin_router = APIRouter(prefix="/admin", tags=["admin"], responses=DEFAULT_ERROR_RESPONSES)


class LivenessResponse(BaseModel):
    status: str


class HealthStatusResponse(ApiModel):
    sources: list[dict[str, Any]]
    last_updated: str
    overall_status: str


class HealthCheckResponse(ApiModel):
    success: bool = True
    message: str
    results: Any = None


@router.get("/health", response_model=LivenessResponse)
async def health() -> LivenessResponse:
    # Process liveness only; source health lives under /admin/health.
    return LivenessResponse(status="ok")


@admin_router.get("/health", response_model=HealthStatusResponse)
async def get_health_status(
    admin: AdminProfile = Depends(require_admin),
    rpc: RpcClient = Depends(get_rpc_client),
) -> HealthStatusResponse:
    rows = raise_for_rpc(await rpc.get_health_status(), operation="get_health_status") or []
    sources = [normalize_source_row(row) for row in rows]
    return HealthStatusResponse(
        sources=sources,
        last_updated=datetime.now(timezone.utc).isoformat(),
        overall_status=overall_status(source.get("status") for source in sources),
    )


@admin_router.post("/health", response_model=HealthCheckResponse)
async def run_health_check(
    admin: AdminProfile = Depends(require_admin),
    rpc: RpcClient = Depends(get_rpc_client),
) -> HealthCheckResponse:
    payload = raise_for_rpc(await rpc.run_health_check(triggered_by=admin.id), operation="run_health_check")
    logger.info("health_check_triggered admin_id=%s", admin.id)
    return HealthCheckResponse(
        message=payload_str(payload, "message") or "Health check completed",
        results=payload,
    )
