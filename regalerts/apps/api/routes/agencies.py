from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from regalerts.apps.api.deps import AdminProfile, get_app_settings, get_db, get_rpc_client, require_admin
from regalerts.apps.api.errors import backend_error, raise_for_rpc
from regalerts.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from regalerts.apps.api.response import (
    ApiModel,
    blank_to_none,
    clamp_page_size,
    payload_int,
    payload_list,
)
from regalerts.core.config import Settings
from regalerts.persistence.repos import alerts as alerts_repo
from regalerts.persistence.rpc import RpcClient


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], responses=DEFAULT_ERROR_RESPONSES)


class AgenciesResponse(ApiModel):
    agencies: list[dict[str, Any]]
    total: int
    sources: list[str]
    jurisdictions: list[str]


@router.get("/agencies", response_model=AgenciesResponse)
async def list_agencies(
    search: str | None = None,
    source: str | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    jurisdiction: str | None = None,
    page: int = 1,
    page_size: int | None = Query(default=None, alias="pageSize"),
    admin: AdminProfile = Depends(require_admin),
    rpc: RpcClient = Depends(get_rpc_client),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> AgenciesResponse:
    result = await rpc.get_agencies_with_stats(
        search_term=blank_to_none(search),
        source_filter=blank_to_none(source),
        status_filter=blank_to_none(status_filter),
        jurisdiction_filter=blank_to_none(jurisdiction),
        page_number=max(1, page),
        page_size=clamp_page_size(
            page_size,
            default=settings.agencies_default_page_size,
            maximum=settings.agencies_max_page_size,
        ),
    )
    payload = raise_for_rpc(result, operation="get_agencies_with_stats")
    agencies = [agency for agency in payload_list(payload, "agencies") if isinstance(agency, dict)]
    # Filter dropdowns list every known value, not just the ones on this page.
    try:
        sources = await alerts_repo.distinct_sources(db)
        jurisdictions = await alerts_repo.distinct_jurisdictions(db)
    except SQLAlchemyError as exc:
        logger.error("agency_filter_options_failed", exc_info=exc)
        raise backend_error() from exc
    return AgenciesResponse(
        agencies=agencies,
        total=payload_int(payload, "total", "total_count"),
        sources=sources,
        jurisdictions=jurisdictions,
    )
