from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from regalerts.apps.api.deps import CurrentUser, get_current_user, get_rpc_client, get_search_cache
from regalerts.apps.api.errors import raise_for_rpc, validation_error
from regalerts.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from regalerts.apps.api.response import ApiModel
from regalerts.persistence.rpc import RpcClient
from regalerts.services.search_cache import SearchCache


logger = logging.getLogger(__name__)

router = APIRouter(tags=["search"], responses=DEFAULT_ERROR_RESPONSES)


class SearchRequest(BaseModel):
    query: str = ""
    filters: dict[str, Any] | None = None


class SearchResponse(ApiModel):
    results: Any
    cached: bool


@router.post("/search", response_model=SearchResponse)
async def search_alerts(
    body: SearchRequest,
    user: CurrentUser = Depends(get_current_user),
    rpc: RpcClient = Depends(get_rpc_client),
    cache: SearchCache = Depends(get_search_cache),
) -> SearchResponse:
    query = body.query.strip()
    if not query:
        raise validation_error("QUERY_REQUIRED", "Search query is required", field="query")
    filters = body.filters or {}

    cached = await cache.get(query, filters)
    if cached is not None:
        logger.info("search_cache_hit user_id=%s", user.id)
        return SearchResponse(results=cached, cached=True)

    results = raise_for_rpc(await rpc.search_alerts(search_query=query, filters=filters), operation="search_alerts")
    await cache.put(query, filters, results)
    return SearchResponse(results=results, cached=False)
