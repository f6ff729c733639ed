from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from regalerts.apps.api.deps import AdminProfile, get_app_settings, get_db, require_admin
from regalerts.apps.api.errors import backend_error
from regalerts.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from regalerts.apps.api.response import ApiModel
from regalerts.core.config import Settings
from regalerts.domain.models import AdminOperation
from regalerts.persistence.repos import admin_operations as operations_repo


router = APIRouter(prefix="/admin", tags=["admin"], responses=DEFAULT_ERROR_RESPONSES)

DEFAULT_OPERATIONS_LIMIT = 50


class AdminOperationResponse(ApiModel):
    id: str
    operation_type: str
    performed_by: str | None
    details: dict[str, Any]
    created_at: str | None


class AdminOperationsResponse(ApiModel):
    operations: list[AdminOperationResponse]


def _to_response(operation: AdminOperation) -> AdminOperationResponse:
    # Serialize audit datetimes to ISO 8601 for the console.
    return AdminOperationResponse(
        id=str(operation.id),
        operation_type=operation.operation_type,
        performed_by=str(operation.performed_by) if operation.performed_by else None,
        details=operation.details or {},
        created_at=operation.created_at.isoformat() if operation.created_at else None,
    )


@router.get("/operations", response_model=AdminOperationsResponse)
async def list_admin_operations(
    operation_type: str | None = Query(default=None, alias="operationType"),
    limit: int = DEFAULT_OPERATIONS_LIMIT,
    admin: AdminProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> AdminOperationsResponse:
    try:
        operations = await operations_repo.list_recent(
            db,
            operation_type=operation_type or None,
            limit=max(1, min(limit, settings.operations_max_limit)),
        )
    except SQLAlchemyError as exc:
        raise backend_error() from exc
    return AdminOperationsResponse(operations=[_to_response(operation) for operation in operations])
