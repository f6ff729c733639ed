from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from regalerts.domain.models import AdminOperation


async def insert_operation(
    session: AsyncSession,
    *,
    operation_type: str,
    performed_by: str | None,
    details: dict[str, Any],
) -> AdminOperation:
    operation = AdminOperation(
        operation_type=operation_type,
        performed_by=performed_by,
        details=details,
    )
    session.add(operation)
    await session.flush()
    return operation


async def list_recent(
    session: AsyncSession,
    *,
    operation_type: str | None = None,
    limit: int = 50,
) -> list[AdminOperation]:
    stmt = select(AdminOperation)
    if operation_type:
        stmt = stmt.where(AdminOperation.operation_type == operation_type)
    stmt = stmt.order_by(AdminOperation.created_at.desc(), AdminOperation.id.desc()).limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())
