from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from regalerts.persistence.repos import admin_operations as operations_repo


logger = logging.getLogger(__name__)

OPERATION_DUPLICATE_REMOVAL = "duplicate_removal"


async def record_admin_operation(
    session: AsyncSession,
    *,
    operation_type: str,
    performed_by: str | None,
    details: dict[str, Any] | None = None,
) -> bool:
    # Best-effort: the primary mutation is already committed server-side, so a failed
    # audit write is logged and reported to the caller but never raised.
    try:
        await operations_repo.insert_operation(
            session,
            operation_type=operation_type,
            performed_by=performed_by,
            details=details or {},
        )
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.warning(
            "admin_operation_write_failed operation_type=%s performed_by=%s",
            operation_type,
            performed_by,
            exc_info=exc,
        )
        return False
    return True
