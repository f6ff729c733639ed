from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from regalerts.core.errors import JobAlreadyRunningError
from regalerts.persistence.repos import sync_logs as sync_logs_repo


logger = logging.getLogger(__name__)

TRIGGER_MANUAL = "manual"
TRIGGER_BACKFILL = "backfill"


async def ensure_no_running_job(session: AsyncSession, *, trigger_type: str | None = None) -> None:
    """Refuse to start a job while a matching ``sync_logs`` row is still running.

    Advisory only: the read and the procedure's later insert are not atomic,
    so two concurrent requests can both pass. Serializing job starts is left
    to the trigger procedures themselves.
    """
    if await sync_logs_repo.has_running_job(session, trigger_type=trigger_type):
        logger.info("job_start_rejected trigger_type=%s", trigger_type or "any")
        raise JobAlreadyRunningError(trigger_type)
