from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from regalerts.domain.models import Alert


async def distinct_sources(session: AsyncSession) -> list[str]:
    stmt = select(Alert.source).where(Alert.source.is_not(None)).distinct().order_by(Alert.source)
    result = await session.execute(stmt)
    return [value for value in result.scalars().all() if value]


async def distinct_jurisdictions(session: AsyncSession) -> list[str]:
    stmt = (
        select(Alert.jurisdiction)
        .where(Alert.jurisdiction.is_not(None))
        .distinct()
        .order_by(Alert.jurisdiction)
    )
    result = await session.execute(stmt)
    return [value for value in result.scalars().all() if value]
