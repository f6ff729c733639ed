from __future__ import annotations

import asyncio

from regalerts.core.config import get_settings
from regalerts.core.logging import configure_logging
from regalerts.persistence.db import Database
from regalerts.services.search_cache import SearchCache


async def prune() -> int:
    # Remove expired search cache rows that were never read again after expiry.
    settings = get_settings()
    configure_logging(settings.log_level)
    database = Database.from_settings(settings)
    try:
        async with database.session() as session:
            deleted = await SearchCache.from_settings(session, settings).sweep()
    finally:
        await database.dispose()
    print(f"pruned_search_cache_entries={deleted}")
    return deleted


if __name__ == "__main__":
    asyncio.run(prune())
