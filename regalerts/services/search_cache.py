from __future__ import annotations

import base64
from datetime import datetime, timedelta, timezone
import hashlib
import json
import logging
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from regalerts.core.config import Settings
from regalerts.persistence.repos import search_cache as cache_repo


logger = logging.getLogger(__name__)

_KEY_DIGEST_LENGTH = 16


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything this service writes is UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def normalize_query(query: str) -> str:
    return query.strip().lower()


def cache_key(query: str, filters: dict[str, Any] | None, *, max_length: int = 255) -> str:
    """Build ``<normalized query>:<base64 filters>``, at most ``max_length`` long.

    Keys that overflow are cut and end in ``#`` plus a digest of the full
    key, so long queries with different filters still map to different rows.
    """
    # Sorted keys make structurally equal filter dicts collide regardless of insertion order.
    serialized = json.dumps(filters or {}, sort_keys=True, separators=(",", ":"), default=str)
    encoded = base64.b64encode(serialized.encode("utf-8")).decode("ascii")
    key = f"{normalize_query(query)}:{encoded}"
    if len(key) <= max_length:
        return key
    if max_length <= _KEY_DIGEST_LENGTH + 1:
        raise ValueError(f"max_length must exceed {_KEY_DIGEST_LENGTH + 1}")
    digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:_KEY_DIGEST_LENGTH]
    return f"{key[: max_length - _KEY_DIGEST_LENGTH - 1]}#{digest}"


class SearchCache:
    """Expiring search-result lookups over the ``search_cache`` table.

    Purely an optimization: storage failures are logged and reported as a
    miss (or a no-op), never raised to the request that asked.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        ttl: timedelta = timedelta(minutes=30),
        key_max_length: int = 255,
        query_max_length: int = 500,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._session = session
        self._ttl = ttl
        self._key_max_length = key_max_length
        self._query_max_length = query_max_length
        self._clock = clock

    @classmethod
    def from_settings(cls, session: AsyncSession, settings: Settings) -> "SearchCache":
        return cls(
            session,
            ttl=timedelta(minutes=settings.search_cache_ttl_minutes),
            key_max_length=settings.search_cache_key_max_length,
            query_max_length=settings.search_cache_query_max_length,
        )

    def key(self, query: str, filters: dict[str, Any] | None) -> str:
        return cache_key(query, filters, max_length=self._key_max_length)

    async def get(self, query: str, filters: dict[str, Any] | None) -> Any | None:
        key = self.key(query, filters)
        try:
            entry = await cache_repo.get_entry(self._session, key)
            if entry is None:
                return None
            if _as_utc(entry.expires_at) <= self._clock():
                # Lazy expiry: drop the stale row on read so it is never served.
                await cache_repo.delete_entry(self._session, key)
                await self._session.commit()
                return None
            return entry.result_data
        except SQLAlchemyError as exc:
            await self._session.rollback()
            logger.warning("search_cache_get_failed cache_key=%s", key, exc_info=exc)
            return None

    async def put(self, query: str, filters: dict[str, Any] | None, result: Any) -> None:
        key = self.key(query, filters)
        try:
            await cache_repo.upsert_entry(
                self._session,
                cache_key=key,
                query=query[: self._query_max_length],
                result_data=result,
                expires_at=self._clock() + self._ttl,
            )
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            logger.warning("search_cache_put_failed cache_key=%s", key, exc_info=exc)

    async def sweep(self) -> int:
        try:
            deleted = await cache_repo.delete_expired(self._session, now=self._clock())
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            logger.warning("search_cache_sweep_failed", exc_info=exc)
            return 0
        logger.info("search_cache_swept deleted=%s", deleted)
        return deleted
