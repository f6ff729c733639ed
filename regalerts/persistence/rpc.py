from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
import logging
from typing import Any

from sqlalchemy import Date, Integer, Text, bindparam, text
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.types import TypeEngine

from regalerts.core.errors import UnknownProcedureError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RpcResult:
    # Mirror the platform's {data, error} contract; callers must check error before reading data.
    data: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class Procedure:
    name: str
    # Ordered parameter names and SQL types; types render as explicit casts for asyncpg.
    params: dict[str, TypeEngine] = field(default_factory=dict)
    # Table-returning functions are selected FROM; scalar ones return a single value.
    returns_rows: bool = False


_TEXT_ARRAY = ARRAY(Text())

PROCEDURES: dict[str, Procedure] = {
    procedure.name: procedure
    for procedure in (
        Procedure(
            "get_agencies_with_stats",
            {
                "search_term": Text(),
                "source_filter": Text(),
                "status_filter": Text(),
                "jurisdiction_filter": Text(),
                "page_number": Integer(),
                "page_size": Integer(),
            },
        ),
        Procedure("deduplicate_alerts", {"triggered_by": Text()}),
        Procedure("get_duplicate_groups", returns_rows=True),
        Procedure("get_duplicate_stats", returns_rows=True),
        Procedure("get_duplicate_group_alerts", {"group_id": Text()}, returns_rows=True),
        Procedure("remove_duplicate_group", {"group_id": Text(), "triggered_by": Text()}),
        Procedure("get_health_status", returns_rows=True),
        Procedure("run_health_check", {"triggered_by": Text()}),
        Procedure("reindex_database", {"triggered_by": Text()}),
        Procedure(
            "trigger_backfill",
            {"days_back": Integer(), "source_filter": _TEXT_ARRAY, "triggered_by": Text()},
        ),
        Procedure(
            "trigger_manual_sync",
            {"days_back": Integer(), "source_filter": _TEXT_ARRAY, "triggered_by": Text()},
        ),
        Procedure("search_alerts", {"search_query": Text(), "filters": JSONB()}),
        Procedure("get_sources_health", returns_rows=True),
        Procedure(
            "get_daily_alert_counts",
            {"start_date": Date(), "end_date": Date()},
            returns_rows=True,
        ),
        Procedure("count_potential_duplicates"),
        Procedure("get_database_stats", returns_rows=True),
    )
}


def plain_numbers(value: Any) -> Any:
    """Replace ``Decimal`` values (Postgres NUMERIC) with ``int`` or ``float``.

    Walks dicts and lists so procedure rows and JSON payloads serialize as
    JSON numbers rather than strings.
    """
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {key: plain_numbers(item) for key, item in value.items()}
    if isinstance(value, list):
        return [plain_numbers(item) for item in value]
    return value


def build_statement(procedure: Procedure):
    # Use named-argument notation so procedure parameter order never matters.
    args = ", ".join(f"{name} => :{name}" for name in procedure.params)
    if procedure.returns_rows:
        sql = f"SELECT * FROM {procedure.name}({args})"
    else:
        sql = f"SELECT {procedure.name}({args}) AS result"
    stmt = text(sql)
    if procedure.params:
        stmt = stmt.bindparams(*[bindparam(name, type_=type_) for name, type_ in procedure.params.items()])
    return stmt


class RpcClient:
    """Calls the hosted database's stored procedures, one coroutine per procedure.

    No call is retried: whether the procedures tolerate a second invocation
    for the same logical request is not known.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def call(self, name: str, **params: Any) -> RpcResult:
        procedure = PROCEDURES.get(name)
        if procedure is None:
            raise UnknownProcedureError(name)
        unexpected = set(params) - set(procedure.params)
        if unexpected:
            raise ValueError(f"unexpected parameters for {name}: {sorted(unexpected)}")
        values = {key: params.get(key) for key in procedure.params}
        try:
            result = await self._session.execute(build_statement(procedure), values)
            if procedure.returns_rows:
                data: Any = [dict(row) for row in result.mappings().all()]
            else:
                data = result.scalar_one_or_none()
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            logger.error("rpc_call_failed procedure=%s", name, exc_info=exc)
            return RpcResult(error=f"{name}: {exc}")
        return RpcResult(data=plain_numbers(data))

    async def get_agencies_with_stats(
        self,
        *,
        search_term: str | None,
        source_filter: str | None,
        status_filter: str | None,
        jurisdiction_filter: str | None,
        page_number: int,
        page_size: int,
    ) -> RpcResult:
        return await self.call(
            "get_agencies_with_stats",
            search_term=search_term,
            source_filter=source_filter,
            status_filter=status_filter,
            jurisdiction_filter=jurisdiction_filter,
            page_number=page_number,
            page_size=page_size,
        )

    async def deduplicate_alerts(self, *, triggered_by: str) -> RpcResult:
        return await self.call("deduplicate_alerts", triggered_by=triggered_by)

    async def get_duplicate_groups(self) -> RpcResult:
        return await self.call("get_duplicate_groups")

    async def get_duplicate_stats(self) -> RpcResult:
        return await self.call("get_duplicate_stats")

    async def get_duplicate_group_alerts(self, *, group_id: str) -> RpcResult:
        return await self.call("get_duplicate_group_alerts", group_id=group_id)

    async def remove_duplicate_group(self, *, group_id: str, triggered_by: str) -> RpcResult:
        return await self.call("remove_duplicate_group", group_id=group_id, triggered_by=triggered_by)

    async def get_health_status(self) -> RpcResult:
        return await self.call("get_health_status")

    async def run_health_check(self, *, triggered_by: str) -> RpcResult:
        return await self.call("run_health_check", triggered_by=triggered_by)

    async def reindex_database(self, *, triggered_by: str) -> RpcResult:
        return await self.call("reindex_database", triggered_by=triggered_by)

    async def trigger_backfill(
        self, *, days_back: int, source_filter: list[str] | None, triggered_by: str
    ) -> RpcResult:
        return await self.call(
            "trigger_backfill",
            days_back=days_back,
            source_filter=source_filter,
            triggered_by=triggered_by,
        )

    async def trigger_manual_sync(
        self, *, days_back: int, source_filter: list[str] | None, triggered_by: str
    ) -> RpcResult:
        return await self.call(
            "trigger_manual_sync",
            days_back=days_back,
            source_filter=source_filter,
            triggered_by=triggered_by,
        )

    async def search_alerts(self, *, search_query: str, filters: dict[str, Any]) -> RpcResult:
        return await self.call("search_alerts", search_query=search_query, filters=filters)

    async def get_sources_health(self) -> RpcResult:
        return await self.call("get_sources_health")

    async def get_daily_alert_counts(self, *, start_date: date, end_date: date) -> RpcResult:
        return await self.call("get_daily_alert_counts", start_date=start_date, end_date=end_date)

    async def count_potential_duplicates(self) -> RpcResult:
        return await self.call("count_potential_duplicates")

    async def get_database_stats(self) -> RpcResult:
        return await self.call("get_database_stats")
