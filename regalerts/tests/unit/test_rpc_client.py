from __future__ import annotations

from decimal import Decimal
from typing import Any

import pytest
from sqlalchemy.exc import OperationalError

from regalerts.core.errors import UnknownProcedureError
from regalerts.persistence.rpc import PROCEDURES, RpcClient, build_statement, plain_numbers


class _StubResult:
    def __init__(self, *, scalar: Any = None, rows: list[dict[str, Any]] | None = None) -> None:
        self._scalar = scalar
        self._rows = rows or []

    def scalar_one_or_none(self) -> Any:
        return self._scalar

    def mappings(self) -> "_StubResult":
        return self

    def all(self) -> list[dict[str, Any]]:
        return self._rows


class _StubSession:
    def __init__(self, *, result: _StubResult | None = None, error: Exception | None = None) -> None:
        self._result = result or _StubResult()
        self._error = error
        self.executed: list[tuple[str, dict[str, Any]]] = []
        self.commits = 0
        self.rollbacks = 0

    async def execute(self, statement, params=None):
        self.executed.append((str(statement), params))
        if self._error is not None:
            raise self._error
        return self._result

    async def commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        self.rollbacks += 1


def test_scalar_procedures_select_the_function_value() -> None:
    sql = str(build_statement(PROCEDURES["trigger_backfill"]))

    assert sql == (
        "SELECT trigger_backfill(days_back => :days_back, source_filter => :source_filter, "
        "triggered_by => :triggered_by) AS result"
    )


def test_table_procedures_select_from_the_function() -> None:
    assert str(build_statement(PROCEDURES["get_health_status"])) == "SELECT * FROM get_health_status()"


async def test_scalar_call_returns_json_payload_and_commits() -> None:
    session = _StubSession(result=_StubResult(scalar={"sync_id": "s-1", "results": []}))
    client = RpcClient(session)  # type: ignore[arg-type]

    result = await client.trigger_manual_sync(days_back=3, source_filter=["FDA"], triggered_by="u-1")

    assert result.ok
    assert result.data == {"sync_id": "s-1", "results": []}
    assert session.executed[0][1] == {"days_back": 3, "source_filter": ["FDA"], "triggered_by": "u-1"}
    assert session.commits == 1


async def test_table_call_returns_rows_as_dicts() -> None:
    rows = [{"name": "FDA", "status": "healthy"}, {"name": "EPA", "status": "unknown"}]
    session = _StubSession(result=_StubResult(rows=rows))

    result = await RpcClient(session).get_health_status()  # type: ignore[arg-type]

    assert result.data == rows


async def test_numeric_columns_come_back_as_json_numbers() -> None:
    rows = [
        {
            "name": "FDA",
            "successrate24h": Decimal("87.5"),
            "avglatency24h": Decimal("412.25"),
            "totalchecks24h": Decimal("24"),
        }
    ]
    session = _StubSession(result=_StubResult(rows=rows))

    result = await RpcClient(session).get_health_status()  # type: ignore[arg-type]

    row = result.data[0]
    assert row["successrate24h"] == 87.5 and isinstance(row["successrate24h"], float)
    assert row["avglatency24h"] == 412.25 and isinstance(row["avglatency24h"], float)
    assert row["totalchecks24h"] == 24 and isinstance(row["totalchecks24h"], int)


def test_plain_numbers_walks_nested_payloads() -> None:
    payload = {"groups": [{"similarity_score": Decimal("0.92"), "alert_ids": ["a", "b"]}], "total": Decimal("3")}

    assert plain_numbers(payload) == {"groups": [{"similarity_score": 0.92, "alert_ids": ["a", "b"]}], "total": 3}
    assert isinstance(plain_numbers(payload)["groups"][0]["similarity_score"], float)


async def test_backend_failure_becomes_error_result() -> None:
    failure = OperationalError("SELECT deduplicate_alerts()", {}, Exception("connection reset"))
    session = _StubSession(error=failure)

    result = await RpcClient(session).deduplicate_alerts(triggered_by="u-1")  # type: ignore[arg-type]

    assert not result.ok
    assert result.data is None
    assert result.error is not None and result.error.startswith("deduplicate_alerts:")
    assert session.rollbacks == 1
    assert session.commits == 0


async def test_unknown_procedure_and_parameters_are_rejected() -> None:
    client = RpcClient(_StubSession())  # type: ignore[arg-type]

    with pytest.raises(UnknownProcedureError):
        await client.call("drop_everything")
    with pytest.raises(ValueError):
        await client.call("run_health_check", triggered_by="u-1", force=True)


def test_date_range_procedure_uses_named_arguments() -> None:
    sql = str(build_statement(PROCEDURES["get_daily_alert_counts"]))

    assert sql == "SELECT * FROM get_daily_alert_counts(start_date => :start_date, end_date => :end_date)"
