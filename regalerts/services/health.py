from __future__ import annotations

from typing import Any, Iterable


STATUS_HEALTHY = "healthy"
STATUS_DEGRADED = "degraded"
STATUS_UNHEALTHY = "unhealthy"

# Unquoted identifiers in the health procedure come back lower-cased from Postgres.
_FIELD_ALIASES = {
    "lastchecked": "lastChecked",
    "lastsuccess": "lastSuccess",
    "lastfailure": "lastFailure",
    "successrate24h": "successRate24h",
    "totalchecks24h": "totalChecks24h",
    "failedchecks24h": "failedChecks24h",
    "avglatency24h": "avgLatency24h",
}


def overall_status(statuses: Iterable[str | None]) -> str:
    """Collapse per-source statuses into one label.

    All healthy is ``healthy``, at least half healthy is ``degraded``,
    anything less is ``unhealthy``. An empty list counts as all healthy.
    """
    values = list(statuses)
    total = len(values)
    healthy = sum(1 for value in values if value == STATUS_HEALTHY)
    if healthy == total:
        return STATUS_HEALTHY
    if healthy / total >= 0.5:
        return STATUS_DEGRADED
    return STATUS_UNHEALTHY


def normalize_source_row(row: dict[str, Any]) -> dict[str, Any]:
    return {_FIELD_ALIASES.get(key, key): value for key, value in row.items()}
