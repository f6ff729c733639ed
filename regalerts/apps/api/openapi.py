from __future__ import annotations

from typing import Any

from regalerts.apps.api.response import ErrorEnvelope


def _error_example(*, code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    # Build a consistent error envelope example for OpenAPI docs.
    payload: dict[str, Any] = {
        "success": False,
        "error": {"code": code, "message": message},
        "meta": {"request_id": "req_example"},
    }
    if details:
        payload["error"]["details"] = details
    return payload


def _response(description: str, example: dict[str, Any]) -> dict[str, Any]:
    return {
        "model": ErrorEnvelope,
        "description": description,
        "content": {"application/json": {"example": example}},
    }


DEFAULT_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: _response(
        "Bad request",
        _error_example(code="VALIDATION_ERROR", message="Invalid request"),
    ),
    401: _response(
        "Unauthorized",
        _error_example(code="AUTH_UNAUTHORIZED", message="Unauthorized"),
    ),
    403: _response(
        "Forbidden",
        _error_example(code="AUTH_FORBIDDEN", message="Admin access required"),
    ),
    500: _response(
        "Backend failure",
        _error_example(code="BACKEND_ERROR", message="Backend operation failed"),
    ),
}

JOB_CONFLICT_RESPONSES: dict[int | str, dict[str, Any]] = {
    409: _response(
        "Job already running",
        _error_example(code="JOB_ALREADY_RUNNING", message="A backfill job is already running"),
    ),
}
