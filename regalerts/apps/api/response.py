from __future__ import annotations

from typing import Any
from uuid import uuid4

from fastapi import Request
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    # The admin console speaks camelCase; Python code keeps snake_case attribute names.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ResponseMeta(BaseModel):
    request_id: str


class ErrorDetail(BaseModel):
    # Standardize error codes/messages with optional structured details.
    code: str
    message: str
    details: dict[str, Any] | None = None


class ErrorEnvelope(BaseModel):
    success: bool = False
    error: ErrorDetail
    meta: ResponseMeta


def get_request_id(request: Request) -> str:
    # Use existing request IDs when provided to preserve traceability.
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return request_id
    header_request_id = request.headers.get("X-Request-Id")
    if header_request_id:
        request.state.request_id = header_request_id
        return header_request_id
    generated = str(uuid4())
    request.state.request_id = generated
    return generated


def error_response(
    *,
    request: Request,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    meta = ResponseMeta(request_id=get_request_id(request))
    error = ErrorDetail(code=code, message=message, details=details)
    return {"success": False, "error": error.model_dump(exclude_none=True), "meta": meta.model_dump()}


def _first(payload: Any, keys: tuple[str, ...]) -> Any:
    if not isinstance(payload, dict):
        return None
    for key in keys:
        value = payload.get(key)
        if value is not None:
            return value
    return None


def payload_int(payload: Any, *keys: str, default: int = 0) -> int:
    # Procedure payloads may omit counts or return them as numeric strings.
    value = _first(payload, keys)
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def payload_str(payload: Any, *keys: str) -> str | None:
    value = _first(payload, keys)
    if value is None:
        return None
    return str(value)


def payload_list(payload: Any, *keys: str) -> list[Any]:
    value = _first(payload, keys)
    return list(value) if isinstance(value, list) else []


def blank_to_none(value: str | None) -> str | None:
    # Console filters send empty strings for "any".
    if value is None:
        return None
    value = value.strip()
    return value or None


def clamp_page_size(requested: int | None, *, default: int, maximum: int) -> int:
    # Oversized or non-positive page sizes are clamped, not rejected.
    if requested is None:
        return default
    return max(1, min(requested, maximum))
