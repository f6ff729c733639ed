from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from regalerts.apps.api.response import error_response
from regalerts.core.errors import JobAlreadyRunningError
from regalerts.persistence.rpc import RpcResult


logger = logging.getLogger(__name__)

_DEFAULT_ERROR_CODES: dict[int, str] = {
    400: "VALIDATION_ERROR",
    401: "AUTH_UNAUTHORIZED",
    403: "AUTH_FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    500: "INTERNAL_ERROR",
}

BACKEND_ERROR_MESSAGE = "Backend operation failed"


def _default_code(status_code: int) -> str:
    # Map status codes to fallback error codes when none are provided.
    return _DEFAULT_ERROR_CODES.get(status_code, "UNKNOWN_ERROR")


def _split_detail(detail: Any, status_code: int) -> tuple[str, str, dict[str, Any] | None]:
    # Extract code/message/details from HTTPException detail payloads.
    if isinstance(detail, dict):
        code = str(detail.get("code") or _default_code(status_code))
        message = str(detail.get("message") or "Request failed")
        details = {k: v for k, v in detail.items() if k not in {"code", "message"}}
        return code, message, details or None
    if isinstance(detail, str):
        return _default_code(status_code), detail, None
    return _default_code(status_code), "Request failed", None


def api_error(status_code: int, code: str, message: str, **details: Any) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"code": code, "message": message, **details})


def validation_error(code: str, message: str, *, field: str) -> HTTPException:
    return api_error(status.HTTP_400_BAD_REQUEST, code, message, field=field)


def backend_error() -> HTTPException:
    # Never echo backend detail to the caller; it is logged where the failure is seen.
    return api_error(status.HTTP_500_INTERNAL_SERVER_ERROR, "BACKEND_ERROR", BACKEND_ERROR_MESSAGE)


def raise_for_rpc(result: RpcResult, *, operation: str) -> Any:
    """Return the RPC payload, or raise the generic 500 when the call failed."""
    if not result.ok:
        logger.error("admin_rpc_failed operation=%s error=%s", operation, result.error)
        raise backend_error()
    return result.data


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Covers FastAPI and Starlette HTTP exceptions, including routing 404/405.
    code, message, details = _split_detail(exc.detail, exc.status_code)
    payload = error_response(request=request, code=code, message=message, details=details)
    return JSONResponse(content=payload, status_code=exc.status_code, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Malformed bodies and query strings are client errors with field-level details.
    payload = error_response(
        request=request,
        code="VALIDATION_ERROR",
        message="Invalid request",
        details={"errors": jsonable_encoder(exc.errors())},
    )
    return JSONResponse(content=payload, status_code=status.HTTP_400_BAD_REQUEST)


async def job_already_running_exception_handler(
    request: Request, exc: JobAlreadyRunningError
) -> JSONResponse:
    payload = error_response(request=request, code="JOB_ALREADY_RUNNING", message=str(exc))
    return JSONResponse(content=payload, status_code=status.HTTP_409_CONFLICT)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Avoid leaking stack traces; return a stable internal error envelope.
    logger.exception(
        "unhandled_request_error method=%s path=%s", request.method, request.url.path, exc_info=exc
    )
    payload = error_response(request=request, code="INTERNAL_ERROR", message="Internal server error")
    return JSONResponse(content=payload, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
