from __future__ import annotations

from contextlib import asynccontextmanager
import logging
import time
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.openapi.utils import get_openapi
from starlette.exceptions import HTTPException as StarletteHTTPException

from regalerts.apps.api.errors import (
    http_exception_handler,
    job_already_running_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from regalerts.apps.api.routes.agencies import router as agencies_router
from regalerts.apps.api.routes.duplicates import router as duplicates_router
from regalerts.apps.api.routes.health import admin_router as admin_health_router
from regalerts.apps.api.routes.health import router as health_router
from regalerts.apps.api.routes.jobs import router as jobs_router
from regalerts.apps.api.routes.logs import router as logs_router
from regalerts.apps.api.routes.metrics import router as metrics_router
from regalerts.apps.api.routes.operations import router as operations_router
from regalerts.apps.api.routes.search import router as search_router
from regalerts.core.config import Settings, get_settings
from regalerts.core.errors import JobAlreadyRunningError
from regalerts.core.logging import configure_logging
from regalerts.persistence.db import Database
from regalerts.services.auth.sessions import SessionVerifier, build_session_verifier


logger = logging.getLogger(__name__)

_PUBLIC_PATHS = {"/health"}


def create_app(
    settings: Settings | None = None,
    *,
    database: Database | None = None,
    session_verifier: SessionVerifier | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    database = database or Database.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await app.state.database.dispose()

    app = FastAPI(title="Regulatory Alerts Admin API", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    app.state.session_verifier = session_verifier or build_session_verifier(settings)

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):  # type: ignore[override]
        # Preserve incoming request IDs or assign a new one for traceability.
        request_id = request.headers.get("X-Request-Id") or str(uuid4())
        request.state.request_id = request_id
        start = time.monotonic()
        response = await call_next(request)
        latency_ms = (time.monotonic() - start) * 1000.0
        response.headers.setdefault("X-Request-Id", request_id)
        logger.info(
            "request_completed method=%s path=%s status=%s latency_ms=%.1f request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            latency_ms,
            request_id,
        )
        return response

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(JobAlreadyRunningError, job_already_running_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(health_router)
    # Operator console endpoints; every route is guarded by require_admin.
    app.include_router(agencies_router)
    app.include_router(duplicates_router)
    app.include_router(admin_health_router)
    app.include_router(jobs_router)
    app.include_router(operations_router)
    app.include_router(logs_router)
    app.include_router(metrics_router)
    # Subscriber-facing search; any signed-in user.
    app.include_router(search_router)

    def custom_openapi() -> dict:
        # Inject bearer auth into the OpenAPI schema for every guarded path.
        if app.openapi_schema:
            return app.openapi_schema
        schema = get_openapi(title=app.title, version="1.0.0", routes=app.routes)
        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes["BearerAuth"] = {"type": "http", "scheme": "bearer"}
        for path, operations in schema.get("paths", {}).items():
            if path in _PUBLIC_PATHS:
                continue
            for operation in operations.values():
                operation.setdefault("security", [{"BearerAuth": []}])
        app.openapi_schema = schema
        return app.openapi_schema

    app.openapi = custom_openapi  # type: ignore[method-assign]

    return app


app = create_app()
