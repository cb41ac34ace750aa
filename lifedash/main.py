"""Application entrypoint for the life dashboard service."""
from __future__ import annotations

import time

import httpx
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lifedash.api.v1 import router as api_v1_router
from lifedash.core import context as request_context
from lifedash.core.config import Settings, get_settings
from lifedash.core.db import AsyncSessionLocal, engine
from lifedash.core.logging import configure_logging
from lifedash.core.structured_logger import LogSink, StructuredLogger, build_logger
from lifedash.models import Base
from lifedash.services.google_services import build_google_services
from lifedash.services.log_store import DatabaseLogSink

ERROR_CODE_MAP: dict[int, str] = {
    401: "UNAUTHORIZED",
    404: "RESOURCE_NOT_FOUND",
    422: "VALIDATION_ERROR",
}
REQUEST_ID_HEADER = "X-Request-Id"


def create_app(
    settings: Settings | None = None,
    *,
    log_sink: LogSink | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance."""
    settings = settings or get_settings()
    configure_logging(settings)

    logger = build_logger(settings, log_sink or DatabaseLogSink(AsyncSessionLocal))

    application = FastAPI(title="Life Dashboard", version=settings.version)
    application.state.settings = settings
    application.state.logger = logger
    application.state.google = build_google_services(
        settings, logger, AsyncSessionLocal, http_client=http_client
    )

    _configure_cors(application, settings)
    _configure_request_logging(application, logger)
    _configure_exception_handlers(application)

    application.include_router(api_v1_router, prefix="/api/v1")

    @application.on_event("startup")
    async def _on_startup() -> None:  # pragma: no cover - exercised via tests
        async with engine.begin() as connection:
            await connection.run_sync(Base.metadata.create_all)
        await logger.info("Application started", environment=settings.app_env)

    return application


def _configure_cors(application: FastAPI, settings: Settings) -> None:
    if not settings.cors_origins:
        return

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def _configure_request_logging(application: FastAPI, logger: StructuredLogger) -> None:
    http_logger = logger.child("http")

    @application.middleware("http")
    async def _log_requests(request: Request, call_next) -> Response:  # noqa: ANN001
        request_id = request_context.begin_request(
            request.method,
            request.url.path,
            request.headers.get(REQUEST_ID_HEADER),
        )
        started = time.perf_counter()
        await http_logger.info(
            "Request received", method=request.method, path=request.url.path
        )
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        await http_logger.info(
            "Response sent",
            status=response.status_code,
            duration_ms=int((time.perf_counter() - started) * 1000),
        )
        return response


def _configure_exception_handlers(application: FastAPI) -> None:
    application.add_exception_handler(HTTPException, _http_exception_handler)
    application.add_exception_handler(RequestValidationError, _validation_exception_handler)
    application.add_exception_handler(Exception, _unhandled_exception_handler)


async def _http_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, HTTPException)
    extra: dict[str, object] = {}
    if isinstance(exc.detail, dict):
        message = str(exc.detail.get("message", "")) or str(exc.detail)
        code = exc.detail.get(
            "code", ERROR_CODE_MAP.get(exc.status_code, f"HTTP_{exc.status_code}")
        )
        extra = {k: v for k, v in exc.detail.items() if k not in ("code", "message")}
    else:
        message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
        code = ERROR_CODE_MAP.get(exc.status_code, f"HTTP_{exc.status_code}")
    return _error_response(code, message, exc.status_code, **extra)


async def _validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, RequestValidationError)
    await request.app.state.logger.child("http").info(
        "Validation error", errors=exc.errors()
    )
    return _error_response("VALIDATION_ERROR", "Validation error", status_code=422)


async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    await request.app.state.logger.child("http").log_exception(
        exc, "Unhandled application error", error_type="UNHANDLED"
    )
    return _error_response("INTERNAL_SERVER_ERROR", "Internal server error", status_code=500)


def _error_response(code: str, message: str, status_code: int, **extra: object) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message, **extra}},
    )


app = create_app()
