from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app import db  # moteur/metadata centralisés
from app.config import AppInfo, get_settings
from app.core.logging import get_logger, setup_logging
import app.models  # enregistre les tables
from app.routers import get_api_router
from app.services.realtime import JobStatsBroadcast, get_broadcaster
from app.utils.errors import AppError, ErrorKind, error_response

logger = get_logger(__name__)
stats_broadcast: JobStatsBroadcast | None = None

GENERIC_ERROR_MESSAGE = "An unexpected error occurred"


def _current_settings():
    return get_settings()


def _configure_middlewares(fastapi_app: FastAPI) -> None:
    """Configure middleware using a fresh snapshot of the settings."""

    runtime_settings = _current_settings()
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=runtime_settings.CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    if runtime_settings.PROMETHEUS_ENABLED:
        from starlette_exporter import PrometheusMiddleware, handle_metrics

        fastapi_app.add_middleware(PrometheusMiddleware)
        fastapi_app.add_route("/metrics", handle_metrics)

    if runtime_settings.SENTRY_DSN:
        import sentry_sdk

        sentry_sdk.init(dsn=runtime_settings.SENTRY_DSN, traces_sample_rate=0.2)


# -------- Lifespan --------
@asynccontextmanager
async def lifespan(app: FastAPI):
    global stats_broadcast
    settings = _current_settings()
    setup_logging(settings.LOG_LEVEL)
    logger.info("Application startup", extra={"env": settings.app_env})
    db.init_engine()  # sync, idempotent

    if settings.STATS_BROADCAST_ENABLED:
        stats_broadcast = JobStatsBroadcast(
            get_broadcaster(), interval_seconds=settings.JOB_STATS_INTERVAL_SECONDS
        )
        stats_broadcast.start()
    else:
        logger.info("Job stats broadcast disabled", extra={"env": settings.app_env})
    try:
        yield
    finally:
        if stats_broadcast is not None:
            stats_broadcast.stop()
            stats_broadcast = None
        db.close_engine()
        logger.info("Application shutdown", extra={"env": settings.app_env})


app_info = AppInfo()

app = FastAPI(title=app_info.name, version=app_info.version, lifespan=lifespan)

# Middleware & routes
_configure_middlewares(app)
app.include_router(get_api_router())


# Handlers d’erreurs
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    message = exc.message
    if exc.kind is ErrorKind.INTERNAL:
        logger.error("Internal error", extra={"path": request.url.path, "error": exc.message})
        if _current_settings().is_production:
            message = GENERIC_ERROR_MESSAGE
    payload = error_response(exc.code, message, jsonable_encoder(exc.details))
    return JSONResponse(status_code=exc.status_code, content=payload)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
        for error in exc.errors()
    ]
    payload = error_response(ErrorKind.VALIDATION.value, "Validation failed", details)
    return JSONResponse(status_code=400, content=payload)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict) and "error" in detail:
        content: dict[str, Any] = detail
    elif exc.status_code == 404:
        content = error_response(ErrorKind.NOT_FOUND.value, "Route not found")
    else:
        content = error_response("HTTP_ERROR", str(detail))
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception", exc_info=exc)
    message = GENERIC_ERROR_MESSAGE if _current_settings().is_production else str(exc) or GENERIC_ERROR_MESSAGE
    payload = error_response(ErrorKind.INTERNAL.value, message)
    return JSONResponse(status_code=500, content=payload)


__all__ = ["app"]
