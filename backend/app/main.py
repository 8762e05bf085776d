"""
Bucket Gateway FastAPI Application Entry Point

Multi-tenant metadata gateway in front of an S3-compatible object store:

- FastAPI application with CORS and request logging middleware
- Lifespan that connects MongoDB, the URL cache and the object store, then
  wires the services into ``app.state.services``
- Exception handlers that turn GatewayError subclasses into JSON error bodies
- Health and readiness endpoints

API Structure:
    /api/v1/auth      - Owner registration, login and profile
    /api/v1/buckets   - Owner bucket and file management
    /api/v1/files     - Owner file management
    /api/v1/dashboard - Owner totals
    /api/v1/public    - Bucket-key presigned URLs and streaming

Usage:
    uvicorn app.main:app --host 0.0.0.0 --port 8000 --reload
"""

import logging
import time
import uuid

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

import uvicorn

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app import __version__
from app.api.v1 import api_router
from app.config import Settings, get_settings
from app.core.database import close_db, get_db_client, init_db
from app.core.exceptions import GatewayError
from app.core.redis_client import close_redis, get_redis_client, init_redis
from app.core.storage import StorageClient
from app.repositories import BucketRepository, FileRepository, UserRepository
from app.services import build_services
from app.utils.cache import Cache, MemoryCache, RedisCache
from app.utils.logger import add_log_context, setup_logging


logger = logging.getLogger(__name__)

# Status codes >= 400 indicate errors
HTTP_ERROR_THRESHOLD = 400


# =============================================================================
# Application Lifespan Management
# =============================================================================


async def _build_cache(settings: Settings) -> Cache:
    if settings.cache_backend == "redis":
        redis_client = await init_redis(settings)
        logger.info("Using Redis cache")
        return RedisCache(redis_client)
    logger.info("Using in-process memory cache")
    return MemoryCache()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Connect external resources on startup and release them on shutdown.

    MongoDB is required: startup fails if it is unreachable. The cache backend
    and the object store client are built from settings.
    """
    settings: Settings = app.state.settings
    setup_logging(log_level=settings.log_level, json_logs=settings.use_json_logs)

    logger.info(
        "Starting %s",
        settings.app_name,
        extra={"env": settings.app_env, "host": settings.host, "port": settings.port},
    )

    try:
        db_client = await init_db(settings)
    except Exception as e:
        logger.exception("Failed to initialize MongoDB")
        raise RuntimeError(f"MongoDB initialization failed: {e}") from e

    cache = await _build_cache(settings)
    storage = StorageClient(settings)

    app.state.services = build_services(
        settings=settings,
        cache=cache,
        storage=storage,
        user_repository=UserRepository(db_client.get_users_collection()),
        bucket_repository=BucketRepository(db_client.get_buckets_collection()),
        file_repository=FileRepository(db_client.get_files_collection()),
    )
    logger.info("%s ready to accept requests", settings.app_name)

    yield

    logger.info("Shutting down %s", settings.app_name)
    await close_redis()
    await close_db()
    logger.info("Shutdown complete")


# =============================================================================
# Exception Handlers
# =============================================================================


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    """Render a GatewayError as ``{"error", "message", "details"}`` with its mapped status."""
    if exc.status_code >= 500:
        logger.error(
            "%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unexpected errors and return a generic body without internal details."""
    logger.error(
        "Internal server error on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal",
            "message": "An unexpected error occurred. Please try again later.",
            "details": {},
        },
    )


# =============================================================================
# Middleware
# =============================================================================


async def request_logging_middleware(request: Request, call_next) -> Response:
    """
    Log each request with its timing and tag the response with tracing headers.

    Adds X-Request-ID (echoing the caller's if present) and X-Process-Time.
    """
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    ctx_logger = add_log_context(logger, request_id=request_id)
    start_time = time.perf_counter()

    ctx_logger.debug("Request started: %s %s", request.method, request.url.path)
    response = await call_next(request)

    process_time_ms = round((time.perf_counter() - start_time) * 1000, 2)
    response.headers["X-Process-Time"] = f"{process_time_ms}ms"
    response.headers["X-Request-ID"] = request_id

    log_level = logging.DEBUG if response.status_code < HTTP_ERROR_THRESHOLD else logging.WARNING
    ctx_logger.log(
        log_level,
        "Request completed: %s %s",
        request.method,
        request.url.path,
        extra={"status_code": response.status_code, "process_time_ms": process_time_ms},
    )
    return response


# =============================================================================
# Core Endpoints
# =============================================================================


async def root(request: Request) -> dict[str, Any]:
    """API name, version and documentation links."""
    settings: Settings = request.app.state.settings
    return {
        "name": settings.app_name,
        "version": __version__,
        "documentation": {
            "swagger": "/docs",
            "redoc": "/redoc",
            "openapi": "/openapi.json",
        },
        "api_prefix": "/api/v1",
        "endpoints": {
            "auth": "/api/v1/auth",
            "buckets": "/api/v1/buckets",
            "files": "/api/v1/files",
            "dashboard": "/api/v1/dashboard",
            "public": "/api/v1/public",
        },
    }


async def health_check(request: Request) -> dict[str, Any]:
    """Liveness probe. Does not touch dependencies."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "version": __version__,
        "service": request.app.state.settings.app_name,
    }


async def readiness_check(request: Request) -> JSONResponse:
    """
    Readiness probe.

    Ready when MongoDB answers a ping and, with the Redis cache backend
    configured, Redis does too. Returns 503 otherwise.
    """
    settings: Settings = request.app.state.settings
    checks: dict[str, bool] = {}

    try:
        checks["mongodb"] = await get_db_client().ping()
    except RuntimeError:
        checks["mongodb"] = False

    if settings.cache_backend == "redis":
        redis_client = get_redis_client()
        checks["redis"] = bool(redis_client and await redis_client.ping())

    is_ready = all(checks.values())
    return JSONResponse(
        status_code=200 if is_ready else 503,
        content={
            "ready": is_ready,
            "timestamp": datetime.now(UTC).isoformat(),
            "checks": checks,
        },
    )


# =============================================================================
# FastAPI Application Factory
# =============================================================================


def create_app(settings: Settings | None = None, use_lifespan: bool = True) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Configuration to use; defaults to the process-wide settings.
        use_lifespan: Connect MongoDB, cache and storage on startup. Tests pass
            False and assign ``app.state.services`` themselves.
    """
    settings = settings or get_settings()

    application = FastAPI(
        title="Bucket Gateway API",
        description=(
            "Multi-tenant metadata gateway for an S3-compatible object store. "
            "Owners manage buckets with a JWT; bucket clients use a bucket public "
            "key to obtain presigned upload and download URLs."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan if use_lifespan else None,
        debug=settings.debug,
    )
    application.state.settings = settings

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Process-Time"],
    )
    application.middleware("http")(request_logging_middleware)

    application.add_exception_handler(GatewayError, gateway_error_handler)
    application.add_exception_handler(Exception, internal_error_handler)

    application.add_api_route("/", root, methods=["GET"], tags=["root"], summary="API Root")
    application.add_api_route(
        "/health", health_check, methods=["GET"], tags=["health"], summary="Health Check"
    )
    application.add_api_route(
        "/ready", readiness_check, methods=["GET"], tags=["health"], summary="Readiness Check"
    )

    application.include_router(api_router, prefix="/api/v1")
    return application


app = create_app()


if __name__ == "__main__":
    _settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=_settings.host,
        port=_settings.port,
        reload=_settings.debug,
        log_level=_settings.log_level,
        access_log=_settings.debug,
    )
