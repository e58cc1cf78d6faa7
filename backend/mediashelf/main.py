#!/usr/bin/env python3
"""
MediaShelf FastAPI Application Entry Point

- Lifespan: logging setup, access policy compilation, MongoDB (required) and
  Redis (optional) connections
- Middleware, outermost first: CORS, request logging, route access policy
- Routers: JSON pages at the root, REST endpoints under /api
- Liveness at /health and readiness at /ready, outside the access policy
- Errors rendered as ``{"error": "<message>"}``

Usage:
    # Run with uvicorn directly
    uvicorn mediashelf.main:app --host 0.0.0.0 --port 8000 --reload

    # Run as Python script
    python -m mediashelf.main
"""

import logging
import time
import uuid

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

import uvicorn

from fastapi import FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from mediashelf import __version__
from mediashelf.api import api_router, pages_router
from mediashelf.config import get_settings
from mediashelf.core.access_policy import AccessPolicy
from mediashelf.core.database import close_db, get_db_client, init_db
from mediashelf.core.middleware import access_policy_middleware
from mediashelf.core.redis_client import close_redis, get_redis_client, init_redis
from mediashelf.utils.logger import add_log_context, setup_logging


logger = logging.getLogger(__name__)

# Status codes >= 400 are logged at WARNING
HTTP_ERROR_THRESHOLD = 400


# =============================================================================
# Application Lifespan Management
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: configure logging, compile the access policy, connect MongoDB
    and Redis. Shutdown: close both connections.

    A MongoDB failure aborts startup. A Redis failure is logged and the app
    serves uncached listings.
    """
    settings = get_settings()

    setup_logging(settings.log_level, json_logs=settings.json_logs)

    logger.info("MediaShelf API starting (env=%s, debug=%s)", settings.app_env, settings.debug)

    app.state.access_policy = AccessPolicy.from_settings(settings)
    logger.info(
        "Access policy loaded: public pages=%s, public APIs=%s",
        list(app.state.access_policy.public_pages.patterns),
        list(app.state.access_policy.public_apis.patterns),
    )

    if not settings.is_auth0_enabled:
        logger.warning("Auth0 is not configured; accepting local HS256 session tokens")
    if not settings.is_cloudinary_configured:
        logger.warning("Cloudinary credentials are missing; uploads will fail")

    try:
        await init_db(settings)
    except Exception as e:
        logger.exception("Failed to initialize MongoDB")
        raise RuntimeError(f"MongoDB initialization failed: {e}") from e

    try:
        await init_redis(settings)
    except RuntimeError:
        logger.warning("Redis unavailable; video listings will not be cached")

    logger.info("MediaShelf API ready to accept requests")

    yield

    logger.info("MediaShelf API shutting down")
    await close_redis()
    await close_db()


# =============================================================================
# FastAPI Application Instance
# =============================================================================

_settings = get_settings()

app = FastAPI(
    title="MediaShelf API",
    description=(
        "Upload videos and images, let Cloudinary compress and crop them, "
        "and browse the results with previews and download links."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    debug=_settings.debug,
)


# =============================================================================
# Middleware Configuration
# =============================================================================

# Registered innermost first: the access policy runs after logging and CORS
app.middleware("http")(access_policy_middleware)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next) -> Response:
    """
    Log each request with its outcome and timing.

    Adds ``X-Request-ID`` (echoing the caller's header when present) and
    ``X-Process-Time`` to every response, access-policy redirects included.
    """
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    request.state.request_id = request_id
    ctx_logger = add_log_context(logger, request_id=request_id)

    start_time = time.perf_counter()
    ctx_logger.debug("Request started: %s %s", request.method, request.url.path)

    try:
        response = await call_next(request)
    except Exception:
        ctx_logger.exception("Request failed: %s %s", request.method, request.url.path)
        raise

    process_time_ms = round((time.perf_counter() - start_time) * 1000, 2)
    response.headers["X-Process-Time"] = f"{process_time_ms}ms"
    response.headers["X-Request-ID"] = request_id

    log_level = logging.DEBUG if response.status_code < HTTP_ERROR_THRESHOLD else logging.WARNING
    ctx_logger.log(
        log_level,
        "Request completed: %s %s [Status: %d] [Time: %sms]",
        request.method,
        request.url.path,
        response.status_code,
        process_time_ms,
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Process-Time"],
)


# =============================================================================
# Router Registration
# =============================================================================

app.include_router(pages_router, tags=["pages"])
app.include_router(api_router, prefix="/api")


@app.get("/health", tags=["health"], summary="Health Check")
async def health_check() -> dict[str, Any]:
    """Liveness check; excluded from the access policy."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "version": __version__,
        "service": "MediaShelf API",
    }


@app.get("/ready", tags=["health"], summary="Readiness Check")
async def readiness_check() -> JSONResponse:
    """
    Readiness check reporting backing service state.

    MongoDB is required: the service answers 503 when it cannot be pinged.
    Redis is optional and only reported.
    """
    try:
        database_ok = await get_db_client().ping()
    except RuntimeError:
        database_ok = False

    redis_client = get_redis_client()
    if redis_client is None:
        cache_state = "disabled"
    elif await redis_client.is_connected():
        cache_state = "connected"
    else:
        cache_state = "unavailable"

    return JSONResponse(
        status_code=200 if database_ok else 503,
        content={
            "status": "ready" if database_ok else "not_ready",
            "timestamp": datetime.now(UTC).isoformat(),
            "checks": {
                "database": "connected" if database_ok else "unavailable",
                "cache": cache_state,
            },
        },
    )


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render every HTTP error as ``{"error": detail}``."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unexpected errors and hide their details from the client."""
    logger.error(
        "Internal server error on %s %s: %s", request.method, request.url.path, exc, exc_info=exc
    )
    return JSONResponse(status_code=500, content={"error": "Internal Server Error"})


# =============================================================================
# Main Execution Block
# =============================================================================

if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "mediashelf.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level,
    )
