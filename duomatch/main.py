"""
DuoMatch — FastAPI Application Entry Point

- Async lifespan management (DB pool, optional Redis fan-out, service graph)
- CORS, timeout, and structured-logging middleware
- Health-check endpoints (liveness + deep readiness)
- Active-request tracking for graceful shutdown
- Engine errors mapped to HTTP status codes
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from duomatch.api.deps import build_services
from duomatch.api.router import router as api_router
from duomatch.config import get_settings
from duomatch.database import build_session_factory, dispose_engine, get_engine
from duomatch.errors import (
    AlreadyPaired,
    DuoMatchError,
    InvalidActor,
    NotActive,
    NotFound,
    SelfInvite,
    SelfSwipe,
    StoreConflict,
    Unavailable,
)
from duomatch.services.events import EventBus, RedisEventPublisher

# ---------------------------------------------------------------------------
# Structured logging configuration
# ---------------------------------------------------------------------------

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(0),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger("duomatch")

# ---------------------------------------------------------------------------
# Error kind → HTTP status
# ---------------------------------------------------------------------------

ERROR_STATUS: dict[type[DuoMatchError], int] = {
    AlreadyPaired: 409,
    StoreConflict: 409,
    NotActive: 409,
    SelfInvite: 400,
    SelfSwipe: 400,
    InvalidActor: 403,
    NotFound: 404,
    Unavailable: 503,
}

# ---------------------------------------------------------------------------
# Active request counter for graceful shutdown
# ---------------------------------------------------------------------------

_active_requests: int = 0
_active_requests_lock = asyncio.Lock()

DRAIN_TIMEOUT_SECONDS = 15


async def _increment_active() -> None:
    global _active_requests
    async with _active_requests_lock:
        _active_requests += 1


async def _decrement_active() -> None:
    global _active_requests
    async with _active_requests_lock:
        _active_requests -= 1


async def _drain_active_requests() -> None:
    """Wait until all in-flight requests complete or timeout expires."""
    deadline = time.monotonic() + DRAIN_TIMEOUT_SECONDS
    while True:
        async with _active_requests_lock:
            if _active_requests <= 0:
                break
        if time.monotonic() >= deadline:
            logger.warning(
                "drain_timeout_exceeded",
                remaining_requests=_active_requests,
            )
            break
        await asyncio.sleep(0.25)


# ---------------------------------------------------------------------------
# Redis helpers
# ---------------------------------------------------------------------------

async def _connect_redis(url: str):
    import redis.asyncio as aioredis

    client = aioredis.from_url(
        url,
        decode_responses=True,
        socket_connect_timeout=5,
    )
    await client.ping()
    logger.info("redis_connected", url=url)
    return client


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage startup and shutdown of long-lived resources."""
    settings = get_settings()

    # -- Startup --------------------------------------------------------- #
    logger.info(
        "startup_begin",
        environment=settings.ENVIRONMENT,
        log_level=settings.LOG_LEVEL,
    )

    # 1. Database connection pool; a trivial query warms it.
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info("database_pool_initialised")

    # 2. Change notifications, fanned out over Redis when configured.
    event_bus = EventBus()
    redis_client = None
    if settings.REDIS_URL:
        redis_client = await _connect_redis(settings.REDIS_URL)
        event_bus.subscribe(RedisEventPublisher(redis_client, settings.EVENTS_CHANNEL))
    else:
        logger.info("redis_skip", reason="REDIS_URL not configured")

    # 3. Service graph
    app.state.engine = engine
    app.state.redis = redis_client
    app.state.services = build_services(build_session_factory(engine), event_bus)

    logger.info("startup_complete")

    yield

    # -- Shutdown -------------------------------------------------------- #
    logger.info("shutdown_begin")

    await _drain_active_requests()

    if redis_client is not None:
        await redis_client.aclose()
        logger.info("redis_closed")

    app.state.services = None
    await dispose_engine()
    logger.info("database_pool_closed")

    logger.info("shutdown_complete")


# ---------------------------------------------------------------------------
# Middleware classes
# ---------------------------------------------------------------------------

class TimeoutMiddleware(BaseHTTPMiddleware):
    """Abort requests that exceed a configurable wall-clock timeout."""

    def __init__(self, app, timeout_seconds: float = 30.0) -> None:
        super().__init__(app)
        self.timeout_seconds = timeout_seconds

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await asyncio.wait_for(
                call_next(request),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "request_timeout",
                method=request.method,
                path=request.url.path,
                timeout=self.timeout_seconds,
            )
            return JSONResponse(
                status_code=504,
                content={"error": "Timeout", "detail": "Request timed out"},
            )


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with method, path, status code, and duration."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()

        await _increment_active()
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.exception(
                "request_error",
                method=request.method,
                path=request.url.path,
                duration_ms=round(duration_ms, 2),
            )
            raise
        finally:
            await _decrement_active()

        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "request_handled",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
        return response


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

async def duomatch_error_handler(request: Request, exc: DuoMatchError) -> JSONResponse:
    status_code = ERROR_STATUS.get(type(exc), 400)
    log = logger.warning if status_code < 500 else logger.error
    log(
        "request_rejected",
        kind=exc.kind,
        method=request.method,
        path=request.url.path,
        status=status_code,
    )
    return JSONResponse(status_code=status_code, content=exc.to_dict())


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"error": "ValidationError", "detail": str(exc)},
    )


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="DuoMatch",
        description="Duo pairing and reciprocal matching engine",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
    )

    # -- Middleware (last added runs first) ------ #

    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(TimeoutMiddleware, timeout_seconds=settings.REQUEST_TIMEOUT_SECONDS)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(DuoMatchError, duomatch_error_handler)
    app.add_exception_handler(ValueError, value_error_handler)

    # -- Health-check endpoints -------------------------------------------- #

    @app.get("/health", tags=["health"])
    async def health_liveness() -> dict:
        """Lightweight liveness check."""
        return {"status": "healthy"}

    @app.get("/health/deep", tags=["health"])
    async def health_deep(request: Request) -> dict:
        """Deep readiness check: verifies database and Redis connectivity."""
        result: dict = {
            "status": "healthy",
            "database": "connected",
            "redis": "not_configured",
        }

        try:
            engine = getattr(request.app.state, "engine", None) or get_engine()
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as exc:
            logger.error("health_db_failure", error=str(exc))
            result["database"] = f"error: {exc}"
            result["status"] = "degraded"

        redis = getattr(request.app.state, "redis", None)
        if redis is not None:
            try:
                await redis.ping()
                result["redis"] = "connected"
            except Exception as exc:
                logger.error("health_redis_failure", error=str(exc))
                result["redis"] = f"error: {exc}"
                result["status"] = "degraded"

        return result

    app.include_router(api_router, prefix="/api/v1")
    return app


app = create_app()
