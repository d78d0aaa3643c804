"""
RizzedIn — FastAPI application.

Startup warms the database pool and, when ``REDIS_URL`` is set, connects
Redis and hands it to the shared ``KeyedLock`` so chat sends are serialised
across instances.  Shutdown waits for in-flight requests (a tenth-message
evaluation can take most of a minute) before closing pools.

Every request is logged as one JSON line carrying a ``request_id`` that is
also bound into structlog's context for the handler's own log events.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis
import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from app.api.errors import to_http_exception
from app.api.router import router as api_router
from app.config import get_settings
from app.database import get_engine, get_session_factory
from app.services.exceptions import RizzedInError
from app.utils.locks import get_keyed_lock

# Must exceed MODEL_TIMEOUT_SECONDS plus the database work around an evaluation
REQUEST_TIMEOUT_SECONDS = 90.0
DRAIN_TIMEOUT_SECONDS = 15.0
REQUEST_ID_HEADER = "X-Request-ID"


def configure_logging(level_name: str) -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level_name.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging(get_settings().LOG_LEVEL)
logger = structlog.get_logger("rizzedin")


class RequestTracker:
    """Counts in-flight requests so shutdown can wait for them."""

    def __init__(self) -> None:
        self.active = 0
        self._idle = asyncio.Event()
        self._idle.set()

    def started(self) -> None:
        self.active += 1
        self._idle.clear()

    def finished(self) -> None:
        self.active -= 1
        if self.active <= 0:
            self.active = 0
            self._idle.set()

    async def drain(self, timeout: float) -> bool:
        try:
            await asyncio.wait_for(self._idle.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("drain_timeout_exceeded", remaining_requests=self.active)
            return False
        return True


tracker = RequestTracker()
_redis_client: aioredis.Redis | None = None


def get_redis() -> aioredis.Redis | None:
    return _redis_client


async def _start_redis(url: str) -> None:
    global _redis_client
    if not url:
        logger.info("redis_skip", reason="REDIS_URL not configured")
        return
    client = aioredis.from_url(url, decode_responses=True, socket_connect_timeout=5)
    await client.ping()
    _redis_client = client
    get_keyed_lock().attach_redis(client)
    logger.info("redis_connected")


async def _stop_redis() -> None:
    global _redis_client
    if _redis_client is None:
        return
    get_keyed_lock().detach_redis()
    await _redis_client.aclose()
    _redis_client = None
    logger.info("redis_closed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    logger.info("startup_begin", environment=settings.ENVIRONMENT)

    async with get_engine().connect() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info("database_pool_ready")

    await _start_redis(settings.REDIS_URL)
    logger.info("startup_complete", distributed_locks=get_keyed_lock().distributed)

    yield

    logger.info("shutdown_begin", active_requests=tracker.active)
    await tracker.drain(DRAIN_TIMEOUT_SECONDS)
    await _stop_redis()
    await get_engine().dispose()
    logger.info("shutdown_complete")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds a request id and logs one access line per request."""

    def __init__(self, app, timeout_seconds: float = REQUEST_TIMEOUT_SECONDS) -> None:
        super().__init__(app)
        self.timeout_seconds = timeout_seconds

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        log = logger.bind(method=request.method, path=request.url.path)

        start = time.perf_counter()
        tracker.started()
        try:
            response = await asyncio.wait_for(
                call_next(request), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            log.warning("request_timeout", timeout=self.timeout_seconds)
            response = JSONResponse(
                status_code=504, content={"detail": "Request timed out"}
            )
        except Exception:
            log.exception(
                "request_error",
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            raise
        finally:
            tracker.finished()

        response.headers[REQUEST_ID_HEADER] = request_id
        log.info(
            "request_handled",
            status=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return response


async def _check_database() -> str:
    try:
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:
        logger.error("health_db_failure", error=str(exc))
        return f"error: {exc}"
    return "connected"


async def _check_redis() -> str:
    client = get_redis()
    if client is None:
        return "not_configured"
    try:
        await client.ping()
    except Exception as exc:
        logger.error("health_redis_failure", error=str(exc))
        return f"error: {exc}"
    return "connected"


def create_app() -> FastAPI:
    settings = get_settings()
    application = FastAPI(
        title="RizzedIn",
        description="Professional-network dating with AI persona conversations",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
    )

    application.add_middleware(RequestContextMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @application.exception_handler(RizzedInError)
    async def domain_error_handler(request: Request, exc: RizzedInError) -> JSONResponse:
        http_exc = to_http_exception(exc)
        return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})

    @application.get("/health", tags=["health"])
    async def health_liveness() -> dict:
        return {"status": "healthy"}

    @application.get("/health/deep", tags=["health"])
    async def health_deep() -> dict:
        """Readiness: database always, Redis when configured."""
        database, redis_status = await asyncio.gather(_check_database(), _check_redis())
        healthy = database == "connected" and not redis_status.startswith("error")
        return {
            "status": "healthy" if healthy else "degraded",
            "database": database,
            "redis": redis_status,
        }

    application.include_router(api_router, prefix="/api/v1")
    return application


app = create_app()
