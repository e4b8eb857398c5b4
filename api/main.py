"""
api/main.py -- FastAPI application entry point for Monitorium.

Run with:      python main.py serve
               uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan handles startup (logging, user store, cache, token service, user
service, cache sweep task) and shutdown (cancel sweep task, close cache,
dispose DB engine) symmetrically. uvicorn runs the shutdown half on SIGINT,
so Ctrl-C closes the database before the process exits.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorField, ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from api.routes.users import router as users_router
from auth.service import UserService
from auth.store import UserStore
from auth.tokens import TokenService
from cache.store import TTLCache
from core.config import get_settings
from core.errors import AppError, ValidationFailedError
from core.logging_config import configure_logging

logger = logging.getLogger("monitorium.api")

_VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(cache: TTLCache) -> None:
    """Purge expired cache entries every cache.check_period seconds.

    CancelledError from task.cancel() during shutdown propagates out of
    asyncio.sleep and unwinds the coroutine cleanly.
    """
    while True:
        await asyncio.sleep(cache.check_period)
        cache.purge_expired()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build every collaborator once and hang it on app.state.

    Startup order matters:
      1. Logging first so the remaining steps are visible.
      2. Store, cache and token service -- independent of each other.
      3. UserService -- takes all three.
      4. Sweep task last -- references the cache.
    """
    settings = get_settings()
    configure_logging(settings)
    logger.info("Monitorium API starting up")

    app.state.user_store = UserStore(db_url=settings.database_url)
    app.state.cache = TTLCache(
        default_ttl=settings.cache_default_ttl,
        check_period=settings.cache_check_period,
    )
    app.state.tokens = TokenService(settings.secret_key, settings.token_expire_seconds)
    app.state.user_service = UserService(
        store=app.state.user_store,
        cache=app.state.cache,
        tokens=app.state.tokens,
        user_cache_ttl=settings.user_cache_ttl,
        starting_balance=settings.starting_balance,
    )
    logger.info("User store initialized (%d users)", app.state.user_store.count_users())

    app.state.purge_task = None
    if settings.cache_check_period > 0:
        app.state.purge_task = asyncio.create_task(_purge_loop(app.state.cache))

    yield

    logger.info("Shutting down gracefully...")
    if app.state.purge_task is not None:
        app.state.purge_task.cancel()
    app.state.cache.close()
    app.state.user_store.close()
    logger.info("Monitorium API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

_settings = get_settings()

app = FastAPI(
    title="Monitorium API",
    description="User registration, login, and role-based access for Monitorium.",
    version=_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# add_middleware() inserts at the front of the stack, so the last call is
# the outermost layer. Registered innermost-first to get
# TrustedHost -> CORS -> SlowAPI on the way in.
# ---------------------------------------------------------------------------

app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(users_router, prefix="/api", tags=["Users"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every error body is {"error": message}, plus "details" for validation
# failures, so clients parse one shape regardless of status code.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, message: str, details: list[dict] | None = None) -> JSONResponse:
    body = ErrorResponse(
        error=message,
        details=[ErrorField(**d) for d in details] if details is not None else None,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Map service-layer errors to their HTTP status."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    else:
        logger.info("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    if isinstance(exc, ValidationFailedError):
        return _error_response(exc.status_code, exc.message, exc.details)
    return _error_response(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with one {field, message} entry per invalid input."""
    details = [
        {
            # loc is ("body", "email") -- drop the location prefix.
            "field": ".".join(str(part) for part in err["loc"][1:]) or str(err["loc"][0]),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    return _error_response(400, "Validation error", details)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 when a rate limit is exceeded.

    Retry-After tells clients how many seconds to wait before retrying.
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error_response(429, "Too many requests.")
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Reshape framework errors (unknown route, wrong method) into the error envelope."""
    return _error_response(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The stack trace goes to the log only. Outside DEBUG the client gets a
    generic message so internals do not leak.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    message = str(exc) if get_settings().debug else "Internal server error"
    return _error_response(500, message)


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable.
# No rate limit -- load balancer probes must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return liveness and the current server time."""
    return HealthResponse(timestamp=datetime.now(timezone.utc).isoformat())
