"""
api/main.py -- FastAPI application entry point for Warden.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. log_requests          -- one log line per request with latency
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. TrustedHostMiddleware -- rejects requests with unexpected Host headers

Lifespan reads Settings once, builds the credential store, password hasher
and AuthController, and hangs them on app.state. Nothing in the request path
reaches for a module-level singleton, so tests can swap the whole set by
replacing the lifespan.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from api.models import ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from auth.controller import AuthController
from auth.errors import AuthError, StoreUnavailableError
from auth.passwords import PasswordHasher
from auth.store import UserStore
from core.config import get_settings

VERSION = "0.1.0"

# Settings are read exactly once per process. A missing SECRET_KEY outside
# DEBUG mode raises here, before the server accepts a single request [M7].
_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=_settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("warden.api")


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Own the credential store for the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown.
    """
    logger.info("Warden API starting up")
    store = UserStore(db_url=_settings.database_url, timeout=_settings.store_timeout_seconds)
    app.state.user_store = store
    app.state.secret_key = _settings.secret_key
    app.state.auth_controller = AuthController(store, PasswordHasher(_settings.bcrypt_rounds), _settings.secret_key)
    logger.info("Auth initialized (users=%d, bcrypt_rounds=%d)", store.count_users(), _settings.bcrypt_rounds)

    yield

    store.close()
    logger.info("Warden API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Warden API",
    description="User registration, login, bearer tokens, and role-gated access.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Each add_middleware() call wraps the stack built so far, so the last one
# registered is the outermost. log_requests (below) is registered last and
# therefore also logs requests TrustedHost rejects.
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Pattern: Interceptor. Every request passes through this coroutine before
# reaching any route handler. Only method, path, status, latency and client
# address are logged -- never headers, so bearer tokens stay out of the logs.
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

app.include_router(auth_router, tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope ({message, code}) so API
# clients can parse errors uniformly.
# ---------------------------------------------------------------------------


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render controller/store failures with their own status and code."""
    response = JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(message=exc.message, code=exc.code).model_dump(exclude_none=True),
    )
    if isinstance(exc, StoreUnavailableError):
        response.headers["Retry-After"] = str(exc.retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 when the request body is missing fields or has the wrong types.

    Missing input is a client error like any other validation failure, so it
    shares the 400 status the controller uses for blank fields.

    detail is built from each error's location and message only. Pydantic also
    reports the rejected "input", which for /signup and /login can be the
    password itself, so that key is never echoed.
    """
    detail = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', 'invalid')}" for err in exc.errors()
    )
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            message="Invalid request body.",
            code="validation_error",
            detail=detail,
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Registered on Starlette's base class so router-level 404/405 responses
    get the same envelope as errors raised by the auth dependency.

    The auth dependency raises HTTPException with detail={"code", "message"}.
    When detail is already a structured dict, use it directly as the body
    rather than stringifying it -- str(dict) produces a Python repr, not JSON.
    """
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = ErrorResponse(message=str(exc.detail), code=f"http_{exc.status_code}").model_dump(
            exclude_none=True
        )
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    Security note: the raw exception is written to the log only, never to the
    response body. The client receives only a generic message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(message="Internal server error", code="internal_error").model_dump(exclude_none=True),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. No auth -- load balancers call it.
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and credential store reachability."""
    database = "ok" if request.app.state.user_store.ping() else "error"
    return HealthResponse(
        status="healthy" if database == "ok" else "degraded",
        version=VERSION,
        components={"app": "ok", "database": database},
    )
