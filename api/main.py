"""
api/main.py -- FastAPI application entry point for cookie-auth.

Run with:  uvicorn asgi:app --reload
           python main.py

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. log_requests          -- per-request id, latency and status logging

Lifespan builds the process-wide objects once, in dependency order, and
publishes them on app.state:
  1. SigningKey   -- fails fast on a missing/short secret; the app never
                     serves a request without one.
  2. Repository   -- opens the database and creates the schema.
  3. AuthService  -- UserStore (repository + hasher) and the key.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.errors import AuthError, InvalidCredentials, SessionError, UsernameTaken
from auth.keys import SigningKey
from auth.passwords import CredentialHasher
from auth.service import AuthService
from auth.store import UserRepository, UserStore
from core.config import get_settings

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("cookieauth.api")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown. A SigningKeyError raised here aborts startup.
    """
    settings = get_settings()
    logger.info("cookie-auth starting up")
    key = SigningKey.from_settings(settings)
    app.state.user_repository = UserRepository(settings.database_url)
    hasher = CredentialHasher.from_settings(settings)
    store = UserStore(app.state.user_repository, hasher)
    app.state.auth = AuthService.from_settings(store, key, settings)
    logger.info(
        "Auth initialized (session_ttl=%s, secure_cookies=%s)",
        settings.session_ttl,
        settings.secure_cookies,
    )

    yield

    app.state.user_repository.close()
    logger.info("cookie-auth shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="cookie-auth",
    description="Password login with signed, stateless session cookies.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Every request gets a fresh UUID. It is logged on receipt and on completion
# and echoed back in X-Request-ID so a client report can be matched to logs.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    request_id = uuid.uuid4().hex
    request.state.request_id = request_id
    client_ip = request.client.host if request.client else "unknown"
    logger.info("[%s] %s %s received from %s", request_id, request.method, request.url.path, client_ip)
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info("[%s] %s %s %d %.1fms", request_id, request.method, request.url.path, response.status_code, ms)
    response.headers["X-Request-ID"] = request_id
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
# Web UI router is mounted by asgi.py, not here.


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return _error_response(422, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    When detail is already a structured dict, use it directly as the error
    field rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Map core auth failures that escaped a route to their HTTP meaning.

    InternalAuthError (and any AuthError without a client meaning) becomes a
    generic 500: a storage or hashing failure must never read as "bad password".
    """
    if isinstance(exc, UsernameTaken):
        return _error_response(409, "username_taken", "That username is already taken.")
    if isinstance(exc, InvalidCredentials):
        return _error_response(401, "bad_credentials", "Invalid username or password.")
    if isinstance(exc, SessionError):
        return _error_response(401, "unauthorized", "Authentication required.")
    logger.error("Auth failure on %s %s: %s", request.method, request.url.path, type(exc).__name__)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Return API liveness, version and database reachability."""
    db_ok = await asyncio.to_thread(request.app.state.user_repository.ping)
    return HealthResponse(
        version=__version__,
        components={"app": "ok", "database": "ok" if db_ok else "error"},
    )
