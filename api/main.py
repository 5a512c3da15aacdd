"""
api/main.py -- FastAPI application entry point for homehost.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- lets the React client send the session cookie
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan reads Settings once and builds the auth components from it: the
hasher gets the bcrypt cost, the token service gets the signing secret and
TTL. Nothing below this module reads configuration on its own.
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
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException

from api.limiter import limiter
from api.models import ErrorResponse, FieldErrorModel, HealthResponse
from api.routes.auth import router as auth_router
from auth.errors import RequestError
from auth.passwords import PasswordHasher
from auth.revocation import RevocationStore
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import Settings, get_settings

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("homehost.api")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Component wiring
# ---------------------------------------------------------------------------


def install_auth(app: FastAPI, settings: Settings, user_store: UserStore) -> None:
    """Build the auth components from settings and attach them to app.state.

    Shared by the real lifespan and the test lifespan so both wire the
    components the same way.
    """
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    tokens = TokenService(settings.jwt_secret, default_ttl=settings.token_ttl)
    revocations = RevocationStore(tokens)
    app.state.settings = settings
    app.state.user_store = user_store
    app.state.hasher = hasher
    app.state.tokens = tokens
    app.state.revocations = revocations
    app.state.auth_service = AuthService(user_store, hasher, tokens, revocations)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the user store and wire the auth components; close on shutdown."""
    logger.info("homehost API starting up")
    if not _settings.jwt_secret:
        logger.warning("JWT_SECRET is not set -- token operations will fail until it is configured")
    install_auth(app, _settings, UserStore(_settings.database_url))
    logger.info("Auth initialized (bcrypt rounds=%d)", _settings.bcrypt_rounds)

    yield

    app.state.user_store.close()
    logger.info("homehost API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="homehost API",
    description="Self-hosted media library -- authentication and session endpoints.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[_settings.client_base_url],
    allow_credentials=True,  # required for the session cookie
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


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


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every handler returns the same {status, message, errors} envelope so the
# client parses errors uniformly.
# ---------------------------------------------------------------------------


def _envelope(status: int, message: str, errors: list[FieldErrorModel] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content=ErrorResponse(status=status, message=message, errors=errors or []).model_dump(),
    )


@app.exception_handler(RequestError)
async def request_error_handler(request: Request, exc: RequestError) -> JSONResponse:
    """Render use-case and gate outcomes. The real cause was logged where it was raised."""
    return _envelope(
        exc.status_code,
        exc.message,
        [FieldErrorModel(field=e.field, message=e.message) for e in exc.errors],
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a Retry-After hint when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _envelope(429, "Too many requests", [FieldErrorModel(field="general", message=str(exc.detail))])
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 when the body is not parseable into the request model at all."""
    errors = [
        FieldErrorModel(
            field=".".join(str(part) for part in err.get("loc", ()) if part != "body") or "body",
            message=err.get("msg", "Invalid value"),
        )
        for err in exc.errors()
    ]
    return _envelope(422, "Request validation failed", errors)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Wrap plain FastAPI/Starlette HTTP errors (404, 405, ...) in the envelope."""
    return _envelope(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _envelope(500, "Server error", [FieldErrorModel(field="general", message="An unexpected error occurred")])


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py so it is always reachable. No rate limit --
# load balancers and monitoring must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version and database reachability."""
    database = "ok"
    try:
        request.app.state.user_store.ping()
    except Exception:
        logger.exception("Health check: database unreachable")
        database = "error"
    return HealthResponse(
        status="healthy" if database == "ok" else "degraded",
        version=VERSION,
        components={"app": "ok", "database": database},
    )
