"""
api/main.py -- FastAPI application entry point for SiteGate.

Run with:      python main.py serve
               uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- only when CORS_ORIGINS is set; credentials allowed
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan builds the auth core (verifier, session store, gate) at startup and
starts the expired-session sweep; shutdown cancels the sweep. Settings are
resolved at import time, so a process with no usable credential factor never
gets as far as binding a port.
"""

from __future__ import annotations

import asyncio
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
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import HealthResponse, error_body
from api.routes.auth import router as auth_router
from auth.gate import AccessGate
from auth.sessions import SessionStore
from auth.verifier import CredentialVerifier
from core.config import get_settings

__version__ = "0.1.0"

# Fail fast [F1]: Settings() raises ValueError when no credential factor is
# usable, which aborts the import and therefore the server start.
_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.DEBUG if _settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("sitegate.api")

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI, interval: int) -> None:
    """Drop expired sessions every `interval` seconds.

    asyncio.sleep yields to the event loop between sweeps. CancelledError from
    task.cancel() during shutdown propagates out of the sleep and ends the loop.
    """
    while True:
        await asyncio.sleep(interval)
        removed = app.state.session_store.purge_expired()
        if removed:
            logger.info("Purged %d expired session(s)", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Construct the auth core and the static roots; tear down the sweep on exit.

    The session store is created here and nowhere else -- it lives exactly as
    long as the process, which is the documented session lifetime bound.
    """
    settings = get_settings()
    logger.info("SiteGate starting up")
    app.state.verifier = CredentialVerifier.from_settings(settings)
    app.state.session_store = SessionStore(ttl_seconds=settings.session_ttl_seconds)
    app.state.gate = AccessGate(app.state.session_store)
    app.state.public_dir = settings.public_dir.resolve()
    app.state.site_dir = settings.site_dir.resolve()
    app.state.unauthorized_redirect = settings.unauthorized_redirect
    logger.info(
        "Auth initialized (factors=%s, session_ttl=%ss, secure_cookies=%s)",
        "+".join(app.state.verifier.factors),
        settings.session_ttl_seconds or "none",
        settings.secure_cookies,
    )
    if not (app.state.site_dir / "index.html").is_file():
        logger.warning("No index.html in SITE_DIR %s", app.state.site_dir)
    app.state.purge_task = asyncio.create_task(_purge_loop(app, settings.session_purge_interval_seconds))

    yield

    app.state.purge_task.cancel()
    logger.info("SiteGate shutdown complete (%d session(s) dropped)", len(app.state.session_store))


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="SiteGate",
    description="Login gate and session control in front of a static site.",
    version=__version__,
    lifespan=lifespan,
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

if _settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
        max_age=3600,
    )

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Request logging middleware
#
# Logs method, path, status, and latency. Cookies and bodies are never logged:
# both can carry credentials.
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
# The static/gated web router is mounted by asgi.py, not here. Its catch-all
# route must be registered after every API route.


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same {"ok": false, "error": {...}} envelope so the
# login page can parse failures uniformly.
# ---------------------------------------------------------------------------


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=error_body("rate_limited", "Too many login attempts. Try again later."),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 for malformed bodies.

    The validator's error list is not echoed back: it would include the
    submitted values, and on /verify those are credentials.
    """
    return JSONResponse(
        status_code=400,
        content=error_body("bad_input", "Malformed login request."),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Registered on the Starlette base class so router-level 404/405 responses
    get the same envelope as HTTPException raised in handlers.

    When detail is already a structured dict, use it directly as the error
    field rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"ok": False, "error": exc.detail},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(f"http_{exc.status_code}", str(exc.detail)),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the server log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=error_body("internal_error", "An unexpected error occurred."),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py so it is always reachable. No rate limit and no
# auth -- load balancers must be able to poll it.
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return liveness and current version."""
    return HealthResponse(version=__version__)
