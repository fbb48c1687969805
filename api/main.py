"""
api/main.py -- FastAPI application entry point for Aquarium Monitor.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware        -- adds CORS headers for allowed browser origins
  2. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan handles startup (stores, breach-check client) and shutdown (close
both stores, close the HTTP client) symmetrically.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

import auth.rules  # noqa: F401 -- registers User validation rules
import records.rules  # noqa: F401 -- registers record validation rules
from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, FieldFailure, HealthResponse
from api.routes.v1.aquariums import router as aquariums_router
from api.routes.v1.auth import router as auth_router
from api.routes.v1.measurements import router as measurements_router
from api.routes.v1.users import router as users_router
from api.routes.v1.water_changes import router as water_changes_router
from auth.pwned import PwnedPasswordsClient
from auth.store import UserStore
from core.config import get_settings
from core.errors import RecordsError, UnprocessableEntity
from records.store import RecordStore

API_VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("aquarium.api")

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown. Both stores share the configured database URL; each owns its
    own pooled engine.
    """
    settings = get_settings()
    logger.info("Aquarium Monitor API starting up")
    app.state.user_store = UserStore(settings.database_url)
    app.state.record_store = RecordStore(settings.database_url)
    app.state.breach_checker = PwnedPasswordsClient(
        base_url=settings.pwned_api_url,
        timeout=settings.pwned_timeout_seconds,
    )
    logger.info("Stores initialized (has_users=%s)", app.state.user_store.has_users())

    yield

    await app.state.breach_checker.aclose()
    app.state.record_store.close()
    app.state.user_store.close()
    logger.info("Aquarium Monitor API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Aquarium Monitor API",
    description="Track aquariums, water parameter readings and water changes.",
    version=API_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization", "If-Match"],
    expose_headers=["ETag"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

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

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])
app.include_router(aquariums_router, prefix="/api/v1", tags=["Aquariums"])
app.include_router(measurements_router, prefix="/api/v1", tags=["Measurements"])
app.include_router(water_changes_router, prefix="/api/v1", tags=["Water Changes"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error(status_code: int, detail: ErrorDetail) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=detail).model_dump(exclude_none=True),
    )


@app.exception_handler(RecordsError)
async def records_error_handler(request: Request, exc: RecordsError) -> JSONResponse:
    """Render the domain error taxonomy from core/errors.py."""
    failures = None
    if isinstance(exc, UnprocessableEntity):
        failures = [FieldFailure(field=f.field, message=f.message) for f in exc.failures]
    return _error(exc.status_code, ErrorDetail(code=exc.code, message=exc.message, failures=failures))


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error(
        429,
        ErrorDetail(code="rate_limited", message="Too many requests.", detail=str(exc)),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with one failure per offending request field."""
    failures = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        failures.append(FieldFailure(field=".".join(loc) or "body", message=err.get("msg", "Invalid value.")))
    return _error(
        422,
        ErrorDetail(code="validation_error", message="Request validation failed.", failures=failures),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions."""
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return _error(exc.status_code, ErrorDetail(code=f"http_{exc.status_code}", message=str(exc.detail)))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unclassified failures.

    The raw exception goes to the log only, never to the response body. The
    client receives a generic 400.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(400, ErrorDetail(code="bad_request", message="The request could not be completed."))


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. No rate limit applied.
# ---------------------------------------------------------------------------


async def _probe(store) -> str:
    try:
        ok = await run_in_threadpool(store.ping)
    except SQLAlchemyError:
        logger.exception("Health probe failed for %s", type(store).__name__)
        return "error"
    return "ok" if ok else "error"


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Return API liveness, version and per-store status."""
    components = {
        "app": "ok",
        "user_store": await _probe(request.app.state.user_store),
        "record_store": await _probe(request.app.state.record_store),
    }
    status = "healthy" if all(v == "ok" for v in components.values()) else "degraded"
    return HealthResponse(status=status, version=API_VERSION, components=components)
