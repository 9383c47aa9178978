"""Main FastAPI application."""

import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from passkey_auth.api import errors, metrics, passkeys
from passkey_auth.core import settings, setup_logging
from passkey_auth.core.logging import get_logger
from passkey_auth.core.metrics import (
    HTTP_REQUEST_DURATION_SECONDS,
    HTTP_REQUESTS_IN_PROGRESS,
    HTTP_REQUESTS_TOTAL,
    set_app_info,
)
from passkey_auth.db import SessionLocal, init_database
from passkey_auth.domain.exceptions import DomainError

setup_logging()
logger = get_logger(__name__)

app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
)

set_app_info(version=settings.api_version, environment=settings.environment)

app.state.limiter = passkeys.limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Cookies carry the ceremony session, so credentials must be allowed
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


@app.middleware("http")
async def prometheus_metrics_middleware(request: Request, call_next):
    """Collect Prometheus metrics for all HTTP requests."""
    if request.url.path == "/metrics":
        return await call_next(request)

    method = request.method
    # Paths carry no identifiers, so they are used as-is
    endpoint = request.url.path

    HTTP_REQUESTS_IN_PROGRESS.labels(method=method, endpoint=endpoint).inc()
    start_time = time.perf_counter()

    try:
        response = await call_next(request)
        status_code = str(response.status_code)
    except Exception:
        status_code = "500"
        raise
    finally:
        duration = time.perf_counter() - start_time
        HTTP_REQUESTS_IN_PROGRESS.labels(method=method, endpoint=endpoint).dec()
        HTTP_REQUEST_DURATION_SECONDS.labels(method=method, endpoint=endpoint).observe(duration)
        HTTP_REQUESTS_TOTAL.labels(method=method, endpoint=endpoint, status_code=status_code).inc()

    return response


app.include_router(metrics.router)  # Metrics at root level (not under /api/v1)
app.include_router(passkeys.router, prefix=settings.api_prefix)


@app.on_event("startup")
async def create_tables() -> None:
    """Create tables on startup; log and continue if the database is down."""
    db = SessionLocal()
    try:
        init_database(db)
    except SQLAlchemyError as exc:
        logger.warning("Skipping table creation (database error): %s", exc)
    finally:
        db.close()


@app.get("/health")
async def health() -> dict:
    """Basic health check endpoint (alias for /health/live)."""
    return {"status": "healthy"}


@app.get("/health/live")
async def health_live() -> dict:
    """Liveness probe endpoint."""
    return {"status": "healthy"}


@app.get("/health/ready")
async def health_ready():
    """Readiness check with dependency status.

    The database is always checked; Redis only when it backs the challenge
    store. Returns 503 if any checked dependency is unhealthy.
    """
    status = {"database": {"status": "healthy"}}
    overall_healthy = True

    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
    except SQLAlchemyError as e:
        status["database"] = {"status": "unhealthy", "error": str(e)}
        overall_healthy = False

    if settings.challenge_store_backend == "redis":
        import redis as redis_client

        status["redis"] = {"status": "healthy"}
        try:
            r = redis_client.from_url(settings.redis_url)
            r.ping()
            r.close()
        except redis_client.RedisError as e:
            status["redis"] = {"status": "unhealthy", "error": str(e)}
            overall_healthy = False

    result = {
        "status": "healthy" if overall_healthy else "unhealthy",
        "dependencies": status,
    }

    if overall_healthy:
        return result
    return JSONResponse(status_code=503, content=result)


@app.get("/")
async def root() -> dict:
    """Root endpoint."""
    return {
        "message": settings.api_title,
        "version": settings.api_version,
        "docs": "/docs",
    }


@app.exception_handler(DomainError)
async def domain_exception_handler(request: Request, exc: DomainError):
    """Translate domain errors to HTTP responses globally."""
    http_exc = errors.to_http(exc)
    return JSONResponse(
        status_code=http_exc.status_code,
        content={"detail": http_exc.detail, "code": exc.code, **exc.extra},
        headers=http_exc.headers,
    )
