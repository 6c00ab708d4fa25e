"""FastAPI application for the ShipSync API.

Provides the main application instance with routers, middleware,
and exception handlers configured. Management routes live under
``/api/v1``; carrier and Shopify webhooks under ``/webhooks``.
"""

import logging
import os
import sys
import time as _time
from contextlib import asynccontextmanager
from importlib.metadata import version as _pkg_version

from fastapi import FastAPI, Request

# Configure logging to stdout for uvicorn to capture
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
# Ensure our application loggers are captured
logging.getLogger("src").setLevel(logging.INFO)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.middleware.auth import maybe_require_api_key, validate_api_key_strength
from src.api.routes import channels, webhooks
from src.channels.shopify_client import ShopifyApiError
from src.db.connection import async_init_db, close_async_db, get_async_db_context
from src.errors import ShipSyncError
from src.errors.domain import ConflictError, DomainError, NotFoundError
from src.utils.redaction import sanitize_error_message

logger = logging.getLogger(__name__)

# Module-level state for health endpoint
_startup_time: float = 0.0

# Registry codes that are not plain 400s.
_STATUS_BY_CODE = {
    "E-1001": 404,
    "E-5001": 401,
}


def _parse_allowed_origins() -> list[str]:
    """Parse comma-separated CORS allowlist from ALLOWED_ORIGINS env var."""
    raw = os.environ.get("ALLOWED_ORIGINS", "").strip()
    if not raw:
        return []
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Async lifespan: schema creation on startup, engine disposal on shutdown."""
    global _startup_time

    # --- Startup ---
    _startup_time = _time.time()
    validate_api_key_strength()
    await async_init_db()
    logger.info("ShipSync API started")

    yield

    # --- Shutdown ---
    await close_async_db()


app = FastAPI(
    title="ShipSync API",
    description="Courier and sales-channel synchronization engine",
    version="0.1.0",
    lifespan=lifespan,
)

# Optional API auth for /api/* when SHIPSYNC_API_KEY is configured.
app.middleware("http")(maybe_require_api_key)

# CORS allowlist is env-driven. If unset, CORS is disabled (same-origin only).
allowed_origins = _parse_allowed_origins()
if allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-API-Key"],
    )


@app.exception_handler(ShipSyncError)
async def shipsync_error_handler(request: Request, exc: ShipSyncError) -> JSONResponse:
    """Handle ShipSyncError exceptions with consistent format.

    Args:
        request: The incoming request.
        exc: The ShipSyncError exception.

    Returns:
        JSONResponse with error details.
    """
    return JSONResponse(
        status_code=_STATUS_BY_CODE.get(exc.code, 400),
        content={
            "error_code": exc.code,
            "message": exc.message,
            "remediation": exc.remediation,
            "details": exc.details if exc.details else None,
        },
    )


@app.exception_handler(ShopifyApiError)
async def shopify_error_handler(request: Request, exc: ShopifyApiError) -> JSONResponse:
    """Storefront failures surface as a bad gateway."""
    logger.warning("Shopify call failed during %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=502,
        content={"error_code": exc.code, "message": sanitize_error_message(exc.message)},
    )


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if isinstance(exc, NotFoundError):
        status_code = 404
    elif isinstance(exc, ConflictError):
        status_code = 409
    else:
        status_code = 400
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


# Include routers
app.include_router(channels.router, prefix="/api/v1")
app.include_router(webhooks.router)


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint with database status.

    Returns:
        Dictionary with health status, version and uptime.
    """
    from sqlalchemy import text

    uptime = int(_time.time() - _startup_time) if _startup_time else 0

    try:
        async with get_async_db_context() as db:
            await db.execute(text("SELECT 1"))
        database = "ok"
    except Exception as exc:
        logger.error("Health check database probe failed: %s", exc)
        database = "error"

    # Version from package metadata (matches pyproject.toml)
    try:
        version = _pkg_version("shipsync")
    except Exception:
        version = "unknown"

    return {
        "status": "healthy" if database == "ok" else "degraded",
        "version": version,
        "uptime_seconds": uptime,
        "database": database,
    }


@app.get("/api")
def api_root() -> dict:
    """API root with links to docs."""
    return {
        "name": "ShipSync API",
        "version": "0.1.0",
        "docs": "/docs",
        "redoc": "/redoc",
    }
