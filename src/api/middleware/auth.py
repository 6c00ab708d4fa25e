"""Optional API-key auth for the management routes.

When SHIPSYNC_API_KEY is set, every ``/api/`` request must carry it in
``X-API-Key``. Webhook routes are public because carriers and Shopify
cannot send the key; Shopify webhooks are verified by HMAC instead.
Repeated failures from one client IP are throttled.
"""

import hmac
import logging
import os
import threading
import time

from fastapi import Request
from fastapi.responses import JSONResponse, Response

logger = logging.getLogger(__name__)

API_KEY_ENV = "SHIPSYNC_API_KEY"
MIN_API_KEY_LENGTH = 32

_PUBLIC_PATH_PREFIXES = ("/health", "/docs", "/redoc", "/openapi.json", "/webhooks/")

_AUTH_FAIL_MAX = 10
_AUTH_FAIL_WINDOW_SECONDS = 300
_auth_failures: dict[str, list[float]] = {}
_auth_lock = threading.Lock()


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _recent_failures(client_ip: str) -> list[float]:
    now = time.monotonic()
    recent = [t for t in _auth_failures.get(client_ip, []) if now - t < _AUTH_FAIL_WINDOW_SECONDS]
    _auth_failures[client_ip] = recent
    return recent


def reset_rate_limiter() -> None:
    """Forget recorded failures. Used by tests."""
    with _auth_lock:
        _auth_failures.clear()


def validate_api_key_strength() -> None:
    """Reject a configured key shorter than 32 characters.

    Raises:
        ValueError: If SHIPSYNC_API_KEY is set but too short.
    """
    key = get_expected_api_key()
    if key and len(key) < MIN_API_KEY_LENGTH:
        raise ValueError(
            f"{API_KEY_ENV} is too short ({len(key)} chars); "
            f"at least {MIN_API_KEY_LENGTH} are required."
        )


def get_expected_api_key() -> str:
    """Configured API key; empty means auth is disabled."""
    return os.environ.get(API_KEY_ENV, "").strip()


def should_authenticate(path: str) -> bool:
    if path.startswith(_PUBLIC_PATH_PREFIXES):
        return False
    return path.startswith("/api/")


async def maybe_require_api_key(request: Request, call_next) -> Response:
    """HTTP middleware enforcing the API key when one is configured."""
    expected = get_expected_api_key()
    if request.method.upper() == "OPTIONS" or not expected or not should_authenticate(request.url.path):
        return await call_next(request)

    client_ip = _client_ip(request)
    with _auth_lock:
        blocked = len(_recent_failures(client_ip)) >= _AUTH_FAIL_MAX
    if blocked:
        logger.warning("Auth rate limit exceeded for %s", client_ip)
        return JSONResponse(
            status_code=429,
            content={"detail": "Too many authentication failures. Try again later."},
        )

    provided = request.headers.get("X-API-Key", "")
    if not provided or not hmac.compare_digest(provided, expected):
        with _auth_lock:
            _recent_failures(client_ip).append(time.monotonic())
        return JSONResponse(status_code=401, content={"detail": "Invalid or missing API key"})
    return await call_next(request)
