"""Shared httpx plumbing for carrier transports."""

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from src.utils.redaction import sanitize_error_message

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass
class CourierApiError(Exception):
    """Error raised by a carrier transport.

    Attributes:
        provider: Carrier name for messages.
        message: Provider message where available.
        status_code: HTTP status, None for network errors.
        code: Registry code (E-3xxx).
    """

    provider: str
    message: str
    status_code: int | None = None
    code: str = "E-3001"

    def __str__(self) -> str:
        """Return formatted error message."""
        return f"[{self.code}] {self.provider}: {self.message}"


def extract_error_message(response: httpx.Response) -> str:
    """Pull the most useful error text out of a carrier error response."""
    try:
        body = response.json()
    except ValueError:
        return (response.text or f"HTTP {response.status_code}")[:500]

    if isinstance(body, dict):
        for key in ("message", "error", "errors", "rmk", "remarks", "Message"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and value:
                return "; ".join(
                    f"{k}: {', '.join(v) if isinstance(v, list) else v}"
                    for k, v in value.items()
                )
            if isinstance(value, list) and value:
                return "; ".join(str(v) for v in value)
    return f"HTTP {response.status_code}"


def _code_for_status(status_code: int) -> str:
    if status_code in (401, 403):
        return "E-3002"
    if status_code == 429:
        return "E-3003"
    return "E-3001"


class CourierHttpClient:
    """Base transport: one short-lived AsyncClient per call, bounded timeout."""

    provider_name = "carrier"

    def __init__(
        self, base_url: str, timeout: float | httpx.Timeout = DEFAULT_TIMEOUT_SECONDS
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout if isinstance(timeout, httpx.Timeout) else httpx.Timeout(timeout)

    @property
    def base_url(self) -> str:
        return self._base_url

    def _url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    async def _send(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        json: Any = None,
        data: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send one request and raise CourierApiError on failure.

        Raises:
            CourierApiError: On network errors, timeouts and non-2xx responses.
        """
        kwargs: dict[str, Any] = {"headers": headers or {}}
        if params is not None:
            kwargs["params"] = params
        if json is not None:
            kwargs["json"] = json
        if data is not None:
            kwargs["data"] = data

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await getattr(client, method.lower())(self._url(path), **kwargs)
        except httpx.TimeoutException as e:
            raise CourierApiError(self.provider_name, f"request timed out: {e}", code="E-3004") from e
        except httpx.RequestError as e:
            raise CourierApiError(self.provider_name, str(e) or type(e).__name__, code="E-3004") from e

        if response.status_code >= 400:
            message = sanitize_error_message(extract_error_message(response), max_length=500)
            logger.warning(
                "%s %s %s failed with HTTP %s: %s",
                self.provider_name, method.upper(), path, response.status_code, message,
            )
            raise CourierApiError(
                self.provider_name,
                message or f"HTTP {response.status_code}",
                status_code=response.status_code,
                code=_code_for_status(response.status_code),
            )
        return response

    async def _request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and decode the JSON body.

        Raises:
            CourierApiError: On transport errors or a non-JSON body.
        """
        response = await self._send(method, path, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise CourierApiError(
                self.provider_name, "response was not valid JSON", status_code=response.status_code,
            ) from e

    async def _request_bytes(self, method: str, path: str, **kwargs: Any) -> bytes:
        response = await self._send(method, path, **kwargs)
        return response.content

    async def download(self, url: str, headers: dict[str, str] | None = None) -> bytes:
        """Fetch an absolute URL (e.g. a label PDF link) as bytes."""
        try:
            async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
                response = await client.get(url, headers=headers or {})
        except httpx.RequestError as e:
            raise CourierApiError(self.provider_name, str(e) or type(e).__name__, code="E-3004") from e
        if response.status_code >= 400:
            raise CourierApiError(
                self.provider_name, f"download failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response.content
