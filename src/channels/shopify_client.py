"""Shopify Admin REST API client.

Covers what the channel engine needs: cursor-paginated order and product
listing, locations, inventory levels, order create/update, webhooks and the
OAuth code exchange. Each call opens a short-lived ``httpx.AsyncClient`` with
an explicit timeout and raises ``ShopifyApiError`` on failure.
"""

import asyncio
import base64
import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qs, urlencode, urlparse

import httpx

from src.couriers.clients.base import extract_error_message
from src.utils.redaction import sanitize_error_message

logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = "2024-01"
MAX_PAGE_SIZE = 250
MAX_INVENTORY_IDS_PER_CALL = 50
RATE_LIMIT_RETRIES = 2
MAX_RETRY_AFTER_SECONDS = 4.0


@dataclass
class ShopifyApiError(Exception):
    """Error raised by the Shopify client.

    Attributes:
        message: Shopify's error text where available.
        status_code: HTTP status, None for network errors.
        code: Registry code (E-3xxx).
    """

    message: str
    status_code: int | None = None
    code: str = "E-3001"

    def __str__(self) -> str:
        """Return formatted error message."""
        return f"[{self.code}] Shopify: {self.message}"


@dataclass
class ShopifyPage:
    """One page of a cursor-paginated listing."""

    items: list[dict[str, Any]] = field(default_factory=list)
    next_page_info: str | None = None

    @property
    def has_next(self) -> bool:
        return self.next_page_info is not None


def normalize_store_url(store_url: str) -> str:
    """Reduce a store URL to its bare host, e.g. ``mystore.myshopify.com``."""
    host = (store_url or "").strip()
    host = host.replace("https://", "").replace("http://", "")
    return host.split("/")[0].rstrip("/").lower()


def _next_page_info(response: httpx.Response) -> str | None:
    """Extract the ``page_info`` cursor from the Link header's next relation."""
    next_link = response.links.get("next", {}).get("url")
    if not next_link:
        return None
    values = parse_qs(urlparse(next_link).query).get("page_info")
    return values[0] if values else None


def _json_body(response: httpx.Response) -> dict[str, Any]:
    """Decode a successful response body.

    Maintenance and password pages arrive as HTML with a 200 status.

    Raises:
        ShopifyApiError: If the body is not a JSON object.
    """
    try:
        data = response.json()
    except ValueError as e:
        raise ShopifyApiError(
            "invalid JSON response", status_code=response.status_code, code="E-3001"
        ) from e
    if not isinstance(data, dict):
        raise ShopifyApiError(
            "invalid JSON response", status_code=response.status_code, code="E-3001"
        )
    return data


def build_authorization_url(
    store_url: str,
    client_id: str,
    scopes: list[str],
    redirect_uri: str,
    state: str,
) -> str:
    """Build the OAuth install URL a merchant is redirected to."""
    query = urlencode({
        "client_id": client_id,
        "scope": ",".join(scopes),
        "redirect_uri": redirect_uri,
        "state": state,
    })
    return f"https://{normalize_store_url(store_url)}/admin/oauth/authorize?{query}"


def verify_webhook_hmac(body: bytes, secret: str, hmac_header: str | None) -> bool:
    """Check ``X-Shopify-Hmac-Sha256`` against the raw request body."""
    if not secret or not hmac_header:
        return False
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode("ascii")
    return hmac.compare_digest(expected, hmac_header.strip())


def verify_oauth_hmac(params: dict[str, str], secret: str) -> bool:
    """Check the ``hmac`` query parameter Shopify adds to OAuth callbacks."""
    received = params.get("hmac")
    if not secret or not received:
        return False
    message = "&".join(
        f"{key}={value}" for key, value in sorted(params.items()) if key not in ("hmac", "signature")
    )
    expected = hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, received)


class ShopifyClient:
    """Shopify Admin API client bound to one store and access token.

    Example:
        client = ShopifyClient("mystore.myshopify.com", "shpat_xxxx")
        page = await client.list_orders_page(updated_at_min=since)
        while page.has_next:
            page = await client.list_orders_page(page_info=page.next_page_info)
    """

    def __init__(
        self,
        store_url: str,
        access_token: str | None = None,
        api_version: str = DEFAULT_API_VERSION,
        timeout: float | httpx.Timeout = 30.0,
    ) -> None:
        self._store_url = normalize_store_url(store_url)
        self._access_token = access_token
        self._api_version = api_version
        self._timeout = timeout if isinstance(timeout, httpx.Timeout) else httpx.Timeout(timeout)

    @property
    def store_url(self) -> str:
        return self._store_url

    def _get_base_url(self) -> str:
        """Construct the Shopify Admin API base URL."""
        return f"https://{self._store_url}/admin/api/{self._api_version}"

    def _get_headers(self) -> dict[str, str]:
        return {
            "X-Shopify-Access-Token": self._access_token or "",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        """Send one Admin API request, retrying briefly on 429.

        Raises:
            ShopifyApiError: On network errors and non-2xx responses.
        """
        url = f"{self._get_base_url()}/{path.lstrip('/')}"
        kwargs: dict[str, Any] = {"headers": self._get_headers()}
        if params:
            kwargs["params"] = params
        if json is not None:
            kwargs["json"] = json

        for attempt in range(RATE_LIMIT_RETRIES + 1):
            try:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await getattr(client, method.lower())(url, **kwargs)
            except httpx.TimeoutException as e:
                raise ShopifyApiError(f"request timed out: {e}", code="E-3004") from e
            except httpx.RequestError as e:
                raise ShopifyApiError(str(e) or type(e).__name__, code="E-3004") from e

            if response.status_code == 429 and attempt < RATE_LIMIT_RETRIES:
                try:
                    delay = float(response.headers.get("Retry-After", "1"))
                except ValueError:
                    delay = 1.0
                delay = min(max(delay, 0.0), MAX_RETRY_AFTER_SECONDS)
                logger.info("Shopify rate limit hit on %s, retrying in %.1fs", path, delay)
                await asyncio.sleep(delay)
                continue
            break

        if response.status_code >= 400:
            message = sanitize_error_message(extract_error_message(response), max_length=500)
            code = "E-3001"
            if response.status_code in (401, 403):
                code = "E-3002"
            elif response.status_code == 429:
                code = "E-3003"
            logger.warning(
                "Shopify %s %s failed with HTTP %s: %s",
                method.upper(), path, response.status_code, message,
            )
            raise ShopifyApiError(
                message or f"HTTP {response.status_code}", status_code=response.status_code, code=code,
            )
        return response

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        response = await self._request("GET", path, params=params)
        return _json_body(response)

    async def get_shop(self) -> dict[str, Any]:
        """Fetch shop details (also the cheapest token check)."""
        return (await self._get_json("shop.json")).get("shop") or {}

    async def test_connection(self) -> bool:
        try:
            await self.get_shop()
        except ShopifyApiError:
            return False
        return True

    async def _list_page(
        self,
        resource: str,
        filters: dict[str, Any],
        limit: int,
        page_info: str | None,
    ) -> ShopifyPage:
        # Shopify rejects filter parameters alongside a page_info cursor.
        params: dict[str, Any] = {"limit": max(1, min(limit, MAX_PAGE_SIZE))}
        if page_info:
            params["page_info"] = page_info
        else:
            params.update({k: v for k, v in filters.items() if v is not None})
        response = await self._request("GET", f"{resource}.json", params=params)
        return ShopifyPage(
            items=_json_body(response).get(resource) or [],
            next_page_info=_next_page_info(response),
        )

    async def list_orders_page(
        self,
        updated_at_min: str | None = None,
        updated_at_max: str | None = None,
        limit: int = MAX_PAGE_SIZE,
        page_info: str | None = None,
    ) -> ShopifyPage:
        """Fetch one page of orders modified within a window (any status)."""
        return await self._list_page(
            "orders",
            {"status": "any", "updated_at_min": updated_at_min, "updated_at_max": updated_at_max},
            limit,
            page_info,
        )

    async def get_order(self, order_id: str) -> dict[str, Any] | None:
        try:
            return (await self._get_json(f"orders/{order_id}.json")).get("order")
        except ShopifyApiError as e:
            if e.status_code == 404:
                return None
            raise

    async def list_products_page(
        self,
        updated_at_min: str | None = None,
        limit: int = MAX_PAGE_SIZE,
        page_info: str | None = None,
    ) -> ShopifyPage:
        return await self._list_page(
            "products", {"updated_at_min": updated_at_min}, limit, page_info
        )

    async def list_locations(self) -> list[dict[str, Any]]:
        return (await self._get_json("locations.json")).get("locations") or []

    async def list_inventory_levels(
        self, location_id: str | int, inventory_item_ids: list[str | int]
    ) -> list[dict[str, Any]]:
        """Fetch levels for up to 50 inventory items at one location.

        Raises:
            ValueError: If more ids are passed than Shopify accepts per call.
        """
        if len(inventory_item_ids) > MAX_INVENTORY_IDS_PER_CALL:
            raise ValueError(
                f"At most {MAX_INVENTORY_IDS_PER_CALL} inventory item ids per call"
            )
        if not inventory_item_ids:
            return []
        data = await self._get_json(
            "inventory_levels.json",
            params={
                "location_ids": str(location_id),
                "inventory_item_ids": ",".join(str(i) for i in inventory_item_ids),
                "limit": MAX_PAGE_SIZE,
            },
        )
        return data.get("inventory_levels") or []

    async def set_inventory_level(
        self, location_id: str | int, inventory_item_id: str | int, available: int
    ) -> dict[str, Any]:
        response = await self._request(
            "POST",
            "inventory_levels/set.json",
            json={
                "location_id": int(location_id),
                "inventory_item_id": int(inventory_item_id),
                "available": available,
            },
        )
        return _json_body(response).get("inventory_level") or {}

    async def create_order(self, payload: dict[str, Any]) -> dict[str, Any]:
        response = await self._request("POST", "orders.json", json=payload)
        return _json_body(response).get("order") or {}

    async def update_order(self, order_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        response = await self._request("PUT", f"orders/{order_id}.json", json=payload)
        return _json_body(response).get("order") or {}

    async def register_webhook(self, topic: str, address: str) -> dict[str, Any]:
        response = await self._request(
            "POST",
            "webhooks.json",
            json={"webhook": {"topic": topic, "address": address, "format": "json"}},
        )
        return _json_body(response).get("webhook") or {}

    async def list_webhooks(self) -> list[dict[str, Any]]:
        return (await self._get_json("webhooks.json")).get("webhooks") or []

    async def delete_webhook(self, webhook_id: str | int) -> None:
        await self._request("DELETE", f"webhooks/{webhook_id}.json")

    async def exchange_code(self, client_id: str, client_secret: str, code: str) -> dict[str, Any]:
        """Trade an OAuth authorization code for a permanent access token.

        Returns:
            Dict with ``access_token`` and ``scope``.

        Raises:
            ShopifyApiError: If Shopify rejects the code.
        """
        url = f"https://{self._store_url}/admin/oauth/access_token"
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    url,
                    json={"client_id": client_id, "client_secret": client_secret, "code": code},
                )
        except httpx.RequestError as e:
            raise ShopifyApiError(str(e) or type(e).__name__, code="E-3004") from e
        if response.status_code != 200:
            raise ShopifyApiError(
                sanitize_error_message(extract_error_message(response), max_length=500) or "OAuth exchange failed",
                status_code=response.status_code,
                code="E-3002",
            )
        data = _json_body(response)
        if not data.get("access_token"):
            raise ShopifyApiError("OAuth exchange returned no access token", code="E-3002")
        self._access_token = data["access_token"]
        return data
