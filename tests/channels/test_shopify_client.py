"""Tests for the Shopify Admin API client and its signing helpers."""

import base64
import hashlib
import hmac
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from src.channels.shopify_client import (
    MAX_RETRY_AFTER_SECONDS,
    ShopifyApiError,
    ShopifyClient,
    build_authorization_url,
    normalize_store_url,
    verify_oauth_hmac,
    verify_webhook_hmac,
)

BASE = "https://test-store.myshopify.com/admin/api/2024-01"


def _response(status: int, url: str = BASE, **kwargs) -> httpx.Response:
    return httpx.Response(status, request=httpx.Request("GET", url), **kwargs)


@pytest.fixture
def requests_made():
    return []


@pytest.fixture
def stub_http(monkeypatch, requests_made):
    """Route AsyncClient verbs to a queue of canned responses."""
    responses: list = []

    def make(method):
        async def fake(self, url, **kwargs):
            requests_made.append((method, url, kwargs))
            item = responses.pop(0)
            if isinstance(item, Exception):
                raise item
            return item
        return fake

    for method in ("get", "post", "put", "delete"):
        monkeypatch.setattr(httpx.AsyncClient, method, make(method))
    return responses


@pytest.fixture
def sleeps(monkeypatch):
    delays = []

    async def fake_sleep(delay):
        delays.append(delay)

    monkeypatch.setattr("src.channels.shopify_client.asyncio.sleep", fake_sleep)
    return delays


@pytest.fixture
def client():
    return ShopifyClient("https://Test-Store.myshopify.com/admin", "shpat_abc")


class TestNormalizeStoreUrl:
    @pytest.mark.parametrize(
        "raw",
        [
            "test-store.myshopify.com",
            "https://test-store.myshopify.com",
            "http://TEST-STORE.myshopify.com/",
            "https://test-store.myshopify.com/admin/orders",
            "  test-store.myshopify.com  ",
        ],
    )
    def test_reduces_to_host(self, raw):
        assert normalize_store_url(raw) == "test-store.myshopify.com"

    def test_empty(self):
        assert normalize_store_url("") == ""


class TestPagination:
    async def test_next_cursor_read_from_link_header(self, client, stub_http, requests_made):
        link = f'<{BASE}/orders.json?limit=2&page_info=abc123>; rel="next"'
        stub_http.append(_response(200, json={"orders": [{"id": 1}, {"id": 2}]}, headers={"Link": link}))

        page = await client.list_orders_page(updated_at_min="2024-01-01T00:00:00+00:00", limit=2)

        assert [o["id"] for o in page.items] == [1, 2]
        assert page.next_page_info == "abc123"
        assert page.has_next
        method, url, kwargs = requests_made[0]
        assert (method, url) == ("get", f"{BASE}/orders.json")
        assert kwargs["params"] == {"limit": 2, "status": "any", "updated_at_min": "2024-01-01T00:00:00+00:00"}
        assert kwargs["headers"]["X-Shopify-Access-Token"] == "shpat_abc"

    async def test_cursor_request_drops_filters(self, client, stub_http, requests_made):
        stub_http.append(_response(200, json={"orders": []}))

        page = await client.list_orders_page(updated_at_min="2024-01-01", page_info="abc123")

        assert requests_made[0][2]["params"] == {"limit": 250, "page_info": "abc123"}
        assert page.items == []
        assert not page.has_next

    async def test_previous_only_link_is_last_page(self, client, stub_http):
        link = f'<{BASE}/products.json?page_info=prev>; rel="previous"'
        stub_http.append(_response(200, json={"products": [{"id": 9}]}, headers={"Link": link}))

        page = await client.list_products_page()

        assert page.next_page_info is None

    async def test_limit_clamped_to_shopify_maximum(self, client, stub_http, requests_made):
        stub_http.append(_response(200, json={"products": []}))

        await client.list_products_page(limit=1000)

        assert requests_made[0][2]["params"]["limit"] == 250


class TestErrors:
    @pytest.mark.parametrize(
        "status,code",
        [(401, "E-3002"), (403, "E-3002"), (404, "E-3001"), (422, "E-3001"), (500, "E-3001")],
    )
    async def test_status_codes_map_to_registry(self, client, stub_http, status, code):
        stub_http.append(_response(status, json={"errors": "Not allowed"}))

        with pytest.raises(ShopifyApiError) as exc_info:
            await client.get_shop()

        assert exc_info.value.code == code
        assert exc_info.value.status_code == status
        assert exc_info.value.message == "Not allowed"

    async def test_network_error_is_retryable_code(self, client, stub_http):
        stub_http.append(httpx.ConnectError("connection refused"))

        with pytest.raises(ShopifyApiError) as exc_info:
            await client.list_locations()

        assert exc_info.value.code == "E-3004"
        assert exc_info.value.status_code is None

    async def test_timeout(self, client, stub_http):
        stub_http.append(httpx.ReadTimeout("slow"))

        with pytest.raises(ShopifyApiError) as exc_info:
            await client.list_locations()

        assert exc_info.value.code == "E-3004"
        assert "timed out" in exc_info.value.message

    async def test_html_body_on_success_status(self, client, stub_http):
        stub_http.append(_response(200, text="<html>Store unavailable</html>"))

        with pytest.raises(ShopifyApiError) as exc_info:
            await client.list_orders_page()

        assert exc_info.value.code == "E-3001"
        assert exc_info.value.status_code == 200
        assert exc_info.value.message == "invalid JSON response"

    async def test_truncated_body(self, client, stub_http):
        stub_http.append(_response(200, text='{"shop": {"id": 1'))

        with pytest.raises(ShopifyApiError, match="invalid JSON response"):
            await client.get_shop()

    async def test_non_object_body(self, client, stub_http):
        stub_http.append(_response(200, json=["not", "an", "object"]))

        with pytest.raises(ShopifyApiError, match="invalid JSON response"):
            await client.list_locations()

    def test_str_includes_code(self):
        assert str(ShopifyApiError("boom", 500)) == "[E-3001] Shopify: boom"

    async def test_get_order_404_is_none(self, client, stub_http):
        stub_http.append(_response(404, json={"errors": "Not Found"}))

        assert await client.get_order("123") is None

    async def test_test_connection_false_on_rejection(self, client, stub_http):
        stub_http.append(_response(401, json={"errors": "Invalid API key or access token"}))

        assert await client.test_connection() is False


class TestRateLimitRetry:
    async def test_retries_after_header_delay(self, client, stub_http, sleeps):
        stub_http.append(_response(429, headers={"Retry-After": "2.0"}, json={"errors": "Throttled"}))
        stub_http.append(_response(200, json={"shop": {"id": 1, "name": "Test"}}))

        shop = await client.get_shop()

        assert shop == {"id": 1, "name": "Test"}
        assert sleeps == [2.0]

    async def test_delay_is_capped(self, client, stub_http, sleeps):
        stub_http.append(_response(429, headers={"Retry-After": "60"}, json={}))
        stub_http.append(_response(200, json={"locations": []}))

        await client.list_locations()

        assert sleeps == [MAX_RETRY_AFTER_SECONDS]

    async def test_gives_up_with_rate_limit_code(self, client, stub_http, sleeps):
        for _ in range(3):
            stub_http.append(_response(429, headers={"Retry-After": "bogus"}, json={"errors": "Throttled"}))

        with pytest.raises(ShopifyApiError) as exc_info:
            await client.get_shop()

        assert exc_info.value.code == "E-3003"
        assert sleeps == [1.0, 1.0]


class TestInventoryCalls:
    async def test_levels_reject_more_than_fifty_ids(self, client):
        with pytest.raises(ValueError, match="At most 50"):
            await client.list_inventory_levels(1, list(range(51)))

    async def test_levels_empty_ids_make_no_call(self, client, stub_http, requests_made):
        assert await client.list_inventory_levels(1, []) == []
        assert requests_made == []

    async def test_levels_query(self, client, stub_http, requests_made):
        stub_http.append(_response(200, json={"inventory_levels": [{"inventory_item_id": 7, "available": 3}]}))

        levels = await client.list_inventory_levels("501", [7, 8])

        assert levels == [{"inventory_item_id": 7, "available": 3}]
        params = requests_made[0][2]["params"]
        assert params["location_ids"] == "501"
        assert params["inventory_item_ids"] == "7,8"

    async def test_set_level_body(self, client, stub_http, requests_made):
        stub_http.append(_response(200, json={"inventory_level": {"available": 4}}))

        await client.set_inventory_level("501", "7", 4)

        method, url, kwargs = requests_made[0]
        assert (method, url) == ("post", f"{BASE}/inventory_levels/set.json")
        assert kwargs["json"] == {"location_id": 501, "inventory_item_id": 7, "available": 4}


class TestOrderCalls:
    async def test_update_uses_put(self, client, stub_http, requests_made):
        stub_http.append(_response(200, json={"order": {"id": 55, "name": "#1055"}}))

        updated = await client.update_order("55", {"order": {"id": 55, "note": "hi"}})

        assert updated["name"] == "#1055"
        assert requests_made[0][:2] == ("put", f"{BASE}/orders/55.json")

    async def test_create_returns_order(self, client, stub_http):
        stub_http.append(_response(201, json={"order": {"id": 56}}))

        assert await client.create_order({"order": {}}) == {"id": 56}


class TestOAuth:
    async def test_exchange_code(self, client, stub_http, requests_made):
        stub_http.append(_response(200, json={"access_token": "shpat_new", "scope": "read_orders"}))

        data = await client.exchange_code("cid", "csecret", "code-1")

        assert data["access_token"] == "shpat_new"
        url = requests_made[0][1]
        assert url == "https://test-store.myshopify.com/admin/oauth/access_token"

    async def test_exchange_rejected(self, client, stub_http):
        stub_http.append(_response(400, json={"error": "invalid_request"}))

        with pytest.raises(ShopifyApiError) as exc_info:
            await client.exchange_code("cid", "csecret", "bad")

        assert exc_info.value.code == "E-3002"
        assert exc_info.value.message == "invalid_request"

    def test_authorization_url(self):
        url = build_authorization_url(
            "https://Test-Store.myshopify.com",
            "cid",
            ["read_orders", "write_inventory"],
            "https://app.example.com/callback",
            "state-1",
        )

        parsed = urlparse(url)
        assert parsed.netloc == "test-store.myshopify.com"
        assert parsed.path == "/admin/oauth/authorize"
        query = parse_qs(parsed.query)
        assert query["scope"] == ["read_orders,write_inventory"]
        assert query["state"] == ["state-1"]
        assert query["redirect_uri"] == ["https://app.example.com/callback"]


class TestSignatures:
    def test_webhook_hmac_valid(self):
        body = b'{"id": 1}'
        header = base64.b64encode(hmac.new(b"s3cret", body, hashlib.sha256).digest()).decode()

        assert verify_webhook_hmac(body, "s3cret", header)

    def test_webhook_hmac_tampered_body(self):
        header = base64.b64encode(hmac.new(b"s3cret", b"original", hashlib.sha256).digest()).decode()

        assert not verify_webhook_hmac(b"tampered", "s3cret", header)

    @pytest.mark.parametrize("secret,header", [("", "abc"), ("s3cret", None), ("s3cret", "")])
    def test_webhook_hmac_missing_inputs(self, secret, header):
        assert not verify_webhook_hmac(b"{}", secret, header)

    def test_oauth_hmac_sorted_and_excludes_signature(self):
        params = {"shop": "test-store.myshopify.com", "code": "abc", "timestamp": "1700000000"}
        message = "code=abc&shop=test-store.myshopify.com&timestamp=1700000000"
        params["hmac"] = hmac.new(b"s3cret", message.encode(), hashlib.sha256).hexdigest()
        params["signature"] = "legacy"

        assert verify_oauth_hmac(params, "s3cret")

    def test_oauth_hmac_wrong_secret(self):
        params = {"shop": "x", "hmac": hmac.new(b"other", b"shop=x", hashlib.sha256).hexdigest()}

        assert not verify_oauth_hmac(params, "s3cret")
        assert not verify_oauth_hmac({"shop": "x"}, "s3cret")
