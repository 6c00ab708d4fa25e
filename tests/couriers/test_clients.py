"""Tests for carrier HTTP transports and the adapter factory."""

import httpx
import pytest

from src.config import ShipSyncConfig
from src.couriers.clients import CourierApiError, DelhiveryClient, ShiprocketClient
from src.couriers.clients.base import extract_error_message
from src.couriers.factory import CourierAdapterFactory, build_default_factory
from src.couriers.models import CourierType


def _response(status: int, url: str = "https://carrier.test/x", **kwargs) -> httpx.Response:
    return httpx.Response(status, request=httpx.Request("GET", url), **kwargs)


@pytest.fixture
def captured():
    return []


@pytest.fixture
def stub_http(monkeypatch, captured):
    """Route AsyncClient.get/post to a queue of canned responses."""
    responses: list = []

    async def fake(self, url, **kwargs):
        captured.append((url, kwargs))
        item = responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    monkeypatch.setattr(httpx.AsyncClient, "get", fake)
    monkeypatch.setattr(httpx.AsyncClient, "post", fake)
    return responses


class TestExtractErrorMessage:
    def test_message_key(self):
        assert extract_error_message(_response(400, json={"message": "Bad pincode"})) == "Bad pincode"

    def test_field_errors_dict(self):
        body = {"errors": {"billing_phone": ["is required"], "weight": "too low"}}
        assert extract_error_message(_response(422, json=body)) == "billing_phone: is required; weight: too low"

    def test_plain_text_body(self):
        assert extract_error_message(_response(502, text="Bad Gateway")) == "Bad Gateway"

    def test_unrecognised_json(self):
        assert extract_error_message(_response(500, json={"foo": 1})) == "HTTP 500"


class TestShiprocketTransport:
    async def test_authenticate_posts_login(self, stub_http, captured):
        stub_http.append(_response(200, json={"token": "abc"}))
        client = ShiprocketClient("https://sr.test/v1/external/")

        token = await client.authenticate("ops@example.com", "pw")

        assert token == "abc"
        url, kwargs = captured[0]
        assert url == "https://sr.test/v1/external/auth/login"
        assert kwargs["json"] == {"email": "ops@example.com", "password": "pw"}

    async def test_missing_token_is_auth_error(self, stub_http):
        stub_http.append(_response(200, json={}))

        with pytest.raises(CourierApiError) as exc_info:
            await ShiprocketClient("https://sr.test").authenticate("a", "b")

        assert exc_info.value.code == "E-3002"

    @pytest.mark.parametrize("status,code", [(401, "E-3002"), (403, "E-3002"), (429, "E-3003"), (500, "E-3001")])
    async def test_status_codes_map_to_registry(self, stub_http, status, code):
        stub_http.append(_response(status, json={"message": "nope"}))

        with pytest.raises(CourierApiError) as exc_info:
            await ShiprocketClient("https://sr.test").track_awb("tok", "AWB1")

        assert exc_info.value.code == code
        assert exc_info.value.status_code == status
        assert exc_info.value.message == "nope"

    async def test_timeout_is_retryable_network_error(self, stub_http):
        stub_http.append(httpx.ReadTimeout("slow"))

        with pytest.raises(CourierApiError) as exc_info:
            await ShiprocketClient("https://sr.test").track_awb("tok", "AWB1")

        assert exc_info.value.code == "E-3004"
        assert exc_info.value.status_code is None

    async def test_non_json_body(self, stub_http):
        stub_http.append(_response(200, text="<html>"))

        with pytest.raises(CourierApiError, match="not valid JSON"):
            await ShiprocketClient("https://sr.test").track_awb("tok", "AWB1")

    async def test_bearer_header(self, stub_http, captured):
        stub_http.append(_response(200, json={"data": []}))

        await ShiprocketClient("https://sr.test").search_orders("tok", "#1001")

        assert captured[0][1]["headers"]["Authorization"] == "Bearer tok"
        assert captured[0][1]["params"] == {"search": "#1001"}


class TestDelhiveryTransport:
    @pytest.mark.parametrize(
        "body",
        [{"json": {"waybill": "123"}}, {"json": ["123", "456"]}, {"text": '"123,456"'}],
    )
    async def test_fetch_waybill_shapes(self, stub_http, body):
        stub_http.append(_response(200, **body))

        assert await DelhiveryClient("https://dl.test").fetch_waybill("tok") == "123"

    async def test_empty_waybill(self, stub_http):
        stub_http.append(_response(200, text=""))

        with pytest.raises(CourierApiError, match="no waybill"):
            await DelhiveryClient("https://dl.test").fetch_waybill("tok")

    async def test_token_header(self, stub_http, captured):
        stub_http.append(_response(200, json={"delivery_codes": []}))

        await DelhiveryClient("https://dl.test").pincode_serviceability("tok", "110001")

        assert captured[0][1]["headers"]["Authorization"] == "Token tok"


class TestAdapterFactory:
    def test_default_factory_registers_every_carrier(self):
        factory = build_default_factory(ShipSyncConfig())

        assert set(factory.supported_couriers) == set(CourierType)
        for courier in CourierType:
            assert factory.get(courier).courier_type == courier

    def test_lookup_by_string(self):
        factory = build_default_factory(ShipSyncConfig())
        assert factory.get("delhivery").display_name == "Delhivery"

    def test_supports(self):
        factory = CourierAdapterFactory()
        assert factory.supports("dtdc") is False
        assert factory.supports("fedex") is False

    def test_unregistered_carrier(self):
        with pytest.raises(ValueError, match="No adapter registered"):
            CourierAdapterFactory().get(CourierType.DTDC)

    def test_unknown_carrier(self):
        with pytest.raises(ValueError):
            CourierAdapterFactory().get("fedex")

    def test_configured_endpoint_is_used(self):
        config = ShipSyncConfig(carriers={"dtdc": "https://staging.dtdc.test/"})
        factory = build_default_factory(config)
        assert factory.get(CourierType.DTDC)._client.base_url == "https://staging.dtdc.test"
