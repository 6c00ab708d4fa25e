"""Shiprocket REST transport.

Shiprocket authenticates with email/password at ``auth/login`` and issues a
bearer token valid for roughly ten days. Every other call sends that token.
"""

import logging
from typing import Any

from src.couriers.clients.base import CourierApiError, CourierHttpClient

logger = logging.getLogger(__name__)


class ShiprocketClient(CourierHttpClient):
    """Raw Shiprocket operations. Payloads are Shiprocket's own shapes."""

    provider_name = "Shiprocket"

    @staticmethod
    def _auth(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}", "Accept": "application/json"}

    async def authenticate(self, email: str, password: str) -> str:
        """Log in and return a bearer token.

        Raises:
            CourierApiError: If the login is rejected or no token comes back.
        """
        data = await self._request_json(
            "POST", "auth/login", json={"email": email, "password": password}
        )
        token = data.get("token") if isinstance(data, dict) else None
        if not token:
            raise CourierApiError(self.provider_name, "login succeeded but no token was returned", code="E-3002")
        logger.info("Authenticated with Shiprocket as %s", email)
        return token

    async def search_orders(self, token: str, reference: str) -> list[dict[str, Any]]:
        """Find existing orders whose channel order id matches a reference."""
        data = await self._request_json(
            "GET", "orders", headers=self._auth(token), params={"search": reference}
        )
        orders = data.get("data") if isinstance(data, dict) else None
        return orders if isinstance(orders, list) else []

    async def create_order(self, token: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request_json(
            "POST", "orders/create/adhoc", headers=self._auth(token), json=payload
        )

    async def assign_awb(self, token: str, shipment_id: str, courier_id: str | None = None) -> dict[str, Any]:
        payload: dict[str, Any] = {"shipment_id": shipment_id}
        if courier_id:
            payload["courier_id"] = courier_id
        return await self._request_json(
            "POST", "courier/assign/awb", headers=self._auth(token), json=payload
        )

    async def check_serviceability(
        self,
        token: str,
        pickup_pincode: str,
        delivery_pincode: str,
        weight: float,
        is_cod: bool,
        declared_value: float | None = None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "pickup_postcode": pickup_pincode,
            "delivery_postcode": delivery_pincode,
            "weight": weight,
            "cod": 1 if is_cod else 0,
        }
        if declared_value:
            params["declared_value"] = declared_value
        return await self._request_json(
            "GET", "courier/serviceability/", headers=self._auth(token), params=params
        )

    async def track_awb(self, token: str, awb: str) -> dict[str, Any]:
        return await self._request_json(
            "GET", f"courier/track/awb/{awb}", headers=self._auth(token)
        )

    async def generate_pickup(self, token: str, shipment_ids: list[str]) -> dict[str, Any]:
        return await self._request_json(
            "POST", "courier/generate/pickup", headers=self._auth(token),
            json={"shipment_id": shipment_ids},
        )

    async def cancel_orders(self, token: str, order_ids: list[str]) -> dict[str, Any]:
        return await self._request_json(
            "POST", "orders/cancel", headers=self._auth(token), json={"ids": order_ids}
        )

    async def generate_label(self, token: str, shipment_ids: list[str]) -> dict[str, Any]:
        return await self._request_json(
            "POST", "courier/generate/label", headers=self._auth(token),
            json={"shipment_id": shipment_ids},
        )

    async def create_channel_order(self, token: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Create an order against a specific Shiprocket sales channel."""
        return await self._request_json(
            "POST", "orders/create", headers=self._auth(token), json=payload
        )
