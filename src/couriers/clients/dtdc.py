"""DTDC transport.

DTDC's API uses an ``X-API-Key`` header and wraps every response in
``{"success": bool, "message": str, "data": ...}``.
"""

import logging
from typing import Any

from src.couriers.clients.base import CourierHttpClient

logger = logging.getLogger(__name__)


class DtdcClient(CourierHttpClient):
    """Raw DTDC operations."""

    provider_name = "DTDC"

    @staticmethod
    def _auth(api_key: str) -> dict[str, str]:
        return {"X-API-Key": api_key, "Accept": "application/json"}

    async def check_pincode(self, api_key: str, pincode: str) -> dict[str, Any]:
        return await self._request_json("GET", f"api/v1/pincode/{pincode}", headers=self._auth(api_key))

    async def calculate_rate(self, api_key: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request_json(
            "POST", "api/v1/rate/calculate", headers=self._auth(api_key), json=payload
        )

    async def create_shipment(self, api_key: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request_json(
            "POST", "api/v1/shipment/create", headers=self._auth(api_key), json=payload
        )

    async def track(self, api_key: str, consignment_number: str) -> dict[str, Any]:
        return await self._request_json(
            "GET", f"api/v1/tracking/{consignment_number}", headers=self._auth(api_key)
        )

    async def cancel(self, api_key: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request_json(
            "POST", "api/v1/shipment/cancel", headers=self._auth(api_key), json=payload
        )

    async def label(self, api_key: str, consignment_number: str) -> bytes:
        return await self._request_bytes(
            "GET", f"api/v1/label/{consignment_number}", headers=self._auth(api_key)
        )

    async def schedule_pickup(self, api_key: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request_json(
            "POST", "api/v1/pickup/schedule", headers=self._auth(api_key), json=payload
        )
