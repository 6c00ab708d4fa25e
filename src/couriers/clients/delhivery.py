"""Delhivery transport.

Delhivery uses a static API token in an ``Authorization: Token ...`` header.
Shipment creation is a form post carrying a JSON document in ``data``.
"""

import json
import logging
from typing import Any

from src.couriers.clients.base import CourierApiError, CourierHttpClient

logger = logging.getLogger(__name__)


class DelhiveryClient(CourierHttpClient):
    """Raw Delhivery operations."""

    provider_name = "Delhivery"

    @staticmethod
    def _auth(token: str) -> dict[str, str]:
        return {"Authorization": f"Token {token}", "Accept": "application/json"}

    async def pincode_serviceability(self, token: str, pincode: str) -> dict[str, Any]:
        return await self._request_json(
            "GET", "c/api/pin-codes/json/", headers=self._auth(token),
            params={"filter_codes": pincode},
        )

    async def fetch_waybill(self, token: str) -> str:
        """Reserve one waybill number.

        Raises:
            CourierApiError: If Delhivery returns no waybill.
        """
        response = await self._send(
            "GET", "waybill/api/fetch/json/", headers=self._auth(token), params={"count": 1}
        )
        try:
            body = response.json()
        except ValueError:
            body = response.text
        if isinstance(body, dict):
            body = body.get("waybill") or body.get("waybills") or ""
        if isinstance(body, list):
            body = body[0] if body else ""
        waybill = str(body).strip().strip('"').split(",")[0].strip()
        if not waybill:
            raise CourierApiError(self.provider_name, "no waybill was issued")
        return waybill

    async def create_shipment(self, token: str, document: dict[str, Any]) -> dict[str, Any]:
        return await self._request_json(
            "POST", "api/cmu/create.json", headers=self._auth(token),
            data={"format": "json", "data": json.dumps(document)},
        )

    async def track(self, token: str, waybill: str) -> dict[str, Any]:
        return await self._request_json(
            "GET", "api/v1/packages/json/", headers=self._auth(token),
            params={"waybill": waybill},
        )

    async def cancel(self, token: str, waybill: str) -> dict[str, Any]:
        return await self._request_json(
            "POST", "api/p/edit", headers=self._auth(token),
            json={"waybill": waybill, "cancellation": "true"},
        )

    async def packing_slip(self, token: str, waybill: str) -> bytes:
        return await self._request_bytes(
            "GET", "api/p/packing_slip", headers=self._auth(token),
            params={"wbns": waybill, "pdf": "true"},
        )

    async def request_pickup(self, token: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request_json(
            "POST", "fm/request/new/", headers=self._auth(token), json=payload
        )

    async def track_reference(self, token: str, reference: str) -> dict[str, Any]:
        """Look up packages by the client's order reference."""
        return await self._request_json(
            "GET", "api/v1/packages/json/", headers=self._auth(token),
            params={"ref_ids": reference},
        )
