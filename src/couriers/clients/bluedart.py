"""BlueDart transport.

BlueDart's NetConnect endpoints are WCF REST services. Every call is a POST
carrying a ``Profile`` object with the login id and licence key.
"""

import logging
from typing import Any

from src.couriers.clients.base import CourierHttpClient

logger = logging.getLogger(__name__)

_SHIPPING_API = "Ver1.10/ShippingAPI"


class BlueDartClient(CourierHttpClient):
    """Raw BlueDart NetConnect operations."""

    provider_name = "BlueDart"

    @staticmethod
    def profile(login_id: str, license_key: str) -> dict[str, str]:
        return {"LoginID": login_id, "LicenceKey": license_key, "Api_type": "S"}

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        return await self._request_json(
            "POST", f"{_SHIPPING_API}/{path}",
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            json=body,
        )

    async def services_for_pincode(self, profile: dict[str, str], pincode: str) -> dict[str, Any]:
        return await self._post(
            "Finder/ServiceFinderQuery.svc/rest/GetServicesforPincode",
            {"pinCode": pincode, "profile": profile},
        )

    async def generate_waybill(self, profile: dict[str, str], request: dict[str, Any]) -> dict[str, Any]:
        return await self._post(
            "WayBill/WayBillGeneration.svc/rest/GenerateWayBill",
            {"Request": request, "Profile": profile},
        )

    async def track(self, profile: dict[str, str], awb: str) -> dict[str, Any]:
        return await self._post(
            "Tracking/TrackingQuery.svc/rest/GetShipmentTracking",
            {"AWBNo": awb, "Profile": profile},
        )

    async def register_pickup(self, profile: dict[str, str], request: dict[str, Any]) -> dict[str, Any]:
        return await self._post(
            "Pickup/PickupRegistration.svc/rest/RegisterPickup",
            {"request": request, "profile": profile},
        )

    async def cancel_waybill(self, profile: dict[str, str], awb: str, reason: str) -> dict[str, Any]:
        return await self._post(
            "WayBill/WayBillGeneration.svc/rest/CancelWaybill",
            {"Request": {"AWBNo": awb, "CancelReason": reason}, "Profile": profile},
        )

    async def print_awb(self, profile: dict[str, str], awb: str) -> dict[str, Any]:
        return await self._post(
            "Manifest/Manifest.svc/rest/PrintAWB",
            {"AWBNo": awb, "Profile": profile},
        )
