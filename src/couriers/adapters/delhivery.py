"""Delhivery adapter.

Delhivery has no public tariff API for B2C accounts, so get_rates checks
pincode serviceability and prices from the local estimate card.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from src.couriers.base import (
    CourierAdapter,
    parse_carrier_datetime,
    translate_errors,
)
from src.couriers.clients.base import CourierApiError
from src.couriers.clients.delhivery import DelhiveryClient
from src.couriers.estimates import estimate_rates
from src.couriers.models import (
    CourierCredentials,
    CourierRate,
    CourierType,
    PickupRequest,
    PickupResponse,
    RateRequest,
    ShipmentRequest,
    ShipmentResponse,
    ShipmentStatus,
    TrackingEvent,
    TrackingResponse,
)
from src.couriers.result import CourierResult
from src.couriers.settings import DelhiverySettings
from src.couriers.status_maps import map_delhivery_status
from src.errors import render_message

logger = logging.getLogger(__name__)

VALIDATION_PINCODE = "110001"
DEFAULT_PICKUP_TIME = "10:00 - 18:00"


class DelhiveryAdapter(CourierAdapter):
    """Courier adapter for Delhivery."""

    courier_type = CourierType.DELHIVERY
    display_name = "Delhivery"

    def __init__(self, client: DelhiveryClient) -> None:
        self._client = client

    def tracking_url(self, awb: str) -> str:
        return f"https://www.delhivery.com/track/package/{awb}"

    async def _pincode(self, token: str, pincode: str) -> dict[str, Any] | None:
        """Return the postal_code record for a pincode, None if unserviceable."""
        body = await self._client.pincode_serviceability(token, pincode)
        codes = body.get("delivery_codes") or []
        if not codes:
            return None
        return codes[0].get("postal_code") or {}

    @translate_errors("credential validation")
    async def validate_credentials(self, creds: CourierCredentials) -> CourierResult[None]:
        settings = DelhiverySettings.from_credentials(creds)
        body = await self._client.pincode_serviceability(settings.api_token, VALIDATION_PINCODE)
        if body.get("delivery_codes") is None:
            return CourierResult.failure(
                render_message("E-3002", provider=self.display_name, message="token was not accepted"),
                code="E-3002",
            )
        return CourierResult.ok()

    @translate_errors("rate lookup")
    async def get_rates(
        self, creds: CourierCredentials, request: RateRequest
    ) -> CourierResult[list[CourierRate]]:
        settings = DelhiverySettings.from_credentials(creds)
        try:
            pickup = await self._pincode(settings.api_token, request.pickup_pincode)
            delivery = await self._pincode(settings.api_token, request.delivery_pincode)
        except CourierApiError as e:
            if e.code == "E-3002":
                raise
            logger.warning("Delhivery serviceability check failed, using estimates: %s", e)
            return CourierResult.ok(estimate_rates(self.courier_type, request))

        if pickup is None:
            return CourierResult.failure(
                f"Pickup pincode {request.pickup_pincode} is not serviceable", code="E-3006"
            )
        if delivery is None:
            return CourierResult.failure(
                f"Delivery pincode {request.delivery_pincode} is not serviceable", code="E-3006"
            )
        if request.is_cod and str(delivery.get("cod", "")).lower() != "y":
            return CourierResult.failure("COD is not available for this route", code="E-3006")

        return CourierResult.ok(estimate_rates(self.courier_type, request))

    async def _existing_waybill(self, token: str, order_number: str) -> str | None:
        try:
            body = await self._client.track_reference(token, order_number)
        except CourierApiError as e:
            logger.warning("Delhivery reference lookup for %s failed: %s", order_number, e)
            return None
        for entry in body.get("ShipmentData") or []:
            shipment = entry.get("Shipment") or {}
            status = (shipment.get("Status") or {}).get("Status", "")
            if shipment.get("AWB") and str(status).lower() not in ("cancelled", "canceled"):
                return str(shipment["AWB"])
        return None

    def _document(
        self, settings: DelhiverySettings, request: ShipmentRequest, waybill: str
    ) -> dict[str, Any]:
        address = ", ".join(p for p in (request.delivery_address, request.delivery_address2) if p)
        products = ", ".join(item.name for item in request.items) or "Merchandise"
        quantity = sum(item.quantity for item in request.items) or 1
        return {
            "shipments": [
                {
                    "name": request.delivery_name,
                    "add": address,
                    "pin": request.delivery_pincode,
                    "city": request.delivery_city,
                    "state": request.delivery_state,
                    "country": "India",
                    "phone": request.delivery_phone,
                    "order": request.order_number,
                    "payment_mode": "COD" if request.is_cod else "Prepaid",
                    "cod_amount": (request.cod_amount or request.declared_value) if request.is_cod else 0,
                    "total_amount": request.declared_value,
                    "order_date": datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S"),
                    "products_desc": products,
                    "quantity": quantity,
                    "waybill": waybill,
                    "weight": round(request.weight * 1000),
                    "shipment_length": request.length or "",
                    "shipment_width": request.width or "",
                    "shipment_height": request.height or "",
                    "return_pin": request.pickup_pincode,
                    "return_city": request.pickup_city,
                    "return_state": request.pickup_state,
                    "return_add": request.pickup_address,
                    "return_phone": request.pickup_phone,
                    "return_name": request.pickup_name,
                    "return_country": "India",
                }
            ],
            "pickup_location": {
                "name": settings.pickup_location,
                "add": request.pickup_address,
                "city": request.pickup_city,
                "pin_code": request.pickup_pincode,
                "phone": request.pickup_phone,
            },
        }

    @translate_errors("shipment creation")
    async def create_shipment(
        self, creds: CourierCredentials, request: ShipmentRequest
    ) -> CourierResult[ShipmentResponse]:
        settings = DelhiverySettings.from_credentials(creds)
        token = settings.api_token

        existing = await self._existing_waybill(token, request.order_number)
        if existing:
            logger.info("Reusing Delhivery waybill %s for %s", existing, request.order_number)
            return CourierResult.ok(
                ShipmentResponse(
                    awb_number=existing,
                    courier_name=self.display_name,
                    tracking_url=self.tracking_url(existing),
                )
            )

        waybill = await self._client.fetch_waybill(token)
        body = await self._client.create_shipment(token, self._document(settings, request, waybill))
        packages = body.get("packages") or []
        package = packages[0] if packages else {}

        if not body.get("success") or str(package.get("status", "")).lower() not in ("success", ""):
            remarks = package.get("remarks") or body.get("rmk") or "Shipment creation failed"
            if isinstance(remarks, list):
                remarks = "; ".join(str(r) for r in remarks)
            return CourierResult.failure(
                render_message("E-3001", provider=self.display_name, message=remarks), code="E-3001",
            )

        awb = str(package.get("waybill") or waybill)
        logger.info("Delhivery waybill %s created for %s", awb, request.order_number)
        return CourierResult.ok(
            ShipmentResponse(
                awb_number=awb,
                courier_name=self.display_name,
                shipment_id=package.get("refnum") or request.order_number,
                tracking_url=self.tracking_url(awb),
            )
        )

    @translate_errors("tracking")
    async def get_tracking(self, creds: CourierCredentials, awb: str) -> CourierResult[TrackingResponse]:
        settings = DelhiverySettings.from_credentials(creds)
        body = await self._client.track(settings.api_token, awb)
        data = body.get("ShipmentData") or []
        if not data:
            return CourierResult.failure(f"No tracking data for AWB {awb}", code="E-3006")
        shipment = data[0].get("Shipment") or {}
        status = shipment.get("Status") or {}

        events = []
        for scan in shipment.get("Scans") or []:
            detail = scan.get("ScanDetail") or {}
            events.append(
                TrackingEvent(
                    timestamp=parse_carrier_datetime(detail.get("ScanDateTime")),
                    status=str(detail.get("Scan") or ""),
                    mapped_status=map_delhivery_status(detail.get("ScanType")),
                    location=detail.get("ScannedLocation"),
                    remarks=detail.get("Instructions"),
                )
            )
        events.sort(key=lambda e: e.timestamp or datetime.min.replace(tzinfo=timezone.utc))

        current = map_delhivery_status(status.get("StatusType"))
        status_time = parse_carrier_datetime(status.get("StatusDateTime"))
        return CourierResult.ok(
            TrackingResponse(
                awb=awb,
                current_status=current,
                carrier_status=status.get("Status"),
                current_location=status.get("StatusLocation"),
                expected_delivery=parse_carrier_datetime(
                    shipment.get("ExpectedDeliveryDate") or shipment.get("PromisedDeliveryDate")
                ),
                delivered_at=status_time if current == ShipmentStatus.DELIVERED else None,
                delivered_to=status.get("RecievedBy") or status.get("ReceivedBy"),
                events=events,
            )
        )

    @translate_errors("cancellation")
    async def cancel_shipment(self, creds: CourierCredentials, awb: str) -> CourierResult[None]:
        settings = DelhiverySettings.from_credentials(creds)
        body = await self._client.cancel(settings.api_token, awb)
        if not body.get("status"):
            return CourierResult.failure(
                str(body.get("remarks") or body.get("error") or "Cancellation was rejected"), code="E-3001",
            )
        logger.info("Cancelled Delhivery waybill %s", awb)
        return CourierResult.ok()

    @translate_errors("label generation")
    async def get_label(self, creds: CourierCredentials, awb: str) -> CourierResult[bytes]:
        settings = DelhiverySettings.from_credentials(creds)
        content = await self._client.packing_slip(settings.api_token, awb)
        if not content:
            return CourierResult.failure(f"Empty label for AWB {awb}", code="E-3006")
        return CourierResult.ok(content)

    @translate_errors("pickup scheduling")
    async def schedule_pickup(
        self, creds: CourierCredentials, request: PickupRequest
    ) -> CourierResult[PickupResponse]:
        settings = DelhiverySettings.from_credentials(creds)
        count = request.expected_package_count or len(request.awb_numbers)
        body = await self._client.request_pickup(
            settings.api_token,
            {
                "pickup_location": request.warehouse_id or settings.pickup_location,
                "pickup_date": request.pickup_date.strftime("%Y-%m-%d"),
                "pickup_time": request.pickup_time_slot or DEFAULT_PICKUP_TIME,
                "expected_package_count": count,
            },
        )
        pickup_id = body.get("pickup_id")
        if not pickup_id or body.get("success") is False:
            return CourierResult.failure(
                str(body.get("message") or body.get("error") or "Pickup request was rejected"), code="E-3001",
            )
        return CourierResult.ok(
            PickupResponse(
                pickup_id=str(pickup_id),
                scheduled_date=request.pickup_date,
                time_slot=body.get("pickup_time") or request.pickup_time_slot or DEFAULT_PICKUP_TIME,
                shipment_count=count,
            )
        )
