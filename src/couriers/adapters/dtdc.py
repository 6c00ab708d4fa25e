"""DTDC adapter.

DTDC quotes rates through its own API; when that call fails or comes back
empty, get_rates falls back to the local estimate card.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from src.couriers.base import (
    CourierAdapter,
    combine_date_time,
    parse_carrier_datetime,
    to_float,
    to_int,
    translate_errors,
)
from src.couriers.clients.base import CourierApiError
from src.couriers.clients.dtdc import DtdcClient
from src.couriers.estimates import estimate_rates, strip_estimate_prefix
from src.couriers.models import (
    CourierCredentials,
    CourierRate,
    CourierType,
    PickupRequest,
    PickupResponse,
    RateRequest,
    ShipmentRequest,
    ShipmentResponse,
    TrackingEvent,
    TrackingResponse,
)
from src.couriers.result import CourierResult
from src.couriers.settings import DtdcSettings
from src.couriers.status_maps import map_dtdc_status
from src.errors import render_message

logger = logging.getLogger(__name__)

VALIDATION_PINCODE = "110001"
LOAD_TYPE = "NON-DOCUMENT"
DEFAULT_SERVICE = "PREMIUM"
EXPRESS_SERVICE = "EXPRESS"
CANCEL_REASON = "Cancelled by merchant"


class DtdcAdapter(CourierAdapter):
    """Courier adapter for DTDC."""

    courier_type = CourierType.DTDC
    display_name = "DTDC"

    def __init__(self, client: DtdcClient) -> None:
        self._client = client

    def tracking_url(self, awb: str) -> str:
        return f"https://www.dtdc.in/tracking.asp?strCnno={awb}"

    @translate_errors("credential validation")
    async def validate_credentials(self, creds: CourierCredentials) -> CourierResult[None]:
        settings = DtdcSettings.from_credentials(creds)
        body = await self._client.check_pincode(settings.api_key, VALIDATION_PINCODE)
        if not body.get("success"):
            message = body.get("message") or "API key was not accepted"
            return CourierResult.failure(
                render_message("E-3002", provider=self.display_name, message=message), code="E-3002",
            )
        return CourierResult.ok()

    @translate_errors("rate lookup")
    async def get_rates(
        self, creds: CourierCredentials, request: RateRequest
    ) -> CourierResult[list[CourierRate]]:
        settings = DtdcSettings.from_credentials(creds)
        payload = {
            "originPincode": request.pickup_pincode,
            "destinationPincode": request.delivery_pincode,
            "weight": request.weight,
            "codAmount": (request.cod_amount or 0) if request.is_cod else 0,
            "declaredValue": request.declared_value or 0,
            "loadType": LOAD_TYPE,
        }
        try:
            body = await self._client.calculate_rate(settings.api_key, payload)
        except CourierApiError as e:
            if e.code == "E-3002":
                raise
            logger.warning("DTDC rate API failed, using estimates: %s", e)
            return CourierResult.ok(estimate_rates(self.courier_type, request))

        rows = body.get("data") if body.get("success") else None
        if not rows:
            logger.info("DTDC returned no rates for %s -> %s, using estimates",
                        request.pickup_pincode, request.delivery_pincode)
            return CourierResult.ok(estimate_rates(self.courier_type, request))

        rates = []
        for row in rows:
            service_name = str(row.get("serviceName") or "")
            freight = to_float(row.get("freightCharge"))
            cod_charge = to_float(row.get("codCharge")) if request.is_cod else 0.0
            rates.append(
                CourierRate(
                    service_code=str(row.get("serviceCode") or service_name),
                    service_name=f"DTDC {service_name}".strip(),
                    freight_charge=freight,
                    cod_charge=cod_charge,
                    total_charge=round(to_float(row.get("totalCharge"), default=freight + cod_charge), 2),
                    estimated_days=to_int(row.get("deliveryDays")),
                    is_express=EXPRESS_SERVICE in service_name.upper(),
                    is_surface="GROUND" in service_name.upper(),
                )
            )
        return CourierResult.ok(sorted(rates, key=lambda r: r.total_charge))

    @staticmethod
    def _party(name: str, address: str, pincode: str, city: str, state: str, phone: str) -> dict[str, str]:
        return {
            "name": name,
            "address1": address,
            "pincode": pincode,
            "city": city,
            "state": state,
            "phone": phone,
            "mobileNo": phone,
        }

    def _shipment_payload(self, settings: DtdcSettings, request: ShipmentRequest) -> dict[str, Any]:
        if request.is_express:
            service = EXPRESS_SERVICE
        else:
            service = strip_estimate_prefix(request.service_code) or DEFAULT_SERVICE
        pickup = self._party(
            settings.pickup_name or request.pickup_name,
            settings.pickup_address or request.pickup_address,
            settings.pickup_pincode or request.pickup_pincode,
            request.pickup_city,
            request.pickup_state,
            settings.pickup_phone or request.pickup_phone,
        )
        delivery_address = ", ".join(p for p in (request.delivery_address, request.delivery_address2) if p)
        return {
            "customerCode": settings.customer_code,
            "consignmentDetails": [
                {
                    "referenceNumber": request.order_number,
                    "customerReferenceNumber": request.order_id,
                    "serviceName": service,
                    "loadType": LOAD_TYPE,
                    "noOfPieces": 1,
                    "actualWeight": request.weight,
                    "codAmount": (request.cod_amount or request.declared_value) if request.is_cod else 0,
                    "declaredValue": request.declared_value,
                    "productDescription": ", ".join(i.name for i in request.items) or "Merchandise",
                    "isCOD": request.is_cod,
                    "invoiceNumber": request.order_number,
                    "invoiceDate": datetime.now(timezone.utc).strftime("%Y-%m-%d"),
                    "consignorDetails": pickup,
                    "consigneeDetails": self._party(
                        request.delivery_name,
                        delivery_address,
                        request.delivery_pincode,
                        request.delivery_city,
                        request.delivery_state,
                        request.delivery_phone,
                    ),
                    "returnAddressDetails": pickup,
                    "dimension": {
                        "length": request.length or 10,
                        "width": request.width or 10,
                        "height": request.height or 10,
                    },
                }
            ],
        }

    @translate_errors("shipment creation")
    async def create_shipment(
        self, creds: CourierCredentials, request: ShipmentRequest
    ) -> CourierResult[ShipmentResponse]:
        settings = DtdcSettings.from_credentials(creds)
        settings.require("customer_code")
        body = await self._client.create_shipment(settings.api_key, self._shipment_payload(settings, request))
        consignments = (body.get("data") or {}).get("consignmentNumbers") or []
        consignment = consignments[0] if consignments else {}
        number = consignment.get("consignmentNumber")
        if not body.get("success") or not number:
            message = consignment.get("message") or body.get("message") or "Failed to create shipment"
            return CourierResult.failure(
                render_message("E-3001", provider=self.display_name, message=message), code="E-3001",
            )

        awb = str(number)
        logger.info("DTDC consignment %s booked for %s", awb, request.order_number)
        return CourierResult.ok(
            ShipmentResponse(
                awb_number=awb,
                courier_name=self.display_name,
                shipment_id=consignment.get("referenceNumber") or request.order_number,
                tracking_url=self.tracking_url(awb),
            )
        )

    @translate_errors("tracking")
    async def get_tracking(self, creds: CourierCredentials, awb: str) -> CourierResult[TrackingResponse]:
        settings = DtdcSettings.from_credentials(creds)
        body = await self._client.track(settings.api_key, awb)
        data = body.get("data") if body.get("success") else None
        if not data:
            return CourierResult.failure(
                str(body.get("message") or f"No tracking data for AWB {awb}"), code="E-3006"
            )

        events = [
            TrackingEvent(
                timestamp=combine_date_time(h.get("eventDate"), h.get("eventTime")),
                status=str(h.get("status") or ""),
                mapped_status=map_dtdc_status(h.get("statusCode")),
                location=h.get("location"),
                remarks=h.get("remarks"),
            )
            for h in data.get("trackingHistory") or []
        ]
        events.sort(key=lambda e: e.timestamp or datetime.min.replace(tzinfo=timezone.utc))

        return CourierResult.ok(
            TrackingResponse(
                awb=awb,
                current_status=map_dtdc_status(data.get("currentStatusCode")),
                carrier_status=data.get("currentStatus"),
                current_location=data.get("currentLocation"),
                expected_delivery=parse_carrier_datetime(data.get("expectedDeliveryDate")),
                delivered_at=parse_carrier_datetime(data.get("deliveredDate")),
                delivered_to=data.get("receivedBy"),
                events=events,
            )
        )

    @translate_errors("cancellation")
    async def cancel_shipment(self, creds: CourierCredentials, awb: str) -> CourierResult[None]:
        settings = DtdcSettings.from_credentials(creds)
        body = await self._client.cancel(
            settings.api_key,
            {
                "customerCode": settings.customer_code,
                "consignmentNumber": awb,
                "cancellationReason": CANCEL_REASON,
            },
        )
        if not body.get("success"):
            return CourierResult.failure(str(body.get("message") or "Cancellation failed"), code="E-3001")
        logger.info("Cancelled DTDC consignment %s", awb)
        return CourierResult.ok()

    @translate_errors("label generation")
    async def get_label(self, creds: CourierCredentials, awb: str) -> CourierResult[bytes]:
        settings = DtdcSettings.from_credentials(creds)
        content = await self._client.label(settings.api_key, awb)
        if not content:
            return CourierResult.failure(f"Empty label for AWB {awb}", code="E-3006")
        return CourierResult.ok(content)

    @translate_errors("pickup scheduling")
    async def schedule_pickup(
        self, creds: CourierCredentials, request: PickupRequest
    ) -> CourierResult[PickupResponse]:
        settings = DtdcSettings.from_credentials(creds)
        settings.require("customer_code")
        count = request.expected_package_count or len(request.awb_numbers)
        body = await self._client.schedule_pickup(
            settings.api_key,
            {
                "customerCode": settings.customer_code,
                "pickupDate": request.pickup_date.strftime("%Y-%m-%d"),
                "pickupTime": request.pickup_time_slot or "10:00",
                "closingTime": "18:00",
                "consignmentCount": count,
                "totalWeight": 0.5 * count,
                "consignmentNumbers": request.awb_numbers,
                "pickupAddress": {
                    "name": settings.pickup_name,
                    "address1": settings.pickup_address,
                    "pincode": settings.pickup_pincode,
                    "phone": settings.pickup_phone,
                },
            },
        )
        data = body.get("data") or {}
        pickup_id = data.get("pickupRequestNumber") or data.get("tokenNumber")
        if not body.get("success") or not pickup_id:
            return CourierResult.failure(str(body.get("message") or "Pickup scheduling failed"), code="E-3001")
        return CourierResult.ok(
            PickupResponse(
                pickup_id=str(pickup_id),
                scheduled_date=parse_carrier_datetime(data.get("scheduledDate")) or request.pickup_date,
                time_slot=data.get("scheduledTime") or request.pickup_time_slot,
                shipment_count=count,
            )
        )
