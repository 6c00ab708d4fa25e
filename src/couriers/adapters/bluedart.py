"""BlueDart adapter (NetConnect WCF REST API)."""

import base64
import binascii
import logging
from datetime import datetime, timezone
from typing import Any

from src.couriers.base import (
    CourierAdapter,
    combine_date_time,
    parse_carrier_datetime,
    translate_errors,
)
from src.couriers.clients.base import CourierApiError
from src.couriers.clients.bluedart import BlueDartClient
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
    ShipmentStatus,
    TrackingEvent,
    TrackingResponse,
)
from src.couriers.result import CourierResult
from src.couriers.settings import BlueDartSettings
from src.couriers.status_maps import map_bluedart_status
from src.errors import render_message

logger = logging.getLogger(__name__)

VALIDATION_PINCODE = "110001"
CANCEL_REASON = "Customer Request"
DEFAULT_PRODUCT_CODE = "A"
PICKUP_WEIGHT_PER_PIECE_KG = 0.5


def _errors(result: dict[str, Any], default: str) -> str:
    messages = result.get("ErrorMessage") or []
    if isinstance(messages, str):
        return messages or default
    texts = [
        m.get("StatusInformation", "") if isinstance(m, dict) else str(m)
        for m in messages
    ]
    return "; ".join(t for t in texts if t) or default


class BlueDartAdapter(CourierAdapter):
    """Courier adapter for BlueDart."""

    courier_type = CourierType.BLUEDART
    display_name = "BlueDart"

    def __init__(self, client: BlueDartClient) -> None:
        self._client = client

    def tracking_url(self, awb: str) -> str:
        return f"https://www.bluedart.com/tracking/{awb}"

    def _profile(self, settings: BlueDartSettings) -> dict[str, str]:
        return self._client.profile(settings.login_id, settings.license_key)

    @translate_errors("credential validation")
    async def validate_credentials(self, creds: CourierCredentials) -> CourierResult[None]:
        settings = BlueDartSettings.from_credentials(creds)
        body = await self._client.services_for_pincode(self._profile(settings), VALIDATION_PINCODE)
        result = body.get("GetServicesforPincodeResult") or {}
        if not result or result.get("IsError"):
            message = _errors(result, "Invalid credentials")
            return CourierResult.failure(
                render_message("E-3002", provider=self.display_name, message=message), code="E-3002",
            )
        return CourierResult.ok()

    @translate_errors("rate lookup")
    async def get_rates(
        self, creds: CourierCredentials, request: RateRequest
    ) -> CourierResult[list[CourierRate]]:
        settings = BlueDartSettings.from_credentials(creds)
        try:
            body = await self._client.services_for_pincode(
                self._profile(settings), request.delivery_pincode
            )
        except CourierApiError as e:
            if e.code == "E-3002":
                raise
            logger.warning("BlueDart pincode lookup failed, using estimates: %s", e)
            return CourierResult.ok(estimate_rates(self.courier_type, request))

        result = body.get("GetServicesforPincodeResult") or {}
        if result.get("IsError"):
            return CourierResult.failure(
                f"Delivery pincode {request.delivery_pincode} is not serviceable", code="E-3006"
            )
        return CourierResult.ok(estimate_rates(self.courier_type, request))

    def _waybill_request(self, settings: BlueDartSettings, request: ShipmentRequest) -> dict[str, Any]:
        if request.is_express:
            product_code = DEFAULT_PRODUCT_CODE
        else:
            product_code = strip_estimate_prefix(request.service_code) or DEFAULT_PRODUCT_CODE
        now = datetime.now(timezone.utc)
        pieces = sum(item.quantity for item in request.items) or 1
        return {
            "Consignee": {
                "ConsigneeName": request.delivery_name,
                "ConsigneeAddress1": request.delivery_address[:30],
                "ConsigneeAddress2": (request.delivery_address2 or request.delivery_address[30:60])[:30],
                "ConsigneeAddress3": f"{request.delivery_city}, {request.delivery_state}"[:30],
                "ConsigneePincode": request.delivery_pincode,
                "ConsigneeMobile": request.delivery_phone,
            },
            "Shipper": {
                "CustomerName": settings.pickup_name or request.pickup_name,
                "CustomerAddress1": (settings.pickup_address or request.pickup_address)[:30],
                "CustomerPincode": settings.pickup_pincode or request.pickup_pincode,
                "CustomerMobile": settings.pickup_mobile or request.pickup_phone,
                "CustomerCode": settings.customer_code,
                "OriginArea": settings.origin_area,
                "IsToPayCustomer": False,
            },
            "Services": {
                "ActualWeight": request.weight,
                "CollectableAmount": (request.cod_amount or request.declared_value) if request.is_cod else 0,
                "DeclaredValue": request.declared_value,
                "ItemCount": pieces,
                "PieceCount": 1,
                "PickupDate": f"/Date({int(now.timestamp() * 1000)})/",
                "PickupTime": "1000",
                "ProductCode": product_code,
                "ProductType": 2,
                "SubProductCode": "C" if request.is_cod else "P",
                "Commodity": {
                    "CommodityDetail1": ", ".join(i.name for i in request.items)[:30] or "Merchandise",
                },
                "CreditReferenceNo": request.order_id,
                "InvoiceNo": request.order_number,
                "Dimensions": [
                    {
                        "Length": request.length or 10,
                        "Breadth": request.width or 10,
                        "Height": request.height or 10,
                        "Count": 1,
                    }
                ],
            },
        }

    @translate_errors("shipment creation")
    async def create_shipment(
        self, creds: CourierCredentials, request: ShipmentRequest
    ) -> CourierResult[ShipmentResponse]:
        settings = BlueDartSettings.from_credentials(creds)
        settings.require("customer_code", "origin_area")
        body = await self._client.generate_waybill(
            self._profile(settings), self._waybill_request(settings, request)
        )
        result = body.get("GenerateWayBillResult") or body.get("GenerateWaybillResult") or {}
        if not result or result.get("IsError") or not result.get("AWBNo"):
            message = _errors(result, "Failed to create shipment")
            return CourierResult.failure(
                render_message("E-3001", provider=self.display_name, message=message), code="E-3001",
            )

        awb = str(result["AWBNo"])
        logger.info("BlueDart AWB %s generated for %s", awb, request.order_number)
        return CourierResult.ok(
            ShipmentResponse(
                awb_number=awb,
                courier_name=self.display_name,
                shipment_id=result.get("TokenNumber") or None,
                tracking_url=self.tracking_url(awb),
            )
        )

    @translate_errors("tracking")
    async def get_tracking(self, creds: CourierCredentials, awb: str) -> CourierResult[TrackingResponse]:
        settings = BlueDartSettings.from_credentials(creds)
        body = await self._client.track(self._profile(settings), awb)
        result = body.get("GetShipmentTrackingResult") or {}
        details = result.get("ShipmentTrackingDetails") or []
        if result.get("IsError") or not details:
            return CourierResult.failure(_errors(result, f"No tracking data for AWB {awb}"), code="E-3006")

        events = [
            TrackingEvent(
                timestamp=combine_date_time(d.get("StatusDate"), d.get("StatusTime")),
                status=str(d.get("Status") or ""),
                mapped_status=map_bluedart_status(d.get("StatusType")),
                location=d.get("StatusLocation"),
                remarks=d.get("Instructions") or d.get("Remarks"),
            )
            for d in details
        ]
        ordered = sorted(
            zip(events, details, strict=True),
            key=lambda pair: pair[0].timestamp or datetime.min.replace(tzinfo=timezone.utc),
        )
        latest_event, latest = ordered[-1]
        current = latest_event.mapped_status
        return CourierResult.ok(
            TrackingResponse(
                awb=awb,
                current_status=current,
                carrier_status=latest.get("StatusType") or latest.get("Status"),
                current_location=latest_event.location,
                expected_delivery=parse_carrier_datetime(latest.get("ExpectedDeliveryDate")),
                delivered_at=latest_event.timestamp if current == ShipmentStatus.DELIVERED else None,
                delivered_to=latest.get("ReceivedBy"),
                events=[event for event, _ in ordered],
            )
        )

    @translate_errors("cancellation")
    async def cancel_shipment(self, creds: CourierCredentials, awb: str) -> CourierResult[None]:
        settings = BlueDartSettings.from_credentials(creds)
        body = await self._client.cancel_waybill(self._profile(settings), awb, CANCEL_REASON)
        result = body.get("CancelWaybillResult") or {}
        if not result or result.get("IsError"):
            return CourierResult.failure(_errors(result, "Cancellation failed"), code="E-3001")
        logger.info("Cancelled BlueDart AWB %s", awb)
        return CourierResult.ok()

    @translate_errors("label generation")
    async def get_label(self, creds: CourierCredentials, awb: str) -> CourierResult[bytes]:
        settings = BlueDartSettings.from_credentials(creds)
        body = await self._client.print_awb(self._profile(settings), awb)
        content = (body.get("PrintAWBResult") or {}).get("AWBPrintContent")
        if not content:
            return CourierResult.failure(f"No label content for AWB {awb}", code="E-3006")
        try:
            return CourierResult.ok(base64.b64decode(content))
        except (binascii.Error, TypeError):
            return CourierResult.failure(f"Label for AWB {awb} was not valid base64", code="E-3006")

    @translate_errors("pickup scheduling")
    async def schedule_pickup(
        self, creds: CourierCredentials, request: PickupRequest
    ) -> CourierResult[PickupResponse]:
        settings = BlueDartSettings.from_credentials(creds)
        settings.require("customer_code", "area_code")
        pieces = request.expected_package_count or len(request.awb_numbers)
        body = await self._client.register_pickup(
            self._profile(settings),
            {
                "AreaCode": settings.area_code,
                "CustomerCode": settings.customer_code,
                "CustomerName": settings.pickup_name,
                "CustomerAddress1": settings.pickup_address[:30],
                "CustomerPincode": settings.pickup_pincode,
                "CustomerTelephoneNumber": settings.pickup_mobile,
                "MobileTelNo": settings.pickup_mobile,
                "ShipmentPickupDate": request.pickup_date.strftime("%d-%b-%Y"),
                "ShipmentPickupTime": request.pickup_time_slot or "1400",
                "NumberofPieces": pieces,
                "WeightofShipment": PICKUP_WEIGHT_PER_PIECE_KG * pieces,
                "AWBNo": request.awb_numbers,
            },
        )
        result = body.get("RegisterPickupResult") or {}
        pickup_id = result.get("TokenNumber") or result.get("PickupRegistrationNumber")
        if not result or result.get("IsError") or not pickup_id:
            return CourierResult.failure(_errors(result, "Pickup scheduling failed"), code="E-3001")
        return CourierResult.ok(
            PickupResponse(
                pickup_id=str(pickup_id),
                scheduled_date=request.pickup_date,
                time_slot=request.pickup_time_slot,
                shipment_count=pieces,
            )
        )
