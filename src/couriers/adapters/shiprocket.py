"""Shiprocket adapter.

Shiprocket is an aggregator: one order is created, then an AWB is assigned
from one of its partner couriers. The two steps can fail independently, so
create_shipment first looks for an order already booked under the same
order number and finishes AWB assignment on it instead of creating a
duplicate.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from src.couriers.base import (
    CourierAdapter,
    parse_carrier_datetime,
    split_name,
    to_float,
    to_int,
    translate_errors,
)
from src.couriers.clients.base import CourierApiError
from src.couriers.clients.shiprocket import ShiprocketClient
from src.couriers.estimates import strip_estimate_prefix
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
from src.couriers.settings import ShiprocketSettings
from src.couriers.status_maps import map_shiprocket_status
from src.errors import render_message

logger = logging.getLogger(__name__)

DEFAULT_DIMENSION_CM = 10
AWB_ASSIGN_ATTEMPTS = 2
DEFAULT_ESTIMATED_DAYS = 7


def _parse_days(value: object) -> int:
    """Read Shiprocket's day estimates, which may be ranges like ``"3-5"``."""
    text = str(value or "").split("-")[0].strip()
    days = to_int(text)
    return days if days is not None else DEFAULT_ESTIMATED_DAYS


class ShiprocketAdapter(CourierAdapter):
    """Courier adapter for Shiprocket."""

    courier_type = CourierType.SHIPROCKET
    display_name = "Shiprocket"

    def __init__(self, client: ShiprocketClient) -> None:
        self._client = client

    def tracking_url(self, awb: str) -> str:
        return f"https://shiprocket.co/tracking/{awb}"

    async def _token(self, settings: ShiprocketSettings) -> str:
        if settings.access_token:
            return settings.access_token
        return await self._client.authenticate(settings.email, settings.password)

    @translate_errors("credential validation")
    async def validate_credentials(self, creds: CourierCredentials) -> CourierResult[None]:
        settings = ShiprocketSettings.from_credentials(creds)
        if settings.email and settings.password:
            await self._client.authenticate(settings.email, settings.password)
        else:
            await self._client.search_orders(settings.access_token, "")
        return CourierResult.ok()

    @translate_errors("rate lookup")
    async def get_rates(
        self, creds: CourierCredentials, request: RateRequest
    ) -> CourierResult[list[CourierRate]]:
        settings = ShiprocketSettings.from_credentials(creds)
        token = await self._token(settings)
        data = await self._client.check_serviceability(
            token,
            request.pickup_pincode,
            request.delivery_pincode,
            request.weight,
            request.is_cod,
            request.declared_value,
        )
        companies = ((data.get("data") or {}).get("available_courier_companies")) or []

        rates = []
        for company in companies:
            if to_int(company.get("blocked")) == 1:
                continue
            freight = to_float(company.get("freight_charge"))
            cod_charge = to_float(company.get("cod_charges")) if request.is_cod else 0.0
            total = to_float(company.get("rate"), default=freight + cod_charge)
            is_express = to_int(company.get("mode")) == 1
            is_surface = bool(company.get("is_surface")) or not is_express
            rates.append(
                CourierRate(
                    service_code=str(company.get("courier_company_id") or company.get("id")),
                    service_name=company.get("courier_name") or company.get("name") or "Unknown",
                    freight_charge=freight,
                    cod_charge=cod_charge,
                    total_charge=round(total, 2),
                    estimated_days=_parse_days(company.get("estimated_delivery_days")),
                    expected_delivery=parse_carrier_datetime(company.get("etd")),
                    is_express=is_express,
                    is_surface=is_surface,
                )
            )

        if not rates:
            return CourierResult.failure("No couriers available for this route", code="E-3006")
        return CourierResult.ok(sorted(rates, key=lambda r: r.total_charge))

    def _order_payload(self, settings: ShiprocketSettings, request: ShipmentRequest) -> dict[str, Any]:
        first, last = split_name(request.delivery_name)
        payload: dict[str, Any] = {
            "order_id": request.order_number,
            "order_date": datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M"),
            "pickup_location": settings.pickup_location,
            "billing_customer_name": first,
            "billing_last_name": last,
            "billing_address": request.delivery_address,
            "billing_address_2": request.delivery_address2 or "",
            "billing_city": request.delivery_city,
            "billing_state": request.delivery_state,
            "billing_pincode": request.delivery_pincode,
            "billing_country": "India",
            "billing_email": request.delivery_email or "",
            "billing_phone": request.delivery_phone,
            "shipping_is_billing": 1,
            "payment_method": "COD" if request.is_cod else "Prepaid",
            "sub_total": request.declared_value,
            "weight": request.weight,
            "length": request.length or DEFAULT_DIMENSION_CM,
            "breadth": request.width or DEFAULT_DIMENSION_CM,
            "height": request.height or DEFAULT_DIMENSION_CM,
            "order_items": [
                {
                    "name": item.name,
                    "sku": item.sku or "SKU",
                    "units": item.quantity,
                    "selling_price": item.unit_price,
                    "discount": 0,
                    "tax": 0,
                    "hsn": "0",
                }
                for item in request.items
            ],
        }
        if settings.channel_id is not None:
            payload["channel_id"] = settings.channel_id
        return payload

    async def _find_existing(self, token: str, order_number: str) -> dict[str, Any] | None:
        """Return a previously created order for this order number, if any."""
        try:
            orders = await self._client.search_orders(token, order_number)
        except CourierApiError as e:
            # Lookup failures fall through to a fresh create.
            logger.warning("Shiprocket order lookup for %s failed: %s", order_number, e)
            return None
        for order in orders:
            if str(order.get("channel_order_id")) == order_number:
                return order
        return None

    async def _assign_awb(
        self, token: str, shipment_id: str, courier_id: str | None
    ) -> tuple[dict[str, Any] | None, str]:
        """Try AWB assignment a bounded number of times.

        Returns:
            (assignment data or None, last failure message)
        """
        last_error = "AWB assignment returned no AWB"
        for attempt in range(1, AWB_ASSIGN_ATTEMPTS + 1):
            try:
                body = await self._client.assign_awb(token, shipment_id, courier_id)
            except CourierApiError as e:
                last_error = e.message
                logger.warning(
                    "Shiprocket AWB assignment attempt %d for shipment %s failed: %s",
                    attempt, shipment_id, e.message,
                )
                continue
            data = ((body.get("response") or {}).get("data")) or {}
            if to_int(body.get("awb_assign_status")) == 1 and data.get("awb_code"):
                return data, ""
            last_error = body.get("message") or data.get("awb_assign_error") or last_error
        return None, last_error

    @translate_errors("shipment creation")
    async def create_shipment(
        self, creds: CourierCredentials, request: ShipmentRequest
    ) -> CourierResult[ShipmentResponse]:
        settings = ShiprocketSettings.from_credentials(creds)
        token = await self._token(settings)
        courier_id = strip_estimate_prefix(request.service_code)
        if courier_id and not courier_id.isdigit():
            courier_id = None

        existing = await self._find_existing(token, request.order_number)
        if existing is not None:
            order_id = str(existing.get("id"))
            shipments = existing.get("shipments") or [{}]
            shipment = shipments[0] if isinstance(shipments, list) else shipments
            shipment_id = str(shipment.get("id") or "")
            awb = shipment.get("awb") or shipment.get("awb_code")
            logger.info(
                "Reusing Shiprocket order %s for %s (awb=%s)", order_id, request.order_number, awb,
            )
            if awb:
                return CourierResult.ok(
                    ShipmentResponse(
                        awb_number=str(awb),
                        courier_name=shipment.get("courier") or shipment.get("courier_name"),
                        shipment_id=shipment_id or None,
                        tracking_url=self.tracking_url(str(awb)),
                        external_order_id=order_id,
                        external_shipment_id=shipment_id or None,
                    )
                )
        else:
            payload = self._order_payload(settings, request)
            if settings.channel_id is not None:
                created = await self._client.create_channel_order(token, payload)
            else:
                created = await self._client.create_order(token, payload)
            order_id = str(created.get("order_id") or "")
            shipment_id = str(created.get("shipment_id") or "")
            if not order_id or order_id == "0" or not shipment_id:
                message = created.get("message") or "Order creation failed"
                errors = created.get("errors")
                if isinstance(errors, dict):
                    message = f"{message}: " + "; ".join(
                        f"{k}: {', '.join(v) if isinstance(v, list) else v}" for k, v in errors.items()
                    )
                return CourierResult.failure(
                    render_message("E-3001", provider=self.display_name, message=message),
                    code="E-3001",
                )
            if created.get("awb_code"):
                awb = str(created["awb_code"])
                return CourierResult.ok(
                    ShipmentResponse(
                        awb_number=awb,
                        courier_name=created.get("courier_name"),
                        shipment_id=shipment_id,
                        tracking_url=self.tracking_url(awb),
                        external_order_id=order_id,
                        external_shipment_id=shipment_id,
                    )
                )

        details = {"external_order_id": order_id, "external_shipment_id": shipment_id}
        if not shipment_id:
            return CourierResult.failure(
                render_message("E-3005", message="order has no shipment"), code="E-3005", details=details,
            )

        assignment, error = await self._assign_awb(token, shipment_id, courier_id)
        if assignment is None:
            logger.error(
                "Shiprocket order %s created but AWB assignment failed: %s", order_id, error,
            )
            return CourierResult.failure(
                render_message("E-3005", message=error), code="E-3005", details=details,
            )

        awb = str(assignment["awb_code"])
        logger.info("Shiprocket AWB %s assigned to order %s", awb, request.order_number)
        return CourierResult.ok(
            ShipmentResponse(
                awb_number=awb,
                courier_name=assignment.get("courier_name"),
                shipment_id=shipment_id,
                tracking_url=self.tracking_url(awb),
                freight_charge=to_float(assignment.get("applied_weight_amount"), default=0.0) or None,
                external_order_id=order_id,
                external_shipment_id=shipment_id,
            )
        )

    async def _tracking_data(self, token: str, awb: str) -> dict[str, Any]:
        body = await self._client.track_awb(token, awb)
        data = body.get("tracking_data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            raise CourierApiError(self.display_name, f"No tracking data for AWB {awb}")
        return data

    @staticmethod
    def _track_record(data: dict[str, Any]) -> dict[str, Any]:
        records = data.get("shipment_track") or []
        return records[0] if records and isinstance(records[0], dict) else {}

    @translate_errors("tracking")
    async def get_tracking(self, creds: CourierCredentials, awb: str) -> CourierResult[TrackingResponse]:
        settings = ShiprocketSettings.from_credentials(creds)
        token = await self._token(settings)
        data = await self._tracking_data(token, awb)
        record = self._track_record(data)

        events = []
        for activity in data.get("shipment_track_activities") or []:
            status_text = activity.get("sr-status-label") or activity.get("activity") or ""
            events.append(
                TrackingEvent(
                    timestamp=parse_carrier_datetime(activity.get("date")),
                    status=str(status_text or activity.get("status") or ""),
                    mapped_status=map_shiprocket_status(activity.get("sr-status")),
                    location=activity.get("location"),
                    remarks=activity.get("activity"),
                )
            )
        events.sort(key=lambda e: e.timestamp or datetime.min.replace(tzinfo=timezone.utc))

        status_id = data.get("shipment_status")
        return CourierResult.ok(
            TrackingResponse(
                awb=awb,
                current_status=map_shiprocket_status(status_id),
                carrier_status=record.get("current_status") or (str(status_id) if status_id is not None else None),
                current_location=events[-1].location if events else record.get("destination"),
                expected_delivery=parse_carrier_datetime(data.get("etd") or record.get("edd")),
                delivered_at=parse_carrier_datetime(record.get("delivered_date")),
                delivered_to=record.get("delivered_to"),
                events=events,
            )
        )

    @translate_errors("cancellation")
    async def cancel_shipment(self, creds: CourierCredentials, awb: str) -> CourierResult[None]:
        settings = ShiprocketSettings.from_credentials(creds)
        token = await self._token(settings)
        record = self._track_record(await self._tracking_data(token, awb))
        order_id = record.get("order_id")
        if not order_id:
            return CourierResult.failure(f"No Shiprocket order found for AWB {awb}", code="E-3006")
        await self._client.cancel_orders(token, [str(order_id)])
        logger.info("Cancelled Shiprocket order %s (awb=%s)", order_id, awb)
        return CourierResult.ok()

    @translate_errors("label generation")
    async def get_label(self, creds: CourierCredentials, awb: str) -> CourierResult[bytes]:
        settings = ShiprocketSettings.from_credentials(creds)
        token = await self._token(settings)
        record = self._track_record(await self._tracking_data(token, awb))
        shipment_id = record.get("shipment_id")
        if not shipment_id:
            return CourierResult.failure(f"No Shiprocket shipment found for AWB {awb}", code="E-3006")
        body = await self._client.generate_label(token, [str(shipment_id)])
        label_url = body.get("label_url")
        if to_int(body.get("label_created")) != 1 or not label_url:
            return CourierResult.failure(
                str(body.get("response") or body.get("message") or "Label generation failed"), code="E-3001",
            )
        return CourierResult.ok(await self._client.download(label_url))

    @translate_errors("pickup scheduling")
    async def schedule_pickup(
        self, creds: CourierCredentials, request: PickupRequest
    ) -> CourierResult[PickupResponse]:
        settings = ShiprocketSettings.from_credentials(creds)
        token = await self._token(settings)

        shipment_ids = []
        for awb in request.awb_numbers:
            record = self._track_record(await self._tracking_data(token, awb))
            if not record.get("shipment_id"):
                return CourierResult.failure(f"No Shiprocket shipment found for AWB {awb}", code="E-3006")
            shipment_ids.append(str(record["shipment_id"]))

        body = await self._client.generate_pickup(token, shipment_ids)
        response = body.get("response") or {}
        if to_int(body.get("pickup_status")) != 1:
            return CourierResult.failure(
                str(response.get("data") or body.get("message") or "Pickup scheduling failed"), code="E-3001",
            )
        return CourierResult.ok(
            PickupResponse(
                pickup_id=str(response.get("pickup_token_number") or ""),
                scheduled_date=parse_carrier_datetime(response.get("pickup_scheduled_date"))
                or request.pickup_date,
                time_slot=request.pickup_time_slot,
                shipment_count=len(shipment_ids),
            )
        )
