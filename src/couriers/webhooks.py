"""Carrier webhook normalizers.

Each normalizer turns one carrier's raw push payload into a WebhookEvent.
Status codes go through the same tables the adapters use when polling, so
a given carrier code maps identically on both paths. Normalizers never
raise: malformed bodies produce ``WebhookEvent(success=False)``.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

from src.couriers.base import combine_date_time, parse_carrier_datetime
from src.couriers.models import CourierType, WebhookEvent
from src.couriers.status_maps import (
    map_bluedart_status,
    map_delhivery_status,
    map_dtdc_status,
    map_shiprocket_status,
)
from src.errors import render_message

logger = logging.getLogger(__name__)


def _field(payload: dict[str, Any], *keys: str) -> Any:
    """Case-insensitive lookup of the first present key."""
    lowered = {str(k).lower(): v for k, v in payload.items()}
    for key in keys:
        value = lowered.get(key.lower())
        if value not in (None, ""):
            return value
    return None


def _text(value: Any) -> str | None:
    return None if value is None else str(value)


class WebhookNormalizer(ABC):
    """Parses one carrier's webhook body."""

    courier_type: CourierType

    def handle(self, raw_payload: str | bytes) -> WebhookEvent:
        """Normalize a raw webhook body without raising."""
        try:
            if isinstance(raw_payload, bytes):
                raw_payload = raw_payload.decode("utf-8")
            payload = json.loads(raw_payload)
        except (UnicodeDecodeError, json.JSONDecodeError, TypeError) as e:
            logger.warning("Unparseable %s webhook: %s", self.courier_type.value, e)
            return WebhookEvent(success=False, message=render_message("E-2003", message=str(e)))

        if not isinstance(payload, dict):
            logger.warning("%s webhook body is not an object", self.courier_type.value)
            return WebhookEvent(
                success=False, message=render_message("E-2003", message="expected a JSON object"),
            )

        try:
            event = self._normalize(payload)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.exception("Failed to normalize %s webhook", self.courier_type.value)
            return WebhookEvent(success=False, message=render_message("E-2003", message=str(e)))

        if not event.awb:
            return WebhookEvent(success=False, message=render_message("E-2003", message="missing AWB"))

        logger.info(
            "%s webhook: awb=%s status=%s mapped=%s",
            self.courier_type.value, event.awb, event.carrier_status,
            event.new_status.value if event.new_status else None,
        )
        return event

    @abstractmethod
    def _normalize(self, payload: dict[str, Any]) -> WebhookEvent:
        ...


class ShiprocketWebhookNormalizer(WebhookNormalizer):
    courier_type = CourierType.SHIPROCKET

    def _normalize(self, payload: dict[str, Any]) -> WebhookEvent:
        status_id = _field(payload, "current_status_id", "shipment_status_id")
        status_text = _field(payload, "current_status", "shipment_status")
        return WebhookEvent(
            success=True,
            awb=_text(_field(payload, "awb", "awb_code")),
            external_order_id=_text(_field(payload, "order_id", "sr_order_id")),
            new_status=map_shiprocket_status(status_id),
            carrier_status=_text(status_text or status_id),
            location=_text(_field(payload, "location")),
            event_time=parse_carrier_datetime(_field(payload, "current_timestamp")),
            delivered_to=_text(_field(payload, "delivered_to")),
            message=_text(status_text),
        )


class DelhiveryWebhookNormalizer(WebhookNormalizer):
    """Accepts both the flat payload and Delhivery's nested ``Shipment`` push."""

    courier_type = CourierType.DELHIVERY

    def _normalize(self, payload: dict[str, Any]) -> WebhookEvent:
        shipment = _field(payload, "Shipment")
        if isinstance(shipment, dict):
            status = _field(shipment, "Status") or {}
            return WebhookEvent(
                success=True,
                awb=_text(_field(shipment, "AWB", "waybill")),
                external_order_id=_text(_field(shipment, "ReferenceNo")),
                new_status=map_delhivery_status(_field(status, "StatusType", "StatusCode")),
                carrier_status=_text(_field(status, "Status")),
                location=_text(_field(status, "StatusLocation")),
                remarks=_text(_field(status, "Instructions")),
                event_time=parse_carrier_datetime(_field(status, "StatusDateTime")),
                delivered_to=_text(_field(status, "RecievedBy", "ReceivedBy")),
                message=_text(_field(status, "Status")),
            )

        status_text = _field(payload, "status")
        return WebhookEvent(
            success=True,
            awb=_text(_field(payload, "waybill", "awb")),
            external_order_id=_text(_field(payload, "reference_number", "order")),
            new_status=map_delhivery_status(_field(payload, "status_code", "status_type")),
            carrier_status=_text(status_text),
            location=_text(_field(payload, "location")),
            remarks=_text(_field(payload, "remarks")),
            event_time=parse_carrier_datetime(_field(payload, "timestamp")),
            delivered_to=_text(_field(payload, "delivered_to")),
            message=_text(status_text),
        )


class BlueDartWebhookNormalizer(WebhookNormalizer):
    courier_type = CourierType.BLUEDART

    def _normalize(self, payload: dict[str, Any]) -> WebhookEvent:
        status_text = _field(payload, "Status")
        return WebhookEvent(
            success=True,
            awb=_text(_field(payload, "AWBNo", "awb")),
            external_order_id=_text(_field(payload, "ReferenceNo")),
            new_status=map_bluedart_status(_field(payload, "StatusCode", "StatusType")),
            carrier_status=_text(status_text),
            location=_text(_field(payload, "StatusLocation")),
            remarks=_text(_field(payload, "Remarks")),
            event_time=combine_date_time(_field(payload, "StatusDate"), _field(payload, "StatusTime")),
            delivered_to=_text(_field(payload, "ReceivedBy")),
            message=_text(status_text),
        )


class DtdcWebhookNormalizer(WebhookNormalizer):
    courier_type = CourierType.DTDC

    def _normalize(self, payload: dict[str, Any]) -> WebhookEvent:
        status_text = _field(payload, "status")
        return WebhookEvent(
            success=True,
            awb=_text(_field(payload, "consignmentNumber", "awb")),
            external_order_id=_text(_field(payload, "referenceNumber")),
            new_status=map_dtdc_status(_field(payload, "statusCode")),
            carrier_status=_text(status_text),
            location=_text(_field(payload, "location")),
            remarks=_text(_field(payload, "remarks")),
            event_time=combine_date_time(_field(payload, "eventDate"), _field(payload, "eventTime")),
            delivered_to=_text(_field(payload, "receivedBy")),
            message=_text(status_text),
        )


_NORMALIZERS: dict[CourierType, WebhookNormalizer] = {
    n.courier_type: n
    for n in (
        ShiprocketWebhookNormalizer(),
        DelhiveryWebhookNormalizer(),
        BlueDartWebhookNormalizer(),
        DtdcWebhookNormalizer(),
    )
}


def get_webhook_normalizer(courier: CourierType | str) -> WebhookNormalizer:
    """Return the normalizer for a carrier.

    Raises:
        ValueError: If the carrier is unknown.
    """
    return _NORMALIZERS[CourierType(courier)]
