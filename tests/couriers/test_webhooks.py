"""Tests for carrier webhook normalizers."""

import json
from datetime import datetime, timezone

import pytest

from src.couriers.models import CourierType, ShipmentStatus
from src.couriers.webhooks import get_webhook_normalizer


def _handle(courier: CourierType, payload) -> object:
    return get_webhook_normalizer(courier).handle(json.dumps(payload))


class TestShiprocketWebhook:
    def test_delivered(self):
        event = _handle(CourierType.SHIPROCKET, {
            "awb": "SR123",
            "order_id": "1001",
            "current_status_id": 7,
            "current_status": "DELIVERED",
            "current_timestamp": "2024-01-15 14:30:00",
            "delivered_to": "Ravi",
        })
        assert event.success is True
        assert event.awb == "SR123"
        assert event.external_order_id == "1001"
        assert event.new_status == ShipmentStatus.DELIVERED
        assert event.carrier_status == "DELIVERED"
        assert event.delivered_to == "Ravi"
        assert event.event_time == datetime(2024, 1, 15, 14, 30, tzinfo=timezone.utc)

    def test_numeric_awb_is_stringified(self):
        event = _handle(CourierType.SHIPROCKET, {"awb_code": 987654, "shipment_status_id": "13"})
        assert event.awb == "987654"
        assert event.new_status == ShipmentStatus.OUT_FOR_DELIVERY

    def test_unknown_status_leaves_status_unset(self):
        event = _handle(CourierType.SHIPROCKET, {"awb": "SR1", "current_status_id": 99})
        assert event.success is True
        assert event.new_status is None
        assert event.carrier_status == "99"


class TestDelhiveryWebhook:
    def test_nested_shipment_payload(self):
        event = _handle(CourierType.DELHIVERY, {
            "Shipment": {
                "AWB": "DL1",
                "ReferenceNo": "#1001",
                "Status": {
                    "Status": "Delivered",
                    "StatusType": "DL",
                    "StatusLocation": "Delhi_Hub",
                    "StatusDateTime": "2024-01-15T14:30:00",
                    "RecievedBy": "Self",
                },
            }
        })
        assert event.success is True
        assert event.awb == "DL1"
        assert event.external_order_id == "#1001"
        assert event.new_status == ShipmentStatus.DELIVERED
        assert event.location == "Delhi_Hub"
        assert event.delivered_to == "Self"

    def test_flat_payload(self):
        event = _handle(CourierType.DELHIVERY, {
            "waybill": "DL2", "status": "In Transit", "status_code": "it", "location": "Mumbai",
        })
        assert event.awb == "DL2"
        assert event.new_status == ShipmentStatus.IN_TRANSIT
        assert event.carrier_status == "In Transit"


class TestBlueDartWebhook:
    def test_split_date_and_time(self):
        event = _handle(CourierType.BLUEDART, {
            "AWBNo": "BD1",
            "Status": "Out for delivery",
            "StatusType": "OD",
            "StatusDate": "15-Jan-2024",
            "StatusTime": "1430",
            "StatusLocation": "Pune",
        })
        assert event.new_status == ShipmentStatus.OUT_FOR_DELIVERY
        assert event.event_time == datetime(2024, 1, 15, 14, 30, tzinfo=timezone.utc)
        assert event.location == "Pune"


class TestDtdcWebhook:
    def test_case_insensitive_keys(self):
        event = _handle(CourierType.DTDC, {
            "ConsignmentNumber": "D100",
            "STATUSCODE": "DLV",
            "status": "Delivered",
            "eventDate": "2024-01-15",
            "eventTime": "09:05",
        })
        assert event.awb == "D100"
        assert event.new_status == ShipmentStatus.DELIVERED
        assert event.event_time == datetime(2024, 1, 15, 9, 5, tzinfo=timezone.utc)


class TestMalformedBodies:
    @pytest.mark.parametrize("courier", list(CourierType))
    def test_invalid_json(self, courier):
        event = get_webhook_normalizer(courier).handle(b"not json")
        assert event.success is False
        assert event.message.startswith("Webhook payload could not be parsed")

    def test_invalid_utf8(self):
        event = get_webhook_normalizer(CourierType.DTDC).handle(b"\xff\xfe")
        assert event.success is False

    def test_non_object_body(self):
        event = get_webhook_normalizer(CourierType.SHIPROCKET).handle("[1, 2]")
        assert event.success is False
        assert "expected a JSON object" in event.message

    def test_missing_awb(self):
        event = _handle(CourierType.DELHIVERY, {"status": "Delivered", "status_code": "DL"})
        assert event.success is False
        assert "missing AWB" in event.message

    def test_unknown_courier(self):
        with pytest.raises(ValueError):
            get_webhook_normalizer("fedex")

    def test_lookup_by_string(self):
        assert get_webhook_normalizer("dtdc").courier_type == CourierType.DTDC
