"""Tests for outbound Shopify order payloads."""

from src.channels.order_payloads import (
    MANUAL_ORDER_TAG,
    UPDATABLE_ORDER_FIELDS,
    build_create_payload,
    build_update_payload,
)
from src.db.models import Order, OrderItem


def _order(**overrides) -> Order:
    fields = dict(
        order_number="SO-1001",
        customer_name="Asha Verma",
        customer_email="asha@example.com",
        customer_phone="+919876543210",
        payment_status="paid",
        currency="INR",
        notes="Gift wrap",
        internal_notes="VIP customer",
        shipping_name="Asha Verma",
        shipping_address1="12 MG Road",
        shipping_city="Bengaluru",
        shipping_state="Karnataka",
        shipping_postal_code="560001",
        discount_amount=50.0,
        shipping_amount=40.0,
        tax_amount=180.0,
    )
    fields.update(overrides)
    order = Order(**fields)
    order.items = [
        OrderItem(name="Ceramic Mug", sku="MUG-01", quantity=2, unit_price=349.0, tax_amount=62.82),
        OrderItem(name="Coaster", sku="CST-01", quantity=1, unit_price=99.5, tax_amount=0.0),
    ]
    return order


class TestCreatePayload:
    def test_full_order(self):
        body = build_create_payload(_order())["order"]

        assert body["financial_status"] == "paid"
        assert body["tags"] == MANUAL_ORDER_TAG
        assert body["send_receipt"] is False
        assert body["total_discounts"] == "50.00"
        assert body["customer"] == {"first_name": "Asha", "last_name": "Verma", "email": "asha@example.com"}
        assert body["note_attributes"] == [{"name": "internal_notes", "value": "VIP customer"}]
        assert body["shipping_lines"][0]["price"] == "40.00"
        assert body["tax_lines"][0]["price"] == "180.00"

    def test_line_items(self):
        items = build_create_payload(_order())["order"]["line_items"]

        assert [(i["sku"], i["quantity"], i["price"]) for i in items] == [
            ("MUG-01", 2, "349.00"),
            ("CST-01", 1, "99.50"),
        ]
        assert items[0]["taxable"] is True
        assert items[1]["taxable"] is False

    def test_billing_falls_back_to_shipping(self):
        body = build_create_payload(_order())["order"]

        assert body["billing_address"] == body["shipping_address"]
        assert body["shipping_address"]["zip"] == "560001"
        assert body["shipping_address"]["country"] == "India"
        assert body["shipping_address"]["phone"] == "+919876543210"

    def test_no_address_no_charges(self):
        body = build_create_payload(
            _order(shipping_address1=None, shipping_amount=0.0, tax_amount=0.0, payment_status="pending")
        )["order"]

        assert "shipping_address" not in body
        assert "billing_address" not in body
        assert "shipping_lines" not in body
        assert "tax_lines" not in body
        assert body["financial_status"] == "pending"


class TestUpdatePayload:
    def test_only_updatable_keys(self):
        body = build_update_payload(_order(billing_address1="1 Park St", billing_city="Kolkata"), 55)["order"]

        assert body["id"] == 55
        assert set(body) - {"id"} <= UPDATABLE_ORDER_FIELDS
        assert "line_items" not in body
        assert "total_discounts" not in body
        assert body["billing_address"]["city"] == "Kolkata"

    def test_empty_internal_notes(self):
        body = build_update_payload(_order(internal_notes=None), 55)["order"]

        assert body["note_attributes"] == []
        assert "billing_address" not in body
