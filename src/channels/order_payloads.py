"""Outbound Shopify order payloads built from internal orders.

Shopify accepts a full order on create, but after creation it only honors
changes to contact details, notes and addresses. The update payload
therefore carries only those keys; line items and amounts are never sent
on update.
"""

from typing import Any

from src.db.models import Order

DEFAULT_TAX_RATE = 0.18
MANUAL_ORDER_TAG = "manual_order"
DEFAULT_SHIPPING_TITLE = "Shipping"

# Keys Shopify honors on PUT /orders/{id}.json.
UPDATABLE_ORDER_FIELDS = frozenset({
    "email", "phone", "note", "note_attributes", "shipping_address", "billing_address",
})

_FINANCIAL_STATUS = {
    "paid": "paid",
    "partially_paid": "partially_paid",
    "authorized": "authorized",
    "refunded": "refunded",
    "partially_refunded": "partially_refunded",
    "voided": "voided",
}


def _money(value: float | None) -> str:
    return f"{(value or 0.0):.2f}"


def _split_name(name: str | None) -> tuple[str, str]:
    parts = (name or "").strip().split(" ", 1)
    return parts[0], parts[1] if len(parts) > 1 else ""


def _address(order: Order, prefix: str) -> dict[str, Any] | None:
    line1 = getattr(order, f"{prefix}_address1")
    if not line1:
        return None
    first, last = _split_name(getattr(order, f"{prefix}_name") or order.customer_name)
    return {
        "first_name": first,
        "last_name": last,
        "address1": line1,
        "address2": getattr(order, f"{prefix}_address2") or "",
        "city": getattr(order, f"{prefix}_city") or "",
        "province": getattr(order, f"{prefix}_state") or "",
        "zip": getattr(order, f"{prefix}_postal_code") or "",
        "country": getattr(order, f"{prefix}_country") or "India",
        "phone": getattr(order, f"{prefix}_phone") or order.customer_phone or "",
    }


def _note_attributes(order: Order) -> list[dict[str, str]]:
    if not order.internal_notes:
        return []
    return [{"name": "internal_notes", "value": order.internal_notes}]


def build_create_payload(order: Order) -> dict[str, Any]:
    """Build the ``{"order": {...}}`` body for POST /orders.json."""
    first, last = _split_name(order.customer_name)
    body: dict[str, Any] = {
        "email": order.customer_email,
        "phone": order.customer_phone,
        "financial_status": _FINANCIAL_STATUS.get(order.payment_status, "pending"),
        "currency": order.currency or "INR",
        "note": order.notes,
        "note_attributes": _note_attributes(order),
        "line_items": [
            {
                "title": item.name,
                "sku": item.sku,
                "variant_title": item.variant_name,
                "quantity": item.quantity,
                "price": _money(item.unit_price),
                "requires_shipping": True,
                "taxable": (item.tax_amount or 0) > 0,
            }
            for item in order.items
        ],
        "customer": {"first_name": first, "last_name": last, "email": order.customer_email},
        "total_discounts": _money(order.discount_amount),
        "tags": MANUAL_ORDER_TAG,
        "send_receipt": False,
    }

    shipping = _address(order, "shipping")
    if shipping:
        body["shipping_address"] = shipping
    billing = _address(order, "billing") or shipping
    if billing:
        body["billing_address"] = billing

    if (order.shipping_amount or 0) > 0:
        body["shipping_lines"] = [
            {"title": DEFAULT_SHIPPING_TITLE, "price": _money(order.shipping_amount), "code": "standard"}
        ]
    if (order.tax_amount or 0) > 0:
        body["tax_lines"] = [
            {"title": "GST", "price": _money(order.tax_amount), "rate": DEFAULT_TAX_RATE}
        ]
    return {"order": body}


def build_update_payload(order: Order, external_order_id: int) -> dict[str, Any]:
    """Build the ``{"order": {...}}`` body for PUT /orders/{id}.json.

    Only keys in ``UPDATABLE_ORDER_FIELDS`` (plus the id) are emitted.
    """
    body: dict[str, Any] = {
        "id": external_order_id,
        "email": order.customer_email,
        "phone": order.customer_phone,
        "note": order.notes,
        "note_attributes": _note_attributes(order),
    }
    shipping = _address(order, "shipping")
    if shipping:
        body["shipping_address"] = shipping
    billing = _address(order, "billing")
    if billing:
        body["billing_address"] = billing
    return {"order": body}
