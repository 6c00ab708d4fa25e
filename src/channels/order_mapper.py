"""Map Shopify order payloads onto internal Order rows.

``map_new_order`` builds a complete Order with its items for first import.
``apply_order_updates`` touches only the fields that legitimately change
after import (order status and payment status); everything else on an
existing row is owned locally.
"""

import json
from datetime import UTC, datetime
from typing import Any

from src.db.models import (
    NAME_MAX,
    SKU_MAX,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    SyncStatus,
    utc_now_iso,
)
from src.utils.text import truncate

DEFAULT_CURRENCY = "INR"
UNKNOWN_CUSTOMER = "Unknown Customer"

_PAYMENT_STATUS = {
    "paid": PaymentStatus.paid,
    "partially_paid": PaymentStatus.partially_paid,
    "pending": PaymentStatus.pending,
    "authorized": PaymentStatus.authorized,
    "refunded": PaymentStatus.refunded,
    "partially_refunded": PaymentStatus.partially_refunded,
    "voided": PaymentStatus.voided,
}

# Checked in order; first gateway keyword hit wins.
_GATEWAY_KEYWORDS: list[tuple[tuple[str, ...], PaymentMethod]] = [
    (("cod", "cash on delivery"), PaymentMethod.cod),
    (("upi", "razorpay", "phonepe", "gpay"), PaymentMethod.upi),
    (("card", "stripe", "visa", "mastercard"), PaymentMethod.card),
    (("netbanking", "net banking"), PaymentMethod.netbanking),
    (("wallet", "paytm"), PaymentMethod.wallet),
    (("emi", "bnpl"), PaymentMethod.emi),
]


def parse_money(value: Any) -> float:
    if value in (None, ""):
        return 0.0
    try:
        return round(float(value), 2)
    except (TypeError, ValueError):
        return 0.0


def to_utc_iso(value: str | None) -> str | None:
    """Normalize a Shopify timestamp (with offset) to UTC ISO8601.

    Raises:
        ValueError: If the timestamp is not ISO8601.
    """
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC).isoformat()


def map_order_status(shopify_order: dict[str, Any]) -> OrderStatus:
    if shopify_order.get("cancelled_at"):
        return OrderStatus.cancelled
    if shopify_order.get("closed_at"):
        return OrderStatus.delivered
    fulfillment = (shopify_order.get("fulfillment_status") or "").lower()
    if fulfillment == "fulfilled":
        return OrderStatus.shipped
    if fulfillment:
        return OrderStatus.processing
    if (shopify_order.get("financial_status") or "").lower() == "paid":
        return OrderStatus.confirmed
    return OrderStatus.pending


def map_payment_status(financial_status: str | None) -> PaymentStatus:
    return _PAYMENT_STATUS.get((financial_status or "").lower(), PaymentStatus.pending)


def determine_payment_method(shopify_order: dict[str, Any]) -> PaymentMethod:
    for gateway in shopify_order.get("payment_gateway_names") or []:
        name = str(gateway).lower()
        for keywords, method in _GATEWAY_KEYWORDS:
            if any(k in name for k in keywords):
                return method
    return PaymentMethod.other


def _person_name(data: dict[str, Any] | None) -> str:
    if not data:
        return ""
    return (data.get("name") or f"{data.get('first_name') or ''} {data.get('last_name') or ''}").strip()


def customer_name(shopify_order: dict[str, Any]) -> str:
    return (
        _person_name(shopify_order.get("customer"))
        or _person_name(shopify_order.get("shipping_address"))
        or UNKNOWN_CUSTOMER
    )


def _shipping_cost(shopify_order: dict[str, Any]) -> float:
    price_set = shopify_order.get("total_shipping_price_set") or {}
    amount = (price_set.get("shop_money") or {}).get("amount")
    if amount is None:
        amount = sum(parse_money(line.get("price")) for line in shopify_order.get("shipping_lines") or [])
    return parse_money(amount)


def _address_fields(prefix: str, address: dict[str, Any] | None, fallback_name: str) -> dict[str, Any]:
    if not address:
        return {f"{prefix}_name": fallback_name}
    line2 = ", ".join(p for p in (address.get("address2"), address.get("company")) if p)
    return {
        f"{prefix}_name": _person_name(address) or fallback_name,
        f"{prefix}_address1": address.get("address1") or None,
        f"{prefix}_address2": line2 or None,
        f"{prefix}_city": address.get("city") or None,
        f"{prefix}_state": address.get("province") or address.get("province_code") or None,
        f"{prefix}_postal_code": address.get("zip") or None,
        f"{prefix}_country": address.get("country") or None,
        f"{prefix}_phone": address.get("phone") or None,
    }


def _map_line_item(line: dict[str, Any]) -> OrderItem:
    quantity = int(line.get("quantity") or 1)
    unit_price = parse_money(line.get("price"))
    discount = parse_money(line.get("total_discount"))
    tax = round(sum(parse_money(t.get("price")) for t in line.get("tax_lines") or []), 2)
    sku = (line.get("sku") or "").strip() or f"SHOPIFY-{line.get('product_id') or line.get('id')}"
    return OrderItem(
        external_line_item_id=str(line["id"]) if line.get("id") is not None else None,
        sku=truncate(sku, SKU_MAX),
        name=truncate(line.get("title") or line.get("name") or sku, NAME_MAX),
        variant_name=truncate(line.get("variant_title"), 255),
        quantity=quantity,
        unit_price=unit_price,
        discount_amount=discount,
        tax_amount=tax,
        total_amount=round(unit_price * quantity - discount, 2),
    )


def map_new_order(shopify_order: dict[str, Any], channel_id: str) -> Order:
    """Build a new Order (with items) from a Shopify order.

    Raises:
        KeyError: If the order has no id.
        ValueError: If a timestamp or amount is malformed.
    """
    external_id = str(shopify_order["id"])
    name = customer_name(shopify_order)
    shipping = shopify_order.get("shipping_address")
    customer = shopify_order.get("customer") or {}
    external_number = shopify_order.get("name") or str(shopify_order.get("order_number") or external_id)

    order = Order(
        channel_id=channel_id,
        external_order_id=external_id,
        external_order_number=external_number,
        order_number=external_number,
        status=map_order_status(shopify_order).value,
        payment_status=map_payment_status(shopify_order.get("financial_status")).value,
        fulfillment_status=shopify_order.get("fulfillment_status"),
        payment_method=determine_payment_method(shopify_order).value,
        customer_name=name,
        customer_email=shopify_order.get("email") or customer.get("email"),
        customer_phone=(
            shopify_order.get("phone") or (shipping or {}).get("phone") or customer.get("phone")
        ),
        subtotal=parse_money(shopify_order.get("subtotal_price")),
        discount_amount=parse_money(shopify_order.get("total_discounts")),
        tax_amount=parse_money(shopify_order.get("total_tax")),
        shipping_amount=_shipping_cost(shopify_order),
        total_amount=parse_money(shopify_order.get("total_price")),
        currency=shopify_order.get("currency") or DEFAULT_CURRENCY,
        order_date=to_utc_iso(shopify_order.get("created_at")),
        cancelled_at=to_utc_iso(shopify_order.get("cancelled_at")),
        notes=shopify_order.get("note"),
        tags=shopify_order.get("tags") or None,
        platform_data=json.dumps({
            "id": shopify_order.get("id"),
            "name": shopify_order.get("name"),
            "tags": shopify_order.get("tags"),
            "fulfillment_status": shopify_order.get("fulfillment_status"),
            "financial_status": shopify_order.get("financial_status"),
            "payment_gateway_names": shopify_order.get("payment_gateway_names"),
        }),
        sync_status=SyncStatus.synced.value,
        last_synced_at=utc_now_iso(),
        **_address_fields("shipping", shipping, name),
        **_address_fields("billing", shopify_order.get("billing_address"), name),
    )
    order.items = [_map_line_item(line) for line in shopify_order.get("line_items") or []]
    return order


def apply_order_updates(order: Order, shopify_order: dict[str, Any]) -> bool:
    """Refresh status fields on an existing order.

    Returns:
        True if anything changed.
    """
    changed = False
    status = map_order_status(shopify_order).value
    if order.status != status:
        order.status = status
        changed = True
    payment_status = map_payment_status(shopify_order.get("financial_status")).value
    if order.payment_status != payment_status:
        order.payment_status = payment_status
        changed = True
    fulfillment = shopify_order.get("fulfillment_status")
    if order.fulfillment_status != fulfillment:
        order.fulfillment_status = fulfillment
        changed = True
    cancelled_at = to_utc_iso(shopify_order.get("cancelled_at"))
    if cancelled_at and order.cancelled_at != cancelled_at:
        order.cancelled_at = cancelled_at
        changed = True
    order.last_synced_at = utc_now_iso()
    return changed
