"""SQLAlchemy ORM models for the ShipSync state database.

Sales channels, imported orders, the product/inventory catalogue with its
append-only stock ledger, courier accounts and shipments. Uses SQLAlchemy
2.0 style with Mapped and mapped_column; timestamps are ISO8601 UTC strings.
"""

import json
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import (
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
)


def generate_uuid() -> str:
    """Generate a UUID4 string for primary keys."""
    return str(uuid4())


def utc_now_iso() -> str:
    """Generate current UTC timestamp in ISO8601 format."""
    return datetime.now(UTC).isoformat()


# Column length limits enforced by truncation before persistence
SKU_MAX = 100
NAME_MAX = 500
DESCRIPTION_MAX = 2000
CATEGORY_MAX = 200
BRAND_MAX = 200
IMAGE_URL_MAX = 1000
OPTION_NAME_MAX = 100
OPTION_VALUE_MAX = 200


# Enums matching the database schema constraints


class ChannelType(str, Enum):
    """Supported storefront platforms."""

    shopify = "shopify"


class ChannelConnectionState(str, Enum):
    """Derived connection state of a sales channel.

    Lifecycle: unconnected -> credentialed -> connected -> unconnected
    (disconnect clears tokens and credentials but keeps orders).
    """

    unconnected = "unconnected"
    credentialed = "credentialed"
    connected = "connected"


class SyncStatus(str, Enum):
    """Per-record sync state against the channel.

    ``conflict`` marks a price or quantity divergence that needs a human
    decision; sync runs never overwrite a conflicted row.
    """

    synced = "synced"
    local_only = "local_only"
    pending = "pending"
    conflict = "conflict"


class OrderStatus(str, Enum):
    """Internal order lifecycle."""

    pending = "pending"
    confirmed = "confirmed"
    processing = "processing"
    shipped = "shipped"
    delivered = "delivered"
    cancelled = "cancelled"
    refunded = "refunded"


class PaymentStatus(str, Enum):
    """Payment state as reported by the channel."""

    pending = "pending"
    authorized = "authorized"
    paid = "paid"
    partially_paid = "partially_paid"
    refunded = "refunded"
    partially_refunded = "partially_refunded"
    voided = "voided"


class PaymentMethod(str, Enum):
    """How the customer paid, inferred from channel gateway names."""

    cod = "cod"
    upi = "upi"
    card = "card"
    netbanking = "netbanking"
    wallet = "wallet"
    emi = "emi"
    other = "other"


class MovementType(str, Enum):
    """Reason categories for stock ledger entries."""

    sync = "sync"
    adjustment = "adjustment"
    sale = "sale"
    return_ = "return"


# SQLAlchemy Base


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Models


class SalesChannel(Base):
    """External storefront connection and its sync policy.

    Attributes:
        id: UUID primary key
        name: Display name
        channel_type: Platform identifier (shopify)
        store_url: Bare store host, e.g. mystore.myshopify.com
        order_sync_days: Order lookback window in days (None = all time)
        product_sync_days: Product lookback window in days (None = all time)
        order_sync_limit / product_sync_limit / inventory_sync_limit:
            Per-run item caps (None = engine safety cap)
        last_sync_status: "Success", "CompletedWithErrors" or "Failed: <reason>"
        credentials_encrypted: AES-256-GCM envelope with api_key/api_secret
        access_token: AES-256-GCM envelope with the OAuth access token
        webhook_secret: AES-256-GCM envelope with the webhook signing secret
    """

    __tablename__ = "sales_channels"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    channel_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ChannelType.shopify.value
    )
    store_url: Mapped[str | None] = mapped_column(String(255), nullable=True)
    store_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    external_shop_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)

    # Sync policy
    auto_sync_orders: Mapped[bool] = mapped_column(nullable=False, default=True)
    auto_sync_inventory: Mapped[bool] = mapped_column(nullable=False, default=False)
    auto_sync_products: Mapped[bool] = mapped_column(nullable=False, default=False)
    sync_products_enabled: Mapped[bool] = mapped_column(nullable=False, default=True)
    order_sync_days: Mapped[int | None] = mapped_column(Integer, nullable=True, default=7)
    product_sync_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    order_sync_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    product_sync_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    inventory_sync_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Sync outcome
    last_sync_at: Mapped[str | None] = mapped_column(String(50), nullable=True)
    last_sync_status: Mapped[str | None] = mapped_column(String(500), nullable=True)
    last_product_sync_at: Mapped[str | None] = mapped_column(String(50), nullable=True)
    last_inventory_sync_at: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Connection (secrets are encrypted envelopes)
    credentials_encrypted: Mapped[str | None] = mapped_column(Text, nullable=True)
    access_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    scopes: Mapped[str | None] = mapped_column(Text, nullable=True)
    webhook_secret: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_connected: Mapped[bool] = mapped_column(nullable=False, default=False)
    last_connected_at: Mapped[str | None] = mapped_column(String(50), nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso, onupdate=utc_now_iso
    )
    deleted_at: Mapped[str | None] = mapped_column(String(50), nullable=True)

    __table_args__ = (
        Index("idx_sales_channels_store_url", "store_url"),
    )

    @property
    def connection_state(self) -> ChannelConnectionState:
        if self.is_connected and self.access_token:
            return ChannelConnectionState.connected
        if self.credentials_encrypted:
            return ChannelConnectionState.credentialed
        return ChannelConnectionState.unconnected

    def __repr__(self) -> str:
        return f"<SalesChannel(id={self.id!r}, name={self.name!r}, store={self.store_url!r})>"


class Order(Base):
    """Order imported from (or pushed to) a sales channel.

    Unique per (channel_id, external_order_id); re-imports only touch
    status fields.
    """

    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    channel_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("sales_channels.id", ondelete="SET NULL"), nullable=True
    )
    external_order_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    external_order_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    order_number: Mapped[str] = mapped_column(String(50), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=OrderStatus.pending.value
    )
    payment_status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=PaymentStatus.pending.value
    )
    fulfillment_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Customer
    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Shipping address
    shipping_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    shipping_address1: Mapped[str | None] = mapped_column(String(500), nullable=True)
    shipping_address2: Mapped[str | None] = mapped_column(String(500), nullable=True)
    shipping_city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    shipping_state: Mapped[str | None] = mapped_column(String(100), nullable=True)
    shipping_postal_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    shipping_country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    shipping_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Billing address
    billing_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    billing_address1: Mapped[str | None] = mapped_column(String(500), nullable=True)
    billing_address2: Mapped[str | None] = mapped_column(String(500), nullable=True)
    billing_city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    billing_state: Mapped[str | None] = mapped_column(String(100), nullable=True)
    billing_postal_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    billing_country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    billing_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Money
    subtotal: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    discount_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    tax_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    shipping_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")

    order_date: Mapped[str | None] = mapped_column(String(50), nullable=True)
    cancelled_at: Mapped[str | None] = mapped_column(String(50), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    internal_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    tags: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Raw channel payload (JSON text)
    platform_data: Mapped[str | None] = mapped_column(Text, nullable=True)
    sync_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SyncStatus.synced.value
    )
    last_synced_at: Mapped[str | None] = mapped_column(String(50), nullable=True)

    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso, onupdate=utc_now_iso
    )

    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("channel_id", "external_order_id", name="uq_orders_channel_external"),
        Index("idx_orders_status", "status"),
        Index("idx_orders_order_date", "order_date"),
    )

    def __repr__(self) -> str:
        return f"<Order(id={self.id!r}, number={self.order_number!r}, status={self.status!r})>"


class OrderItem(Base):
    """Line item of an order."""

    __tablename__ = "order_items"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    order_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    external_line_item_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    sku: Mapped[str | None] = mapped_column(String(SKU_MAX), nullable=True)
    name: Mapped[str] = mapped_column(String(NAME_MAX), nullable=False)
    variant_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    discount_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    tax_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    order: Mapped["Order"] = relationship("Order", back_populates="items")

    __table_args__ = (
        Index("idx_order_items_order_id", "order_id"),
    )


class Product(Base):
    """Catalogue product.

    Simple products carry the sellable SKU themselves. Variant-bearing
    products carry a synthesized parent SKU and one ProductVariant per
    sellable SKU. Soft-deleted rows keep their SKU so a product that
    reappears upstream is restored rather than re-inserted.
    """

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    sku: Mapped[str] = mapped_column(String(SKU_MAX), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(NAME_MAX), nullable=False)
    description: Mapped[str | None] = mapped_column(String(DESCRIPTION_MAX), nullable=True)
    category: Mapped[str | None] = mapped_column(String(CATEGORY_MAX), nullable=True)
    brand: Mapped[str | None] = mapped_column(String(BRAND_MAX), nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(IMAGE_URL_MAX), nullable=True)
    price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    # Last price seen on the storefront; a local price that differs from it was edited here.
    channel_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    weight_kg: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)
    has_variants: Mapped[bool] = mapped_column(nullable=False, default=False)

    channel_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("sales_channels.id", ondelete="SET NULL"), nullable=True
    )
    external_product_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    sync_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SyncStatus.synced.value
    )
    last_synced_at: Mapped[str | None] = mapped_column(String(50), nullable=True)

    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso, onupdate=utc_now_iso
    )
    deleted_at: Mapped[str | None] = mapped_column(String(50), nullable=True)
    deleted_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    variants: Mapped[list["ProductVariant"]] = relationship(
        "ProductVariant",
        back_populates="product",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_products_external_id", "channel_id", "external_product_id"),
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:
        return f"<Product(sku={self.sku!r}, name={self.name!r})>"


class ProductVariant(Base):
    """Sellable variant of a variant-bearing product."""

    __tablename__ = "product_variants"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    product_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    sku: Mapped[str] = mapped_column(String(SKU_MAX), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(NAME_MAX), nullable=False)
    option1_name: Mapped[str | None] = mapped_column(String(OPTION_NAME_MAX), nullable=True)
    option1_value: Mapped[str | None] = mapped_column(String(OPTION_VALUE_MAX), nullable=True)
    option2_name: Mapped[str | None] = mapped_column(String(OPTION_NAME_MAX), nullable=True)
    option2_value: Mapped[str | None] = mapped_column(String(OPTION_VALUE_MAX), nullable=True)
    option3_name: Mapped[str | None] = mapped_column(String(OPTION_NAME_MAX), nullable=True)
    option3_value: Mapped[str | None] = mapped_column(String(OPTION_VALUE_MAX), nullable=True)
    price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    channel_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    weight_kg: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)
    external_variant_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    external_inventory_item_id: Mapped[str | None] = mapped_column(String(50), nullable=True)

    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso, onupdate=utc_now_iso
    )
    deleted_at: Mapped[str | None] = mapped_column(String(50), nullable=True)
    deleted_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    product: Mapped["Product"] = relationship("Product", back_populates="variants")

    __table_args__ = (
        Index("idx_product_variants_product_id", "product_id"),
    )


class InventoryItem(Base):
    """On-hand and reserved stock for exactly one SKU."""

    __tablename__ = "inventory_items"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    sku: Mapped[str] = mapped_column(String(SKU_MAX), nullable=False, unique=True)
    product_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    variant_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=True
    )
    quantity_on_hand: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    quantity_reserved: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reorder_point: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    location_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    external_location_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    external_inventory_item_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    last_synced_at: Mapped[str | None] = mapped_column(String(50), nullable=True)

    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso, onupdate=utc_now_iso
    )

    product: Mapped["Product"] = relationship("Product")
    variant: Mapped[Optional["ProductVariant"]] = relationship("ProductVariant")

    @property
    def quantity_available(self) -> int:
        return self.quantity_on_hand - self.quantity_reserved


class StockMovement(Base):
    """Append-only stock ledger entry.

    One row per quantity change, with the signed delta and the quantities
    before and after. Rows are never updated.
    """

    __tablename__ = "stock_movements"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    inventory_item_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("inventory_items.id", ondelete="CASCADE"), nullable=False
    )
    sku: Mapped[str] = mapped_column(String(SKU_MAX), nullable=False)
    movement_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=MovementType.sync.value
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_before: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_after: Mapped[int] = mapped_column(Integer, nullable=False)
    reference_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reference_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    sync_run_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    __table_args__ = (
        Index("idx_stock_movements_item", "inventory_item_id"),
        Index("idx_stock_movements_sync_run", "sync_run_id"),
    )

    inventory_item: Mapped["InventoryItem"] = relationship("InventoryItem")


@event.listens_for(StockMovement, "before_update")
def _reject_stock_movement_update(mapper: Any, connection: Any, target: StockMovement) -> None:
    raise ValueError(f"Stock movements are append-only (id={target.id})")


class CourierAccount(Base):
    """Credentials for one carrier account.

    ``credentials_encrypted`` holds an AES-256-GCM envelope of the generic
    credential slots; ``settings_json`` holds the open settings map.
    """

    __tablename__ = "courier_accounts"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    courier_type: Mapped[str] = mapped_column(String(20), nullable=False)
    credentials_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    settings_json: Mapped[str | None] = mapped_column(Text, nullable=True, default="{}")
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)
    is_default: Mapped[bool] = mapped_column(nullable=False, default=False)
    last_validated_at: Mapped[str | None] = mapped_column(String(50), nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso, onupdate=utc_now_iso
    )

    __table_args__ = (
        Index("idx_courier_accounts_type", "courier_type"),
    )

    @property
    def settings(self) -> dict[str, str]:
        """Parse settings JSON into a dict."""
        try:
            data = json.loads(self.settings_json or "{}")
        except json.JSONDecodeError:
            return {}
        return {str(k): str(v) for k, v in data.items()} if isinstance(data, dict) else {}


class Shipment(Base):
    """Carrier shipment, keyed across systems by its AWB number."""

    __tablename__ = "shipments"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    order_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("orders.id", ondelete="SET NULL"), nullable=True
    )
    courier_account_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("courier_accounts.id", ondelete="SET NULL"), nullable=True
    )
    awb_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    courier_type: Mapped[str] = mapped_column(String(20), nullable=False)
    courier_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="created")
    carrier_status: Mapped[str | None] = mapped_column(String(255), nullable=True)
    current_location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    expected_delivery_at: Mapped[str | None] = mapped_column(String(50), nullable=True)
    picked_up_at: Mapped[str | None] = mapped_column(String(50), nullable=True)
    delivered_at: Mapped[str | None] = mapped_column(String(50), nullable=True)
    delivered_to: Mapped[str | None] = mapped_column(String(255), nullable=True)
    tracking_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    label_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    external_order_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    external_shipment_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_cod: Mapped[bool] = mapped_column(nullable=False, default=False)
    cod_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    freight_charge: Mapped[float | None] = mapped_column(Float, nullable=True)
    weight_kg: Mapped[float | None] = mapped_column(Float, nullable=True)
    last_tracked_at: Mapped[str | None] = mapped_column(String(50), nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso, onupdate=utc_now_iso
    )

    events: Mapped[list["ShipmentTrackingEvent"]] = relationship(
        "ShipmentTrackingEvent",
        back_populates="shipment",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ShipmentTrackingEvent.created_at",
    )
    order: Mapped[Optional["Order"]] = relationship("Order")

    __table_args__ = (
        Index("idx_shipments_status", "status"),
        Index("idx_shipments_last_tracked", "last_tracked_at"),
    )

    def __repr__(self) -> str:
        return f"<Shipment(awb={self.awb_number!r}, courier={self.courier_type!r}, status={self.status!r})>"


class ShipmentTrackingEvent(Base):
    """Tracking history entry recorded from a webhook or a poll."""

    __tablename__ = "shipment_tracking_events"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    shipment_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("shipments.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    carrier_status: Mapped[str | None] = mapped_column(String(255), nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    event_time: Mapped[str | None] = mapped_column(String(50), nullable=True)
    source: Mapped[str] = mapped_column(String(20), nullable=False, default="poll")
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    shipment: Mapped["Shipment"] = relationship("Shipment", back_populates="events")

    __table_args__ = (
        Index("idx_tracking_events_shipment", "shipment_id"),
    )
