"""Pydantic schemas for API request/response validation.

This module defines the data contracts for the ShipSync REST API:
channel management, sync triggers, conflict resolution and push
endpoints. Webhook routes read raw bodies and have no request schema.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# Enums for API validation


class ConflictResolutionEnum(str, Enum):
    """How a flagged sync conflict is settled."""

    accept_channel = "accept_channel"
    keep_local = "keep_local"


# Channel schemas


class ChannelCreate(BaseModel):
    """Request schema for registering a Shopify store."""

    name: str = Field(..., min_length=1, max_length=255)
    store_url: str = Field(..., min_length=1, description="mystore.myshopify.com")
    order_sync_days: int | None = Field(7, ge=1, description="Order lookback; null for all history")


class CredentialsRequest(BaseModel):
    """Custom-app API credentials."""

    api_key: str = Field(..., min_length=1)
    api_secret: str = Field(..., min_length=1)


class AccessTokenRequest(BaseModel):
    """Admin API access token for a custom app."""

    access_token: str = Field(..., min_length=1)
    scopes: str | None = None


class OAuthCallbackRequest(BaseModel):
    """Values Shopify appends to the OAuth redirect."""

    code: str = Field(..., min_length=1)
    state: str | None = None


class ChannelResponse(BaseModel):
    """Response schema for a sales channel. Secrets are never included."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    channel_type: str
    store_url: str | None = None
    store_name: str | None = None
    is_active: bool
    is_connected: bool
    order_sync_days: int | None = None
    last_sync_at: str | None = None
    last_sync_status: str | None = None
    last_product_sync_at: str | None = None
    last_inventory_sync_at: str | None = None
    last_error: str | None = None
    created_at: str


class AuthorizationUrlResponse(BaseModel):
    """Shopify install URL to redirect the merchant to."""

    url: str


# Sync schemas


class SyncOrdersRequest(BaseModel):
    """Optional window for an order sync; defaults to the channel lookback."""

    from_date: str | None = Field(None, description="ISO8601 lower bound on updated_at")
    to_date: str | None = Field(None, description="ISO8601 upper bound on updated_at")


class SyncResultResponse(BaseModel):
    """Outcome of one sync run."""

    channel_id: str
    entity: str
    run_id: str
    status: str
    started_at: str
    finished_at: str | None = None
    orders_imported: int = 0
    orders_updated: int = 0
    orders_failed: int = 0
    orders_skipped: int = 0
    products_imported: int = 0
    products_updated: int = 0
    products_failed: int = 0
    products_skipped: int = 0
    inventory_updated: int = 0
    inventory_failed: int = 0
    inventory_skipped: int = 0
    errors: list[str] = Field(default_factory=list)
    conflicts: list[str] = Field(default_factory=list)


class ConflictResolveRequest(BaseModel):
    """Settle one flagged order or product."""

    entity: str = Field(..., description="orders or products")
    row_id: str = Field(..., min_length=1)
    resolution: ConflictResolutionEnum


class LocationResponse(BaseModel):
    """Storefront stock location."""

    id: str
    name: str | None = None
    active: bool = True


# Push schemas


class InventoryPushRequest(BaseModel):
    """Quantities to set on the storefront, keyed by SKU."""

    quantities: dict[str, int] = Field(..., min_length=1)


class InventoryPushItem(BaseModel):
    """Per-SKU push outcome."""

    sku: str
    success: bool
    quantity: int | None = None
    error_message: str | None = None
    error_code: str | None = None


class InventoryPushResponse(BaseModel):
    """Batch inventory push outcome."""

    pushed: int
    failed: int
    results: list[InventoryPushItem]


class OrderPushResponse(BaseModel):
    """Order create/update outcome."""

    success: bool
    external_order_id: str | None = None
    external_order_number: str | None = None
    error_message: str | None = None
    error_code: str | None = None


# Webhook schemas


class WebhookAck(BaseModel):
    """Acknowledgement returned to carriers and Shopify."""

    success: bool
    awb: str | None = None
    status: str | None = None
    message: str | None = None

