"""Normalized courier types shared by every carrier adapter.

Adapters translate carrier-specific payloads into these models so the rest
of the system sees one shape for rates, shipments, tracking and pickups.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class CourierType(str, Enum):
    """Supported shipping carriers."""

    SHIPROCKET = "shiprocket"
    DELHIVERY = "delhivery"
    BLUEDART = "bluedart"
    DTDC = "dtdc"


class ShipmentStatus(str, Enum):
    """Canonical shipment lifecycle.

    Created -> Manifested -> PickedUp -> InTransit -> OutForDelivery ->
    {Delivered | DeliveryFailed | Lost}; DeliveryFailed -> {RTOInitiated ->
    RTODelivered | OutForDelivery}; any state -> Cancelled.
    """

    CREATED = "created"
    MANIFESTED = "manifested"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    DELIVERY_FAILED = "delivery_failed"
    LOST = "lost"
    RTO_INITIATED = "rto_initiated"
    RTO_DELIVERED = "rto_delivered"
    CANCELLED = "cancelled"


ACTIVE_SHIPMENT_STATUSES: frozenset[ShipmentStatus] = frozenset({
    ShipmentStatus.PICKED_UP,
    ShipmentStatus.IN_TRANSIT,
    ShipmentStatus.OUT_FOR_DELIVERY,
})


class CourierCredentials(BaseModel):
    """Carrier account key material.

    The two generic slots are reused per carrier: Shiprocket stores the
    login email/password, BlueDart the login id/license key, Delhivery and
    DTDC an API key in ``api_key``. ``settings`` is the open map persisted
    with the account; adapters convert it to a typed settings object
    before use.
    """

    api_key: str | None = Field(None, description="Primary key / login identifier")
    api_secret: str | None = Field(None, description="Secret / password / license key")
    access_token: str | None = Field(None, description="Cached session token")
    account_id: str | None = Field(None, description="Carrier account id")
    channel_id: str | None = Field(None, description="Carrier-side channel id")
    settings: dict[str, str] = Field(default_factory=dict, description="Carrier settings map")


class RateRequest(BaseModel):
    """Rate query for one parcel."""

    pickup_pincode: str = Field(..., min_length=1, description="Origin pincode")
    delivery_pincode: str = Field(..., min_length=1, description="Destination pincode")
    weight: float = Field(..., gt=0, description="Dead weight in kg")
    length: float | None = Field(None, description="Length in cm")
    width: float | None = Field(None, description="Width in cm")
    height: float | None = Field(None, description="Height in cm")
    declared_value: float | None = Field(None, description="Declared value in INR")
    is_cod: bool = False
    cod_amount: float | None = Field(None, description="Amount to collect on delivery")


class CourierRate(BaseModel):
    """One candidate service returned by a rate query. Never persisted."""

    model_config = ConfigDict(frozen=True)

    service_code: str
    service_name: str
    freight_charge: float
    cod_charge: float = 0.0
    total_charge: float
    estimated_days: int | None = None
    expected_delivery: datetime | None = None
    is_express: bool = False
    is_surface: bool = False
    is_estimate: bool = Field(False, description="True for locally computed fallback tariffs")


class ShipmentItem(BaseModel):
    """Line item carried in a shipment request."""

    name: str
    sku: str | None = None
    quantity: int = Field(1, ge=1)
    unit_price: float = 0.0


class ShipmentRequest(BaseModel):
    """Normalized shipment creation input."""

    order_id: str = Field(..., description="Internal order reference (idempotency key)")
    order_number: str = Field(..., description="Human-readable order number")

    pickup_name: str
    pickup_phone: str
    pickup_address: str
    pickup_city: str
    pickup_state: str
    pickup_pincode: str

    delivery_name: str
    delivery_phone: str
    delivery_email: str | None = None
    delivery_address: str
    delivery_address2: str | None = None
    delivery_city: str
    delivery_state: str
    delivery_pincode: str

    weight: float = Field(..., gt=0, description="Weight in kg")
    length: float | None = None
    width: float | None = None
    height: float | None = None

    is_cod: bool = False
    cod_amount: float | None = None
    declared_value: float = 0.0
    items: list[ShipmentItem] = Field(default_factory=list)

    service_code: str | None = Field(None, description="Carrier service chosen from a rate query")
    is_express: bool = False


class ShipmentResponse(BaseModel):
    """Normalized shipment creation output. AWB is the cross-system join key."""

    awb_number: str
    courier_name: str | None = None
    shipment_id: str | None = None
    label_url: str | None = None
    tracking_url: str | None = None
    freight_charge: float | None = None
    expected_delivery: datetime | None = None
    external_order_id: str | None = None
    external_shipment_id: str | None = None


class TrackingEvent(BaseModel):
    """One scan in a shipment's history."""

    timestamp: datetime | None = None
    status: str = Field(..., description="Carrier status text or code")
    mapped_status: ShipmentStatus | None = None
    location: str | None = None
    remarks: str | None = None


class TrackingResponse(BaseModel):
    """Current shipment state. ``current_status`` is None for unmapped codes."""

    awb: str
    current_status: ShipmentStatus | None = None
    carrier_status: str | None = Field(None, description="Raw carrier status code/text")
    current_location: str | None = None
    expected_delivery: datetime | None = None
    delivered_at: datetime | None = None
    delivered_to: str | None = None
    events: list[TrackingEvent] = Field(default_factory=list)


class PickupRequest(BaseModel):
    """Pickup booking for one or more AWBs."""

    awb_numbers: list[str] = Field(..., min_length=1)
    pickup_date: datetime
    pickup_time_slot: str | None = None
    warehouse_id: str | None = None
    expected_package_count: int | None = None


class PickupResponse(BaseModel):
    """Confirmed pickup booking."""

    pickup_id: str
    scheduled_date: datetime | None = None
    time_slot: str | None = None
    shipment_count: int = 0


class WebhookEvent(BaseModel):
    """Common output of every carrier webhook normalizer."""

    success: bool
    awb: str | None = None
    external_order_id: str | None = None
    new_status: ShipmentStatus | None = None
    carrier_status: str | None = None
    location: str | None = None
    remarks: str | None = None
    event_time: datetime | None = None
    delivered_to: str | None = None
    message: str | None = None
