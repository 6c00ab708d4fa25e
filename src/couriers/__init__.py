"""Courier integration layer: normalized models, adapters and webhooks."""

from src.couriers.base import CourierAdapter
from src.couriers.factory import CourierAdapterFactory, build_default_factory
from src.couriers.models import (
    ACTIVE_SHIPMENT_STATUSES,
    CourierCredentials,
    CourierRate,
    CourierType,
    PickupRequest,
    PickupResponse,
    RateRequest,
    ShipmentItem,
    ShipmentRequest,
    ShipmentResponse,
    ShipmentStatus,
    TrackingEvent,
    TrackingResponse,
    WebhookEvent,
)
from src.couriers.result import CourierResult
from src.couriers.webhooks import get_webhook_normalizer

__all__ = [
    "ACTIVE_SHIPMENT_STATUSES",
    "CourierAdapter",
    "CourierAdapterFactory",
    "CourierCredentials",
    "CourierRate",
    "CourierResult",
    "CourierType",
    "PickupRequest",
    "PickupResponse",
    "RateRequest",
    "ShipmentItem",
    "ShipmentRequest",
    "ShipmentResponse",
    "ShipmentStatus",
    "TrackingEvent",
    "TrackingResponse",
    "WebhookEvent",
    "build_default_factory",
    "get_webhook_normalizer",
]
