"""Database module for ShipSync persistence."""

from src.db.connection import (
    AsyncSessionLocal,
    async_engine,
    async_init_db,
    close_async_db,
    get_async_db,
    get_async_db_context,
)
from src.db.models import (
    Base,
    CourierAccount,
    InventoryItem,
    MovementType,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
    Product,
    ProductVariant,
    SalesChannel,
    Shipment,
    ShipmentTrackingEvent,
    StockMovement,
    SyncStatus,
)

__all__ = [
    # Models
    "Base",
    "SalesChannel",
    "Order",
    "OrderItem",
    "Product",
    "ProductVariant",
    "InventoryItem",
    "StockMovement",
    "CourierAccount",
    "Shipment",
    "ShipmentTrackingEvent",
    # Enums
    "OrderStatus",
    "PaymentStatus",
    "SyncStatus",
    "MovementType",
    # Connection
    "async_engine",
    "AsyncSessionLocal",
    "get_async_db",
    "get_async_db_context",
    "async_init_db",
    "close_async_db",
]
