"""Service layer for ShipSync.

Channel sync and push, channel lifecycle, and shipment tracking.
"""

from src.services.channel_locks import ChannelLockRegistry, get_channel_locks
from src.services.channel_service import ChannelService
from src.services.channel_sync_service import ChannelSyncService
from src.services.inventory_push_service import InventoryPushResult, InventoryPushService
from src.services.order_push_service import OrderPushResult, OrderPushService
from src.services.shipment_tracking_service import ShipmentTrackingService
from src.services.sync_types import (
    CancellationToken,
    ChannelSyncResult,
    SyncEntity,
    SyncRunStatus,
)

__all__ = [
    "ChannelSyncService",
    "ChannelSyncResult",
    "SyncEntity",
    "SyncRunStatus",
    "CancellationToken",
    "ChannelLockRegistry",
    "get_channel_locks",
    "ChannelService",
    "OrderPushService",
    "OrderPushResult",
    "InventoryPushService",
    "InventoryPushResult",
    "ShipmentTrackingService",
]
