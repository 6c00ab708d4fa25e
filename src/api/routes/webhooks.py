"""Webhook ingress for carriers and Shopify.

Carrier pushes are forwarded byte-for-byte to the matching normalizer and
applied to the shipment; carriers get a 200 acknowledgement even when the
payload is malformed or the AWB is unknown so they do not retry forever.
Shopify pushes are verified against the channel's webhook secret before
anything is parsed.
"""

import json
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_courier_factory, get_shopify_client_factory
from src.api.schemas import WebhookAck
from src.couriers.factory import CourierAdapterFactory
from src.couriers.models import CourierType
from src.db.connection import get_async_db
from src.errors import ShipSyncError
from src.services.channel_access import ShopifyClientFactory
from src.services.channel_service import ChannelService
from src.services.channel_sync_service import ChannelSyncService
from src.services.shipment_tracking_service import ShipmentTrackingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

ORDER_TOPICS = ("orders/create", "orders/updated")
UNINSTALLED_TOPIC = "app/uninstalled"


@router.post("/couriers/{courier}", response_model=WebhookAck)
async def courier_webhook(
    courier: str,
    request: Request,
    db: AsyncSession = Depends(get_async_db),
    factory: CourierAdapterFactory = Depends(get_courier_factory),
) -> WebhookAck:
    try:
        courier_type = CourierType(courier.lower())
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown courier '{courier}'")

    body = await request.body()
    event = await ShipmentTrackingService(db, factory=factory).apply_webhook(courier_type, body)
    if not event.success:
        logger.warning("%s webhook rejected: %s", courier_type.value, event.message)
    return WebhookAck(
        success=event.success,
        awb=event.awb,
        status=event.new_status.value if event.new_status else None,
        message=event.message,
    )


@router.post("/shopify/{channel_id}", response_model=WebhookAck)
async def shopify_webhook(
    channel_id: str,
    request: Request,
    x_shopify_topic: str | None = Header(None),
    x_shopify_hmac_sha256: str | None = Header(None),
    db: AsyncSession = Depends(get_async_db),
    factory: ShopifyClientFactory = Depends(get_shopify_client_factory),
):
    body = await request.body()
    channels = ChannelService(db, client_factory=factory)
    if not await channels.verify_webhook(channel_id, body, x_shopify_hmac_sha256):
        error = ShipSyncError.from_code("E-5001")
        logger.warning("Rejected Shopify webhook for channel %s: bad signature", channel_id)
        return JSONResponse(
            status_code=401,
            content={"code": error.code, "message": error.message, "remediation": error.remediation},
        )

    topic = (x_shopify_topic or "").lower()
    if topic == UNINSTALLED_TOPIC:
        await channels.handle_uninstalled(channel_id)
        return WebhookAck(success=True, message="Channel disconnected")

    if topic in ORDER_TOPICS:
        try:
            payload = json.loads(body)
        except json.JSONDecodeError as e:
            error = ShipSyncError.from_code("E-2003", message=str(e))
            return WebhookAck(success=False, message=error.message)
        result = await ChannelSyncService(db, client_factory=factory).import_webhook_order(
            channel_id, payload
        )
        return WebhookAck(
            success=not result.errors,
            message="; ".join(result.errors + result.conflicts) or None,
        )

    logger.info("Ignoring Shopify webhook topic %s for channel %s", topic or "<none>", channel_id)
    return WebhookAck(success=True, message=f"Topic {topic or '<none>'} ignored")
