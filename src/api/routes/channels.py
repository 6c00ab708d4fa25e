"""API routes for sales channel management and sync triggers.

Channel lifecycle (create, credentials, OAuth, disconnect), sync runs per
entity, conflict resolution and the push endpoints. Sync runs execute in
the request and return the run summary; a channel that is already syncing
answers 409 instead of queueing behind the running job.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_shopify_client_factory
from src.api.schemas import (
    AccessTokenRequest,
    AuthorizationUrlResponse,
    ChannelCreate,
    ChannelResponse,
    ConflictResolveRequest,
    CredentialsRequest,
    InventoryPushItem,
    InventoryPushRequest,
    InventoryPushResponse,
    LocationResponse,
    OAuthCallbackRequest,
    OrderPushResponse,
    SyncOrdersRequest,
    SyncResultResponse,
)
from src.db.connection import get_async_db
from src.db.models import Order
from src.errors.domain import NotFoundError, SyncInProgressError, ValidationError
from src.services.channel_access import ShopifyClientFactory, get_channel
from src.services.channel_locks import get_channel_locks
from src.services.channel_service import ChannelService
from src.services.channel_sync_service import ChannelSyncService
from src.services.inventory_push_service import InventoryPushService
from src.services.order_push_service import OrderPushService
from src.services.sync_types import ChannelSyncResult, SyncEntity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/channels", tags=["channels"])


def _parse_datetime(value: str | None, field: str) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise ValidationError(f"{field} is not an ISO8601 timestamp: {value}") from e


def _sync_response(result: ChannelSyncResult) -> SyncResultResponse:
    return SyncResultResponse(**result.to_dict())


@router.post("", response_model=ChannelResponse, status_code=201)
async def create_channel(
    body: ChannelCreate,
    db: AsyncSession = Depends(get_async_db),
) -> ChannelResponse:
    channel = await ChannelService(db).create_channel(
        body.name, body.store_url, body.order_sync_days
    )
    return ChannelResponse.model_validate(channel)


@router.get("/{channel_id}", response_model=ChannelResponse)
async def get_channel_detail(
    channel_id: str,
    db: AsyncSession = Depends(get_async_db),
) -> ChannelResponse:
    return ChannelResponse.model_validate(await get_channel(db, channel_id))


@router.put("/{channel_id}/credentials", response_model=ChannelResponse)
async def save_credentials(
    channel_id: str,
    body: CredentialsRequest,
    db: AsyncSession = Depends(get_async_db),
) -> ChannelResponse:
    channel = await ChannelService(db).save_credentials(channel_id, body.api_key, body.api_secret)
    return ChannelResponse.model_validate(channel)


@router.put("/{channel_id}/token", response_model=ChannelResponse)
async def save_access_token(
    channel_id: str,
    body: AccessTokenRequest,
    db: AsyncSession = Depends(get_async_db),
    factory: ShopifyClientFactory = Depends(get_shopify_client_factory),
) -> ChannelResponse:
    service = ChannelService(db, client_factory=factory)
    channel = await service.save_access_token(channel_id, body.access_token, body.scopes)
    return ChannelResponse.model_validate(channel)


@router.get("/{channel_id}/oauth/url", response_model=AuthorizationUrlResponse)
async def get_authorization_url(
    channel_id: str,
    db: AsyncSession = Depends(get_async_db),
    factory: ShopifyClientFactory = Depends(get_shopify_client_factory),
) -> AuthorizationUrlResponse:
    url = await ChannelService(db, client_factory=factory).get_authorization_url(channel_id)
    return AuthorizationUrlResponse(url=url)


@router.post("/{channel_id}/oauth/callback", response_model=ChannelResponse)
async def oauth_callback(
    channel_id: str,
    body: OAuthCallbackRequest,
    request: Request,
    db: AsyncSession = Depends(get_async_db),
    factory: ShopifyClientFactory = Depends(get_shopify_client_factory),
) -> ChannelResponse:
    """Complete the install; Shopify's signed query string is verified when present."""
    params = dict(request.query_params)
    channel = await ChannelService(db, client_factory=factory).complete_oauth(
        channel_id,
        body.code,
        state=body.state,
        callback_params=params if "hmac" in params else None,
    )
    return ChannelResponse.model_validate(channel)


@router.post("/{channel_id}/disconnect", response_model=ChannelResponse)
async def disconnect_channel(
    channel_id: str,
    db: AsyncSession = Depends(get_async_db),
    factory: ShopifyClientFactory = Depends(get_shopify_client_factory),
) -> ChannelResponse:
    channel = await ChannelService(db, client_factory=factory).disconnect(channel_id)
    return ChannelResponse.model_validate(channel)


@router.post("/{channel_id}/sync/{entity}", response_model=SyncResultResponse)
async def trigger_sync(
    channel_id: str,
    entity: str,
    body: SyncOrdersRequest | None = None,
    db: AsyncSession = Depends(get_async_db),
    factory: ShopifyClientFactory = Depends(get_shopify_client_factory),
) -> SyncResultResponse:
    """Run one sync for ``orders``, ``products`` or ``inventory``.

    Raises:
        ValidationError: Unknown entity or malformed dates (400).
        SyncInProgressError: Another run holds the channel (409).
    """
    try:
        sync_entity = SyncEntity(entity)
    except ValueError as e:
        raise ValidationError(f"Unknown sync entity '{entity}'") from e
    await get_channel(db, channel_id)
    if get_channel_locks().is_locked(channel_id):
        raise SyncInProgressError(channel_id)

    service = ChannelSyncService(db, client_factory=factory)
    if sync_entity == SyncEntity.orders:
        window = body or SyncOrdersRequest()
        result = await service.sync_orders(
            channel_id,
            from_date=_parse_datetime(window.from_date, "from_date"),
            to_date=_parse_datetime(window.to_date, "to_date"),
        )
    elif sync_entity == SyncEntity.products:
        result = await service.sync_products(channel_id)
    else:
        result = await service.sync_inventory(channel_id)
    return _sync_response(result)


@router.get("/{channel_id}/locations", response_model=list[LocationResponse])
async def list_locations(
    channel_id: str,
    db: AsyncSession = Depends(get_async_db),
    factory: ShopifyClientFactory = Depends(get_shopify_client_factory),
) -> list[LocationResponse]:
    locations = await ChannelSyncService(db, client_factory=factory).get_locations(channel_id)
    return [
        LocationResponse(id=str(loc["id"]), name=loc.get("name"), active=loc.get("active", True))
        for loc in locations
    ]


@router.post("/{channel_id}/conflicts/resolve", status_code=204)
async def resolve_conflict(
    channel_id: str,
    body: ConflictResolveRequest,
    db: AsyncSession = Depends(get_async_db),
) -> None:
    await get_channel(db, channel_id)
    await ChannelSyncService(db).resolve_conflict(body.entity, body.row_id, body.resolution.value)


@router.post("/{channel_id}/inventory/push", response_model=InventoryPushResponse)
async def push_inventory(
    channel_id: str,
    body: InventoryPushRequest,
    db: AsyncSession = Depends(get_async_db),
    factory: ShopifyClientFactory = Depends(get_shopify_client_factory),
) -> InventoryPushResponse:
    service = InventoryPushService(db, client_factory=factory)
    results = await service.push_inventory_batch(channel_id, body.quantities)
    items = [
        InventoryPushItem(
            sku=r.sku,
            success=r.success,
            quantity=r.quantity,
            error_message=r.error_message,
            error_code=r.error_code,
        )
        for r in results
    ]
    pushed = sum(1 for r in results if r.success)
    return InventoryPushResponse(pushed=pushed, failed=len(results) - pushed, results=items)


@router.post("/{channel_id}/orders/{order_id}/push", response_model=OrderPushResponse)
async def push_order(
    channel_id: str,
    order_id: str,
    db: AsyncSession = Depends(get_async_db),
    factory: ShopifyClientFactory = Depends(get_shopify_client_factory),
) -> OrderPushResponse:
    """Create the order on the storefront, or update it if already linked."""
    order = await db.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order", order_id)

    service = OrderPushService(db, client_factory=factory)
    if order.external_order_id:
        result = await service.update_order(channel_id, order.external_order_id, order)
    else:
        result = await service.create_order(channel_id, order)
    if result.success:
        await db.commit()
    return OrderPushResponse(
        success=result.success,
        external_order_id=result.external_order_id,
        external_order_number=result.external_order_number,
        error_message=result.error_message,
        error_code=result.error_code,
    )
