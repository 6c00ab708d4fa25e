"""Push local on-hand quantities to the storefront's primary location."""

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.channels.shopify_client import ShopifyApiError, ShopifyClient
from src.db.models import InventoryItem, utc_now_iso
from src.errors import ShipSyncError
from src.services.channel_access import ShopifyClientFactory, load_connected_channel

logger = logging.getLogger(__name__)


@dataclass
class InventoryPushResult:
    """Outcome for one SKU."""

    sku: str
    success: bool
    quantity: int | None = None
    error_message: str | None = None
    error_code: str | None = None


class InventoryPushService:
    """Set storefront inventory levels from local quantities."""

    def __init__(
        self,
        session: AsyncSession,
        client_factory: ShopifyClientFactory | None = None,
        key: bytes | None = None,
    ) -> None:
        self.session = session
        self._client_factory = client_factory
        self._key = key

    async def push_inventory(self, channel_id: str, sku: str, quantity: int) -> InventoryPushResult:
        results = await self.push_inventory_batch(channel_id, {sku: quantity})
        return results[0]

    async def push_inventory_batch(
        self, channel_id: str, quantities: dict[str, int]
    ) -> list[InventoryPushResult]:
        """Push several SKUs; one SKU failing does not stop the rest.

        A configuration problem fails every SKU with the same message and
        makes no storefront call.
        """
        skus = list(quantities)
        try:
            _, client = await load_connected_channel(
                self.session, channel_id, key=self._key, client_factory=self._client_factory
            )
            location_id = await self._primary_location_id(client)
        except (ShipSyncError, ShopifyApiError) as e:
            return [InventoryPushResult(sku, False, error_message=e.message, error_code=e.code) for sku in skus]

        items = {
            item.sku.upper(): item
            for item in (
                await self.session.execute(
                    select(InventoryItem).where(InventoryItem.sku.in_([s.upper() for s in skus]))
                )
            ).scalars()
        }

        results = []
        for sku in skus:
            quantity = quantities[sku]
            item = items.get(sku.upper())
            if item is None or not item.external_inventory_item_id:
                results.append(
                    InventoryPushResult(
                        sku, False, error_message=f"SKU {sku} is not linked to a Shopify inventory item",
                        error_code="E-2001",
                    )
                )
                continue
            try:
                await client.set_inventory_level(location_id, item.external_inventory_item_id, quantity)
            except ShopifyApiError as e:
                logger.warning("Inventory push for SKU %s failed: %s", sku, e.message)
                results.append(InventoryPushResult(sku, False, error_message=e.message, error_code=e.code))
                continue
            item.external_location_id = location_id
            item.last_synced_at = utc_now_iso()
            results.append(InventoryPushResult(sku, True, quantity=quantity))

        await self.session.commit()
        logger.info(
            "Pushed inventory for channel %s: %d of %d SKUs succeeded",
            channel_id, sum(r.success for r in results), len(results),
        )
        return results

    @staticmethod
    async def _primary_location_id(client: ShopifyClient) -> str:
        locations = await client.list_locations()
        if not locations:
            raise ShipSyncError.from_code("E-1006")
        primary = next((loc for loc in locations if loc.get("active", True)), locations[0])
        return str(primary["id"])
