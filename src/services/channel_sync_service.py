"""Channel sync engine: import orders, products and inventory from Shopify.

Each public sync method:

1. Takes the channel's lock so runs against one channel never interleave.
2. Resolves the channel and a storefront client, failing fast (no network
   call) when the channel is unknown, disconnected or misconfigured.
3. Pages through the storefront until a page is empty, the provider has no
   next cursor, or the run's item cap is reached.
4. Upserts items one at a time; one item's failure is recorded and the run
   continues.
5. Commits once per page.

A product whose price was edited locally while the storefront price also
changed is flagged ``conflict``. Rows in ``conflict`` sync status are never
overwritten; they are counted as skipped and listed in
``ChannelSyncResult.conflicts`` until ``resolve_conflict`` clears them.
``local_only`` rows (kept local by a resolution) are skipped silently.

Example:
    async with get_async_db_context() as session:
        service = ChannelSyncService(session)
        result = await service.sync_orders(channel_id)
"""

import logging
from datetime import UTC, datetime, timedelta
from statistics import mean
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.channels.order_mapper import apply_order_updates, map_new_order, parse_money
from src.channels.shopify_client import ShopifyApiError, ShopifyClient
from src.config import SyncLimits, get_config
from src.db.models import (
    BRAND_MAX,
    CATEGORY_MAX,
    DESCRIPTION_MAX,
    IMAGE_URL_MAX,
    NAME_MAX,
    OPTION_NAME_MAX,
    OPTION_VALUE_MAX,
    SKU_MAX,
    ChannelType,
    InventoryItem,
    MovementType,
    Order,
    Product,
    ProductVariant,
    SalesChannel,
    StockMovement,
    SyncStatus,
    generate_uuid,
    utc_now_iso,
)
from src.errors import ShipSyncError
from src.errors.domain import NotFoundError, ValidationError
from src.services.channel_access import ShopifyClientFactory, load_connected_channel
from src.services.channel_locks import ChannelLockRegistry, get_channel_locks
from src.services.sync_types import (
    CancellationToken,
    ChannelSyncResult,
    SyncEntity,
    SyncRunStatus,
)
from src.utils.redaction import sanitize_error_message
from src.utils.text import strip_html, truncate, weight_to_kg

logger = logging.getLogger(__name__)

PLACEHOLDER_VARIANT_TITLE = "Default Title"
MOVEMENT_REFERENCE_TYPE = "SalesChannel"

RESOLVE_ACCEPT_CHANNEL = "accept_channel"
RESOLVE_KEEP_LOCAL = "keep_local"


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.isoformat()


def is_simple_product(shopify_product: dict[str, Any]) -> bool:
    """One variant that is the placeholder (or carries no option1)."""
    variants = shopify_product.get("variants") or []
    if len(variants) > 1:
        return False
    if not variants:
        return True
    only = variants[0]
    return only.get("title") == PLACEHOLDER_VARIANT_TITLE or not only.get("option1")


def _normalize_sku(raw_sku: str | None) -> str | None:
    sku = (raw_sku or "").strip().upper()
    return sku or None


def simple_product_sku(shopify_product: dict[str, Any]) -> str:
    variants = shopify_product.get("variants") or [{}]
    sku = _normalize_sku(variants[0].get("sku")) or f"SHOPIFY-{shopify_product['id']}"
    return truncate(sku, SKU_MAX)


def parent_product_sku(shopify_product: dict[str, Any]) -> str:
    return f"SHOPIFY-P{shopify_product['id']}"


def variant_sku(shopify_variant: dict[str, Any]) -> str:
    sku = _normalize_sku(shopify_variant.get("sku")) or f"SHOPIFY-{shopify_variant['id']}"
    return truncate(sku, SKU_MAX)


def _main_image(shopify_product: dict[str, Any]) -> str | None:
    image = shopify_product.get("image") or {}
    src = image.get("src")
    if not src:
        images = shopify_product.get("images") or []
        src = images[0].get("src") if images else None
    return truncate(src, IMAGE_URL_MAX)


def _variant_weight(shopify_variant: dict[str, Any]) -> float | None:
    weight = shopify_variant.get("weight")
    if not weight or float(weight) <= 0:
        return None
    return weight_to_kg(float(weight), shopify_variant.get("weight_unit"))


def _quantity(shopify_variant: dict[str, Any]) -> int:
    return int(shopify_variant.get("inventory_quantity") or 0)


def _str_id(value: Any) -> str | None:
    return str(value) if value not in (None, "", 0) else None


def _edited_locally(local: float | None, last_channel: float | None) -> bool:
    if local is None or last_channel is None:
        return False
    return round(local, 2) != round(last_channel, 2)


def _price_diverged(local: float | None, last_channel: float | None, incoming: float) -> bool:
    """Local and channel prices both moved off the last channel price, to different values."""
    if not _edited_locally(local, last_channel):
        return False
    incoming = round(incoming, 2)
    return incoming != round(last_channel, 2) and incoming != round(local, 2)


def _merged_price(local: float | None, last_channel: float | None, incoming: float) -> float:
    """Channel price unless the local price was edited and the channel's did not move."""
    if _edited_locally(local, last_channel) and round(incoming, 2) == round(last_channel, 2):
        return local
    return incoming


class ChannelSyncService:
    """Paginated, partial-failure-tolerant import from one storefront.

    Attributes:
        session: Async session used for lookups, upserts and page commits.
        limits: Page size, per-run item ceiling and inventory batch size.
    """

    def __init__(
        self,
        session: AsyncSession,
        limits: SyncLimits | None = None,
        client_factory: ShopifyClientFactory | None = None,
        locks: ChannelLockRegistry | None = None,
        key: bytes | None = None,
    ) -> None:
        self.session = session
        self.limits = limits or get_config().sync
        self._client_factory = client_factory
        self._locks = locks or get_channel_locks()
        self._key = key

    def _cap(self, channel_limit: int | None) -> int:
        """Items one run may process: the channel limit, never above the engine ceiling."""
        if channel_limit is None or channel_limit <= 0:
            return self.limits.max_items
        return min(channel_limit, self.limits.max_items)

    async def _connect(self, channel_id: str) -> tuple[SalesChannel, ShopifyClient]:
        return await load_connected_channel(
            self.session, channel_id, key=self._key, client_factory=self._client_factory
        )

    async def _record_outcome(
        self, channel: SalesChannel, result: ChannelSyncResult, timestamp_field: str
    ) -> None:
        now = utc_now_iso()
        setattr(channel, timestamp_field, now)
        if timestamp_field != "last_sync_at":
            channel.last_sync_at = now
        channel.last_sync_status = truncate(
            sanitize_error_message(result.channel_status_text), 500
        )
        await self.session.commit()

    @staticmethod
    def _provider_failure(result: ChannelSyncResult, error: ShopifyApiError, progressed: bool) -> None:
        result.errors.append(f"Shopify API error: {error.message}")
        if not progressed:
            result.status = SyncRunStatus.failed

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    async def sync_orders(
        self,
        channel_id: str,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
        cancel: CancellationToken | None = None,
    ) -> ChannelSyncResult:
        """Import orders modified in a window.

        Without ``from_date`` the channel's ``order_sync_days`` lookback is
        used; a null lookback means all history.
        """
        result = ChannelSyncResult(channel_id=channel_id, entity=SyncEntity.orders)
        async with self._locks.hold(channel_id):
            try:
                channel, client = await self._connect(channel_id)
            except ShipSyncError as e:
                logger.warning("Order sync for channel %s not started: %s", channel_id, e)
                return result.fail(e.message)

            if from_date is None and channel.order_sync_days:
                from_date = datetime.now(UTC) - timedelta(days=channel.order_sync_days)
            cap = self._cap(channel.order_sync_limit)
            logger.info(
                "Starting order sync for channel %s (from=%s, to=%s, cap=%d)",
                channel_id, _iso(from_date), _iso(to_date), cap,
            )

            processed = 0
            cancelled = False
            page_info: str | None = None
            try:
                while processed < cap:
                    if cancel is not None and cancel.is_cancelled:
                        cancelled = True
                        break
                    page = await client.list_orders_page(
                        updated_at_min=_iso(from_date),
                        updated_at_max=_iso(to_date),
                        limit=min(self.limits.page_size, cap - processed),
                        page_info=page_info,
                    )
                    if not page.items:
                        break
                    for shopify_order in page.items:
                        if processed >= cap:
                            break
                        if cancel is not None and cancel.is_cancelled:
                            cancelled = True
                            break
                        processed += 1
                        await self._upsert_order(channel, shopify_order, result)
                    await self.session.commit()
                    if cancelled or not page.has_next:
                        break
                    page_info = page.next_page_info
            except ShopifyApiError as e:
                logger.error("Order sync for channel %s stopped: %s", channel_id, e)
                self._provider_failure(result, e, progressed=processed > 0)

            result.finish(cancelled=cancelled)
            await self._record_outcome(channel, result, "last_sync_at")
            logger.info(
                "Order sync for channel %s finished %s: %d imported, %d updated, %d failed, %d skipped",
                channel_id, result.status.value, result.orders_imported,
                result.orders_updated, result.orders_failed, result.orders_skipped,
            )
            return result

    async def import_webhook_order(
        self, channel_id: str, shopify_order: dict[str, Any]
    ) -> ChannelSyncResult:
        """Upsert one order pushed by an ``orders/create``/``orders/updated`` webhook."""
        result = ChannelSyncResult(channel_id=channel_id, entity=SyncEntity.orders)
        async with self._locks.hold(channel_id):
            try:
                channel, _ = await self._connect(channel_id)
            except ShipSyncError as e:
                return result.fail(e.message)
            await self._upsert_order(channel, shopify_order, result)
            await self.session.commit()
            return result.finish()

    async def _upsert_order(
        self, channel: SalesChannel, shopify_order: dict[str, Any], result: ChannelSyncResult
    ) -> None:
        label = shopify_order.get("name") or shopify_order.get("id") or "?"
        try:
            external_id = str(shopify_order["id"])
            existing = (
                await self.session.execute(
                    select(Order).where(
                        Order.channel_id == channel.id,
                        Order.external_order_id == external_id,
                    )
                )
            ).scalar_one_or_none()

            if existing is None:
                self.session.add(map_new_order(shopify_order, channel.id))
                result.orders_imported += 1
                return

            if existing.sync_status == SyncStatus.conflict.value:
                result.orders_skipped += 1
                result.conflicts.append(f"Order {label}")
                return
            if existing.sync_status == SyncStatus.local_only.value:
                result.orders_skipped += 1
                return

            apply_order_updates(existing, shopify_order)
            result.orders_updated += 1
        except Exception as e:
            result.orders_failed += 1
            result.errors.append(f"Order {label}: {sanitize_error_message(str(e), 500)}")
            logger.warning("Failed to import order %s for channel %s: %s", label, channel.id, e)

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    async def sync_products(
        self, channel_id: str, cancel: CancellationToken | None = None
    ) -> ChannelSyncResult:
        """Import the catalogue.

        New SKUs get an InventoryItem seeded from the storefront quantity;
        existing inventory rows are left to ``sync_inventory``.
        """
        result = ChannelSyncResult(channel_id=channel_id, entity=SyncEntity.products)
        async with self._locks.hold(channel_id):
            try:
                channel, client = await self._connect(channel_id)
            except ShipSyncError as e:
                logger.warning("Product sync for channel %s not started: %s", channel_id, e)
                return result.fail(e.message)

            if channel.channel_type != ChannelType.shopify.value:
                result.status = SyncRunStatus.not_implemented
                result.errors.append(f"Product sync is not implemented for {channel.channel_type}")
                result.finished_at = utc_now_iso()
                return result
            if not channel.sync_products_enabled:
                return result.fail("Product sync is disabled for this channel")

            updated_at_min = None
            if channel.product_sync_days:
                updated_at_min = datetime.now(UTC) - timedelta(days=channel.product_sync_days)
            cap = self._cap(channel.product_sync_limit)

            products = {p.sku: p for p in (await self.session.execute(select(Product))).scalars()}
            variants = {
                v.sku: v for v in (await self.session.execute(select(ProductVariant))).scalars()
            }
            inventory = {
                i.sku: i for i in (await self.session.execute(select(InventoryItem))).scalars()
            }
            logger.info(
                "Starting product sync for channel %s (%d local products, cap=%d)",
                channel_id, len(products), cap,
            )

            processed = 0
            cancelled = False
            page_info: str | None = None
            try:
                while processed < cap:
                    if cancel is not None and cancel.is_cancelled:
                        cancelled = True
                        break
                    page = await client.list_products_page(
                        updated_at_min=_iso(updated_at_min),
                        limit=min(self.limits.page_size, cap - processed),
                        page_info=page_info,
                    )
                    if not page.items:
                        break
                    for shopify_product in page.items:
                        if processed >= cap:
                            break
                        if cancel is not None and cancel.is_cancelled:
                            cancelled = True
                            break
                        processed += 1
                        try:
                            self._upsert_product(
                                channel, shopify_product, products, variants, inventory, result
                            )
                        except Exception as e:
                            title = shopify_product.get("title") or shopify_product.get("id")
                            result.products_failed += 1
                            result.errors.append(
                                f"Product {title}: {sanitize_error_message(str(e), 500)}"
                            )
                            logger.warning("Failed to import product %s: %s", title, e)
                    await self.session.commit()
                    if cancelled or not page.has_next:
                        break
                    page_info = page.next_page_info
            except ShopifyApiError as e:
                logger.error("Product sync for channel %s stopped: %s", channel_id, e)
                self._provider_failure(result, e, progressed=processed > 0)

            result.finish(cancelled=cancelled)
            await self._record_outcome(channel, result, "last_product_sync_at")
            logger.info(
                "Product sync for channel %s finished %s: %d imported, %d updated, %d failed, %d skipped",
                channel_id, result.status.value, result.products_imported,
                result.products_updated, result.products_failed, result.products_skipped,
            )
            return result

    def _seed_inventory(
        self,
        sku: str,
        product: Product,
        variant: ProductVariant | None,
        shopify_variant: dict[str, Any],
        channel: SalesChannel,
        inventory: dict[str, InventoryItem],
        result: ChannelSyncResult,
    ) -> None:
        if sku in inventory:
            return
        quantity = _quantity(shopify_variant)
        item = InventoryItem(
            id=generate_uuid(),
            sku=sku,
            product=product,
            variant=variant,
            quantity_on_hand=quantity,
            external_inventory_item_id=_str_id(shopify_variant.get("inventory_item_id")),
            last_synced_at=utc_now_iso(),
        )
        self.session.add(item)
        inventory[sku] = item
        if quantity:
            self.session.add(
                StockMovement(
                    inventory_item=item,
                    sku=sku,
                    movement_type=MovementType.sync.value,
                    quantity=quantity,
                    quantity_before=0,
                    quantity_after=quantity,
                    reference_type=MOVEMENT_REFERENCE_TYPE,
                    reference_id=channel.id,
                    sync_run_id=result.run_id,
                    notes="Initial quantity from Shopify product import",
                )
            )

    @staticmethod
    def _restore(row: Product | ProductVariant) -> None:
        if row.deleted_at is not None:
            logger.info("Restored soft-deleted %s %s", type(row).__name__, row.sku)
            row.deleted_at = None
            row.deleted_by = None

    @staticmethod
    def _apply_catalogue_fields(product: Product, shopify_product: dict[str, Any], channel: SalesChannel) -> None:
        product.name = truncate(shopify_product.get("title") or product.sku, NAME_MAX)
        product.description = truncate(strip_html(shopify_product.get("body_html")), DESCRIPTION_MAX)
        product.category = truncate(shopify_product.get("product_type") or None, CATEGORY_MAX)
        product.brand = truncate(shopify_product.get("vendor") or None, BRAND_MAX)
        image = _main_image(shopify_product)
        if image:
            product.image_url = image
        product.is_active = (shopify_product.get("status") or "active") == "active"
        product.channel_id = channel.id
        product.external_product_id = str(shopify_product["id"])
        product.sync_status = SyncStatus.synced.value
        product.last_synced_at = utc_now_iso()

    def _upsert_product(
        self,
        channel: SalesChannel,
        shopify_product: dict[str, Any],
        products: dict[str, Product],
        variants: dict[str, ProductVariant],
        inventory: dict[str, InventoryItem],
        result: ChannelSyncResult,
    ) -> None:
        if not shopify_product.get("id"):
            raise ValueError("product payload has no id")
        simple = is_simple_product(shopify_product)
        sku = simple_product_sku(shopify_product) if simple else parent_product_sku(shopify_product)

        # Everything that can reject the payload runs before the session is touched.
        shopify_variants = shopify_product.get("variants") or []
        incoming: list[tuple[dict[str, Any], str, float | None, float | None]] = []
        if simple:
            first = shopify_variants[0] if shopify_variants else {}
            price = parse_money(first.get("price"))
            weight = _variant_weight(first)
        else:
            for shopify_variant in shopify_variants:
                raw_price = shopify_variant.get("price")
                incoming.append((
                    shopify_variant,
                    variant_sku(shopify_variant),
                    parse_money(raw_price) if raw_price is not None else None,
                    _variant_weight(shopify_variant),
                ))
            prices = [p for _, _, p, _ in incoming if p is not None and p > 0]
            price = round(mean(prices), 2) if prices else 0.0
            weight = None

        product = products.get(sku)
        if product is not None:
            if product.sync_status == SyncStatus.conflict.value:
                result.products_skipped += 1
                result.conflicts.append(f"Product {sku}")
                return
            if product.sync_status == SyncStatus.local_only.value:
                result.products_skipped += 1
                return
            if self._detect_price_conflict(product, price, incoming, variants):
                result.products_skipped += 1
                result.conflicts.append(f"Product {sku}")
                logger.warning(
                    "Product %s price changed locally and on channel %s; marked as conflict",
                    sku, channel.id,
                )
                return

        created = product is None
        if created:
            product = Product(id=generate_uuid(), sku=sku, name=sku, price=price)
            self.session.add(product)
            products[sku] = product
        else:
            self._restore(product)

        self._apply_catalogue_fields(product, shopify_product, channel)
        product.price = _merged_price(product.price, product.channel_price, price)
        product.channel_price = price
        product.has_variants = not simple
        if weight is not None:
            product.weight_kg = weight

        if simple:
            first = shopify_variants[0] if shopify_variants else {}
            self._seed_inventory(sku, product, None, first, channel, inventory, result)
        else:
            self._upsert_variants(product, shopify_product, incoming, variants, channel, inventory, result)

        if created:
            result.products_imported += 1
        else:
            result.products_updated += 1

    @staticmethod
    def _detect_price_conflict(
        product: Product,
        price: float,
        incoming: list[tuple[dict[str, Any], str, float | None, float | None]],
        variants: dict[str, ProductVariant],
    ) -> bool:
        """Flag the product when local and channel prices both moved.

        On a conflict the incoming channel prices are recorded so that
        ``accept_channel`` can apply them.
        """
        diverged = _price_diverged(product.price, product.channel_price, price)
        touched: list[tuple[ProductVariant, float]] = []
        for _, vsku, vprice, _ in incoming:
            variant = variants.get(vsku)
            if variant is None or vprice is None:
                continue
            touched.append((variant, vprice))
            diverged = diverged or _price_diverged(variant.price, variant.channel_price, vprice)
        if not diverged:
            return False

        product.sync_status = SyncStatus.conflict.value
        product.channel_price = price
        for variant, vprice in touched:
            variant.channel_price = vprice
        return True

    def _upsert_variants(
        self,
        product: Product,
        shopify_product: dict[str, Any],
        incoming: list[tuple[dict[str, Any], str, float | None, float | None]],
        variants: dict[str, ProductVariant],
        channel: SalesChannel,
        inventory: dict[str, InventoryItem],
        result: ChannelSyncResult,
    ) -> None:
        options = shopify_product.get("options") or []
        option_names = [truncate(o.get("name"), OPTION_NAME_MAX) for o in options[:3]]
        option_names += [None] * (3 - len(option_names))

        for shopify_variant, vsku, vprice, variant_weight in incoming:
            variant = variants.get(vsku)
            if variant is None:
                variant = ProductVariant(id=generate_uuid(), sku=vsku, name=vsku)
                variant.product = product
                self.session.add(variant)
                variants[vsku] = variant
            else:
                self._restore(variant)

            variant.name = truncate(shopify_variant.get("title") or vsku, NAME_MAX)
            for index in range(3):
                setattr(variant, f"option{index + 1}_name", option_names[index])
                setattr(
                    variant,
                    f"option{index + 1}_value",
                    truncate(shopify_variant.get(f"option{index + 1}"), OPTION_VALUE_MAX),
                )
            if vprice is not None:
                variant.price = _merged_price(variant.price, variant.channel_price, vprice)
                variant.channel_price = vprice
            if variant_weight is not None:
                variant.weight_kg = variant_weight
            variant.external_variant_id = _str_id(shopify_variant.get("id"))
            variant.external_inventory_item_id = _str_id(shopify_variant.get("inventory_item_id"))
            variant.is_active = product.is_active

            self._seed_inventory(vsku, product, variant, shopify_variant, channel, inventory, result)

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    async def get_locations(self, channel_id: str) -> list[dict[str, Any]]:
        """List the storefront's fulfillment locations.

        Raises:
            ShipSyncError: On configuration problems (E-1xxx).
            ShopifyApiError: If the storefront call fails.
        """
        _, client = await self._connect(channel_id)
        return await client.list_locations()

    @staticmethod
    def _primary_location(locations: list[dict[str, Any]]) -> dict[str, Any] | None:
        if not locations:
            return None
        return next((loc for loc in locations if loc.get("active", True)), locations[0])

    async def sync_inventory(
        self, channel_id: str, cancel: CancellationToken | None = None
    ) -> ChannelSyncResult:
        """Copy on-hand quantities at the primary location into local stock.

        Only differing quantities are written, each with one StockMovement.
        SKUs missing from the storefront's levels are skipped, never zeroed.
        """
        result = ChannelSyncResult(channel_id=channel_id, entity=SyncEntity.inventory)
        async with self._locks.hold(channel_id):
            try:
                channel, client = await self._connect(channel_id)
            except ShipSyncError as e:
                logger.warning("Inventory sync for channel %s not started: %s", channel_id, e)
                return result.fail(e.message)

            try:
                location = self._primary_location(await client.list_locations())
                if location is None:
                    result.fail(ShipSyncError.from_code("E-1006").message)
                    await self._record_outcome(channel, result, "last_inventory_sync_at")
                    return result
                location_id = str(location["id"])
                location_name = location.get("name") or location_id
                logger.info(
                    "Using location %s (%s) for inventory sync of channel %s",
                    location_name, location_id, channel_id,
                )

                sku_to_item_id, cancelled = await self._collect_inventory_ids(
                    client, self._cap(channel.inventory_sync_limit), cancel
                )
                levels: dict[str, int] = {}
                ids = list(dict.fromkeys(sku_to_item_id.values()))
                batch_size = self.limits.inventory_batch_size
                for start in range(0, len(ids), batch_size):
                    if cancelled or (cancel is not None and cancel.is_cancelled):
                        cancelled = True
                        break
                    for level in await client.list_inventory_levels(location_id, ids[start:start + batch_size]):
                        levels[str(level.get("inventory_item_id"))] = int(level.get("available") or 0)
            except ShopifyApiError as e:
                logger.error("Inventory sync for channel %s stopped: %s", channel_id, e)
                self._provider_failure(result, e, progressed=False)
                result.finish()
                await self._record_outcome(channel, result, "last_inventory_sync_at")
                return result

            if not cancelled:
                await self._apply_levels(
                    channel, sku_to_item_id, levels, location_id, location_name, result
                )
                await self.session.commit()

            result.finish(cancelled=cancelled)
            await self._record_outcome(channel, result, "last_inventory_sync_at")
            logger.info(
                "Inventory sync for channel %s finished %s: %d updated, %d skipped, %d failed",
                channel_id, result.status.value, result.inventory_updated,
                result.inventory_skipped, result.inventory_failed,
            )
            return result

    async def _collect_inventory_ids(
        self, client: ShopifyClient, cap: int, cancel: CancellationToken | None
    ) -> tuple[dict[str, str], bool]:
        """Page the catalogue into a SKU -> inventory item id map (capped)."""
        sku_to_item_id: dict[str, str] = {}
        seen = 0
        page_info: str | None = None
        while seen < cap:
            if cancel is not None and cancel.is_cancelled:
                return sku_to_item_id, True
            page = await client.list_products_page(
                limit=self.limits.page_size, page_info=page_info
            )
            if not page.items:
                break
            for shopify_product in page.items:
                simple = is_simple_product(shopify_product)
                for shopify_variant in shopify_product.get("variants") or []:
                    if seen >= cap:
                        break
                    seen += 1
                    item_id = _str_id(shopify_variant.get("inventory_item_id"))
                    if item_id is None:
                        continue
                    sku = simple_product_sku(shopify_product) if simple else variant_sku(shopify_variant)
                    sku_to_item_id.setdefault(sku, item_id)
            if not page.has_next:
                break
            page_info = page.next_page_info
        return sku_to_item_id, False

    async def _apply_levels(
        self,
        channel: SalesChannel,
        sku_to_item_id: dict[str, str],
        levels: dict[str, int],
        location_id: str,
        location_name: str,
        result: ChannelSyncResult,
    ) -> None:
        local = {
            item.sku.upper(): item
            for item in (await self.session.execute(select(InventoryItem))).scalars()
        }
        conflicted = set(
            (
                await self.session.execute(
                    select(Product.id).where(Product.sync_status == SyncStatus.conflict.value)
                )
            ).scalars()
        )

        for sku, item_id in sku_to_item_id.items():
            try:
                if item_id not in levels:
                    result.inventory_skipped += 1
                    continue
                item = local.get(sku)
                if item is None:
                    result.inventory_skipped += 1
                    logger.debug("SKU %s not found in local inventory, skipping", sku)
                    continue
                if item.product_id in conflicted:
                    result.inventory_skipped += 1
                    result.conflicts.append(f"Inventory {sku}")
                    continue

                new_quantity = levels[item_id]
                item.external_inventory_item_id = item_id
                if item.quantity_on_hand == new_quantity:
                    result.inventory_skipped += 1
                    continue

                before = item.quantity_on_hand
                item.quantity_on_hand = new_quantity
                item.location_name = truncate(location_name, 255)
                item.external_location_id = location_id
                item.last_synced_at = utc_now_iso()
                self.session.add(
                    StockMovement(
                        inventory_item_id=item.id,
                        sku=item.sku,
                        movement_type=MovementType.sync.value,
                        quantity=new_quantity - before,
                        quantity_before=before,
                        quantity_after=new_quantity,
                        reference_type=MOVEMENT_REFERENCE_TYPE,
                        reference_id=channel.id,
                        sync_run_id=result.run_id,
                        notes=f"Synced from Shopify location: {location_name}",
                    )
                )
                result.inventory_updated += 1
                logger.debug("Updated inventory for SKU %s: %d -> %d", sku, before, new_quantity)
            except Exception as e:
                result.inventory_failed += 1
                result.errors.append(f"SKU {sku}: {sanitize_error_message(str(e), 500)}")
                logger.warning("Failed to sync inventory for SKU %s: %s", sku, e)

    # ------------------------------------------------------------------
    # Conflicts
    # ------------------------------------------------------------------

    async def resolve_conflict(self, entity: SyncEntity | str, row_id: str, resolution: str) -> None:
        """Clear a conflict flag on an order or product.

        ``accept_channel`` marks the row synced and applies the recorded channel
        prices, so the next run overwrites it from the storefront.
        ``keep_local`` marks it local-only; runs then skip it.

        Raises:
            ValidationError: Unknown entity or resolution.
            NotFoundError: No such row.
        """
        try:
            entity = SyncEntity(entity)
        except ValueError as e:
            raise ValidationError(f"Unknown entity '{entity}'") from e
        model = {SyncEntity.orders: Order, SyncEntity.products: Product}.get(entity)
        if model is None:
            raise ValidationError(f"Conflicts cannot be resolved for {entity.value}")
        statuses = {
            RESOLVE_ACCEPT_CHANNEL: SyncStatus.synced,
            RESOLVE_KEEP_LOCAL: SyncStatus.local_only,
        }
        if resolution not in statuses:
            raise ValidationError(f"Unknown resolution '{resolution}'")

        row = await self.session.get(model, row_id)
        if row is None:
            raise NotFoundError(model.__name__, row_id)
        row.sync_status = statuses[resolution].value
        if isinstance(row, Product) and resolution == RESOLVE_ACCEPT_CHANNEL:
            for priced in (row, *row.variants):
                if priced.channel_price is not None:
                    priced.price = priced.channel_price
        await self.session.commit()
        logger.info("Resolved %s %s conflict as %s", entity.value, row_id, resolution)
