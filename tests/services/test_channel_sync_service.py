"""Tests for ChannelSyncService order, product and inventory imports."""

import asyncio
from datetime import datetime

import httpx
import pytest
from sqlalchemy import select

from src.channels.shopify_client import ShopifyApiError
from src.config import SyncLimits
from src.db.models import (
    InventoryItem,
    Order,
    Product,
    ProductVariant,
    StockMovement,
    SyncStatus,
)
from src.errors import ShipSyncError
from src.errors.domain import NotFoundError, ValidationError
from src.services.channel_sync_service import (
    ChannelSyncService,
    is_simple_product,
    parent_product_sku,
    simple_product_sku,
    variant_sku,
)
from src.services.sync_types import CancellationToken, SyncEntity, SyncRunStatus
from tests.helpers import FakeShopifyStore, shopify_order, simple_product, variant_product


async def _all(session, model):
    return (await session.execute(select(model))).scalars().all()


def _repriced(product: dict, *prices: str) -> dict:
    for variant, price in zip(product["variants"], prices):
        variant["price"] = price
    return product


@pytest.fixture
def service(db_session, store, locks, key):
    return ChannelSyncService(
        db_session, limits=SyncLimits(), client_factory=store.factory, locks=locks, key=key
    )


class TestSkuRules:
    def test_placeholder_variant_is_simple(self):
        assert is_simple_product(simple_product())
        assert is_simple_product({"id": 1, "variants": []})
        assert not is_simple_product(variant_product())

    def test_simple_sku_uppercased(self):
        assert simple_product_sku(simple_product(sku=" mug-01 ")) == "MUG-01"

    def test_simple_sku_fallback(self):
        assert simple_product_sku(simple_product(product_id=7, sku="")) == "SHOPIFY-7"

    def test_parent_and_variant_skus(self):
        product = variant_product(301)
        assert parent_product_sku(product) == "SHOPIFY-P301"
        assert [variant_sku(v) for v in product["variants"]] == ["TSHIRT-M", "SHOPIFY-3012"]


class TestOrderSync:
    async def test_imports_then_updates(self, service, store, channel, db_session):
        store.orders = [shopify_order(1001), shopify_order(1002)]
        store.page_size = 1

        first = await service.sync_orders(channel.id)

        assert first.status == SyncRunStatus.completed
        assert (first.orders_imported, first.orders_updated) == (2, 0)
        assert store.call_count("list_orders_page") == 2
        assert channel.last_sync_status == "Success"
        assert channel.last_sync_at is not None

        store.orders[0] = shopify_order(1001, fulfillment_status="fulfilled")
        second = await service.sync_orders(channel.id)

        assert (second.orders_imported, second.orders_updated) == (0, 2)
        orders = {o.external_order_id: o for o in await _all(db_session, Order)}
        assert len(orders) == 2
        assert orders["1001"].status == "shipped"
        assert len(orders["1001"].items) == 1

    async def test_default_window_uses_channel_lookback(self, service, store, channel):
        await service.sync_orders(channel.id)

        [call] = store.calls_to("list_orders_page")
        assert call.arguments["updated_at_min"] is not None
        assert call.arguments["updated_at_max"] is None

    async def test_explicit_window(self, service, store, channel):
        await service.sync_orders(
            channel.id, from_date=datetime(2024, 1, 1), to_date=datetime(2024, 2, 1)
        )

        call = store.calls_to("list_orders_page")[0]
        assert call.arguments["updated_at_min"] == "2024-01-01T00:00:00+00:00"
        assert call.arguments["updated_at_max"] == "2024-02-01T00:00:00+00:00"

    async def test_null_lookback_fetches_all_history(self, service, store, channel, db_session):
        channel.order_sync_days = None
        await db_session.commit()

        await service.sync_orders(channel.id)

        assert store.calls_to("list_orders_page")[0].arguments["updated_at_min"] is None

    async def test_bad_order_does_not_stop_run(self, service, store, channel, db_session):
        store.orders = [shopify_order(1001), shopify_order(1002, created_at="not-a-date"), shopify_order(1003)]

        result = await service.sync_orders(channel.id)

        assert result.status == SyncRunStatus.completed_with_errors
        assert (result.orders_imported, result.orders_failed) == (2, 1)
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Order #1002:")
        assert channel.last_sync_status == "CompletedWithErrors"
        assert len(await _all(db_session, Order)) == 2

    async def test_channel_limit_caps_run(self, service, store, channel, db_session):
        store.orders = [shopify_order(1000 + i) for i in range(5)]
        store.page_size = 2
        channel.order_sync_limit = 3
        await db_session.commit()

        result = await service.sync_orders(channel.id)

        assert result.orders_imported == 3
        assert [c.arguments["limit"] for c in store.calls_to("list_orders_page")] == [3, 1]

    async def test_engine_ceiling_caps_channel_limit(self, db_session, store, locks, key, channel):
        store.orders = [shopify_order(1000 + i) for i in range(5)]
        channel.order_sync_limit = 100
        await db_session.commit()
        service = ChannelSyncService(
            db_session, limits=SyncLimits(max_items=2), client_factory=store.factory, locks=locks, key=key
        )

        result = await service.sync_orders(channel.id)

        assert result.orders_imported == 2

    async def test_provider_failure_before_progress_fails_run(self, service, store, channel):
        store.fail("list_orders_page")

        result = await service.sync_orders(channel.id)

        assert result.status == SyncRunStatus.failed
        assert result.errors == ["Shopify API error: Internal Server Error"]
        assert channel.last_sync_status == "Failed: Shopify API error: Internal Server Error"

    async def test_provider_failure_keeps_committed_pages(self, service, store, channel, db_session):
        store.orders = [shopify_order(1001), shopify_order(1002)]
        store.page_size = 1
        store.fail("list_orders_page", ShopifyApiError("Throttled", 429, "E-3003"), after=1)

        result = await service.sync_orders(channel.id)

        assert result.status == SyncRunStatus.completed_with_errors
        assert result.orders_imported == 1
        assert len(await _all(db_session, Order)) == 1

    async def test_disconnected_channel_fails_without_network(self, service, store, channel, db_session):
        channel.is_connected = False
        await db_session.commit()

        result = await service.sync_orders(channel.id)

        assert result.status == SyncRunStatus.failed
        assert result.errors == [ShipSyncError.from_code("E-1002").message]
        assert store.tokens == []
        assert channel.last_sync_status is None

    async def test_unknown_channel(self, service, store):
        result = await service.sync_orders("missing")

        assert result.status == SyncRunStatus.failed
        assert result.errors == ["Channel not found"]
        assert store.calls == []

    async def test_missing_token(self, service, channel, db_session):
        channel.access_token = None
        await db_session.commit()

        result = await service.sync_orders(channel.id)

        assert result.errors == [ShipSyncError.from_code("E-1003").message]

    async def test_conflicted_order_skipped(self, service, store, channel, db_session):
        store.orders = [shopify_order(1001, financial_status="pending")]
        await service.sync_orders(channel.id)
        [order] = await _all(db_session, Order)
        order.sync_status = SyncStatus.conflict.value
        await db_session.commit()

        store.orders = [shopify_order(1001, financial_status="paid")]
        result = await service.sync_orders(channel.id)

        assert result.orders_skipped == 1
        assert result.conflicts == ["Order #1001"]
        assert result.status == SyncRunStatus.completed
        assert order.payment_status == "pending"

    async def test_cancel_before_start(self, service, store, channel):
        store.orders = [shopify_order(1001)]
        token = CancellationToken()
        token.cancel()

        result = await service.sync_orders(channel.id, cancel=token)

        assert result.status == SyncRunStatus.cancelled
        assert store.calls == []
        assert channel.last_sync_status == "Cancelled"

    async def test_cancel_between_pages(self, db_session, locks, key, channel):
        token = CancellationToken()

        class CancellingStore(FakeShopifyStore):
            async def list_orders_page(self, **kwargs):
                page = await super().list_orders_page(**kwargs)
                if kwargs.get("page_info"):
                    token.cancel()
                return page

        store = CancellingStore(orders=[shopify_order(1001), shopify_order(1002)], page_size=1)
        service = ChannelSyncService(
            db_session, limits=SyncLimits(), client_factory=store.factory, locks=locks, key=key
        )

        result = await service.sync_orders(channel.id, cancel=token)

        assert result.status == SyncRunStatus.cancelled
        assert result.orders_imported == 1
        assert len(await _all(db_session, Order)) == 1

    async def test_waits_for_running_sync(self, service, locks, channel):
        async with locks.hold(channel.id):
            task = asyncio.create_task(service.sync_orders(channel.id))
            await asyncio.sleep(0)
            assert not task.done()
        result = await task

        assert result.status == SyncRunStatus.completed

    async def test_webhook_order_import(self, service, store, channel, db_session):
        result = await service.import_webhook_order(channel.id, shopify_order(2001))

        assert result.orders_imported == 1
        assert result.status == SyncRunStatus.completed
        [order] = await _all(db_session, Order)
        assert order.external_order_number == "#2001"
        assert store.calls == []


class TestProductSync:
    async def test_imports_simple_and_variant_products(self, service, store, channel, db_session):
        store.products = [simple_product(), variant_product()]

        result = await service.sync_products(channel.id)

        assert result.status == SyncRunStatus.completed
        assert result.products_imported == 2
        products = {p.sku: p for p in await _all(db_session, Product)}
        mug = products["MUG-01"]
        assert not mug.has_variants
        assert mug.price == 349.0
        assert mug.weight_kg == 0.4
        assert mug.description == "Holds 350ml & more"
        assert mug.external_product_id == "201"
        tee = products["SHOPIFY-P301"]
        assert tee.has_variants
        assert tee.price == 1049.0
        assert tee.image_url == "https://cdn.example.com/tee.jpg"

        variants = {v.sku: v for v in await _all(db_session, ProductVariant)}
        assert set(variants) == {"TSHIRT-M", "SHOPIFY-3012"}
        assert variants["TSHIRT-M"].option1_name == "Size"
        assert variants["TSHIRT-M"].option1_value == "M"
        assert variants["TSHIRT-M"].weight_kg == 0.2
        assert variants["SHOPIFY-3012"].external_inventory_item_id == "30102"
        assert channel.last_product_sync_at is not None

    async def test_new_skus_seed_inventory(self, service, store, channel, db_session):
        store.products = [simple_product(quantity=5), variant_product()]

        await service.sync_products(channel.id)

        inventory = {i.sku: i for i in await _all(db_session, InventoryItem)}
        assert {sku: i.quantity_on_hand for sku, i in inventory.items()} == {
            "MUG-01": 5,
            "TSHIRT-M": 3,
            "SHOPIFY-3012": 0,
        }
        movements = await _all(db_session, StockMovement)
        assert sorted((m.sku, m.quantity) for m in movements) == [("MUG-01", 5), ("TSHIRT-M", 3)]
        assert all(m.notes == "Initial quantity from Shopify product import" for m in movements)
        assert all(m.quantity_before == 0 for m in movements)

    async def test_resync_updates_without_new_stock(self, service, store, channel, db_session):
        store.products = [simple_product(quantity=5)]
        await service.sync_products(channel.id)

        store.products = [simple_product(quantity=9, title="Big Mug")]
        result = await service.sync_products(channel.id)

        assert (result.products_imported, result.products_updated) == (0, 1)
        [product] = await _all(db_session, Product)
        assert product.name == "Big Mug"
        [item] = await _all(db_session, InventoryItem)
        assert item.quantity_on_hand == 5
        assert len(await _all(db_session, StockMovement)) == 1

    async def test_soft_deleted_rows_restored(self, service, store, channel, db_session):
        store.products = [variant_product()]
        await service.sync_products(channel.id)
        [product] = await _all(db_session, Product)
        product.deleted_at = "2024-01-20T00:00:00+00:00"
        product.deleted_by = "ops"
        for variant in product.variants:
            variant.deleted_at = "2024-01-20T00:00:00+00:00"
        await db_session.commit()

        await service.sync_products(channel.id)

        assert product.deleted_at is None
        assert product.deleted_by is None
        assert all(v.deleted_at is None for v in await _all(db_session, ProductVariant))

    async def test_conflicted_product_skipped(self, service, store, channel, db_session):
        store.products = [simple_product()]
        await service.sync_products(channel.id)
        [product] = await _all(db_session, Product)
        product.sync_status = SyncStatus.conflict.value
        product.price = 299.0
        await db_session.commit()

        result = await service.sync_products(channel.id)

        assert result.products_skipped == 1
        assert result.conflicts == ["Product MUG-01"]
        assert product.price == 299.0

    async def test_bad_product_recorded(self, service, store, channel):
        store.products = [{"title": "No id", "variants": [{"sku": "X"}]}, simple_product()]

        result = await service.sync_products(channel.id)

        assert result.products_failed == 1
        assert result.products_imported == 1
        assert result.errors[0].startswith("Product No id:")
        assert result.status == SyncRunStatus.completed_with_errors

    async def test_bad_variant_leaves_no_partial_product(self, service, store, channel, db_session):
        broken = variant_product()
        del broken["variants"][1]["id"]
        store.products = [broken, simple_product()]

        result = await service.sync_products(channel.id)

        assert (result.products_imported, result.products_failed) == (1, 1)
        assert result.errors[0].startswith("Product Cotton T-Shirt:")
        assert [p.sku for p in await _all(db_session, Product)] == ["MUG-01"]
        assert await _all(db_session, ProductVariant) == []
        assert [i.sku for i in await _all(db_session, InventoryItem)] == ["MUG-01"]

    async def test_local_price_edit_kept_when_channel_unchanged(self, service, store, channel, db_session):
        store.products = [simple_product()]
        await service.sync_products(channel.id)
        [product] = await _all(db_session, Product)
        product.price = 299.0
        await db_session.commit()

        result = await service.sync_products(channel.id)

        assert result.products_updated == 1
        assert result.conflicts == []
        assert product.price == 299.0
        assert product.sync_status == "synced"

    async def test_channel_price_change_applied(self, service, store, channel, db_session):
        store.products = [simple_product()]
        await service.sync_products(channel.id)

        store.products = [_repriced(simple_product(), "399.00")]
        await service.sync_products(channel.id)

        [product] = await _all(db_session, Product)
        assert product.price == 399.0
        assert product.channel_price == 399.0

    async def test_price_edited_on_both_sides_is_conflict(self, service, store, channel, db_session):
        store.products = [simple_product()]
        await service.sync_products(channel.id)
        [product] = await _all(db_session, Product)
        product.price = 299.0
        await db_session.commit()

        store.products = [_repriced(simple_product(), "399.00")]
        result = await service.sync_products(channel.id)

        assert result.products_skipped == 1
        assert result.conflicts == ["Product MUG-01"]
        assert result.status == SyncRunStatus.completed
        assert product.sync_status == "conflict"
        assert product.price == 299.0
        assert product.channel_price == 399.0

    async def test_variant_price_edited_on_both_sides_is_conflict(self, service, store, channel, db_session):
        store.products = [variant_product()]
        await service.sync_products(channel.id)
        variant = (
            await db_session.execute(select(ProductVariant).where(ProductVariant.sku == "TSHIRT-M"))
        ).scalar_one()
        variant.price = 949.0
        await db_session.commit()

        store.products = [_repriced(variant_product(), "1049.00", "1099.00")]
        result = await service.sync_products(channel.id)

        assert result.conflicts == ["Product SHOPIFY-P301"]
        assert variant.price == 949.0
        assert variant.channel_price == 1049.0
        [product] = await _all(db_session, Product)
        assert product.sync_status == "conflict"

    async def test_channel_limit_caps_run(self, service, store, channel, db_session):
        store.products = [simple_product(200 + i, sku=f"SKU-{i}") for i in range(5)]
        store.page_size = 2
        channel.product_sync_limit = 3
        await db_session.commit()

        result = await service.sync_products(channel.id)

        assert result.status == SyncRunStatus.completed
        assert result.products_imported == 3
        assert [c.arguments["limit"] for c in store.calls_to("list_products_page")] == [3, 1]
        assert len(await _all(db_session, Product)) == 3

    async def test_disabled_channel(self, service, store, channel, db_session):
        channel.sync_products_enabled = False
        await db_session.commit()

        result = await service.sync_products(channel.id)

        assert result.status == SyncRunStatus.failed
        assert store.calls == []

    async def test_product_lookback(self, service, store, channel, db_session):
        channel.product_sync_days = 30
        await db_session.commit()

        await service.sync_products(channel.id)

        assert store.calls_to("list_products_page")[0].arguments["updated_at_min"] is not None


class TestInventorySync:
    @pytest.fixture
    async def catalogue(self, service, store, channel):
        store.products = [simple_product(quantity=5), variant_product()]
        await service.sync_products(channel.id)
        store.calls.clear()
        return store

    async def test_writes_only_differences(self, service, catalogue, channel, db_session):
        catalogue.levels = {"20100": 8, "30101": 3}

        result = await service.sync_inventory(channel.id)

        assert result.status == SyncRunStatus.completed
        assert (result.inventory_updated, result.inventory_skipped) == (1, 2)
        inventory = {i.sku: i for i in await _all(db_session, InventoryItem)}
        assert inventory["MUG-01"].quantity_on_hand == 8
        assert inventory["MUG-01"].location_name == "Main Warehouse"
        assert inventory["MUG-01"].external_location_id == "501"
        assert inventory["SHOPIFY-3012"].quantity_on_hand == 0

        movements = (
            await db_session.execute(select(StockMovement).where(StockMovement.sync_run_id == result.run_id))
        ).scalars().all()
        [movement] = movements
        assert (movement.sku, movement.quantity, movement.quantity_before, movement.quantity_after) == (
            "MUG-01", 3, 5, 8,
        )
        assert movement.notes == "Synced from Shopify location: Main Warehouse"
        assert channel.last_inventory_sync_at is not None

    async def test_levels_fetched_in_batches(self, db_session, catalogue, locks, key, channel):
        service = ChannelSyncService(
            db_session,
            limits=SyncLimits(inventory_batch_size=2),
            client_factory=catalogue.factory,
            locks=locks,
            key=key,
        )

        await service.sync_inventory(channel.id)

        batches = [c.arguments["inventory_item_ids"] for c in catalogue.calls_to("list_inventory_levels")]
        assert batches == [["20100", "30101"], ["30102"]]

    async def test_unknown_local_skus_skipped(self, service, store, channel, db_session):
        store.products = [simple_product(sku="ELSEWHERE")]
        store.levels = {"20100": 4}

        result = await service.sync_inventory(channel.id)

        assert result.inventory_skipped == 1
        assert result.inventory_updated == 0
        assert await _all(db_session, InventoryItem) == []

    async def test_no_locations_fails(self, service, store, channel):
        store.locations = []

        result = await service.sync_inventory(channel.id)

        assert result.status == SyncRunStatus.failed
        assert result.errors == [ShipSyncError.from_code("E-1006").message]
        assert channel.last_sync_status.startswith("Failed:")

    async def test_inactive_location_not_primary(self, service, catalogue, channel):
        catalogue.locations = [
            {"id": 1, "name": "Closed", "active": False},
            {"id": 2, "name": "Open", "active": True},
        ]

        await service.sync_inventory(channel.id)

        assert catalogue.calls_to("list_inventory_levels")[0].arguments["location_id"] == "2"

    async def test_conflicted_product_inventory_skipped(self, service, catalogue, channel, db_session):
        catalogue.levels = {"20100": 1}
        product = (await db_session.execute(select(Product).where(Product.sku == "MUG-01"))).scalar_one()
        product.sync_status = SyncStatus.conflict.value
        await db_session.commit()

        result = await service.sync_inventory(channel.id)

        assert result.conflicts == ["Inventory MUG-01"]
        item = (await db_session.execute(select(InventoryItem).where(InventoryItem.sku == "MUG-01"))).scalar_one()
        assert item.quantity_on_hand == 5

    async def test_channel_limit_caps_collected_skus(self, service, store, channel, db_session):
        store.products = [simple_product(200 + i, sku=f"SKU-{i}") for i in range(5)]
        await service.sync_products(channel.id)
        store.levels = {str((200 + i) * 100): 9 for i in range(5)}
        channel.inventory_sync_limit = 2
        await db_session.commit()

        result = await service.sync_inventory(channel.id)

        assert result.status == SyncRunStatus.completed
        assert result.inventory_updated == 2
        [call] = store.calls_to("list_inventory_levels")
        assert call.arguments["inventory_item_ids"] == ["20000", "20100"]
        quantities = {i.sku: i.quantity_on_hand for i in await _all(db_session, InventoryItem)}
        assert quantities == {"SKU-0": 9, "SKU-1": 9, "SKU-2": 5, "SKU-3": 5, "SKU-4": 5}

    async def test_provider_failure(self, service, catalogue, channel):
        catalogue.fail("list_inventory_levels")

        result = await service.sync_inventory(channel.id)

        assert result.status == SyncRunStatus.failed
        assert result.errors == ["Shopify API error: Internal Server Error"]


class TestUnreadableResponses:
    @pytest.fixture
    def maintenance_page(self, monkeypatch):
        async def fake_get(self, url, **kwargs):
            return httpx.Response(
                200, text="<html>Store unavailable</html>", request=httpx.Request("GET", url)
            )

        monkeypatch.setattr(httpx.AsyncClient, "get", fake_get)

    @pytest.mark.parametrize("method", ["sync_orders", "sync_products", "sync_inventory"])
    async def test_html_page_fails_run(self, db_session, locks, key, channel, maintenance_page, method):
        service = ChannelSyncService(db_session, limits=SyncLimits(), locks=locks, key=key)

        result = await getattr(service, method)(channel.id)

        assert result.status == SyncRunStatus.failed
        assert result.errors == ["Shopify API error: invalid JSON response"]
        assert channel.last_sync_status == "Failed: Shopify API error: invalid JSON response"


class TestLocations:
    async def test_lists_locations(self, service, store, channel):
        assert await service.get_locations(channel.id) == store.locations

    async def test_config_error_raises(self, service):
        with pytest.raises(ShipSyncError) as exc_info:
            await service.get_locations("missing")
        assert exc_info.value.code == "E-1001"


class TestResolveConflict:
    @pytest.fixture
    async def conflicted_order(self, service, store, channel, db_session):
        store.orders = [shopify_order(1001)]
        await service.sync_orders(channel.id)
        [order] = await _all(db_session, Order)
        order.sync_status = SyncStatus.conflict.value
        await db_session.commit()
        return order

    async def test_accept_channel(self, service, conflicted_order):
        await service.resolve_conflict(SyncEntity.orders, conflicted_order.id, "accept_channel")

        assert conflicted_order.sync_status == "synced"

    async def test_keep_local(self, service, conflicted_order):
        await service.resolve_conflict("orders", conflicted_order.id, "keep_local")

        assert conflicted_order.sync_status == "local_only"

    async def test_next_run_overwrites_after_accept(self, service, store, channel, conflicted_order):
        await service.resolve_conflict("orders", conflicted_order.id, "accept_channel")
        store.orders = [shopify_order(1001, fulfillment_status="fulfilled")]

        result = await service.sync_orders(channel.id)

        assert result.orders_updated == 1
        assert conflicted_order.status == "shipped"

    async def test_kept_local_order_survives_resync(self, service, store, channel, conflicted_order):
        await service.resolve_conflict("orders", conflicted_order.id, "keep_local")
        store.orders = [shopify_order(1001, fulfillment_status="fulfilled")]

        result = await service.sync_orders(channel.id)

        assert (result.orders_updated, result.orders_skipped) == (0, 1)
        assert result.conflicts == []
        assert conflicted_order.status != "shipped"
        assert conflicted_order.sync_status == "local_only"

    @pytest.fixture
    async def conflicted_product(self, service, store, channel, db_session):
        store.products = [simple_product()]
        await service.sync_products(channel.id)
        [product] = await _all(db_session, Product)
        product.price = 299.0
        await db_session.commit()
        store.products = [_repriced(simple_product(), "399.00")]
        await service.sync_products(channel.id)
        assert product.sync_status == "conflict"
        return product

    async def test_kept_local_product_survives_resync(self, service, channel, conflicted_product):
        await service.resolve_conflict("products", conflicted_product.id, "keep_local")

        result = await service.sync_products(channel.id)

        assert result.products_skipped == 1
        assert result.conflicts == []
        assert conflicted_product.price == 299.0
        assert conflicted_product.sync_status == "local_only"

    async def test_accept_channel_applies_channel_price(self, service, channel, conflicted_product):
        await service.resolve_conflict("products", conflicted_product.id, "accept_channel")

        assert conflicted_product.price == 399.0

        result = await service.sync_products(channel.id)

        assert result.products_updated == 1
        assert conflicted_product.price == 399.0
        assert conflicted_product.sync_status == "synced"

    @pytest.mark.parametrize(
        "entity,resolution",
        [("shipments", "keep_local"), ("inventory", "keep_local"), ("orders", "merge")],
    )
    async def test_rejects_bad_arguments(self, service, entity, resolution):
        with pytest.raises(ValidationError):
            await service.resolve_conflict(entity, "x", resolution)

    async def test_missing_row(self, service):
        with pytest.raises(NotFoundError):
            await service.resolve_conflict("products", "missing", "keep_local")
