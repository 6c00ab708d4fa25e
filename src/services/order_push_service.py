"""Push locally created or edited orders to the storefront.

Configuration problems (unknown channel, not connected, no store URL) are
reported with their E-1xxx code before any network call; storefront
rejections carry the provider's message and an E-3xxx code.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from src.channels.order_payloads import build_create_payload, build_update_payload
from src.channels.shopify_client import ShopifyApiError
from src.db.models import Order, SyncStatus, utc_now_iso
from src.errors import ShipSyncError
from src.services.channel_access import ShopifyClientFactory, load_connected_channel
from src.utils.redaction import redact_for_logging

logger = logging.getLogger(__name__)


@dataclass
class OrderPushResult:
    """Outcome of one order push."""

    success: bool
    external_order_id: str | None = None
    external_order_number: str | None = None
    error_message: str | None = None
    error_code: str | None = None

    @classmethod
    def failed(cls, message: str, code: str) -> "OrderPushResult":
        return cls(success=False, error_message=message, error_code=code)


class OrderPushService:
    """Create and update storefront orders from internal orders."""

    def __init__(
        self,
        session: AsyncSession,
        client_factory: ShopifyClientFactory | None = None,
        key: bytes | None = None,
    ) -> None:
        self.session = session
        self._client_factory = client_factory
        self._key = key

    async def create_order(self, channel_id: str, order: Order) -> OrderPushResult:
        """Create ``order`` on the storefront.

        On success the order is linked to the storefront id and number and
        marked synced (the caller commits).
        """
        try:
            _, client = await load_connected_channel(
                self.session, channel_id, key=self._key, client_factory=self._client_factory
            )
        except ShipSyncError as e:
            return OrderPushResult.failed(e.message, e.code)

        payload = build_create_payload(order)
        logger.debug("Creating Shopify order: %s", redact_for_logging(payload["order"]))
        try:
            created = await client.create_order(payload)
        except ShopifyApiError as e:
            logger.warning("Shopify rejected order %s: %s", order.order_number, e.message)
            return OrderPushResult.failed(e.message, e.code)

        if not created.get("id"):
            return OrderPushResult.failed("Shopify returned no order id", "E-3001")

        external_id = str(created["id"])
        external_number = created.get("name") or str(created.get("order_number") or "")
        order.channel_id = channel_id
        order.external_order_id = external_id
        order.external_order_number = external_number or None
        order.sync_status = SyncStatus.synced.value
        order.last_synced_at = utc_now_iso()
        logger.info("Created Shopify order %s for %s", external_number, order.order_number)
        return OrderPushResult(
            success=True, external_order_id=external_id, external_order_number=external_number
        )

    async def update_order(
        self, channel_id: str, external_order_id: str, order: Order
    ) -> OrderPushResult:
        """Push contact details, notes and addresses of an existing order.

        Line items and amounts are immutable on the storefront after
        creation and are never sent.
        """
        if not str(external_order_id).isdigit():
            error = ShipSyncError.from_code("E-2002")
            return OrderPushResult.failed(error.message, error.code)

        try:
            _, client = await load_connected_channel(
                self.session, channel_id, key=self._key, client_factory=self._client_factory
            )
        except ShipSyncError as e:
            return OrderPushResult.failed(e.message, e.code)

        payload = build_update_payload(order, int(external_order_id))
        try:
            updated = await client.update_order(str(external_order_id), payload)
        except ShopifyApiError as e:
            logger.warning("Shopify rejected update of order %s: %s", external_order_id, e.message)
            return OrderPushResult.failed(e.message, e.code)

        order.last_synced_at = utc_now_iso()
        return OrderPushResult(
            success=True,
            external_order_id=str(updated.get("id") or external_order_id),
            external_order_number=updated.get("name"),
        )
