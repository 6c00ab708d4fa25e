"""ChannelService: lifecycle of Shopify sales channels.

A channel is created unconnected, becomes credentialed when custom-app
API credentials are saved, and connected once an access token is stored
(directly or through the OAuth code exchange). Disconnecting removes the
storefront webhooks and clears every secret but keeps imported orders.
"""

import hashlib
import hmac
import logging
import re

from sqlalchemy.ext.asyncio import AsyncSession

from src.channels.shopify_client import (
    ShopifyApiError,
    ShopifyClient,
    build_authorization_url,
    normalize_store_url,
    verify_oauth_hmac,
    verify_webhook_hmac,
)
from src.config import ShopifyConfig, get_config
from src.db.models import ChannelType, SalesChannel, generate_uuid, utc_now_iso
from src.errors import ShipSyncError
from src.errors.domain import ValidationError
from src.services.channel_access import (
    ShopifyClientFactory,
    default_client_factory,
    get_access_token,
    get_api_credentials,
    get_channel,
    get_webhook_secret,
    set_access_token,
    set_api_credentials,
    set_webhook_secret,
)
from src.services.credential_encryption import CredentialDecryptionError, get_or_create_key
from src.utils.redaction import sanitize_error_message

logger = logging.getLogger(__name__)

WEBHOOK_TOPICS = ("orders/create", "orders/updated", "app/uninstalled")

_STORE_DOMAIN_RE = re.compile(r"^[a-z0-9][a-z0-9\-]*\.myshopify\.com$")


def validate_store_url(raw: str) -> str:
    """Normalize and validate a ``*.myshopify.com`` store domain.

    Raises:
        ValidationError: If the domain is empty or not a myshopify.com host.
    """
    domain = normalize_store_url(raw)
    if not domain:
        raise ValidationError("Store URL is required")
    if not _STORE_DOMAIN_RE.match(domain):
        raise ValidationError(f"Store URL must match *.myshopify.com (got '{domain}')")
    return domain


class ChannelService:
    """Create, connect and disconnect sales channels."""

    def __init__(
        self,
        session: AsyncSession,
        shopify_config: ShopifyConfig | None = None,
        client_factory: ShopifyClientFactory | None = None,
        key: bytes | None = None,
    ) -> None:
        self.session = session
        self.shopify = shopify_config or get_config().shopify
        self._client_factory = client_factory or default_client_factory
        self._key = key

    @property
    def key(self) -> bytes:
        if self._key is None:
            self._key = get_or_create_key()
        return self._key

    async def create_channel(
        self,
        name: str,
        store_url: str,
        order_sync_days: int | None = 7,
    ) -> SalesChannel:
        channel = SalesChannel(
            id=generate_uuid(),
            name=name,
            channel_type=ChannelType.shopify.value,
            store_url=validate_store_url(store_url),
            order_sync_days=order_sync_days,
        )
        self.session.add(channel)
        await self.session.commit()
        logger.info("Created channel %s for %s", channel.id, channel.store_url)
        return channel

    async def save_credentials(self, channel_id: str, api_key: str, api_secret: str) -> SalesChannel:
        """Store custom-app API credentials (encrypted)."""
        if not api_key or not api_secret:
            raise ValidationError("API key and API secret are required")
        channel = await get_channel(self.session, channel_id)
        set_api_credentials(channel, api_key, api_secret, self.key)
        channel.last_error = None
        await self.session.commit()
        return channel

    def _app_credentials(self, channel: SalesChannel) -> tuple[str, str]:
        """Client id/secret for OAuth: per-channel credentials, else the app config."""
        try:
            stored = get_api_credentials(channel, self.key) or {}
        except CredentialDecryptionError as e:
            logger.error("Credentials for channel %s could not be decrypted: %s", channel.id, e)
            stored = {}
        client_id = stored.get("api_key") or self.shopify.client_id
        client_secret = stored.get("api_secret") or self.shopify.client_secret
        if not client_id or not client_secret:
            raise ShipSyncError.from_code("E-1003")
        return client_id, client_secret

    async def save_access_token(
        self, channel_id: str, access_token: str, scopes: str | None = None
    ) -> SalesChannel:
        """Connect with an admin API token and record the shop details.

        Raises:
            ShopifyApiError: If Shopify rejects the token.
        """
        channel = await get_channel(self.session, channel_id)
        if not channel.store_url:
            raise ShipSyncError.from_code("E-1004")
        client = self._client_factory(channel, access_token)
        shop = await client.get_shop()
        set_access_token(channel, access_token, self.key)
        self._mark_connected(channel, shop, scopes)
        await self.session.commit()
        logger.info("Channel %s connected to %s", channel.id, channel.store_url)
        return channel

    def _mark_connected(self, channel: SalesChannel, shop: dict, scopes: str | None) -> None:
        channel.is_connected = True
        channel.last_connected_at = utc_now_iso()
        channel.last_error = None
        if scopes is not None:
            channel.scopes = scopes
        if shop.get("id"):
            channel.external_shop_id = str(shop["id"])
        if shop.get("name"):
            channel.store_name = shop["name"]

    def _state_for(self, channel: SalesChannel, client_secret: str) -> str:
        signature = hmac.new(
            client_secret.encode("utf-8"), channel.id.encode("utf-8"), hashlib.sha256
        ).hexdigest()[:32]
        return f"{channel.id}.{signature}"

    async def get_authorization_url(self, channel_id: str) -> str:
        """Build the Shopify install URL; ``state`` is signed with the app secret."""
        channel = await get_channel(self.session, channel_id)
        if not channel.store_url:
            raise ShipSyncError.from_code("E-1004")
        client_id, client_secret = self._app_credentials(channel)
        if not self.shopify.redirect_uri:
            raise ValidationError("shopify.redirect_uri is not configured")
        return build_authorization_url(
            channel.store_url,
            client_id,
            self.shopify.scopes,
            self.shopify.redirect_uri,
            self._state_for(channel, client_secret),
        )

    async def complete_oauth(
        self,
        channel_id: str,
        code: str,
        state: str | None = None,
        callback_params: dict[str, str] | None = None,
    ) -> SalesChannel:
        """Exchange the OAuth code, mark connected and register webhooks.

        Webhook registration failures are logged on the channel but do not
        undo the connection.

        Raises:
            ValidationError: If the state or callback HMAC does not verify.
            ShopifyApiError: If Shopify rejects the code.
        """
        channel = await get_channel(self.session, channel_id)
        client_id, client_secret = self._app_credentials(channel)
        if state is not None and not hmac.compare_digest(state, self._state_for(channel, client_secret)):
            raise ValidationError("OAuth state does not match this channel")
        if callback_params is not None and not verify_oauth_hmac(callback_params, client_secret):
            raise ValidationError("OAuth callback signature is invalid")

        client = self._client_factory(channel, "")
        token_data = await client.exchange_code(client_id, client_secret, code)
        access_token = token_data["access_token"]
        set_access_token(channel, access_token, self.key)
        set_webhook_secret(channel, client_secret, self.key)

        connected = self._client_factory(channel, access_token)
        try:
            shop = await connected.get_shop()
        except ShopifyApiError as e:
            logger.warning("Could not load shop details for channel %s: %s", channel_id, e)
            shop = {}
        self._mark_connected(channel, shop, token_data.get("scope"))
        await self.session.commit()

        await self._register_webhooks(channel, connected)
        await self.session.commit()
        return channel

    async def _register_webhooks(self, channel: SalesChannel, client: ShopifyClient) -> None:
        if not self.shopify.webhook_base_url:
            logger.info("No webhook base URL configured; skipping webhook registration")
            return
        address = f"{self.shopify.webhook_base_url.rstrip('/')}/webhooks/shopify/{channel.id}"
        failures = []
        for topic in WEBHOOK_TOPICS:
            try:
                await client.register_webhook(topic, address)
            except ShopifyApiError as e:
                failures.append(f"{topic}: {e.message}")
                logger.warning("Webhook %s registration failed for channel %s: %s", topic, channel.id, e)
        if failures:
            channel.last_error = sanitize_error_message("Webhook registration failed: " + "; ".join(failures))

    async def disconnect(self, channel_id: str) -> SalesChannel:
        """Remove storefront webhooks (best effort) and clear all secrets.

        Imported orders, products and inventory are kept.
        """
        channel = await get_channel(self.session, channel_id)
        token = None
        try:
            token = get_access_token(channel, self.key)
        except CredentialDecryptionError as e:
            logger.warning("Token for channel %s unreadable, skipping webhook cleanup: %s", channel_id, e)

        if token and channel.store_url:
            client = self._client_factory(channel, token)
            try:
                for webhook in await client.list_webhooks():
                    if f"/webhooks/shopify/{channel.id}" in (webhook.get("address") or ""):
                        await client.delete_webhook(webhook["id"])
            except ShopifyApiError as e:
                logger.warning("Webhook cleanup failed for channel %s: %s", channel_id, e)

        channel.access_token = None
        channel.credentials_encrypted = None
        channel.webhook_secret = None
        channel.scopes = None
        channel.is_connected = False
        await self.session.commit()
        logger.info("Channel %s disconnected", channel_id)
        return channel

    async def verify_webhook(self, channel_id: str, body: bytes, hmac_header: str | None) -> bool:
        """Check a storefront webhook signature for this channel."""
        channel = await get_channel(self.session, channel_id)
        secret = None
        try:
            secret = get_webhook_secret(channel, self.key)
            if not secret:
                secret = (get_api_credentials(channel, self.key) or {}).get("api_secret")
        except CredentialDecryptionError as e:
            logger.error("Webhook secret for channel %s could not be decrypted: %s", channel_id, e)
            return False
        return verify_webhook_hmac(body, secret or self.shopify.client_secret, hmac_header)

    async def handle_uninstalled(self, channel_id: str) -> None:
        """React to ``app/uninstalled``: the token is already revoked."""
        channel = await get_channel(self.session, channel_id)
        channel.access_token = None
        channel.is_connected = False
        channel.last_error = "App uninstalled from Shopify"
        await self.session.commit()
