"""Loading a channel and its decrypted secrets for storefront calls.

Every operation that talks to the storefront goes through
``load_connected_channel`` first, so configuration problems (unknown
channel, not connected, missing token or store URL) surface as
``ShipSyncError`` before any network call is made.
"""

import logging
from collections.abc import Callable

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from src.channels.shopify_client import ShopifyClient
from src.config import get_config
from src.db.models import SalesChannel
from src.errors import ShipSyncError
from src.services.credential_encryption import (
    CredentialDecryptionError,
    decrypt_credentials,
    decrypt_secret,
    encrypt_credentials,
    encrypt_secret,
    field_aad,
    get_or_create_key,
)

logger = logging.getLogger(__name__)

CHANNEL_TABLE = "sales_channels"

ShopifyClientFactory = Callable[[SalesChannel, str], ShopifyClient]


def _aad(channel: SalesChannel, column: str) -> str:
    return field_aad(CHANNEL_TABLE, channel.id, column)


def set_access_token(channel: SalesChannel, token: str, key: bytes) -> None:
    channel.access_token = encrypt_secret(token, key, _aad(channel, "access_token"))


def get_access_token(channel: SalesChannel, key: bytes) -> str | None:
    """Decrypt the channel's access token.

    Raises:
        CredentialDecryptionError: If the stored envelope is corrupt or bound
            to another row.
    """
    if not channel.access_token:
        return None
    return decrypt_secret(channel.access_token, key, _aad(channel, "access_token"))


def set_api_credentials(channel: SalesChannel, api_key: str, api_secret: str, key: bytes) -> None:
    channel.credentials_encrypted = encrypt_credentials(
        {"api_key": api_key, "api_secret": api_secret},
        key,
        _aad(channel, "credentials_encrypted"),
    )


def get_api_credentials(channel: SalesChannel, key: bytes) -> dict | None:
    if not channel.credentials_encrypted:
        return None
    return decrypt_credentials(
        channel.credentials_encrypted, key, _aad(channel, "credentials_encrypted")
    )


def set_webhook_secret(channel: SalesChannel, secret: str, key: bytes) -> None:
    channel.webhook_secret = encrypt_secret(secret, key, _aad(channel, "webhook_secret"))


def get_webhook_secret(channel: SalesChannel, key: bytes) -> str | None:
    if not channel.webhook_secret:
        return None
    return decrypt_secret(channel.webhook_secret, key, _aad(channel, "webhook_secret"))


def default_client_factory(channel: SalesChannel, access_token: str) -> ShopifyClient:
    """Build a ShopifyClient using configured API version and timeouts."""
    config = get_config()
    return ShopifyClient(
        channel.store_url or "",
        access_token,
        api_version=config.shopify.api_version,
        timeout=httpx.Timeout(
            config.http.timeout_seconds, connect=config.http.connect_timeout_seconds
        ),
    )


async def get_channel(session: AsyncSession, channel_id: str) -> SalesChannel:
    """Fetch a live (not deleted) channel.

    Raises:
        ShipSyncError: E-1001 if the channel does not exist or was deleted.
    """
    channel = await session.get(SalesChannel, channel_id)
    if channel is None or channel.deleted_at is not None:
        raise ShipSyncError.from_code("E-1001")
    return channel


async def load_connected_channel(
    session: AsyncSession,
    channel_id: str,
    key: bytes | None = None,
    client_factory: ShopifyClientFactory | None = None,
) -> tuple[SalesChannel, ShopifyClient]:
    """Resolve a channel ready for storefront calls.

    Returns:
        The channel and a client bound to its store and token.

    Raises:
        ShipSyncError: E-1001 not found, E-1002 not connected, E-1003 token
            missing or undecryptable, E-1004 store URL missing.
    """
    channel = await get_channel(session, channel_id)
    if not channel.is_connected:
        raise ShipSyncError.from_code("E-1002")
    if not channel.access_token:
        raise ShipSyncError.from_code("E-1003")
    if not channel.store_url:
        raise ShipSyncError.from_code("E-1004")

    try:
        token = get_access_token(channel, key or get_or_create_key())
    except CredentialDecryptionError as e:
        logger.error("Access token for channel %s could not be decrypted: %s", channel_id, e)
        raise ShipSyncError.from_code("E-1003") from e

    factory = client_factory or default_client_factory
    return channel, factory(channel, token or "")
