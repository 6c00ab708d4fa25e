"""Storefront integration: Shopify client and order mapping."""

from src.channels.shopify_client import ShopifyApiError, ShopifyClient, ShopifyPage

__all__ = ["ShopifyApiError", "ShopifyClient", "ShopifyPage"]
