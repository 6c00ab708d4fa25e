"""Test helper utilities."""

from tests.helpers.fake_shopify import (
    FakeShopifyStore,
    ShopifyCall,
    shopify_order,
    simple_product,
    variant_product,
)

__all__ = [
    "FakeShopifyStore",
    "ShopifyCall",
    "shopify_order",
    "simple_product",
    "variant_product",
]
