"""FastAPI dependency providers.

Routes take the storefront client factory and the courier adapter
registry through ``Depends`` so tests can swap them with
``app.dependency_overrides``.
"""

from functools import lru_cache

from src.couriers.factory import CourierAdapterFactory, build_default_factory
from src.services.channel_access import ShopifyClientFactory, default_client_factory


def get_shopify_client_factory() -> ShopifyClientFactory:
    return default_client_factory


@lru_cache(maxsize=1)
def get_courier_factory() -> CourierAdapterFactory:
    """Adapter registry built once from the loaded config."""
    return build_default_factory()
