"""Courier adapter registry.

Adapters are registered explicitly at start-up; there is no plugin
discovery. ``build_default_factory`` wires the four supported carriers
against the configured endpoints and HTTP timeouts.
"""

import logging

import httpx

from src.config import ShipSyncConfig, get_config
from src.couriers.adapters import (
    BlueDartAdapter,
    DelhiveryAdapter,
    DtdcAdapter,
    ShiprocketAdapter,
)
from src.couriers.base import CourierAdapter
from src.couriers.clients import BlueDartClient, DelhiveryClient, DtdcClient, ShiprocketClient
from src.couriers.models import CourierType

logger = logging.getLogger(__name__)


class CourierAdapterFactory:
    """Maps a CourierType to its adapter instance."""

    def __init__(self) -> None:
        self._adapters: dict[CourierType, CourierAdapter] = {}

    def register(self, adapter: CourierAdapter) -> None:
        if adapter.courier_type in self._adapters:
            logger.warning("Replacing adapter for %s", adapter.courier_type.value)
        self._adapters[adapter.courier_type] = adapter

    def get(self, courier: CourierType | str) -> CourierAdapter:
        """Return the adapter for a carrier.

        Raises:
            ValueError: If the carrier is unknown or has no adapter registered.
        """
        courier_type = CourierType(courier)
        adapter = self._adapters.get(courier_type)
        if adapter is None:
            raise ValueError(f"No adapter registered for courier '{courier_type.value}'")
        return adapter

    def supports(self, courier: CourierType | str) -> bool:
        try:
            return CourierType(courier) in self._adapters
        except ValueError:
            return False

    @property
    def supported_couriers(self) -> list[CourierType]:
        return list(self._adapters)


def build_default_factory(config: ShipSyncConfig | None = None) -> CourierAdapterFactory:
    """Create a factory with every built-in carrier registered."""
    config = config or get_config()
    timeout = httpx.Timeout(
        config.http.timeout_seconds, connect=config.http.connect_timeout_seconds
    )
    endpoints = config.carriers

    factory = CourierAdapterFactory()
    factory.register(ShiprocketAdapter(ShiprocketClient(endpoints.shiprocket, timeout)))
    factory.register(DelhiveryAdapter(DelhiveryClient(endpoints.delhivery, timeout)))
    factory.register(BlueDartAdapter(BlueDartClient(endpoints.bluedart, timeout)))
    factory.register(DtdcAdapter(DtdcClient(endpoints.dtdc, timeout)))
    return factory
