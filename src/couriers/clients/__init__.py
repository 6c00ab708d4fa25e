"""Thin HTTP transports, one per carrier.

Clients expose the raw authenticated operations a carrier offers and
return decoded JSON (or bytes for labels). They raise CourierApiError on
transport failures and non-2xx responses; adapters orchestrate them and
translate errors into CourierResult failures.
"""

from src.couriers.clients.base import CourierApiError, CourierHttpClient
from src.couriers.clients.bluedart import BlueDartClient
from src.couriers.clients.delhivery import DelhiveryClient
from src.couriers.clients.dtdc import DtdcClient
from src.couriers.clients.shiprocket import ShiprocketClient

__all__ = [
    "CourierApiError",
    "CourierHttpClient",
    "ShiprocketClient",
    "DelhiveryClient",
    "BlueDartClient",
    "DtdcClient",
]
