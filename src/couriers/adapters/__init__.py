"""Concrete courier adapters, one per carrier."""

from src.couriers.adapters.bluedart import BlueDartAdapter
from src.couriers.adapters.delhivery import DelhiveryAdapter
from src.couriers.adapters.dtdc import DtdcAdapter
from src.couriers.adapters.shiprocket import ShiprocketAdapter

__all__ = ["ShiprocketAdapter", "DelhiveryAdapter", "BlueDartAdapter", "DtdcAdapter"]
