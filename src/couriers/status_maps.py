"""Carrier status vocabularies mapped onto ShipmentStatus.

One table per carrier, shared by the polling path (adapter tracking calls)
and the webhook path so the two can never disagree. Lookups are total:
any code missing from a table, blank, or of the wrong type maps to None,
meaning "no status change". Unknown codes are never guessed.
"""

import logging

from src.couriers.models import CourierType, ShipmentStatus

logger = logging.getLogger(__name__)

S = ShipmentStatus

# Shiprocket numeric status ids (webhook current_status_id, tracking
# shipment_status and per-scan sr-status).
SHIPROCKET_STATUS_MAP: dict[int, ShipmentStatus] = {
    1: S.MANIFESTED,  # AWB assigned
    2: S.MANIFESTED,  # label generated
    3: S.MANIFESTED,  # pickup scheduled
    4: S.MANIFESTED,  # pickup queued
    5: S.MANIFESTED,  # manifest generated
    6: S.IN_TRANSIT,  # shipped
    7: S.DELIVERED,
    8: S.CANCELLED,
    9: S.RTO_INITIATED,
    10: S.RTO_DELIVERED,
    11: S.LOST,
    12: S.DELIVERY_FAILED,  # NDR
    13: S.OUT_FOR_DELIVERY,
    16: S.IN_TRANSIT,
    17: S.PICKED_UP,  # out for pickup
    18: S.PICKED_UP,
    19: S.RTO_INITIATED,  # RTO acknowledged
    20: S.RTO_INITIATED,  # RTO in transit
}

DELHIVERY_STATUS_MAP: dict[str, ShipmentStatus] = {
    "UD": S.MANIFESTED,
    "PP": S.MANIFESTED,
    "OP": S.MANIFESTED,
    "FM": S.MANIFESTED,
    "PU": S.PICKED_UP,
    "IT": S.IN_TRANSIT,
    "RAD": S.IN_TRANSIT,
    "LM": S.IN_TRANSIT,
    "OC": S.OUT_FOR_DELIVERY,
    "DL": S.DELIVERED,
    "CN": S.CANCELLED,
    "CR": S.CANCELLED,
    "RTO": S.RTO_INITIATED,
    "RT": S.RTO_INITIATED,
    "RTD": S.RTO_DELIVERED,
    "ND": S.DELIVERY_FAILED,
    "DNA": S.DELIVERY_FAILED,
    "LT": S.LOST,
}

BLUEDART_STATUS_MAP: dict[str, ShipmentStatus] = {
    "PKF": S.MANIFESTED,  # pickup pending
    "PKD": S.PICKED_UP,
    "IT": S.IN_TRANSIT,
    "LD": S.IN_TRANSIT,
    "OD": S.OUT_FOR_DELIVERY,
    "DL": S.DELIVERED,
    "ND": S.DELIVERY_FAILED,
    "DLE": S.DELIVERY_FAILED,
    "HD": S.DELIVERY_FAILED,
    "CN": S.CANCELLED,
    "RTO": S.RTO_INITIATED,
    "RTD": S.RTO_DELIVERED,
    "LST": S.LOST,
}

DTDC_STATUS_MAP: dict[str, ShipmentStatus] = {
    "BKD": S.MANIFESTED,
    "PKD": S.PICKED_UP,
    "ITR": S.IN_TRANSIT,
    "ARR": S.IN_TRANSIT,
    "OFD": S.OUT_FOR_DELIVERY,
    "DLV": S.DELIVERED,
    "UND": S.DELIVERY_FAILED,
    "DLY": S.DELIVERY_FAILED,
    "CNL": S.CANCELLED,
    "RTO": S.RTO_INITIATED,
    "RTN": S.RTO_DELIVERED,
    "LST": S.LOST,
}

STATUS_MAPS: dict[CourierType, dict] = {
    CourierType.SHIPROCKET: SHIPROCKET_STATUS_MAP,
    CourierType.DELHIVERY: DELHIVERY_STATUS_MAP,
    CourierType.BLUEDART: BLUEDART_STATUS_MAP,
    CourierType.DTDC: DTDC_STATUS_MAP,
}


def _normalize_code(courier: CourierType, code: object) -> int | str | None:
    """Coerce a raw status code to the table's key type, or None."""
    if code is None or isinstance(code, bool):
        return None
    if courier == CourierType.SHIPROCKET:
        if isinstance(code, int):
            return code
        if isinstance(code, str) and code.strip().isdigit():
            return int(code.strip())
        return None
    if isinstance(code, str) and code.strip():
        return code.strip().upper()
    return None


def map_status(courier: CourierType, code: object) -> ShipmentStatus | None:
    """Map a carrier status code to ShipmentStatus.

    Args:
        courier: Carrier whose vocabulary the code belongs to.
        code: Raw status code (int for Shiprocket, string for the others).

    Returns:
        The canonical status, or None when the code is unknown.
    """
    key = _normalize_code(courier, code)
    if key is None:
        return None
    status = STATUS_MAPS[courier].get(key)
    if status is None:
        logger.info("Unmapped %s status code %r; leaving status unchanged", courier.value, code)
    return status


def map_shiprocket_status(status_id: object) -> ShipmentStatus | None:
    return map_status(CourierType.SHIPROCKET, status_id)


def map_delhivery_status(status_code: object) -> ShipmentStatus | None:
    return map_status(CourierType.DELHIVERY, status_code)


def map_bluedart_status(status_code: object) -> ShipmentStatus | None:
    return map_status(CourierType.BLUEDART, status_code)


def map_dtdc_status(status_code: object) -> ShipmentStatus | None:
    return map_status(CourierType.DTDC, status_code)
