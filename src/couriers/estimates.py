"""Locally computed fallback tariffs.

Used when a carrier has no public rate API (Delhivery, BlueDart) or when
the rate call fails or returns nothing (DTDC). Every estimate is flagged
``is_estimate=True``, its service code is prefixed with ``EST-`` and its
name ends with ``(Estimated)`` so callers can tell it from a quoted rate.

Tariff = base charge + per-kg charge x chargeable weight, plus a COD
charge of max(minimum, percentage of the COD amount) on COD parcels.
"""

import math
from dataclasses import dataclass

from src.couriers.models import CourierRate, CourierType, RateRequest

ESTIMATE_CODE_PREFIX = "EST-"
ESTIMATE_NAME_SUFFIX = " (Estimated)"


@dataclass(frozen=True)
class EstimatedService:
    """One row of a carrier's fallback tariff card."""

    code: str
    name: str
    base_charge: float
    per_kg: float
    estimated_days: int
    is_express: bool


@dataclass(frozen=True)
class CodPolicy:
    """COD surcharge: the greater of a flat minimum and a percentage."""

    minimum: float
    percent: float

    def charge(self, cod_amount: float) -> float:
        return max(self.minimum, round(cod_amount * self.percent / 100, 2))


ESTIMATE_TARIFFS: dict[CourierType, tuple[list[EstimatedService], CodPolicy]] = {
    CourierType.DELHIVERY: (
        [
            EstimatedService("E", "Delhivery Express", 50, 25, 3, True),
            EstimatedService("S", "Delhivery Surface", 35, 15, 7, False),
        ],
        CodPolicy(minimum=50, percent=2),
    ),
    CourierType.BLUEDART: (
        [
            EstimatedService("A", "BlueDart Air", 65, 35, 2, True),
            EstimatedService("D", "BlueDart Apex Surface", 45, 20, 5, False),
        ],
        CodPolicy(minimum=60, percent=2.5),
    ),
    CourierType.DTDC: (
        [
            EstimatedService("PREMIUM", "DTDC Premium", 55, 28, 3, True),
            EstimatedService("GROUND", "DTDC Ground", 40, 18, 6, False),
        ],
        CodPolicy(minimum=50, percent=2),
    ),
}


def chargeable_weight(weight_kg: float) -> float:
    """Round up to the next 0.5 kg slab, with a 0.5 kg minimum."""
    return max(0.5, math.ceil(weight_kg * 2) / 2)


def estimate_rates(courier: CourierType, request: RateRequest) -> list[CourierRate]:
    """Build fallback rates for a carrier, sorted by total charge.

    Raises:
        KeyError: If the carrier has no tariff card.
    """
    services, cod_policy = ESTIMATE_TARIFFS[courier]
    weight = chargeable_weight(request.weight)
    cod_amount = request.cod_amount or 0.0

    rates = []
    for service in services:
        freight = round(service.base_charge + service.per_kg * weight, 2)
        cod_charge = cod_policy.charge(cod_amount) if request.is_cod else 0.0
        rates.append(
            CourierRate(
                service_code=f"{ESTIMATE_CODE_PREFIX}{service.code}",
                service_name=f"{service.name}{ESTIMATE_NAME_SUFFIX}",
                freight_charge=freight,
                cod_charge=cod_charge,
                total_charge=round(freight + cod_charge, 2),
                estimated_days=service.estimated_days,
                is_express=service.is_express,
                is_surface=not service.is_express,
                is_estimate=True,
            )
        )
    return sorted(rates, key=lambda r: r.total_charge)


def strip_estimate_prefix(service_code: str | None) -> str | None:
    """Return the carrier's own service code from a possibly-estimated code."""
    if service_code and service_code.startswith(ESTIMATE_CODE_PREFIX):
        return service_code[len(ESTIMATE_CODE_PREFIX):]
    return service_code
