"""Abstract courier adapter contract.

One adapter instance is bound to one CourierType. Every operation takes
the account credentials explicitly and returns a CourierResult; provider
exceptions are caught inside the adapter, logged, and translated into
failures. Concrete adapters decorate their operations with
``translate_errors`` to get that behaviour uniformly.
"""

import functools
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any, ParamSpec, TypeVar

import httpx

from src.couriers.clients.base import CourierApiError
from src.couriers.models import (
    CourierCredentials,
    CourierRate,
    CourierType,
    PickupRequest,
    PickupResponse,
    RateRequest,
    ShipmentRequest,
    ShipmentResponse,
    TrackingResponse,
)
from src.couriers.result import CourierResult
from src.couriers.settings import CourierConfigError
from src.errors import render_message

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")


def translate_errors(
    operation: str,
) -> Callable[[Callable[P, Awaitable[CourierResult[R]]]], Callable[P, Awaitable[CourierResult[R]]]]:
    """Decorate an adapter coroutine so no exception escapes it.

    Configuration errors become E-1005 failures, transport errors keep the
    code the client assigned, and malformed provider payloads (KeyError,
    TypeError, ValueError, AttributeError while reading a response) become
    E-3006.
    """

    def decorator(func: Callable[P, Awaitable[CourierResult[R]]]) -> Callable[P, Awaitable[CourierResult[R]]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> CourierResult[R]:
            adapter = args[0]
            name = getattr(adapter, "display_name", "carrier")
            try:
                return await func(*args, **kwargs)
            except CourierConfigError as e:
                logger.warning("%s %s rejected: %s", name, operation, e.message)
                return CourierResult.failure(e.message, code=e.code)
            except CourierApiError as e:
                logger.error("%s %s failed: %s", name, operation, e)
                return CourierResult.failure(e.message, code=e.code)
            except httpx.HTTPError as e:
                logger.error("%s %s transport error: %s", name, operation, e)
                return CourierResult.failure(
                    render_message("E-3004", provider=name, message=str(e)), code="E-3004"
                )
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.exception("%s %s returned an unexpected payload", name, operation)
                return CourierResult.failure(
                    f"Unexpected {name} response during {operation}: {e}", code="E-3006"
                )

        return wrapper

    return decorator


class CourierAdapter(ABC):
    """Uniform contract over one carrier's API."""

    courier_type: CourierType
    display_name: str

    @abstractmethod
    async def validate_credentials(self, creds: CourierCredentials) -> CourierResult[None]:
        """Make the cheapest authenticated call the carrier offers."""
        ...

    @abstractmethod
    async def get_rates(
        self, creds: CourierCredentials, request: RateRequest
    ) -> CourierResult[list[CourierRate]]:
        """Return candidate services sorted ascending by total charge."""
        ...

    @abstractmethod
    async def create_shipment(
        self, creds: CourierCredentials, request: ShipmentRequest
    ) -> CourierResult[ShipmentResponse]:
        """Book a shipment and obtain its AWB."""
        ...

    @abstractmethod
    async def get_tracking(self, creds: CourierCredentials, awb: str) -> CourierResult[TrackingResponse]:
        ...

    @abstractmethod
    async def cancel_shipment(self, creds: CourierCredentials, awb: str) -> CourierResult[None]:
        ...

    @abstractmethod
    async def get_label(self, creds: CourierCredentials, awb: str) -> CourierResult[bytes]:
        ...

    @abstractmethod
    async def schedule_pickup(
        self, creds: CourierCredentials, request: PickupRequest
    ) -> CourierResult[PickupResponse]:
        ...

    def tracking_url(self, awb: str) -> str | None:
        """Public tracking page for an AWB, if the carrier has one."""
        return None


# Parsing helpers shared by adapters and webhook normalizers.

_DATETIME_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%d-%m-%Y %H:%M:%S",
    "%d-%m-%Y %H:%M",
    "%d-%m-%Y",
    "%d %b %Y %H:%M",
    "%d %b %Y",
    "%d-%b-%Y %H:%M",
    "%d-%b-%Y",
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y",
)


def parse_carrier_datetime(value: Any) -> datetime | None:
    """Parse the assortment of date strings carriers send.

    Naive results are assumed to be UTC. Returns None for blanks and for
    anything unparseable; carrier timestamps are informational and never
    worth failing an operation over.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if not text:
            return None
        parsed = None
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            for fmt in _DATETIME_FORMATS:
                try:
                    parsed = datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue
        if parsed is None:
            logger.debug("Unparseable carrier timestamp: %r", text)
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def combine_date_time(date_part: Any, time_part: Any) -> datetime | None:
    """Join separate date and time fields (e.g. ``"15-Jan-2024"`` + ``"1430"``)."""
    date_text = str(date_part or "").strip()
    time_text = str(time_part or "").strip()
    if not date_text:
        return None
    if time_text.isdigit() and len(time_text) == 4:
        time_text = f"{time_text[:2]}:{time_text[2:]}"
    return parse_carrier_datetime(f"{date_text} {time_text}".strip())


def to_float(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def to_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def split_name(full_name: str) -> tuple[str, str]:
    """Split a full name into (first, last); last may be empty."""
    parts = (full_name or "").strip().split(None, 1)
    if not parts:
        return "", ""
    return parts[0], parts[1] if len(parts) > 1 else ""
