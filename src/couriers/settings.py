"""Typed per-carrier account settings.

Courier accounts persist their credentials plus an open string map for
forward compatibility. Adapters never read that map directly: it is
converted into one of the frozen dataclasses below right after load, and
missing required values surface as ``CourierConfigError`` before any
network call.
"""

from dataclasses import dataclass

from src.couriers.models import CourierCredentials, CourierType
from src.errors import render_message

DEFAULT_PICKUP_LOCATION = "Primary"


class CourierConfigError(Exception):
    """Typed configuration error with structured error code."""

    def __init__(self, courier: str, field_name: str) -> None:
        self.code = "E-1005"
        self.courier = courier
        self.field_name = field_name
        self.message = render_message(self.code, courier=courier, field=field_name)
        super().__init__(f"{self.code}: {self.message}")


def _setting(creds: CourierCredentials, *keys: str, default: str = "") -> str:
    """Return the first non-blank settings value among keys."""
    for key in keys:
        value = (creds.settings.get(key) or "").strip()
        if value:
            return value
    return default


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value.strip())
    except (ValueError, AttributeError):
        return None


class _RequireMixin:
    """Shared ``require`` helper for settings dataclasses."""

    courier: CourierType

    def require(self, *field_names: str) -> None:
        """Raise CourierConfigError for the first blank required field."""
        for name in field_names:
            if not getattr(self, name, None):
                raise CourierConfigError(self.courier.value, name)


@dataclass(frozen=True)
class ShiprocketSettings(_RequireMixin):
    """Shiprocket account: email/password login or a cached token."""

    email: str = ""
    password: str = ""
    access_token: str = ""
    pickup_location: str = DEFAULT_PICKUP_LOCATION
    channel_id: int | None = None
    courier: CourierType = CourierType.SHIPROCKET

    @classmethod
    def from_credentials(cls, creds: CourierCredentials) -> "ShiprocketSettings":
        settings = cls(
            email=(creds.api_key or "").strip(),
            password=creds.api_secret or "",
            access_token=(creds.access_token or "").strip(),
            pickup_location=_setting(
                creds, "pickup_location", "pickupLocation",
                default=DEFAULT_PICKUP_LOCATION,
            ),
            channel_id=_parse_int(creds.channel_id)
            or _parse_int(_setting(creds, "channel_id", "channelId") or None),
        )
        if not settings.access_token:
            settings.require("email", "password")
        return settings


@dataclass(frozen=True)
class DelhiverySettings(_RequireMixin):
    """Delhivery account: static API token plus registered warehouse name."""

    api_token: str = ""
    pickup_location: str = DEFAULT_PICKUP_LOCATION
    client_name: str = ""
    courier: CourierType = CourierType.DELHIVERY

    @classmethod
    def from_credentials(cls, creds: CourierCredentials) -> "DelhiverySettings":
        settings = cls(
            api_token=(creds.api_key or "").strip(),
            pickup_location=_setting(
                creds, "pickup_location", "pickupLocation",
                default=DEFAULT_PICKUP_LOCATION,
            ),
            client_name=_setting(creds, "client_name"),
        )
        settings.require("api_token")
        return settings


@dataclass(frozen=True)
class BlueDartSettings(_RequireMixin):
    """BlueDart account: login id/license key profile and origin details."""

    login_id: str = ""
    license_key: str = ""
    customer_code: str = ""
    origin_area: str = ""
    area_code: str = ""
    pickup_name: str = ""
    pickup_address: str = ""
    pickup_pincode: str = ""
    pickup_mobile: str = ""
    courier: CourierType = CourierType.BLUEDART

    @classmethod
    def from_credentials(cls, creds: CourierCredentials) -> "BlueDartSettings":
        settings = cls(
            login_id=(creds.api_key or "").strip(),
            license_key=(creds.api_secret or "").strip(),
            customer_code=_setting(creds, "customer_code"),
            origin_area=_setting(creds, "origin_area"),
            area_code=_setting(creds, "area_code", "origin_area"),
            pickup_name=_setting(creds, "pickup_name"),
            pickup_address=_setting(creds, "pickup_address"),
            pickup_pincode=_setting(creds, "pickup_pincode"),
            pickup_mobile=_setting(creds, "pickup_mobile", "pickup_phone"),
        )
        settings.require("login_id", "license_key")
        return settings


@dataclass(frozen=True)
class DtdcSettings(_RequireMixin):
    """DTDC account: API key and customer code."""

    api_key: str = ""
    customer_code: str = ""
    pickup_name: str = ""
    pickup_address: str = ""
    pickup_pincode: str = ""
    pickup_phone: str = ""
    courier: CourierType = CourierType.DTDC

    @classmethod
    def from_credentials(cls, creds: CourierCredentials) -> "DtdcSettings":
        settings = cls(
            api_key=(creds.api_key or "").strip(),
            customer_code=_setting(creds, "customer_code"),
            pickup_name=_setting(creds, "pickup_name"),
            pickup_address=_setting(creds, "pickup_address"),
            pickup_pincode=_setting(creds, "pickup_pincode"),
            pickup_phone=_setting(creds, "pickup_phone", "pickup_mobile"),
        )
        settings.require("api_key")
        return settings


CourierSettings = ShiprocketSettings | DelhiverySettings | BlueDartSettings | DtdcSettings

_SETTINGS_TYPES: dict[CourierType, type] = {
    CourierType.SHIPROCKET: ShiprocketSettings,
    CourierType.DELHIVERY: DelhiverySettings,
    CourierType.BLUEDART: BlueDartSettings,
    CourierType.DTDC: DtdcSettings,
}


def settings_for(courier: CourierType, creds: CourierCredentials) -> CourierSettings:
    """Convert raw credentials into the carrier's typed settings.

    Raises:
        CourierConfigError: If a required credential or setting is blank.
    """
    return _SETTINGS_TYPES[courier].from_credentials(creds)
