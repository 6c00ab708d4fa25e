"""YAML configuration loader with env var resolution and Pydantic validation.

Loads config from (priority order):
1. Explicit path (``--config`` CLI flag or SHIPSYNC_CONFIG env var)
2. ./shipsync.yaml (working directory)
3. ~/.shipsync/config.yaml (user home)

Environment variables override YAML: SHIPSYNC_<SECTION>_<KEY>.
${VAR} references in YAML values resolve from environment at load time.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def resolve_env_vars(value: str) -> str:
    """Resolve ${VAR} references in a string from environment variables.

    Args:
        value: String potentially containing ${VAR} references.

    Returns:
        String with all ${VAR} references replaced by their env values.
        Missing env vars resolve to empty string.
    """
    def _replace(match: re.Match) -> str:
        return os.environ.get(match.group(1), "")

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _resolve_env_vars_recursive(data: Any) -> Any:
    """Recursively resolve ${VAR} references in a nested data structure."""
    if isinstance(data, str):
        return resolve_env_vars(data)
    elif isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    return data


class SyncLimits(BaseModel):
    """Hard ceilings applied by the channel sync engine.

    page_size bounds a single storefront list call; max_items caps the
    number of items one run may process regardless of channel settings;
    inventory_batch_size is the storefront's inventory-level batch limit.
    """

    page_size: int = Field(250, ge=1, le=250)
    max_items: int = Field(10_000, ge=1)
    inventory_batch_size: int = Field(50, ge=1, le=50)


class HttpConfig(BaseModel):
    """Outbound HTTP settings shared by carrier and storefront clients."""

    timeout_seconds: float = Field(30.0, gt=0)
    connect_timeout_seconds: float = Field(10.0, gt=0)


class ShopifyConfig(BaseModel):
    """Storefront app settings used for OAuth and webhooks."""

    api_version: str = "2024-01"
    client_id: str = ""
    client_secret: str = ""
    scopes: list[str] = [
        "read_orders",
        "write_orders",
        "read_products",
        "read_inventory",
        "write_inventory",
        "read_locations",
    ]
    redirect_uri: str = ""
    webhook_base_url: str = ""


class CarrierEndpoints(BaseModel):
    """Base URLs per carrier; overridable for staging accounts."""

    shiprocket: str = "https://apiv2.shiprocket.in/v1/external"
    delhivery: str = "https://track.delhivery.com"
    bluedart: str = "https://netconnect.bluedart.com"
    dtdc: str = "https://api.dtdc.com"

    @field_validator("shiprocket", "delhivery", "bluedart", "dtdc")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        """Normalize base URLs so path joins never double the slash."""
        return value.rstrip("/")


class TrackingConfig(BaseModel):
    """Polling settings for the shipment tracking refresh."""

    stale_after_hours: int = 2
    batch_size: int = 100


class ShipSyncConfig(BaseModel):
    """Top-level configuration for the ShipSync integration engine."""

    sync: SyncLimits = SyncLimits()
    http: HttpConfig = HttpConfig()
    shopify: ShopifyConfig = ShopifyConfig()
    carriers: CarrierEndpoints = CarrierEndpoints()
    tracking: TrackingConfig = TrackingConfig()
    log_level: str = "info"


def _find_config_file() -> Path | None:
    """Search for config file in standard locations.

    Returns:
        Path to config file if found, None otherwise.
    """
    candidates = [
        Path.cwd() / "shipsync.yaml",
        Path.cwd() / "shipsync.yml",
        Path.home() / ".shipsync" / "config.yaml",
        Path.home() / ".shipsync" / "config.yml",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def _coerce_env_value(value: str) -> Any:
    """Coerce an env override to int, float, bool, or keep as string."""
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    return value


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply SHIPSYNC_<SECTION>_<KEY> env var overrides to config data.

    For example, ``SHIPSYNC_SYNC_MAX_ITEMS=500`` maps to section ``sync``,
    field ``max_items``. Keys without a known section prefix are ignored.

    Args:
        data: Parsed YAML config dict.

    Returns:
        Config dict with env var overrides applied.
    """
    prefix = "SHIPSYNC_"
    # Longest-first so a section name that prefixes another still matches greedily.
    known_sections = sorted(
        (
            name for name, info in ShipSyncConfig.model_fields.items()
            if isinstance(info.default, BaseModel)
        ),
        key=len,
        reverse=True,
    )
    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue
        suffix = key[len(prefix):].lower()
        matched_section = None
        matched_field = None
        for section in known_sections:
            section_prefix = section + "_"
            if suffix.startswith(section_prefix):
                matched_section = section
                matched_field = suffix[len(section_prefix):]
                break
        if matched_section is None or not matched_field:
            continue
        if matched_section not in data or data[matched_section] is None:
            data[matched_section] = {}
        if isinstance(data[matched_section], dict):
            data[matched_section][matched_field] = _coerce_env_value(value)
    return data


def load_config(config_path: str | None = None) -> ShipSyncConfig:
    """Load ShipSync configuration from YAML file with env var resolution.

    Unlike a missing explicit path, a missing default file is not an
    error: the defaults (plus env overrides) are returned.

    Args:
        config_path: Explicit path to config file. If None, uses
            SHIPSYNC_CONFIG or searches standard locations.

    Returns:
        Parsed and validated ShipSyncConfig.

    Raises:
        FileNotFoundError: If an explicit config path does not exist.
    """
    config_path = config_path or os.environ.get("SHIPSYNC_CONFIG") or None
    raw_data: dict[str, Any] = {}

    if config_path:
        path: Path | None = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        path = _find_config_file()

    if path is not None:
        logger.info("Loading config from %s", path)
        with open(path) as f:
            raw_data = yaml.safe_load(f) or {}

    data = _resolve_env_vars_recursive(raw_data)
    data = _apply_env_overrides(data)
    return ShipSyncConfig(**data)


_config: ShipSyncConfig | None = None


def get_config() -> ShipSyncConfig:
    """Return the process-wide configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Drop the cached configuration (tests and config reloads)."""
    global _config
    _config = None
