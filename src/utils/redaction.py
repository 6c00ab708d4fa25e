"""Redaction of carrier and storefront secrets before logging or storing.

Carrier payloads mix credentials into request bodies (BlueDart's
``Profile.LicenceKey``, Shiprocket's login password) and headers
(Delhivery ``Token``, DTDC ``X-API-Key``, Shopify
``X-Shopify-Access-Token``). Everything that is logged or persisted as
``last_error`` goes through this module first.
"""

import re
from typing import Any

_SENSITIVE_KEY_PARTS = frozenset({
    "secret", "token", "authorization", "api_key", "apikey", "password",
    "credential", "licence", "license", "hmac", "client_id",
})

# Whole value replaced, whatever its shape.
_OPAQUE_KEYS = frozenset({"credentials", "headers", "profile"})

REDACTED = "***REDACTED***"


def is_sensitive_key(key: str) -> bool:
    """True if a dict key looks like it carries a secret (case-insensitive)."""
    lowered = key.lower().replace("-", "_")
    return any(part in lowered for part in _SENSITIVE_KEY_PARTS)


def redact_for_logging(obj: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``obj`` with secret values replaced.

    Nested dicts and lists of dicts are walked recursively.
    """
    redacted: dict[str, Any] = {}
    for key, value in obj.items():
        if key.lower() in _OPAQUE_KEYS or is_sensitive_key(key):
            redacted[key] = REDACTED
        elif isinstance(value, dict):
            redacted[key] = redact_for_logging(value)
        elif isinstance(value, list):
            redacted[key] = [
                redact_for_logging(item) if isinstance(item, dict) else item
                for item in value
            ]
        else:
            redacted[key] = value
    return redacted


_KEYWORDS = (
    r"secret|token|password|api_key|x-api-key|licencekey|licensekey|"
    r"access_token|authorization|client_secret|hmac"
)
_SECRET_IN_TEXT = re.compile(
    r"(?i)(?:"
    r"Authorization\s*:\s*(?:Bearer|Token)\s+\S+"
    r"|shp(?:at|ca|pa|ss)_[0-9a-f]+"
    r'|"(?:' + _KEYWORDS + r')"\s*:\s*"[^"]*"'
    r"|(?:" + _KEYWORDS + r")\s*[=:]\s*\"[^\"]*\""
    r"|(?:" + _KEYWORDS + r")\s*[=:]\s*\S+"
    r")",
)


def sanitize_error_message(msg: str | None, max_length: int = 2000) -> str | None:
    """Strip secret-looking fragments from free text and cap its length.

    Used for provider error text before it is returned to callers or
    stored on a channel, courier account or shipment row.
    """
    if msg is None:
        return None
    cleaned = _SECRET_IN_TEXT.sub(REDACTED, msg)
    if len(cleaned) > max_length:
        cleaned = cleaned[: max_length - 3] + "..."
    return cleaned
