"""Text and unit helpers used when persisting channel data."""

import html
import re

ELLIPSIS = "..."

_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")

_WEIGHT_TO_KG = {
    "g": 0.001,
    "kg": 1.0,
    "lb": 0.45359237,
    "oz": 0.028349523125,
}


def truncate(value: str | None, max_length: int) -> str | None:
    """Fit text into a column, replacing the tail with an ellipsis.

    >>> truncate("abcdefgh", 6)
    'abc...'
    """
    if value is None or len(value) <= max_length:
        return value
    if max_length <= len(ELLIPSIS):
        return value[:max_length]
    return value[: max_length - len(ELLIPSIS)] + ELLIPSIS


def strip_html(value: str | None) -> str | None:
    """Drop tags, unescape entities and collapse whitespace."""
    if not value:
        return None
    text = _TAG_RE.sub(" ", value)
    text = html.unescape(text)
    text = _WS_RE.sub(" ", text).strip()
    return text or None


def weight_to_kg(weight: float | None, unit: str | None) -> float | None:
    """Convert a storefront weight to kilograms (g, kg, lb, oz)."""
    if weight is None:
        return None
    factor = _WEIGHT_TO_KG.get((unit or "kg").strip().lower())
    if factor is None:
        return None
    return round(float(weight) * factor, 3)
