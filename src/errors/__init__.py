"""Error handling framework for ShipSync.

This package provides:
- Error code registry with E-XXXX format codes
- ShipSyncError and formatting utilities
- Typed domain exceptions for API mapping

Error categories:
- E-1xxx: Configuration errors
- E-2xxx: Validation errors
- E-3xxx: Provider (carrier/storefront) errors
- E-4xxx: System/internal errors
- E-5xxx: Authentication errors
"""

from src.errors.registry import (
    ErrorCategory,
    ErrorCode,
    ERROR_REGISTRY,
    get_error,
    get_errors_by_category,
    render_message,
)
from src.errors.formatter import (
    ShipSyncError,
    format_error,
)

__all__ = [
    # Registry
    "ErrorCode",
    "ErrorCategory",
    "ERROR_REGISTRY",
    "get_error",
    "get_errors_by_category",
    "render_message",
    # Formatter
    "ShipSyncError",
    "format_error",
]
