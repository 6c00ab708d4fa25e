"""Error code registry with E-XXXX format codes.

This module defines the error code system for ShipSync, organizing errors
into categories:
- E-1xxx: Configuration errors (channel/carrier setup, detected before any call)
- E-2xxx: Validation errors
- E-3xxx: Provider errors (carrier and storefront APIs)
- E-4xxx: System/internal errors
- E-5xxx: Authentication errors

Each error includes a code, title, message template, and remediation steps.
"""

from dataclasses import dataclass
from enum import Enum


class ErrorCategory(str, Enum):
    """Categories for error codes."""

    CONFIG = "config"  # E-1xxx: Configuration errors
    VALIDATION = "validation"  # E-2xxx: Validation errors
    PROVIDER = "provider"  # E-3xxx: Carrier/storefront API errors
    SYSTEM = "system"  # E-4xxx: System/internal errors
    AUTH = "auth"  # E-5xxx: Authentication errors


@dataclass
class ErrorCode:
    """Definition of an error code with metadata.

    Attributes:
        code: Error code in E-XXXX format.
        category: Error category for grouping.
        title: Short title for display.
        message_template: Message with {placeholders} for context.
        remediation: Action user should take to resolve.
        is_retryable: Whether the operation can be retried without user action.
    """

    code: str  # E-XXXX format
    category: ErrorCategory
    title: str  # Short title for display
    message_template: str  # Message with {placeholders}
    remediation: str  # Action user should take
    is_retryable: bool = False  # Can be retried without user action


# Error registry - all defined error codes
ERROR_REGISTRY: dict[str, ErrorCode] = {
    # Configuration errors (E-1xxx)
    "E-1001": ErrorCode(
        code="E-1001",
        category=ErrorCategory.CONFIG,
        title="Channel Not Found",
        message_template="Channel not found",
        remediation="Check the channel id or create the channel first.",
    ),
    "E-1002": ErrorCode(
        code="E-1002",
        category=ErrorCategory.CONFIG,
        title="Channel Not Connected",
        message_template="Channel is not connected. Please reconnect to Shopify.",
        remediation="Reconnect the channel to the storefront and retry.",
    ),
    "E-1003": ErrorCode(
        code="E-1003",
        category=ErrorCategory.CONFIG,
        title="Credentials Missing",
        message_template="Channel credentials are missing",
        remediation="Save the storefront access token or API credentials for this channel.",
    ),
    "E-1004": ErrorCode(
        code="E-1004",
        category=ErrorCategory.CONFIG,
        title="Store URL Missing",
        message_template="Store URL is not configured for this channel.",
        remediation="Set the store URL (e.g. mystore.myshopify.com) on the channel.",
    ),
    "E-1005": ErrorCode(
        code="E-1005",
        category=ErrorCategory.CONFIG,
        title="Carrier Setting Missing",
        message_template="{courier} requires '{field}' to be configured.",
        remediation="Add the missing value to the courier account credentials or settings.",
    ),
    "E-1006": ErrorCode(
        code="E-1006",
        category=ErrorCategory.CONFIG,
        title="No Fulfillment Location",
        message_template="No locations found in the storefront.",
        remediation="Create at least one fulfillment location in the storefront admin.",
    ),
    # Validation errors (E-2xxx)
    "E-2001": ErrorCode(
        code="E-2001",
        category=ErrorCategory.VALIDATION,
        title="Invalid Request",
        message_template="{message}",
        remediation="Correct the request fields and retry.",
    ),
    "E-2002": ErrorCode(
        code="E-2002",
        category=ErrorCategory.VALIDATION,
        title="Invalid External Order ID",
        message_template="Invalid Shopify order ID",
        remediation="Use the numeric order id returned when the order was created.",
    ),
    "E-2003": ErrorCode(
        code="E-2003",
        category=ErrorCategory.VALIDATION,
        title="Malformed Webhook",
        message_template="Webhook payload could not be parsed: {message}",
        remediation="Check the webhook configuration on the provider dashboard.",
    ),
    # Provider errors (E-3xxx)
    "E-3001": ErrorCode(
        code="E-3001",
        category=ErrorCategory.PROVIDER,
        title="Provider Rejected Request",
        message_template="{provider} rejected the request: {message}",
        remediation="Review the provider message, correct the data and retry.",
    ),
    "E-3002": ErrorCode(
        code="E-3002",
        category=ErrorCategory.PROVIDER,
        title="Provider Authentication Failed",
        message_template="{provider} authentication failed: {message}",
        remediation="Verify the account credentials with the provider.",
    ),
    "E-3003": ErrorCode(
        code="E-3003",
        category=ErrorCategory.PROVIDER,
        title="Provider Rate Limited",
        message_template="{provider} rate limit reached.",
        remediation="Wait a moment and retry.",
        is_retryable=True,
    ),
    "E-3004": ErrorCode(
        code="E-3004",
        category=ErrorCategory.PROVIDER,
        title="Provider Unreachable",
        message_template="Could not reach {provider}: {message}",
        remediation="Check network connectivity and provider status, then retry.",
        is_retryable=True,
    ),
    "E-3005": ErrorCode(
        code="E-3005",
        category=ErrorCategory.PROVIDER,
        title="AWB Not Assigned",
        message_template="Order created but AWB could not be assigned: {message}",
        remediation="Check serviceability and wallet balance, then retry; the created order is reused.",
        is_retryable=True,
    ),
    "E-3006": ErrorCode(
        code="E-3006",
        category=ErrorCategory.PROVIDER,
        title="Route Not Serviceable",
        message_template="{message}",
        remediation="Choose another carrier or verify the pincodes.",
    ),
    # System errors (E-4xxx)
    "E-4001": ErrorCode(
        code="E-4001",
        category=ErrorCategory.SYSTEM,
        title="Unexpected Error",
        message_template="Unexpected error: {message}",
        remediation="Check the logs for details. Contact support if the problem persists.",
    ),
    # Auth errors (E-5xxx)
    "E-5001": ErrorCode(
        code="E-5001",
        category=ErrorCategory.AUTH,
        title="Invalid Webhook Signature",
        message_template="Webhook signature verification failed.",
        remediation="Confirm the webhook secret matches the storefront app settings.",
    ),
}


def get_error(code: str) -> ErrorCode | None:
    """Get error definition by code.

    Args:
        code: Error code in E-XXXX format.

    Returns:
        ErrorCode if found, None otherwise.
    """
    return ERROR_REGISTRY.get(code)


def get_errors_by_category(category: ErrorCategory) -> list[ErrorCode]:
    """Get all errors in a category.

    Args:
        category: The error category to filter by.

    Returns:
        List of ErrorCode objects in the specified category.
    """
    return [e for e in ERROR_REGISTRY.values() if e.category == category]


def render_message(code: str, **context: object) -> str:
    """Render a registry message template, keeping the template on missing keys."""
    error_def = get_error(code)
    if error_def is None:
        return f"Unknown error: {code}"
    try:
        return error_def.message_template.format(**context)
    except KeyError:
        return error_def.message_template
