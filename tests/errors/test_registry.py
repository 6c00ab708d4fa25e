"""Unit tests for src/errors/registry.py and src/errors/formatter.py."""

import pytest

from src.errors import ShipSyncError, format_error, render_message
from src.errors.registry import ERROR_REGISTRY, ErrorCategory, get_error, get_errors_by_category


@pytest.mark.parametrize(
    "code,category,title",
    [
        ("E-1001", ErrorCategory.CONFIG, "Channel Not Found"),
        ("E-1002", ErrorCategory.CONFIG, "Channel Not Connected"),
        ("E-1005", ErrorCategory.CONFIG, "Carrier Setting Missing"),
        ("E-1006", ErrorCategory.CONFIG, "No Fulfillment Location"),
        ("E-2002", ErrorCategory.VALIDATION, "Invalid External Order ID"),
        ("E-3005", ErrorCategory.PROVIDER, "AWB Not Assigned"),
        ("E-4001", ErrorCategory.SYSTEM, "Unexpected Error"),
        ("E-5001", ErrorCategory.AUTH, "Invalid Webhook Signature"),
    ],
)
def test_error_codes_registered(code, category, title):
    error = get_error(code)
    assert error is not None, f"{code} not found in registry"
    assert error.category == category
    assert error.title == title


def test_codes_match_their_category_prefix():
    prefixes = {
        ErrorCategory.CONFIG: "E-1",
        ErrorCategory.VALIDATION: "E-2",
        ErrorCategory.PROVIDER: "E-3",
        ErrorCategory.SYSTEM: "E-4",
        ErrorCategory.AUTH: "E-5",
    }
    for code, error in ERROR_REGISTRY.items():
        assert code == error.code
        assert code.startswith(prefixes[error.category])


def test_get_errors_by_category():
    codes = {e.code for e in get_errors_by_category(ErrorCategory.AUTH)}
    assert codes == {"E-5001"}


def test_unknown_code_returns_none():
    assert get_error("E-9999") is None


class TestRenderMessage:
    def test_substitutes_context(self):
        message = render_message("E-1005", courier="dtdc", field="api_key")
        assert message == "dtdc requires 'api_key' to be configured."

    def test_missing_context_keeps_template(self):
        assert render_message("E-3001") == "{provider} rejected the request: {message}"

    def test_unknown_code(self):
        assert render_message("E-0000") == "Unknown error: E-0000"


class TestShipSyncError:
    def test_from_code_fills_registry_fields(self):
        error = ShipSyncError.from_code("E-1002")
        assert error.code == "E-1002"
        assert error.message == "Channel is not connected. Please reconnect to Shopify."
        assert error.remediation
        assert error.is_retryable is False

    def test_retryable_codes(self):
        assert ShipSyncError.from_code("E-3004", provider="Delhivery", message="timeout").is_retryable

    def test_details_are_kept_out_of_the_template(self):
        error = ShipSyncError.from_code("E-2001", message="bad date", details={"field": "from"})
        assert error.message == "bad date"
        assert error.details == {"field": "from"}

    def test_unknown_code(self):
        error = ShipSyncError.from_code("E-0000")
        assert error.message == "Unknown error: E-0000"

    def test_str(self):
        assert str(ShipSyncError.from_code("E-1001")) == "E-1001: Channel not found"

    def test_format_error_includes_remediation_and_retry_hint(self):
        text = format_error(ShipSyncError.from_code("E-3003", provider="Shopify"))
        assert text.splitlines()[0] == "E-3003: Shopify rate limit reached."
        assert "Action: Wait a moment and retry." in text
        assert "retryable" in text

    def test_format_error_without_remediation(self):
        text = format_error(ShipSyncError.from_code("E-1001"), include_remediation=False)
        assert text == "E-1001: Channel not found"
