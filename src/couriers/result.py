"""Tri-state result returned by every courier adapter operation.

A result is one of:
    success with a value       CourierResult.ok(value)
    success without a value    CourierResult.ok()
    failure with a message     CourierResult.failure(message, code)

Adapters never let provider exceptions cross their boundary; they return
a failure result instead.
"""

from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class CourierResult(Generic[T]):
    """Outcome of one adapter call.

    Attributes:
        is_success: Whether the operation succeeded.
        value: Payload on success (None for value-less successes).
        error_message: Human-readable failure reason.
        error_code: Registry code (E-XXXX) for failures.
        details: Extra failure context, e.g. ids of a half-created order.
    """

    is_success: bool
    value: T | None = None
    error_message: str | None = None
    error_code: str | None = None
    details: dict = field(default_factory=dict)

    @classmethod
    def ok(cls, value: T | None = None) -> "CourierResult[T]":
        """Build a successful result, with or without a value."""
        return cls(is_success=True, value=value)

    @classmethod
    def failure(
        cls,
        message: str,
        code: str | None = None,
        details: dict | None = None,
    ) -> "CourierResult[T]":
        """Build a failed result."""
        return cls(
            is_success=False,
            error_message=message,
            error_code=code,
            details=details or {},
        )

    @property
    def has_value(self) -> bool:
        return self.is_success and self.value is not None

    def __bool__(self) -> bool:
        return self.is_success
