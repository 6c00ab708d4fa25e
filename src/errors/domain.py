"""Typed domain exceptions for API error mapping.

These exceptions provide stronger API contract guarantees than
string-based error message matching. Routes can catch specific
exception types to return appropriate HTTP status codes.

Usage:
    # In service layer
    raise NotFoundError("Channel", channel_id)

    # In route handler
    try:
        channel = await service.get_channel(channel_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
"""


class DomainError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class NotFoundError(DomainError):
    """Resource was not found. Maps to HTTP 404."""

    def __init__(self, resource_type: str, identifier: str) -> None:
        super().__init__(f"{resource_type} '{identifier}' not found")
        self.resource_type = resource_type
        self.identifier = identifier


class ConflictError(DomainError):
    """Resource conflict (e.g., duplicate). Maps to HTTP 409."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ValidationError(DomainError):
    """Validation failure. Maps to HTTP 400."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class SyncInProgressError(ConflictError):
    """A sync run already holds the channel lock. Maps to HTTP 409."""

    def __init__(self, channel_id: str) -> None:
        super().__init__(f"A sync is already running for channel '{channel_id}'")
        self.channel_id = channel_id
