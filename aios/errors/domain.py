"""Typed domain exceptions for API error mapping.

Routes raise these and the exception handlers in ``aios.api.main``
translate them into a consistent JSON error body:

    raise NotFoundError("Quote", quote_number)   # -> 404
    raise ValidationError("No file provided")     # -> 400
"""


class DomainError(Exception):
    """Base exception for all domain errors."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(DomainError):
    """Resource was not found. Maps to HTTP 404."""

    status_code = 404

    def __init__(self, resource_type: str, identifier: str, message: str | None = None) -> None:
        super().__init__(message or f"{resource_type} '{identifier}' not found")
        self.resource_type = resource_type
        self.identifier = identifier


class ValidationError(DomainError):
    """Client input failure. Maps to HTTP 400."""

    status_code = 400


class AuthenticationError(DomainError):
    """Missing or invalid credentials or signature. Maps to HTTP 401."""

    status_code = 401


class RateLimitExceededError(DomainError):
    """Open-access prompt allowance exhausted. Maps to HTTP 429."""

    status_code = 429

    def __init__(self, limit: int) -> None:
        super().__init__(
            f"Open access limit: maximum {limit} prompts per day per device."
        )
        self.limit = limit


class ProductFileError(ValidationError):
    """Uploaded product file could not be parsed."""


class MailerError(DomainError):
    """Email could not be sent."""


class SheetsError(DomainError):
    """Spreadsheet API call failed."""


class ChannelDeliveryError(DomainError):
    """Outbound WhatsApp or Slack message could not be delivered."""
