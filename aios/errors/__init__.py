"""Error types for the AIOS backend.

Domain errors map onto HTTP statuses in the API layer. Service errors
are raised by thin collaborator clients and caught at the call site.
"""

from aios.errors.domain import (
    AuthenticationError,
    ChannelDeliveryError,
    DomainError,
    MailerError,
    NotFoundError,
    ProductFileError,
    RateLimitExceededError,
    SheetsError,
    ValidationError,
)

__all__ = [
    "DomainError",
    "NotFoundError",
    "ValidationError",
    "RateLimitExceededError",
    "AuthenticationError",
    "ProductFileError",
    "MailerError",
    "SheetsError",
    "ChannelDeliveryError",
]
