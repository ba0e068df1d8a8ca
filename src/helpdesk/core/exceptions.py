"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries. The HTTP layer maps each kind to
a status code; nothing below the controllers knows about HTTP.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(DomainException):
    """Malformed business input (unknown update field, dangling reference)."""


class ConflictException(DomainException):
    """
    Write rejected because stored state moved on.

    Raised for stale versions on update and for duplicate unique values.
    Callers re-read and retry; the core never retries on their behalf.
    """


class ForbiddenException(DomainException):
    """Access policy denied the action."""


class UnauthorizedException(ApplicationException):
    """No authenticated actor accompanied the request."""


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ServiceUnavailableException(RepositoryException):
    """
    Transient store failure (locked database, dropped connection).

    Safe to retry with backoff; distinct from ConflictException.
    """

    def __init__(
        self,
        message: str = "Store temporarily unavailable",
        retry_after_seconds: int = 1,
        details: Optional[dict] = None
    ):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""
