"""
Domain exceptions.

Typed exceptions for explicit error handling.
"""

from __future__ import annotations


# ═══════════════════════════════════════════════════════════
# BASE EXCEPTION
# ═══════════════════════════════════════════════════════════


class DomainError(Exception):
    """
    Base exception for all domain errors.

    All domain-specific exceptions inherit from this.
    """

    pass


# ═══════════════════════════════════════════════════════════
# PRODUCT DOMAIN EXCEPTIONS
# ═══════════════════════════════════════════════════════════


class ProductDomainError(DomainError):
    """Base exception for product domain."""

    pass


class ProductNotFoundError(ProductDomainError):
    """
    Barcode unknown to every provider and absent from the cache.

    Example:
        >>> raise ProductNotFoundError("Barcode 8901234567890 not found")
    """

    def __init__(self, message: str, barcode: str | None = None) -> None:
        super().__init__(message)
        self.barcode = barcode


class EstimationError(ProductDomainError):
    """
    Carbon estimation failed at transport level.

    Raised when:
    - Text-generation provider times out
    - Provider returns a non-2xx status
    - Network unreachable

    Malformed provider output never raises this; it degrades to a
    raw-text estimate instead.

    Example:
        >>> raise EstimationError("Text generation timed out after 30s")
    """

    pass


# ═══════════════════════════════════════════════════════════
# VALIDATION EXCEPTIONS
# ═══════════════════════════════════════════════════════════


class ValidationError(DomainError):
    """
    Input validation failed.

    Example:
        >>> raise ValidationError("Barcode must contain 6-14 digits")
    """

    pass


# ═══════════════════════════════════════════════════════════
# EXTERNAL SERVICE EXCEPTIONS
# ═══════════════════════════════════════════════════════════


class ExternalServiceError(DomainError):
    """
    External service call failed.

    Base class for all provider transport errors.

    Example:
        >>> raise ExternalServiceError("OpenFoodFacts API error: 502")
    """

    pass


class TimeoutError(ExternalServiceError):  # noqa: A001
    """
    API call timed out.

    Example:
        >>> raise TimeoutError("OpenFoodFacts API timeout after 8s")
    """

    pass


class ServiceUnavailableError(ExternalServiceError):
    """
    External service unavailable (5xx after retries).

    Example:
        >>> raise ServiceUnavailableError("OpenFoodFacts returned 503")
    """

    pass


# ═══════════════════════════════════════════════════════════
# INFRASTRUCTURE EXCEPTIONS
# ═══════════════════════════════════════════════════════════


class InfrastructureError(DomainError):
    """
    Infrastructure layer error.

    Base class for storage errors.
    """

    pass


class PersistenceError(InfrastructureError):
    """
    Durable storage read or write failed.

    Raised when:
    - Store file unreadable or corrupt
    - Disk write failed
    - Stored payload has an unsupported version

    Example:
        >>> raise PersistenceError("Cannot write history.json")
    """

    pass
