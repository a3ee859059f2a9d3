"""
Ports for external collaborators.

Protocols the application layer depends on. Infrastructure provides
the adapters; tests provide doubles.
"""

from typing import Any, Optional, Protocol, runtime_checkable

from ecoscan.domain.product.models import (
    AllergenLookup,
    NutritionLookup,
    ProviderResponse,
)


@runtime_checkable
class IProductProvider(Protocol):
    """Product/packaging/eco-grade lookup by barcode."""

    async def fetch_product(self, barcode: str) -> Optional[ProviderResponse]:
        """
        Look up product identity and packaging.

        Returns:
            ProviderResponse, or None when the barcode is unknown

        Raises:
            ExternalServiceError: On transport failure
        """
        ...


@runtime_checkable
class INutritionProvider(Protocol):
    """Nutrition and ingredients lookup by barcode."""

    async def fetch_nutrition(self, barcode: str) -> Optional[NutritionLookup]:
        """
        Look up nutrition facts, ingredients, packaging and image.

        Returns:
            NutritionLookup, or None when the barcode is unknown

        Raises:
            ExternalServiceError: On transport failure
        """
        ...


@runtime_checkable
class IAllergenProvider(Protocol):
    """Allergen tags lookup by barcode."""

    async def fetch_allergens(self, barcode: str) -> Optional[AllergenLookup]:
        """
        Look up raw allergen tags.

        Returns:
            AllergenLookup, or None when the barcode is unknown

        Raises:
            ExternalServiceError: On transport failure
        """
        ...


@runtime_checkable
class ITextGenerator(Protocol):
    """Free-form text generation (prompt in, text out)."""

    async def generate(self, prompt: str) -> str:
        """
        Send a prompt and return the raw response text.

        Raises:
            EstimationError: On transport failure
        """
        ...


@runtime_checkable
class IKeyValueStore(Protocol):
    """Durable JSON key/value storage."""

    async def load(self, key: str) -> Optional[Any]:
        """
        Read the JSON value stored under key.

        Returns:
            Decoded value, or None when absent

        Raises:
            PersistenceError: When the stored value is unreadable
        """
        ...

    async def save(self, key: str, value: Any) -> None:
        """
        Write a JSON-serializable value under key.

        Raises:
            PersistenceError: On write failure
        """
        ...

    async def delete(self, key: str) -> None:
        """Remove key if present."""
        ...
