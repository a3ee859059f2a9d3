"""
OpenFoodFacts API client.

One HTTP client serving the three barcode providers: product/eco-grade
lookup, nutrition/ingredients lookup and allergen lookup.
"""

from __future__ import annotations

import time
from typing import Any, Optional

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ecoscan.domain.product.models import (
    AllergenLookup,
    NutritionLookup,
    ProviderResponse,
)
from ecoscan.domain.shared.errors import (
    ExternalServiceError,
    ServiceUnavailableError,
    TimeoutError,
)
from ecoscan.infrastructure.openfoodfacts.mapper import OpenFoodFactsMapper

logger = structlog.get_logger(__name__)

NUTRITION_FIELDS = ",".join(
    [
        "product_name",
        "ingredients_text",
        "nutriments",
        "nutrition_grades",
        "ecoscore_grade",
        "quantity",
        "packaging",
        "packaging_tags",
        "image_url",
    ]
)
ALLERGEN_FIELDS = "allergens_tags,allergens_hierarchy,allergens,traces_tags"


class _ServerError(Exception):
    """5xx response, retried."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"Server error {status_code}")
        self.status_code = status_code


class OpenFoodFactsClient:
    """OpenFoodFacts API client.

    Implements IProductProvider, INutritionProvider and IAllergenProvider.
    Not-found (404 or status=0) returns None; transport failures raise
    after bounded retries with exponential backoff.

    Example:
        >>> async with OpenFoodFactsClient() as client:
        ...     product = await client.fetch_product("8901063142125")
        ...     nutrition = await client.fetch_nutrition("8901063142125")
    """

    BASE_URL = "https://world.openfoodfacts.org"
    USER_AGENT = "EcoScan/1.0"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_seconds: float = 8.0,
        max_retries: int = 3,
        backoff_seconds: float = 0.2,
    ) -> None:
        """Initialize API client.

        Args:
            base_url: API root (default: public world instance)
            timeout_seconds: Request timeout
            max_retries: Total attempts per request
            backoff_seconds: Base of the exponential backoff
        """
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.max_retries = max(1, max_retries)
        self.backoff_seconds = backoff_seconds
        self._session: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> OpenFoodFactsClient:
        """Async context manager entry."""
        self._session = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout_seconds),
            headers={"User-Agent": self.USER_AGENT},
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        """Async context manager exit."""
        if self._session:
            await self._session.aclose()
            self._session = None

    async def _get_json(
        self,
        url: str,
        barcode: str,
        params: Optional[dict[str, str]] = None,
    ) -> Optional[Any]:
        """GET url and decode JSON.

        Returns:
            Decoded body, or None on 404

        Raises:
            TimeoutError: If every attempt timed out
            ServiceUnavailableError: If every attempt got a 5xx
            ExternalServiceError: On other HTTP or decoding errors
        """
        if not self._session:
            raise ExternalServiceError("Client not initialized, use async with")

        start = time.time()
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.backoff_seconds, max=4),
            retry=retry_if_exception_type((httpx.TransportError, _ServerError)),
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    response = await self._session.get(url, params=params)
                    if response.status_code >= 500:
                        logger.warning(
                            "OpenFoodFacts server error",
                            barcode=barcode,
                            status=response.status_code,
                            attempt=attempt.retry_state.attempt_number,
                        )
                        raise _ServerError(response.status_code)
        except httpx.TimeoutException as e:
            raise TimeoutError(f"OpenFoodFacts API timeout for {barcode}") from e
        except _ServerError as e:
            raise ServiceUnavailableError(f"OpenFoodFacts API error: {e.status_code}") from e
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"OpenFoodFacts API client error: {e}") from e

        elapsed_ms = round((time.time() - start) * 1000, 2)

        if response.status_code == 404:
            logger.info("Barcode not found in OFF", barcode=barcode, time_ms=elapsed_ms)
            return None

        if response.status_code >= 400:
            raise ExternalServiceError(f"OpenFoodFacts API error: {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise ExternalServiceError(f"OpenFoodFacts returned invalid JSON for {barcode}") from e

        logger.debug("OFF response received", barcode=barcode, time_ms=elapsed_ms)
        return data

    async def fetch_product(self, barcode: str) -> Optional[ProviderResponse]:
        """Product name, packaging, raw footprint and eco grade."""
        url = f"{self.base_url}/api/v0/product/{barcode}.json"
        data = await self._get_json(url, barcode)
        if data is None:
            return None

        result = OpenFoodFactsMapper.to_provider_response(barcode, data)
        logger.info(
            "Product lookup finished",
            barcode=barcode,
            found=result is not None,
            name=result.product.name if result else None,
        )
        return result

    async def fetch_nutrition(self, barcode: str) -> Optional[NutritionLookup]:
        """Nutrition facts, ingredients, packaging, quantity and image."""
        url = f"{self.base_url}/api/v2/product/{barcode}"
        data = await self._get_json(url, barcode, params={"fields": NUTRITION_FIELDS})
        if data is None:
            return None
        return OpenFoodFactsMapper.to_nutrition_lookup(data)

    async def fetch_allergens(self, barcode: str) -> Optional[AllergenLookup]:
        """Raw allergen, hierarchy and traces tags."""
        url = f"{self.base_url}/api/v2/product/{barcode}"
        data = await self._get_json(url, barcode, params={"fields": ALLERGEN_FIELDS})
        if data is None:
            return None
        return OpenFoodFactsMapper.to_allergen_lookup(data)
