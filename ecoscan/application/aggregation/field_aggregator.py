"""
Field aggregation service.

Fans out to the product, nutrition and allergen providers for one
barcode and merges their partial answers into a single ProductInfo.
"""

import asyncio
import time
from typing import Any, Awaitable, Optional

import structlog

from ecoscan.domain.product.allergens import normalize_allergens
from ecoscan.domain.product.models import (
    AllergenLookup,
    EcoGrade,
    NutritionInfo,
    NutritionLookup,
    ProductInfo,
    ProviderResponse,
    normalize_tags,
)
from ecoscan.domain.product.ports import (
    IAllergenProvider,
    INutritionProvider,
    IProductProvider,
)

logger = structlog.get_logger(__name__)


class AggregationResult:
    """Merged info plus what happened on the way."""

    def __init__(
        self,
        info: ProductInfo,
        fetched_product: Optional[ProviderResponse] = None,
        errors: Optional[dict[str, str]] = None,
    ) -> None:
        """Initialize aggregation result.

        Args:
            info: Merged product info
            fetched_product: Product lookup fetched on a cache miss, if any
            errors: Provider name -> error text for failed calls
        """
        self.info = info
        self.fetched_product = fetched_product
        self.errors = errors or {}


def _present(value: Optional[str]) -> bool:
    return bool(value and value.strip())


class FieldAggregator:
    """Concurrent enrichment of one barcode.

    Flow:
    1. Product lookup (skipped when the cache already supplied it),
       nutrition lookup and allergen lookup run concurrently
    2. All three are awaited; a failure counts as an empty answer
    3. Fresh nutrition values overwrite cache-seeded ones when non-empty
    4. Allergens are normalized to canonical names
    """

    def __init__(
        self,
        product_provider: IProductProvider,
        nutrition_provider: INutritionProvider,
        allergen_provider: IAllergenProvider,
    ) -> None:
        self.product_provider = product_provider
        self.nutrition_provider = nutrition_provider
        self.allergen_provider = allergen_provider

    async def aggregate(
        self,
        barcode: str,
        seed: Optional[ProviderResponse] = None,
    ) -> AggregationResult:
        """Aggregate every provider's answer for a barcode.

        Never raises for provider failures.

        Args:
            barcode: Product barcode
            seed: Cached product lookup, if the cache had one

        Returns:
            AggregationResult with merged info

        Example:
            >>> aggregator = FieldAggregator(off, off, off)
            >>> result = await aggregator.aggregate("8901063142125")
            >>> print(result.info.name, result.info.allergens)
        """
        start_time = time.time()
        logger.info("Starting field aggregation", barcode=barcode, seeded=seed is not None)

        errors: dict[str, str] = {}

        async def _skip() -> None:
            return None

        product_call: Awaitable[Any] = (
            _skip() if seed is not None else self.product_provider.fetch_product(barcode)
        )
        results = await asyncio.gather(
            product_call,
            self.nutrition_provider.fetch_nutrition(barcode),
            self.allergen_provider.fetch_allergens(barcode),
            return_exceptions=True,
        )

        product_result, nutrition_result, allergen_result = (
            self._unwrap(name, result, barcode, errors)
            for name, result in zip(("product", "nutrition", "allergens"), results)
        )

        fetched_product: Optional[ProviderResponse] = None
        if isinstance(product_result, ProviderResponse):
            if product_result.product.has_data():
                fetched_product = product_result
            else:
                logger.info("Product lookup returned no fields", barcode=barcode)

        nutrition = nutrition_result if isinstance(nutrition_result, NutritionLookup) else None
        allergens = allergen_result if isinstance(allergen_result, AllergenLookup) else None

        info = self.merge(barcode, seed or fetched_product, nutrition, allergens)

        logger.info(
            "Field aggregation completed",
            barcode=barcode,
            has_data=info.has_any_data(),
            failed_providers=sorted(errors),
            total_time_ms=round((time.time() - start_time) * 1000, 2),
        )
        return AggregationResult(info=info, fetched_product=fetched_product, errors=errors)

    @staticmethod
    def _unwrap(
        provider: str,
        result: Any,
        barcode: str,
        errors: dict[str, str],
    ) -> Any:
        """Turn a gathered exception into an empty answer."""
        if isinstance(result, asyncio.CancelledError):
            raise result
        if isinstance(result, Exception):
            errors[provider] = str(result) or type(result).__name__
            logger.warning(
                "Provider lookup failed",
                provider=provider,
                barcode=barcode,
                error=str(result),
                error_type=type(result).__name__,
            )
            return None
        return result

    @staticmethod
    def merge(
        barcode: str,
        product: Optional[ProviderResponse],
        nutrition: Optional[NutritionLookup],
        allergens: Optional[AllergenLookup],
    ) -> ProductInfo:
        """Merge provider answers.

        Cache/product values seed name, packaging, eco grade and tags;
        a present, non-empty nutrition value replaces each of them.
        """
        details = product.product if product else None

        name = details.name if details and _present(details.name) else None
        packaging = details.packaging if details and _present(details.packaging) else None
        packaging_tags = normalize_tags(details.packaging_tags) if details else []
        eco_grade = EcoGrade.parse(details.eco_score_grade) if details else None
        carbon_raw = (
            details.carbon_footprint if details and _present(details.carbon_footprint) else None
        )

        nutrition_info = NutritionInfo.unavailable()
        ingredients = quantity = image_url = None

        if nutrition is not None:
            if _present(nutrition.name):
                name = nutrition.name
            if _present(nutrition.packaging):
                packaging = nutrition.packaging
            fresh_tags = normalize_tags(nutrition.packaging_tags)
            if fresh_tags:
                packaging_tags = fresh_tags
            fresh_grade = EcoGrade.parse(nutrition.eco_grade)
            if fresh_grade is not None:
                eco_grade = fresh_grade

            if nutrition.has_nutrients():
                nutrition_info = NutritionInfo(
                    calories=nutrition.calories,
                    fat=nutrition.fat,
                    protein=nutrition.protein,
                    carbohydrate=nutrition.carbohydrate,
                    sugar=nutrition.sugar,
                )
            ingredients = nutrition.ingredients if _present(nutrition.ingredients) else None
            quantity = nutrition.quantity if _present(nutrition.quantity) else None
            image_url = nutrition.image_url if _present(nutrition.image_url) else None

        return ProductInfo(
            barcode=barcode,
            name=name.strip() if name else None,
            packaging=packaging.strip() if packaging else None,
            packaging_tags=packaging_tags,
            eco_grade=eco_grade,
            carbon_footprint_raw=carbon_raw,
            nutrition=nutrition_info,
            ingredients=ingredients,
            quantity=quantity,
            image_url=image_url,
            allergens=normalize_allergens(allergens) if allergens else [],
        )
