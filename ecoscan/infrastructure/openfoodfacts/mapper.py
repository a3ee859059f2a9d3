"""
OpenFoodFacts data mapper.

Transforms raw OpenFoodFacts JSON into provider DTOs. Decoding is
defensive: missing keys and wrong types become None, never errors.
"""

from typing import Any, Optional

from ecoscan.domain.product.models import (
    AllergenLookup,
    NutritionLookup,
    ProductDetails,
    ProviderResponse,
)

KJ_PER_KCAL = 4.184


def _str(value: Any) -> Optional[str]:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _str_list(value: Any) -> list[str]:
    if isinstance(value, list):
        return [item for item in value if isinstance(item, str) and item.strip()]
    if isinstance(value, str) and value.strip():
        return [part.strip() for part in value.split(",") if part.strip()]
    return []


def _product(response_data: Any) -> Optional[dict[str, Any]]:
    """Product object of a found response, None otherwise."""
    if not isinstance(response_data, dict):
        return None
    if response_data.get("status") not in (1, "1", None):
        return None
    product = response_data.get("product")
    if not isinstance(product, dict) or not product:
        return None
    return product


class OpenFoodFactsMapper:
    """Maps OpenFoodFacts API data to provider DTOs."""

    @staticmethod
    def to_provider_response(barcode: str, response_data: Any) -> Optional[ProviderResponse]:
        """Parse a product lookup response.

        Args:
            barcode: Requested barcode
            response_data: Raw API response JSON

        Returns:
            ProviderResponse, or None when the product is not found

        Example:
            >>> data = {
            ...     "status": 1,
            ...     "product": {
            ...         "product_name": "Maggi 2-Minute Noodles",
            ...         "packaging_tags": ["en:plastic"],
            ...         "ecoscore_grade": "d",
            ...     },
            ... }
            >>> response = OpenFoodFactsMapper.to_provider_response("8901063142125", data)
            >>> assert response.product.eco_score_grade == "d"
        """
        product = _product(response_data)
        if product is None:
            return None

        footprint = product.get("carbon_footprint_100g")
        if isinstance(footprint, (int, float)) and not isinstance(footprint, bool):
            carbon_footprint: Optional[str] = f"{footprint:g} g CO2e per 100g"
        else:
            carbon_footprint = _str(footprint)

        return ProviderResponse(
            code=_str(product.get("code")) or barcode,
            product=ProductDetails(
                name=_str(product.get("product_name")) or _str(product.get("generic_name")),
                packaging=_str(product.get("packaging")),
                packaging_tags=_str_list(product.get("packaging_tags")),
                carbon_footprint=carbon_footprint,
                eco_score=_str(product.get("ecoscore_score")),
                eco_score_grade=_str(product.get("ecoscore_grade")),
            ),
            status=1,
        )

    @staticmethod
    def to_nutrition_lookup(response_data: Any) -> Optional[NutritionLookup]:
        """Parse a nutrition lookup response.

        Energy falls back from kcal to kJ / 4.184.

        Example:
            >>> data = {
            ...     "status": 1,
            ...     "product": {
            ...         "product_name": "Nutella",
            ...         "nutriments": {"energy_100g": 2255, "fat_100g": 30.9},
            ...     },
            ... }
            >>> lookup = OpenFoodFactsMapper.to_nutrition_lookup(data)
            >>> assert round(lookup.calories) == 539
        """
        product = _product(response_data)
        if product is None:
            return None

        nutriments = product.get("nutriments")
        if not isinstance(nutriments, dict):
            nutriments = {}

        calories = _float(nutriments.get("energy-kcal_100g"))
        if calories is None:
            energy_kj = _float(nutriments.get("energy_100g"))
            if energy_kj is not None:
                calories = round(energy_kj / KJ_PER_KCAL, 1)

        return NutritionLookup(
            name=_str(product.get("product_name")),
            calories=calories,
            fat=_float(nutriments.get("fat_100g")),
            protein=_float(nutriments.get("proteins_100g")),
            carbohydrate=_float(nutriments.get("carbohydrates_100g")),
            sugar=_float(nutriments.get("sugars_100g")),
            ingredients=_str(product.get("ingredients_text")),
            eco_grade=_str(product.get("ecoscore_grade")),
            image_url=_str(product.get("image_url")),
            quantity=_str(product.get("quantity")),
            packaging=_str(product.get("packaging")),
            packaging_tags=_str_list(product.get("packaging_tags")),
        )

    @staticmethod
    def to_allergen_lookup(response_data: Any) -> Optional[AllergenLookup]:
        """Parse an allergen lookup response.

        Example:
            >>> data = {"status": 1, "product": {"allergens_tags": ["en:milk"]}}
            >>> OpenFoodFactsMapper.to_allergen_lookup(data).tags
            ['en:milk']
        """
        product = _product(response_data)
        if product is None:
            return None

        return AllergenLookup(
            tags=_str_list(product.get("allergens_tags")),
            hierarchy=_str_list(product.get("allergens_hierarchy")),
            free_text=_str(product.get("allergens")),
            traces=_str_list(product.get("traces_tags")),
        )
