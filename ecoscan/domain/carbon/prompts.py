"""
Carbon estimation prompt.

The prompt is a pure function of the merged product info so identical
inputs always produce identical requests.
"""

from typing import Optional

from ecoscan.domain.product.models import ProductInfo

CARBON_SYSTEM_PROMPT = (
    "You are a lifecycle assessment assistant. "
    "Answer only with the JSON object requested by the user."
)

CARBON_PROMPT_TEMPLATE = """Given the following product details, estimate the total carbon footprint in kilograms of CO₂ equivalent (kg CO₂e) for the product. Also, provide an eco-friendly label (Eco-Friendly or Not Eco-Friendly). Use the product's packaging, ingredients, quantity, and eco-score grade to make your estimate. Do not use a default value. If information is missing, make your best estimate based on what is provided. Use the latest lifecycle assessment (LCA) data or published averages; if an exact match is unavailable, use the closest similar product.

Label as "Eco-Friendly" only if the packaging is recyclable, compostable, or minimal and the ingredients are mostly plant-based or low impact. Otherwise, use "Not Eco-Friendly".

Return the result in the following JSON format:
{{
  "total_kg_co2e": <number, e.g. 0.15>,
  "eco_friendly_label": "<Eco-Friendly or Not Eco-Friendly>"
}}

Product details:
- Name: {name}
- Packaging: {packaging}
- Ingredients: {ingredients}
- Quantity: {quantity}
- EcoScore Grade: {eco_grade}
"""


def _field(value: Optional[str]) -> str:
    value = (value or "").strip()
    return value or "Unknown"


def build_carbon_prompt(info: ProductInfo) -> str:
    """Build the estimation prompt for one product.

    Args:
        info: Merged product info

    Returns:
        Prompt text embedding name, packaging, ingredients, quantity
        and eco grade

    Example:
        >>> info = ProductInfo(barcode="8901063142125", name="Maggi")
        >>> prompt = build_carbon_prompt(info)
        >>> assert "- Name: Maggi" in prompt
        >>> assert "- Packaging: Unknown" in prompt
    """
    return CARBON_PROMPT_TEMPLATE.format(
        name=_field(info.name),
        packaging=_field(info.packaging),
        ingredients=_field(info.ingredients),
        quantity=_field(info.quantity),
        eco_grade=info.eco_grade.value if info.eco_grade else "Unknown",
    )
