"""
Tests for FieldAggregator.

Providers are AsyncMock doubles.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from ecoscan.application.aggregation.field_aggregator import FieldAggregator
from ecoscan.domain.product.models import (
    AllergenLookup,
    EcoGrade,
    NutritionLookup,
    ProductDetails,
    ProviderResponse,
)
from ecoscan.domain.shared.errors import ServiceUnavailableError, TimeoutError

NUTELLA = "3017620422003"


# ═══════════════════════════════════════════════════════════
# HAPPY PATH TESTS
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_aggregate_all_providers(
    aggregator: FieldAggregator,
    mock_provider: AsyncMock,
    sample_provider_response: ProviderResponse,
    sample_nutrition: NutritionLookup,
    sample_allergens: AllergenLookup,
) -> None:
    # ARRANGE
    mock_provider.fetch_product.return_value = sample_provider_response
    mock_provider.fetch_nutrition.return_value = sample_nutrition
    mock_provider.fetch_allergens.return_value = sample_allergens

    # ACT
    result = await aggregator.aggregate(NUTELLA)

    # ASSERT
    info = result.info
    assert info.name == "Nutella Hazelnut Spread"
    assert info.packaging == "Glass jar"
    assert info.packaging_tags == ["glass", "recyclable"]
    assert info.eco_grade == EcoGrade.E
    assert info.carbon_footprint_raw == "539 g CO2e per 100g"
    assert info.nutrition is not None and info.nutrition.calories == 539.0
    assert info.quantity == "750 g"
    assert info.allergens == ["Milk", "Tree Nuts", "Gluten", "Soy"]
    assert result.fetched_product == sample_provider_response
    assert result.errors == {}

    mock_provider.fetch_product.assert_awaited_once_with(NUTELLA)
    mock_provider.fetch_nutrition.assert_awaited_once_with(NUTELLA)
    mock_provider.fetch_allergens.assert_awaited_once_with(NUTELLA)


@pytest.mark.asyncio
async def test_product_lookup_without_fields_is_not_kept(
    aggregator: FieldAggregator,
    mock_provider: AsyncMock,
    sample_nutrition: NutritionLookup,
) -> None:
    mock_provider.fetch_product.return_value = ProviderResponse(
        code=NUTELLA, product=ProductDetails(name="  "), status=1
    )
    mock_provider.fetch_nutrition.return_value = sample_nutrition

    result = await aggregator.aggregate(NUTELLA)

    assert result.fetched_product is None
    assert result.info.name == "Nutella Hazelnut Spread"


@pytest.mark.asyncio
async def test_seed_skips_product_lookup(
    aggregator: FieldAggregator,
    mock_provider: AsyncMock,
    sample_provider_response: ProviderResponse,
) -> None:
    result = await aggregator.aggregate(NUTELLA, seed=sample_provider_response)

    mock_provider.fetch_product.assert_not_awaited()
    assert result.fetched_product is None
    assert result.info.name == "Nutella"
    assert result.info.eco_grade == EcoGrade.D


@pytest.mark.asyncio
async def test_calls_run_concurrently(aggregator: FieldAggregator, mock_provider: AsyncMock) -> None:
    started: list[str] = []
    release = asyncio.Event()

    def slow(name: str):
        async def call(barcode: str) -> None:
            started.append(name)
            await release.wait()

        return call

    mock_provider.fetch_product.side_effect = slow("product")
    mock_provider.fetch_nutrition.side_effect = slow("nutrition")
    mock_provider.fetch_allergens.side_effect = slow("allergens")

    task = asyncio.create_task(aggregator.aggregate(NUTELLA))
    for _ in range(5):
        await asyncio.sleep(0)

    assert sorted(started) == ["allergens", "nutrition", "product"]
    release.set()
    await task


# ═══════════════════════════════════════════════════════════
# MERGE POLICY
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_fresh_values_overwrite_seed(
    aggregator: FieldAggregator, mock_provider: AsyncMock
) -> None:
    seed = ProviderResponse(
        code="8901063142125",
        product=ProductDetails(
            name="Maggi 2-Minute Noodles",
            packaging="Plastic wrapper with cardboard box",
            packaging_tags=["plastic", "cardboard", "recyclable"],
            carbon_footprint="2.1kg CO2",
            eco_score_grade="D",
        ),
        status=1,
    )
    mock_provider.fetch_nutrition.return_value = NutritionLookup(
        name="Maggi Masala Noodles",
        packaging="  ",
        packaging_tags=["en:plastic"],
        eco_grade="c",
    )

    info = (await aggregator.aggregate("8901063142125", seed=seed)).info

    assert info.name == "Maggi Masala Noodles"
    # blank fresh packaging keeps the seeded value
    assert info.packaging == "Plastic wrapper with cardboard box"
    assert info.packaging_tags == ["plastic"]
    assert info.eco_grade == EcoGrade.C
    assert info.carbon_footprint_raw == "2.1kg CO2"


@pytest.mark.asyncio
async def test_unknown_fresh_grade_keeps_seed(
    aggregator: FieldAggregator,
    mock_provider: AsyncMock,
    sample_provider_response: ProviderResponse,
) -> None:
    mock_provider.fetch_nutrition.return_value = NutritionLookup(eco_grade="unknown")

    info = (await aggregator.aggregate(NUTELLA, seed=sample_provider_response)).info

    assert info.eco_grade == EcoGrade.D
    assert info.nutrition is not None and not info.nutrition.available


# ═══════════════════════════════════════════════════════════
# FAILURES
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_allergen_failure_does_not_abort(
    aggregator: FieldAggregator,
    mock_provider: AsyncMock,
    sample_provider_response: ProviderResponse,
    sample_nutrition: NutritionLookup,
) -> None:
    mock_provider.fetch_product.return_value = sample_provider_response
    mock_provider.fetch_nutrition.return_value = sample_nutrition
    mock_provider.fetch_allergens.side_effect = TimeoutError("allergen lookup timed out")

    result = await aggregator.aggregate(NUTELLA)

    assert result.info.name == "Nutella Hazelnut Spread"
    assert result.info.packaging == "Glass jar"
    assert result.info.nutrition.calories == 539.0
    assert result.info.allergens == []
    assert set(result.errors) == {"allergens"}


@pytest.mark.asyncio
async def test_every_provider_failing_yields_empty_info(
    aggregator: FieldAggregator, mock_provider: AsyncMock
) -> None:
    mock_provider.fetch_product.side_effect = ServiceUnavailableError("503")
    mock_provider.fetch_nutrition.side_effect = ConnectionError("unreachable")
    mock_provider.fetch_allergens.side_effect = ValueError("bad payload")

    result = await aggregator.aggregate(NUTELLA)

    assert not result.info.has_any_data()
    assert result.fetched_product is None
    assert set(result.errors) == {"product", "nutrition", "allergens"}


@pytest.mark.asyncio
async def test_not_found_everywhere(aggregator: FieldAggregator) -> None:
    result = await aggregator.aggregate(NUTELLA)

    assert not result.info.has_any_data()
    assert result.errors == {}
