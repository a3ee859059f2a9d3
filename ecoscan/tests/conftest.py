"""
Shared fixtures for ecoscan tests.
"""

from unittest.mock import AsyncMock

import pytest

from ecoscan.application.aggregation.field_aggregator import FieldAggregator
from ecoscan.application.carbon.estimator import CarbonEstimator
from ecoscan.application.scan.orchestrator import ScanOrchestrator
from ecoscan.domain.product.models import (
    AllergenLookup,
    NutritionLookup,
    ProductDetails,
    ProductInfo,
    ProductRecord,
    ProviderResponse,
)
from ecoscan.infrastructure.cache.product_cache import LocalProductCache
from ecoscan.infrastructure.persistence.history_ledger import HistoryLedger
from ecoscan.infrastructure.storage.json_store import InMemoryStore

MAGGI = "8901063142125"
NUTELLA = "3017620422003"

JSON_ANSWER = '{"total_kg_co2e": 0.42, "eco_friendly_label": "Eco-Friendly"}'


# ═══════════════════════════════════════════════════════════
# DOMAIN MODEL FIXTURES
# ═══════════════════════════════════════════════════════════


@pytest.fixture
def sample_provider_response() -> ProviderResponse:
    """Product lookup for Nutella."""
    return ProviderResponse(
        code=NUTELLA,
        product=ProductDetails(
            name="Nutella",
            packaging="Glass jar",
            packaging_tags=["en:glass", "en:recyclable"],
            carbon_footprint="539 g CO2e per 100g",
            eco_score_grade="d",
        ),
        status=1,
    )


@pytest.fixture
def sample_nutrition() -> NutritionLookup:
    """Nutrition lookup for Nutella."""
    return NutritionLookup(
        name="Nutella Hazelnut Spread",
        calories=539.0,
        fat=30.9,
        protein=6.3,
        carbohydrate=57.5,
        sugar=56.3,
        ingredients="Sugar, palm oil, hazelnuts 13%, skimmed milk powder 8.7%",
        eco_grade="e",
        image_url="https://images.openfoodfacts.org/nutella.jpg",
        quantity="750 g",
    )


@pytest.fixture
def sample_allergens() -> AllergenLookup:
    """Allergen lookup for Nutella."""
    return AllergenLookup(
        tags=["en:milk", "en:nuts"],
        hierarchy=["en:milk", "en:nuts", "en:hazelnuts"],
        free_text="milk, soy",
        traces=["en:gluten"],
    )


@pytest.fixture
def sample_info() -> ProductInfo:
    """Merged info for the Maggi noodles."""
    return ProductInfo(
        barcode=MAGGI,
        name="Maggi 2-Minute Noodles",
        packaging="Plastic wrapper with cardboard box",
        packaging_tags=["plastic", "cardboard", "recyclable"],
        ingredients="Wheat flour, palm oil, salt",
        quantity="70 g",
    )


@pytest.fixture
def sample_record() -> ProductRecord:
    """History record with an estimate."""
    return ProductRecord(
        barcode=MAGGI,
        name="Maggi 2-Minute Noodles",
        packaging="Plastic wrapper with cardboard box",
        packaging_tags=["plastic", "cardboard", "recyclable"],
        eco_grade="D",
        carbon_footprint_raw="2.1kg CO2",
        estimated_carbon_footprint="0.42 kg CO₂e",
    )


# ═══════════════════════════════════════════════════════════
# INFRASTRUCTURE FIXTURES
# ═══════════════════════════════════════════════════════════


@pytest.fixture
def memory_store() -> InMemoryStore:
    """Empty in-memory key/value store."""
    return InMemoryStore()


@pytest.fixture
def product_cache(memory_store: InMemoryStore) -> LocalProductCache:
    return LocalProductCache(memory_store)


@pytest.fixture
def history_ledger(memory_store: InMemoryStore) -> HistoryLedger:
    return HistoryLedger(memory_store)


@pytest.fixture
def mock_provider() -> AsyncMock:
    """Provider double answering not-found on every endpoint."""
    provider = AsyncMock()
    provider.fetch_product = AsyncMock(return_value=None)
    provider.fetch_nutrition = AsyncMock(return_value=None)
    provider.fetch_allergens = AsyncMock(return_value=None)
    return provider


@pytest.fixture
def mock_text_generator() -> AsyncMock:
    """Text generator double returning the well-formed JSON answer."""
    generator = AsyncMock()
    generator.generate = AsyncMock(return_value=JSON_ANSWER)
    return generator


# ═══════════════════════════════════════════════════════════
# APPLICATION SERVICE FIXTURES
# ═══════════════════════════════════════════════════════════


@pytest.fixture
def aggregator(mock_provider: AsyncMock) -> FieldAggregator:
    return FieldAggregator(mock_provider, mock_provider, mock_provider)


@pytest.fixture
def estimator(mock_text_generator: AsyncMock) -> CarbonEstimator:
    return CarbonEstimator(mock_text_generator)


@pytest.fixture
def orchestrator(
    product_cache: LocalProductCache,
    aggregator: FieldAggregator,
    estimator: CarbonEstimator,
    history_ledger: HistoryLedger,
) -> ScanOrchestrator:
    """Orchestrator over in-memory storage and mocked providers."""
    return ScanOrchestrator(
        cache=product_cache,
        aggregator=aggregator,
        estimator=estimator,
        ledger=history_ledger,
    )
