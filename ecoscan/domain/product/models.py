"""
Product domain models.

Provider DTOs, the merged ProductInfo produced by aggregation, and the
ProductRecord kept in the scan history.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from ecoscan.domain.product.impact import EnvironmentalImpact

UNKNOWN_PRODUCT_NAME = "Unknown Product"


class EcoGrade(str, Enum):
    """Externally supplied eco grade (A best, E worst)."""

    A = "A"
    B = "B"
    C = "C"
    D = "D"
    E = "E"

    @classmethod
    def parse(cls, raw: Any) -> Optional[EcoGrade]:
        """Parse a provider grade string.

        Providers send lowercase letters and placeholders such as
        "unknown" or "not-applicable"; anything outside A-E is None.

        Example:
            >>> assert EcoGrade.parse("b") == EcoGrade.B
            >>> assert EcoGrade.parse("unknown") is None
        """
        if isinstance(raw, EcoGrade):
            return raw
        if not isinstance(raw, str):
            return None
        try:
            return cls(raw.strip().upper())
        except ValueError:
            return None

    @property
    def points(self) -> int:
        """Numeric value used for averaging (A=5 .. E=1)."""
        return {"A": 5, "B": 4, "C": 3, "D": 2, "E": 1}[self.value]

    @property
    def description(self) -> str:
        return _GRADE_DESCRIPTIONS[self.value]


_GRADE_DESCRIPTIONS = {
    "A": "Excellent environmental impact",
    "B": "Good environmental impact",
    "C": "Average environmental impact",
    "D": "Poor environmental impact",
    "E": "Very poor environmental impact",
}


def eco_grade_display(grade: Optional[EcoGrade]) -> str:
    """Display letter for a grade, N/A when absent."""
    return grade.value if grade else "N/A"


def eco_grade_description(grade: Optional[EcoGrade]) -> str:
    """Human description for a grade."""
    return grade.description if grade else "No eco score available"


# ═══════════════════════════════════════════════════════════
# PROVIDER DTOs
# ═══════════════════════════════════════════════════════════


class ProductDetails(BaseModel):
    """Product/eco-grade provider payload.

    Every field is optional; missing keys are common and not errors.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: Optional[str] = None
    packaging: Optional[str] = None
    packaging_tags: list[str] = Field(default_factory=list)
    carbon_footprint: Optional[str] = None
    eco_score: Optional[str] = None
    eco_score_grade: Optional[str] = None

    def has_data(self) -> bool:
        """True when any field carries a non-blank value."""
        scalars = (
            self.name,
            self.packaging,
            self.carbon_footprint,
            self.eco_score,
            self.eco_score_grade,
        )
        return bool(self.packaging_tags) or any(v and v.strip() for v in scalars)


class ProviderResponse(BaseModel):
    """Cached product lookup keyed by barcode.

    Example:
        >>> response = ProviderResponse(
        ...     code="8901063142125",
        ...     product=ProductDetails(name="Maggi 2-Minute Noodles"),
        ...     status=1,
        ... )
        >>> assert response.product.name == "Maggi 2-Minute Noodles"
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    code: str
    product: ProductDetails = Field(default_factory=ProductDetails)
    status: Optional[int] = None


class NutritionLookup(BaseModel):
    """Nutrition/ingredients provider payload (per 100g)."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: Optional[str] = None
    calories: Optional[float] = None
    fat: Optional[float] = None
    protein: Optional[float] = None
    carbohydrate: Optional[float] = None
    sugar: Optional[float] = None
    ingredients: Optional[str] = None
    eco_grade: Optional[str] = None
    image_url: Optional[str] = None
    quantity: Optional[str] = None
    packaging: Optional[str] = None
    packaging_tags: list[str] = Field(default_factory=list)

    def has_nutrients(self) -> bool:
        return any(
            v is not None
            for v in (self.calories, self.fat, self.protein, self.carbohydrate, self.sugar)
        )


class AllergenLookup(BaseModel):
    """Allergen provider payload.

    Variants arrive side by side and are merged during normalization:
    taxonomy tags ("en:milk"), hierarchy tags, a free-text comma list,
    and traces tags.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    tags: list[str] = Field(default_factory=list)
    hierarchy: list[str] = Field(default_factory=list)
    free_text: Optional[str] = None
    traces: list[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.tags or self.hierarchy or self.traces or (self.free_text or "").strip())


# ═══════════════════════════════════════════════════════════
# MERGED MODELS
# ═══════════════════════════════════════════════════════════


class NutritionInfo(BaseModel):
    """Nutrition facts per 100g.

    Absent values display as 0 unless the whole block is marked
    unavailable.
    """

    model_config = ConfigDict(frozen=True)

    calories: Optional[float] = None
    fat: Optional[float] = None
    protein: Optional[float] = None
    carbohydrate: Optional[float] = None
    sugar: Optional[float] = None
    available: bool = True

    @classmethod
    def unavailable(cls) -> NutritionInfo:
        return cls(available=False)

    def for_display(self) -> dict[str, Optional[float]]:
        """Values for rendering: 0 for gaps, None everywhere when unavailable."""
        fields = ("calories", "fat", "protein", "carbohydrate", "sugar")
        if not self.available:
            return {name: None for name in fields}
        return {name: getattr(self, name) or 0.0 for name in fields}


class ProductInfo(BaseModel):
    """Merged product information ready for carbon estimation.

    Built by the field aggregator from cache-seeded values and fresh
    provider data. Nothing here is persisted directly.
    """

    barcode: str
    name: Optional[str] = None
    packaging: Optional[str] = None
    packaging_tags: list[str] = Field(default_factory=list)
    eco_grade: Optional[EcoGrade] = None
    carbon_footprint_raw: Optional[str] = None
    nutrition: Optional[NutritionInfo] = None
    ingredients: Optional[str] = None
    quantity: Optional[str] = None
    image_url: Optional[str] = None
    allergens: list[str] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.name or UNKNOWN_PRODUCT_NAME

    def has_any_data(self) -> bool:
        """True when at least one provider or the cache supplied a field."""
        return any(
            (
                self.name,
                self.packaging,
                self.packaging_tags,
                self.eco_grade,
                self.carbon_footprint_raw,
                self.nutrition is not None and self.nutrition.available,
                self.ingredients,
                self.quantity,
                self.image_url,
                self.allergens,
            )
        )


def normalize_tags(tags: list[str]) -> list[str]:
    """Lowercase, strip taxonomy prefix and dedupe while keeping order.

    Example:
        >>> normalize_tags(["en:Plastic", "plastic", " Recyclable "])
        ['plastic', 'recyclable']
    """
    seen: list[str] = []
    for tag in tags:
        if not isinstance(tag, str):
            continue
        value = tag.split(":")[-1].strip().lower()
        if value and value not in seen:
            seen.append(value)
    return seen


class ProductRecord(BaseModel):
    """Resolved product kept in the history ledger.

    Identity in the ledger is the barcode; ``id`` identifies one
    concrete entry for delete-by-identity.

    The estimated footprint is authoritative over the raw provider
    footprint wherever both exist.

    Example:
        >>> record = ProductRecord(
        ...     barcode="8901063142125",
        ...     name="Maggi 2-Minute Noodles",
        ...     packaging="Plastic wrapper",
        ...     packaging_tags=["plastic", "recyclable"],
        ...     carbon_footprint_raw="2.1kg CO2",
        ...     estimated_carbon_footprint="0.42 kg CO₂e",
        ... )
        >>> assert record.carbon_footprint == "0.42 kg CO₂e"
    """

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    barcode: str
    name: str = UNKNOWN_PRODUCT_NAME
    packaging: str = ""
    packaging_tags: list[str] = Field(default_factory=list)
    eco_grade: Optional[EcoGrade] = None
    carbon_footprint_raw: Optional[str] = None
    estimated_carbon_footprint: Optional[str] = None
    scanned_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    image_url: Optional[str] = None
    allergens: list[str] = Field(default_factory=list)

    @field_validator("packaging_tags")
    @classmethod
    def dedupe_tags(cls, v: list[str]) -> list[str]:
        """Packaging tags behave as a set of normalized materials."""
        return normalize_tags(v)

    @field_validator("eco_grade", mode="before")
    @classmethod
    def parse_grade(cls, v: Any) -> Optional[EcoGrade]:
        return EcoGrade.parse(v)

    @property
    def carbon_footprint(self) -> Optional[str]:
        """Footprint to display: the estimate wins over the raw value."""
        if self.estimated_carbon_footprint:
            return self.estimated_carbon_footprint
        return self.carbon_footprint_raw

    def has_estimate(self) -> bool:
        return bool(self.estimated_carbon_footprint and self.estimated_carbon_footprint.strip())

    @property
    def environmental_impact(self) -> EnvironmentalImpact:
        """Recomputed on every access, never stored."""
        from ecoscan.domain.product.impact import calculate_impact

        return calculate_impact(self)

    def with_estimate(self, estimate: str) -> ProductRecord:
        """Copy of this record carrying a fresh carbon estimate."""
        return self.model_copy(update={"estimated_carbon_footprint": estimate})
