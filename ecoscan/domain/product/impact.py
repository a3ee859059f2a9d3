"""
Environmental impact scoring.

Deterministic 0-10 score from packaging tags, packaging material
keywords and eco grade. Always derived from a ProductRecord, never
stored on its own.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from ecoscan.domain.product.models import EcoGrade, ProductRecord

BASE_SCORE = 5.0
MIN_SCORE = 0.0
MAX_SCORE = 10.0

GRADE_ADJUSTMENTS = {
    EcoGrade.A: 3.0,
    EcoGrade.B: 2.0,
    EcoGrade.C: 1.0,
    EcoGrade.D: -1.0,
    EcoGrade.E: -2.0,
}

# (keywords, adjustment) applied once per group found in the packaging text
MATERIAL_ADJUSTMENTS: list[tuple[tuple[str, ...], float]] = [
    (("plastic",), -1.0),
    (("paper", "cardboard"), 1.0),
    (("aluminum", "aluminium"), 0.5),
    (("glass",), 1.5),
]


class ImpactLevel(str, Enum):
    """Coarse impact band derived from the score."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def description(self) -> str:
        return f"{self.value.capitalize()} Environmental Impact"


class EnvironmentalImpact(BaseModel):
    """Computed environmental profile of one product."""

    model_config = ConfigDict(frozen=True)

    score: float
    recyclable: bool
    biodegradable: bool
    carbon_footprint: Optional[str] = None
    eco_grade: Optional[EcoGrade] = None

    @property
    def impact_level(self) -> ImpactLevel:
        if self.score < 4:
            return ImpactLevel.HIGH
        if self.score < 7:
            return ImpactLevel.MEDIUM
        return ImpactLevel.LOW


def calculate_score(
    recyclable: bool,
    biodegradable: bool,
    packaging: str,
    eco_grade: Optional[EcoGrade],
) -> float:
    """Score packaging and grade on a 0-10 scale.

    Args:
        recyclable: Packaging tagged recyclable
        biodegradable: Packaging tagged biodegradable
        packaging: Free-text packaging description
        eco_grade: Provider eco grade, if any

    Returns:
        Score clamped to [0, 10]

    Example:
        >>> calculate_score(True, False, "Glass bottle", EcoGrade.A)
        10.0
        >>> calculate_score(False, False, "Plastic wrapper", EcoGrade.E)
        2.0
    """
    score = BASE_SCORE

    if eco_grade is not None:
        score += GRADE_ADJUSTMENTS[eco_grade]

    if recyclable:
        score += 2.5
    if biodegradable:
        score += 2.5

    text = packaging.lower()
    for keywords, adjustment in MATERIAL_ADJUSTMENTS:
        if any(keyword in text for keyword in keywords):
            score += adjustment

    return min(max(score, MIN_SCORE), MAX_SCORE)


def calculate_impact(record: ProductRecord) -> EnvironmentalImpact:
    """Derive the environmental impact of a history record."""
    recyclable = "recyclable" in record.packaging_tags
    biodegradable = "biodegradable" in record.packaging_tags

    return EnvironmentalImpact(
        score=calculate_score(recyclable, biodegradable, record.packaging, record.eco_grade),
        recyclable=recyclable,
        biodegradable=biodegradable,
        carbon_footprint=record.carbon_footprint,
        eco_grade=record.eco_grade,
    )
