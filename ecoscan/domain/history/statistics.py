"""
History statistics.

Aggregates over the scan history for the dashboard: totals, average
eco grade, everyday equivalents and achievement milestones.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from ecoscan.domain.product.models import EcoGrade, ProductRecord

# 1 tree absorbs about 22 kg CO2 per year
TREE_KG_CO2_PER_YEAR = 22.0
# 1 plastic bottle is about 0.1 kg CO2
PLASTIC_BOTTLE_KG_CO2 = 0.1

_UNIT_TOKENS = ("kg CO₂e", "kg CO2e", "kg CO2")

ACHIEVEMENT_LEVELS: list[tuple[int, str]] = [
    (0, "Beginner"),
    (5, "Eco Explorer"),
    (15, "Green Guardian"),
    (30, "Sustainability Champion"),
]


def parse_co2_value(value: Optional[str]) -> Optional[float]:
    """Numeric kg from a footprint string.

    Example:
        >>> parse_co2_value("0.42 kg CO₂e")
        0.42
        >>> parse_co2_value("1.2kg CO2")
        1.2
        >>> parse_co2_value("Not Available") is None
        True
    """
    if not value:
        return None
    cleaned = value
    for token in _UNIT_TOKENS:
        cleaned = cleaned.replace(token, "")
    try:
        return float(cleaned.strip())
    except ValueError:
        return None


def average_eco_grade(grades: Iterable[Optional[EcoGrade]]) -> Optional[EcoGrade]:
    """Average grade, banded back to a letter.

    Example:
        >>> average_eco_grade([EcoGrade.A, EcoGrade.C])
        <EcoGrade.B: 'B'>
    """
    points = [grade.points for grade in grades if grade is not None]
    if not points:
        return None

    average = sum(points) / len(points)
    if average >= 4.5:
        return EcoGrade.A
    if average >= 3.5:
        return EcoGrade.B
    if average >= 2.5:
        return EcoGrade.C
    if average >= 1.5:
        return EcoGrade.D
    return EcoGrade.E


def achievement_level(count: int) -> str:
    for upper, name in ACHIEVEMENT_LEVELS:
        if count <= upper:
            return name
    return "Environmental Hero"


def next_milestone(count: int) -> int:
    if count <= 5:
        return 10
    if count <= 15:
        return 20
    if count <= 30:
        return 50
    return count + 10


class HistoryStatistics(BaseModel):
    """Aggregate view of the scan history.

    Example:
        >>> stats = HistoryStatistics.from_records([])
        >>> assert stats.product_count == 0
        >>> assert stats.average_eco_grade is None
    """

    model_config = ConfigDict(frozen=True)

    product_count: int
    average_eco_grade: Optional[EcoGrade]
    total_carbon_kg: float
    trees_equivalent: int
    plastic_bottles_equivalent: int
    achievement_level: str
    next_milestone: int

    @classmethod
    def from_records(cls, records: Sequence[ProductRecord]) -> HistoryStatistics:
        """Compute statistics from ledger records."""
        footprints = [parse_co2_value(record.carbon_footprint) for record in records]
        total = sum(value for value in footprints if value is not None)
        count = len(records)

        return cls(
            product_count=count,
            average_eco_grade=average_eco_grade(record.eco_grade for record in records),
            total_carbon_kg=round(total, 2),
            trees_equivalent=max(1, int(total / TREE_KG_CO2_PER_YEAR)),
            plastic_bottles_equivalent=max(1, int(total / PLASTIC_BOTTLE_KG_CO2)),
            achievement_level=achievement_level(count),
            next_milestone=next_milestone(count),
        )

    @property
    def average_eco_grade_display(self) -> str:
        return self.average_eco_grade.value if self.average_eco_grade else "N/A"
