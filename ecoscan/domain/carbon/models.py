"""
Carbon estimate domain models.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

CO2E_UNIT = "kg CO₂e"
UNAVAILABLE_TEXT = "Carbon footprint unavailable"


class EcoLabel(str, Enum):
    """Eco-friendliness verdict returned alongside an estimate."""

    ECO_FRIENDLY = "Eco-Friendly"
    NOT_ECO_FRIENDLY = "Not Eco-Friendly"

    @classmethod
    def parse(cls, raw: Any) -> Optional[EcoLabel]:
        """Parse a free-form label.

        Example:
            >>> assert EcoLabel.parse("Eco-Friendly") == EcoLabel.ECO_FRIENDLY
            >>> assert EcoLabel.parse("not eco friendly") == EcoLabel.NOT_ECO_FRIENDLY
            >>> assert EcoLabel.parse("maybe") is None
        """
        if not isinstance(raw, str):
            return None
        text = raw.lower()
        match = re.search(r"eco\W*friendly", text)
        if match is None:
            return None
        if re.search(r"\b(?:not|non)(?![a-z])", text[: match.start()]):
            return cls.NOT_ECO_FRIENDLY
        return cls.ECO_FRIENDLY


def format_co2e(value: float) -> str:
    """Canonical footprint string.

    Example:
        >>> format_co2e(0.4)
        '0.40 kg CO₂e'
    """
    return f"{value:.2f} {CO2E_UNIT}"


class CarbonEstimate(BaseModel):
    """Result of one carbon estimation.

    Either structured (numeric value, optional label) or an unstructured
    raw-text fallback when no number could be recognized.
    """

    model_config = ConfigDict(frozen=True)

    value_kg_co2e: Optional[float] = Field(None, ge=0, description="Total kg CO2e")
    eco_label: Optional[EcoLabel] = None
    raw_text: Optional[str] = None

    @property
    def is_structured(self) -> bool:
        return self.value_kg_co2e is not None

    @property
    def canonical(self) -> Optional[str]:
        """Two-decimal "<value> kg CO₂e" string, None when unstructured."""
        if self.value_kg_co2e is None:
            return None
        return format_co2e(self.value_kg_co2e)

    @property
    def display(self) -> str:
        """Always-displayable string for the presentation layer."""
        if self.canonical:
            return self.canonical
        if self.raw_text and self.raw_text.strip():
            return self.raw_text.strip()
        return UNAVAILABLE_TEXT
