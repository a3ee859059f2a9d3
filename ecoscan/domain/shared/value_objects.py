"""
Shared value objects.

Immutable, validated domain primitives.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from ecoscan.domain.shared.errors import ValidationError

BARCODE_PATTERN = r"^\d{6,14}$"


class Barcode(BaseModel):
    """
    Product barcode value object.

    Accepts UPC-E (6 or 8 digits), EAN-8, UPC-A, EAN-13 and GTIN-14.
    Surrounding whitespace from the scanner is stripped.

    Example:
        >>> barcode = Barcode(value=" 8901063142125 ")
        >>> assert barcode.value == "8901063142125"
    """

    model_config = ConfigDict(frozen=True)

    value: str = Field(..., description="Barcode digits")

    @field_validator("value", mode="before")
    @classmethod
    def normalize(cls, v: object) -> object:
        """Strip whitespace and check digits."""
        if isinstance(v, str):
            v = v.strip()
            if not re.match(BARCODE_PATTERN, v):
                raise ValueError(f"Invalid barcode: {v!r}")
        return v

    def __str__(self) -> str:
        """String representation."""
        return self.value

    def __repr__(self) -> str:
        """Debug representation."""
        return f"Barcode('{self.value}')"

    def __hash__(self) -> int:
        """Allow use as dict key."""
        return hash(self.value)

    @classmethod
    def from_string(cls, s: str) -> Barcode:
        """Create from a scanned string.

        Raises:
            ValidationError: If s is not 6-14 digits after stripping
        """
        try:
            return cls(value=s)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid barcode: {s!r}") from e

    @staticmethod
    def is_valid(s: str) -> bool:
        """Check a raw string without raising."""
        return bool(re.match(BARCODE_PATTERN, s.strip()))
