"""
Carbon response parser.

Text-generation providers do not reliably honour the requested JSON
shape. Parsing tries, in order:

1. The substring between the first "{" and the last "}" as JSON.
2. Lines bottom-to-top for "<number> kg CO₂e" (ASCII or subscript 2,
   trailing "e" optional), or a compact "<number> <label>" answer.
3. The raw trimmed response as an unstructured estimate.

Parsing never raises.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any, Optional

import structlog

from ecoscan.domain.carbon.models import CarbonEstimate, EcoLabel

logger = structlog.get_logger(__name__)

CO2E_PATTERN = re.compile(
    r"(?P<value>\d+(?:\.\d+)?)\s*kg\s*CO[2₂]e?",
    re.IGNORECASE,
)
COMPACT_PATTERN = re.compile(
    r"^\s*(?P<value>\d+(?:\.\d+)?)\s+(?P<label>(?:not|non)?[\s-]*eco[\s-]*friendly)\s*$",
    re.IGNORECASE,
)


def _to_float(raw: Any) -> Optional[float]:
    """Coerce a JSON value to a finite, non-negative float."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        match = re.search(r"\d+(?:\.\d+)?", raw)
        if not match:
            return None
        value = float(match.group())
    else:
        return None
    if not math.isfinite(value) or value < 0:
        return None
    return value


def parse_json_block(text: str) -> Optional[CarbonEstimate]:
    """Step 1: outermost brace block as the requested JSON shape.

    Example:
        >>> text = 'Sure! {"total_kg_co2e": 0.42, "eco_friendly_label": "Eco-Friendly"}'
        >>> parse_json_block(text).value_kg_co2e
        0.42
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None

    try:
        data = json.loads(text[start : end + 1])
    except ValueError:
        return None

    if not isinstance(data, dict):
        return None

    value = _to_float(data.get("total_kg_co2e"))
    if value is None:
        return None

    return CarbonEstimate(
        value_kg_co2e=value,
        eco_label=EcoLabel.parse(data.get("eco_friendly_label")),
    )


def parse_labeled_lines(text: str) -> Optional[CarbonEstimate]:
    """Step 2: scan lines bottom-to-top for a number with a CO₂e unit.

    Example:
        >>> parse_labeled_lines("blah\\nTotal carbon footprint: 1.50 kg CO₂e").value_kg_co2e
        1.5
        >>> parse_labeled_lines("0.35 Not Eco-Friendly").eco_label
        <EcoLabel.NOT_ECO_FRIENDLY: 'Not Eco-Friendly'>
    """
    for line in reversed(text.splitlines()):
        match = CO2E_PATTERN.search(line)
        if match:
            return CarbonEstimate(
                value_kg_co2e=float(match.group("value")),
                eco_label=EcoLabel.parse(line[match.end() :]) or EcoLabel.parse(line[: match.start()]),
            )

        compact = COMPACT_PATTERN.match(line)
        if compact:
            return CarbonEstimate(
                value_kg_co2e=float(compact.group("value")),
                eco_label=EcoLabel.parse(compact.group("label")),
            )
    return None


def parse_carbon_response(text: str) -> CarbonEstimate:
    """Parse a provider response through the degradation ladder.

    Args:
        text: Raw provider output

    Returns:
        Structured estimate when a number was found, otherwise a raw-text
        estimate

    Example:
        >>> parse_carbon_response("I cannot estimate this product.").raw_text
        'I cannot estimate this product.'
    """
    estimate = parse_json_block(text)
    if estimate is not None:
        return estimate

    estimate = parse_labeled_lines(text)
    if estimate is not None:
        logger.debug("Carbon response parsed from text line")
        return estimate

    logger.info("Carbon response unstructured, keeping raw text", length=len(text))
    return CarbonEstimate(raw_text=text.strip())
