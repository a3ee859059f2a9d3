"""
Carbon estimation service.

Prompt building, text generation and response parsing for one product.
"""

import time
from typing import Optional

import structlog

from ecoscan.domain.carbon.models import CarbonEstimate, EcoLabel
from ecoscan.domain.carbon.parser import parse_carbon_response
from ecoscan.domain.carbon.prompts import build_carbon_prompt
from ecoscan.domain.product.models import ProductInfo
from ecoscan.domain.product.ports import ITextGenerator

logger = structlog.get_logger(__name__)


def label_from_packaging(packaging: Optional[str]) -> Optional[EcoLabel]:
    """Fallback label when the generator gave none.

    Example:
        >>> label_from_packaging("Plastic wrapper")
        <EcoLabel.NOT_ECO_FRIENDLY: 'Not Eco-Friendly'>
        >>> label_from_packaging("Paper Box")
        <EcoLabel.ECO_FRIENDLY: 'Eco-Friendly'>
    """
    text = (packaging or "").strip().lower()
    if not text:
        return None
    if "plastic" in text:
        return EcoLabel.NOT_ECO_FRIENDLY
    return EcoLabel.ECO_FRIENDLY


class CarbonEstimator:
    """Heuristic carbon footprint estimation.

    The generator is non-deterministic; callers should reuse a stored
    estimate instead of calling this twice for the same product.
    """

    def __init__(self, text_generator: ITextGenerator) -> None:
        self.text_generator = text_generator

    async def estimate(self, info: ProductInfo) -> CarbonEstimate:
        """Estimate the footprint of a merged product.

        Args:
            info: Merged product info

        Returns:
            Structured estimate, or a raw-text estimate when no number
            could be recognized

        Raises:
            EstimationError: On text-generation transport failure
        """
        start_time = time.time()
        prompt = build_carbon_prompt(info)

        response = await self.text_generator.generate(prompt)
        estimate = parse_carbon_response(response or "")

        if estimate.is_structured and estimate.eco_label is None:
            fallback = label_from_packaging(info.packaging)
            if fallback is not None:
                estimate = estimate.model_copy(update={"eco_label": fallback})

        logger.info(
            "Carbon estimation completed",
            barcode=info.barcode,
            structured=estimate.is_structured,
            value=estimate.canonical,
            label=estimate.eco_label.value if estimate.eco_label else None,
            time_ms=round((time.time() - start_time) * 1000, 2),
        )
        return estimate
