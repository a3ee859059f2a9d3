"""
OpenAI text generator for carbon estimation.

One prompt in, one free-text answer out. Implements ITextGenerator.
"""

from __future__ import annotations

import asyncio
import os
import time
from typing import Any, Optional

import openai
import structlog
from openai import AsyncOpenAI

from ecoscan.domain.carbon.prompts import CARBON_SYSTEM_PROMPT
from ecoscan.domain.shared.errors import EstimationError

logger = structlog.get_logger(__name__)


class OpenAIClient:
    """
    Chat-completion backed text generator.

    Requests are spaced evenly so that at most ``requests_per_minute``
    reach the API. Transport retries are left to the SDK; whatever still
    fails is raised as EstimationError.

    Example:
        >>> async with OpenAIClient(model="gpt-4o-mini") as generator:
        ...     answer = await generator.generate(build_carbon_prompt(info))
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        timeout: float = 30.0,
        max_retries: int = 3,
        requests_per_minute: int = 60,
        temperature: float = 0.3,
        max_tokens: int = 500,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        """
        Args:
            api_key: API key (falls back to OPENAI_API_KEY)
            model: Chat model name
            timeout: Per-request timeout in seconds
            max_retries: SDK retry attempts
            requests_per_minute: Request cap, 0 disables spacing
            temperature: Sampling temperature
            max_tokens: Answer length cap
            client: Pre-built SDK client, used as is

        Raises:
            ValueError: If no key is available and no client is injected
        """
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        if client is None and not self.api_key:
            raise ValueError("OPENAI_API_KEY is not set and no client was injected")

        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._timeout = timeout
        self._max_retries = max_retries
        self._client = client

        self._interval = 60.0 / requests_per_minute if requests_per_minute > 0 else 0.0
        self._next_slot = 0.0
        self._slot_lock = asyncio.Lock()

    async def __aenter__(self) -> OpenAIClient:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                timeout=self._timeout,
                max_retries=self._max_retries,
            )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client is not None:
            await self._client.close()

    async def _wait_for_slot(self) -> None:
        async with self._slot_lock:
            now = time.monotonic()
            if self._next_slot > now:
                await asyncio.sleep(self._next_slot - now)
                now = self._next_slot
            self._next_slot = now + self._interval

    async def generate(self, prompt: str) -> str:
        """
        Ask the model about one product.

        Args:
            prompt: User prompt, sent after the carbon system prompt

        Returns:
            Answer text, empty when the model returned no content

        Raises:
            EstimationError: If the client is not open or the API call fails
        """
        if self._client is None:
            raise EstimationError("OpenAI client is not open; use async with")

        await self._wait_for_slot()
        start = time.monotonic()
        try:
            completion = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": CARBON_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except (openai.OpenAIError, asyncio.TimeoutError) as e:
            logger.warning(
                "Text generation failed",
                model=self.model,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise EstimationError(f"Text generation failed: {e}") from e

        choice = completion.choices[0]
        logger.info(
            "Text generation finished",
            model=self.model,
            finish_reason=choice.finish_reason,
            total_tokens=completion.usage.total_tokens if completion.usage else 0,
            time_ms=round((time.monotonic() - start) * 1000, 2),
        )
        return choice.message.content or ""
