"""
Composition root.

Builds the cache, ledger, provider clients and services once and wires
them into a ScanOrchestrator.
"""

from __future__ import annotations

from contextlib import AsyncExitStack
from typing import Any, Optional

import structlog

from ecoscan.application.aggregation.field_aggregator import FieldAggregator
from ecoscan.application.carbon.estimator import CarbonEstimator
from ecoscan.application.scan.orchestrator import ScanOrchestrator
from ecoscan.config import Settings
from ecoscan.domain.product.ports import IKeyValueStore, ITextGenerator
from ecoscan.infrastructure.ai.openai_client import OpenAIClient
from ecoscan.infrastructure.cache.product_cache import LocalProductCache
from ecoscan.infrastructure.logging_setup import configure_logging
from ecoscan.infrastructure.openfoodfacts.api_client import OpenFoodFactsClient
from ecoscan.infrastructure.persistence.history_ledger import HistoryLedger
from ecoscan.infrastructure.storage.json_store import JsonFileStore

logger = structlog.get_logger(__name__)


class EcoScanApp:
    """Application container.

    Opens the HTTP and text-generation clients, loads the cache and the
    history, and exposes the orchestrator.

    Example:
        >>> async with EcoScanApp(Settings.from_env()) as app:
        ...     snapshot = await app.orchestrator.scan("8901063142125")
        ...     print(snapshot.carbon_display, len(app.ledger))
    """

    def __init__(
        self,
        settings: Settings,
        store: Optional[IKeyValueStore] = None,
        text_generator: Optional[ITextGenerator] = None,
        configure_logs: bool = True,
    ) -> None:
        """Initialize container.

        Args:
            settings: Runtime settings
            store: Durable store (default: JSON files in settings.storage_dir)
            text_generator: Text generator (default: OpenAI client)
            configure_logs: Apply structlog configuration from settings

        Raises:
            ValueError: If no text generator is given and no API key is set
        """
        self.settings = settings
        if configure_logs:
            configure_logging(settings.log_level, settings.log_json)

        self.store: IKeyValueStore = store or JsonFileStore(settings.storage_dir)
        self.off_client = OpenFoodFactsClient(
            base_url=settings.off_base_url,
            timeout_seconds=settings.http_timeout,
            max_retries=settings.http_max_retries,
        )
        self._exit_stack: Optional[AsyncExitStack] = None
        self._openai: Optional[OpenAIClient] = None
        if text_generator is None:
            self._openai = OpenAIClient(
                api_key=settings.openai_api_key,
                model=settings.openai_model,
            )
            text_generator = self._openai

        self.cache = LocalProductCache(self.store)
        self.ledger = HistoryLedger(self.store)
        self.aggregator = FieldAggregator(self.off_client, self.off_client, self.off_client)
        self.estimator = CarbonEstimator(text_generator)
        self.orchestrator = ScanOrchestrator(
            cache=self.cache,
            aggregator=self.aggregator,
            estimator=self.estimator,
            ledger=self.ledger,
        )

    async def __aenter__(self) -> EcoScanApp:
        async with AsyncExitStack() as stack:
            await stack.enter_async_context(self.off_client)
            if self._openai is not None:
                await stack.enter_async_context(self._openai)

            await self.cache.initialize()
            await self.ledger.load()
            # clients stay open past this block
            self._exit_stack = stack.pop_all()

        logger.info(
            "EcoScan started",
            cached_products=self.cache.size(),
            history_size=len(self.ledger),
            storage=str(self.settings.storage_dir),
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._exit_stack is not None:
            await self._exit_stack.aclose()
            self._exit_stack = None
        logger.info("EcoScan stopped")
