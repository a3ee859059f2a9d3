"""
Local product cache.

Durable barcode → ProviderResponse map, seeded with a small built-in
catalog and grown as new barcodes are resolved. Never pruned.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from ecoscan.domain.product.models import ProductDetails, ProviderResponse
from ecoscan.domain.product.ports import IKeyValueStore
from ecoscan.domain.shared.errors import PersistenceError

logger = structlog.get_logger(__name__)

CACHE_KEY = "product_cache"

SEED_CATALOG: tuple[ProviderResponse, ...] = (
    ProviderResponse(
        code="0685450116442",
        product=ProductDetails(
            name="Parle-G Original Glucose Biscuits",
            packaging="Plastic wrapper",
            packaging_tags=["plastic", "wrapper"],
            carbon_footprint="1.2kg CO2",
            eco_score_grade="C",
        ),
        status=1,
    ),
    ProviderResponse(
        code="8901063142125",
        product=ProductDetails(
            name="Maggi 2-Minute Noodles",
            packaging="Plastic wrapper with cardboard box",
            packaging_tags=["plastic", "cardboard", "recyclable"],
            carbon_footprint="2.1kg CO2",
            eco_score_grade="D",
        ),
        status=1,
    ),
    ProviderResponse(
        code="8901052089844",
        product=ProductDetails(
            name="Britannia Marie Gold",
            packaging="Plastic wrapper",
            packaging_tags=["plastic", "wrapper"],
            carbon_footprint="1.4kg CO2",
            eco_score_grade="C",
        ),
        status=1,
    ),
    ProviderResponse(
        code="0194253408079",
        product=ProductDetails(
            name="iPhone-14",
            packaging="Paper Box",
            packaging_tags=["paper", "recyclable"],
            carbon_footprint="1.2kg CO2",
            eco_score_grade="B",
        ),
        status=1,
    ),
)


class LocalProductCache:
    """Read-through/write-through product cache.

    All access to the in-memory map goes through one asyncio lock, so
    concurrent callers never observe a partially updated map. Storage
    failures are logged and the cache keeps working in memory.

    Example:
        >>> cache = LocalProductCache(store)
        >>> await cache.initialize()
        >>> hit = await cache.lookup("8901063142125")
        >>> assert hit.product.name == "Maggi 2-Minute Noodles"
    """

    def __init__(
        self,
        store: IKeyValueStore,
        seed: tuple[ProviderResponse, ...] = SEED_CATALOG,
    ) -> None:
        """Initialize cache.

        Args:
            store: Durable key/value store
            seed: Catalog written when storage is empty or unreadable
        """
        self.store = store
        self.seed = seed
        self._products: dict[str, ProviderResponse] = {}
        self._initialized = False
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Load durable storage into memory, seeding when empty.

        Safe to call repeatedly; only the first call touches storage.
        """
        async with self._lock:
            if self._initialized:
                return

            loaded = await self._load()
            if loaded:
                self._products = loaded
                logger.info("Product cache loaded", size=len(loaded))
            else:
                self._products = {entry.code: entry for entry in self.seed}
                logger.info("Product cache seeded", size=len(self._products))
                await self._persist()

            self._initialized = True

    async def _load(self) -> dict[str, ProviderResponse]:
        try:
            raw = await self.store.load(CACHE_KEY)
        except PersistenceError as e:
            logger.warning("Product cache unreadable", error=str(e))
            return {}

        if not isinstance(raw, dict):
            return {}

        products: dict[str, ProviderResponse] = {}
        for code, entry in raw.items():
            try:
                products[code] = ProviderResponse.model_validate(entry)
            except PydanticValidationError:
                logger.warning("Skipping corrupt cache entry", barcode=code)
        return products

    async def _persist(self) -> None:
        """Write the whole map; caller holds the lock."""
        payload = {code: entry.model_dump(mode="json") for code, entry in self._products.items()}
        try:
            await self.store.save(CACHE_KEY, payload)
        except PersistenceError as e:
            logger.warning("Product cache write failed, keeping in memory", error=str(e))

    async def lookup(self, barcode: str) -> Optional[ProviderResponse]:
        """Return the stored response for barcode, no network access."""
        if not self._initialized:
            await self.initialize()

        async with self._lock:
            entry = self._products.get(barcode)

        logger.debug("Cache hit" if entry else "Cache miss", barcode=barcode)
        return entry

    async def upsert(self, barcode: str, response: ProviderResponse) -> None:
        """Insert or overwrite one entry and persist the map."""
        if not self._initialized:
            await self.initialize()

        async with self._lock:
            if self._products.get(barcode) == response:
                return
            self._products[barcode] = response
            await self._persist()

        logger.info("Cached product", barcode=barcode)

    async def barcodes(self) -> list[str]:
        """Barcodes currently cached."""
        async with self._lock:
            return list(self._products)

    def size(self) -> int:
        return len(self._products)
