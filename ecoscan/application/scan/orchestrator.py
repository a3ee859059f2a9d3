"""
Scan orchestration.

State machine driving one barcode scan: cache lookup, field aggregation,
carbon estimation (reusing a stored estimate when one exists) and the
history write.

States: IDLE -> LOADING -> RESOLVED | FAILED, back to LOADING on the
next scan. Results of a scan superseded by a newer one are dropped.
"""

import time
from enum import Enum
from typing import Callable, List, Optional

import structlog
from pydantic import BaseModel, ConfigDict

from ecoscan.application.aggregation.field_aggregator import FieldAggregator
from ecoscan.application.carbon.estimator import CarbonEstimator
from ecoscan.domain.carbon.models import UNAVAILABLE_TEXT
from ecoscan.domain.product.models import ProductInfo, ProductRecord
from ecoscan.domain.shared.errors import (
    DomainError,
    EstimationError,
    ProductNotFoundError,
    ValidationError,
)
from ecoscan.domain.shared.value_objects import Barcode
from ecoscan.infrastructure.cache.product_cache import LocalProductCache
from ecoscan.infrastructure.persistence.history_ledger import HistoryLedger

logger = structlog.get_logger(__name__)

NOT_FOUND_MESSAGE = "Product not found in database.\nOnly supported products can be scanned."
INVALID_BARCODE_MESSAGE = "Invalid barcode."


class ScanState(str, Enum):
    """Orchestrator state."""

    IDLE = "idle"
    LOADING = "loading"
    RESOLVED = "resolved"
    FAILED = "failed"


class ScanSnapshot(BaseModel):
    """Published orchestrator state.

    ``barcode`` stays set on failure so the scanned code can be shown.
    """

    model_config = ConfigDict(frozen=True)

    state: ScanState = ScanState.IDLE
    barcode: Optional[str] = None
    record: Optional[ProductRecord] = None
    info: Optional[ProductInfo] = None
    carbon_display: Optional[str] = None
    error: Optional[str] = None


StateListener = Callable[[ScanSnapshot], None]


class ScanOrchestrator:
    """Top-level scan coordinator.

    Every dependency is injected; construct the cache and ledger once
    and share them.

    Example:
        >>> orchestrator = ScanOrchestrator(cache, aggregator, estimator, ledger)
        >>> snapshot = await orchestrator.scan("8901063142125")
        >>> print(snapshot.state, snapshot.carbon_display)
    """

    def __init__(
        self,
        cache: LocalProductCache,
        aggregator: FieldAggregator,
        estimator: CarbonEstimator,
        ledger: HistoryLedger,
    ) -> None:
        self.cache = cache
        self.aggregator = aggregator
        self.estimator = estimator
        self.ledger = ledger

        self._generation = 0
        self._snapshot = ScanSnapshot()
        self._listeners: List[StateListener] = []

    @property
    def snapshot(self) -> ScanSnapshot:
        return self._snapshot

    @property
    def state(self) -> ScanState:
        return self._snapshot.state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener for state changes.

        Returns:
            Callable removing the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, snapshot: ScanSnapshot) -> ScanSnapshot:
        self._snapshot = snapshot
        for listener in list(self._listeners):
            listener(snapshot)
        return snapshot

    def _is_stale(self, token: int) -> bool:
        return token != self._generation

    def reset(self) -> None:
        """Back to IDLE; any in-flight scan becomes stale."""
        self._generation += 1
        self._publish(ScanSnapshot())

    async def scan(self, raw_barcode: str) -> ScanSnapshot:
        """Resolve a scanned barcode.

        Args:
            raw_barcode: Decoded barcode string

        Returns:
            Snapshot after this scan; the current (newer) snapshot when
            this scan was superseded
        """
        self._generation += 1
        token = self._generation
        start_time = time.time()

        try:
            barcode = Barcode.from_string(raw_barcode).value
        except ValidationError as e:
            logger.warning("Invalid barcode scanned", raw=raw_barcode, error=str(e))
            return self._publish(
                ScanSnapshot(
                    state=ScanState.FAILED,
                    barcode=(raw_barcode or "").strip(),
                    error=INVALID_BARCODE_MESSAGE,
                )
            )

        logger.info("Scan started", barcode=barcode, generation=token)
        self._publish(ScanSnapshot(state=ScanState.LOADING, barcode=barcode))

        # Identity resolution + enrichment
        try:
            seed = await self.cache.lookup(barcode)
            result = await self.aggregator.aggregate(barcode, seed=seed)
            if seed is None and not result.info.has_any_data():
                raise ProductNotFoundError(NOT_FOUND_MESSAGE, barcode=barcode)
        except DomainError as e:
            if self._is_stale(token):
                return self._discard(barcode, token)
            logger.warning(
                "Scan failed",
                barcode=barcode,
                error=str(e),
                error_type=type(e).__name__,
            )
            return self._publish(
                ScanSnapshot(state=ScanState.FAILED, barcode=barcode, error=NOT_FOUND_MESSAGE)
            )

        if result.fetched_product is not None:
            await self.cache.upsert(barcode, result.fetched_product)

        if self._is_stale(token):
            return self._discard(barcode, token)

        info = result.info
        existing = await self.ledger.find(barcode)

        # Carbon estimation, short-circuited by a stored estimate
        estimated: Optional[str] = None
        if existing is not None and existing.has_estimate():
            estimated = existing.estimated_carbon_footprint
            carbon_display = estimated
            logger.info("Reusing stored carbon estimate", barcode=barcode, value=estimated)
        else:
            try:
                estimate = await self.estimator.estimate(info)
                estimated = estimate.canonical
                carbon_display = estimate.display
            except EstimationError as e:
                logger.warning("Carbon estimation failed", barcode=barcode, error=str(e))
                carbon_display = UNAVAILABLE_TEXT

        if self._is_stale(token):
            return self._discard(barcode, token)

        record = await self._commit(info, existing, estimated)

        if self._is_stale(token):
            return self._discard(barcode, token)

        logger.info(
            "Scan resolved",
            barcode=barcode,
            name=record.name,
            carbon=carbon_display,
            total_time_ms=round((time.time() - start_time) * 1000, 2),
        )
        return self._publish(
            ScanSnapshot(
                state=ScanState.RESOLVED,
                barcode=barcode,
                record=record,
                info=info,
                carbon_display=carbon_display,
            )
        )

    async def _commit(
        self,
        info: ProductInfo,
        existing: Optional[ProductRecord],
        estimated: Optional[str],
    ) -> ProductRecord:
        """Write the scan to history.

        A new barcode is inserted. An existing entry is only rewritten to
        attach an estimate it did not have yet.
        """
        if existing is None:
            record = build_record(info, estimated)
            if await self.ledger.insert(record):
                return record
            return await self.ledger.find(info.barcode) or record

        if estimated and not existing.has_estimate():
            updated = await self.ledger.update(
                existing.barcode, lambda current: current.with_estimate(estimated)
            )
            if updated is not None:
                return updated

        return existing

    def _discard(self, barcode: str, token: int) -> ScanSnapshot:
        logger.info(
            "Discarding stale scan result",
            barcode=barcode,
            generation=token,
            current_generation=self._generation,
        )
        return self._snapshot


def build_record(info: ProductInfo, estimated: Optional[str]) -> ProductRecord:
    """History record for merged info and an optional canonical estimate."""
    return ProductRecord(
        barcode=info.barcode,
        name=info.display_name,
        packaging=info.packaging or "",
        packaging_tags=info.packaging_tags,
        eco_grade=info.eco_grade,
        carbon_footprint_raw=info.carbon_footprint_raw,
        estimated_carbon_footprint=estimated,
        image_url=info.image_url,
        allergens=info.allergens,
    )
