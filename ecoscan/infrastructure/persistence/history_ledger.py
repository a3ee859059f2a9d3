"""
History ledger.

Newest-first list of resolved products, at most one per barcode. Every
mutation is flushed to durable storage before the call returns.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Iterable, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from ecoscan.domain.product.models import ProductRecord
from ecoscan.domain.product.ports import IKeyValueStore
from ecoscan.domain.shared.errors import PersistenceError

logger = structlog.get_logger(__name__)

HISTORY_KEY = "scan_history"


class HistoryLedger:
    """Deduplicated, persisted scan history.

    Insertion is first-write-wins per barcode; ``update`` is the explicit
    way to replace an entry (delete then insert at the front). The
    persisted history is loaded on first use when load() was not called.

    Example:
        >>> ledger = HistoryLedger(store)
        >>> await ledger.load()
        >>> await ledger.insert(record)
        >>> assert ledger.records[0].barcode == record.barcode
    """

    def __init__(self, store: IKeyValueStore) -> None:
        """Initialize ledger.

        Args:
            store: Durable key/value store
        """
        self.store = store
        self._records: list[ProductRecord] = []
        self._loaded = False
        self._lock = asyncio.Lock()

    @property
    def records(self) -> tuple[ProductRecord, ...]:
        """Snapshot of the ledger, newest first."""
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    async def load(self) -> list[ProductRecord]:
        """Replace in-memory state with the persisted history.

        A corrupt or unreadable store yields an empty ledger.
        """
        async with self._lock:
            self._records = await self._read()
            self._loaded = True
            logger.info("History loaded", size=len(self._records))
            return list(self._records)

    async def _read(self) -> list[ProductRecord]:
        try:
            raw = await self.store.load(HISTORY_KEY)
        except PersistenceError as e:
            logger.warning("History unreadable, starting empty", error=str(e))
            return []

        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.warning("History has unexpected shape, starting empty")
            return []

        try:
            records = [ProductRecord.model_validate(item) for item in raw]
        except PydanticValidationError as e:
            logger.warning("History corrupt, starting empty", error=str(e))
            return []

        return _dedupe(records)

    async def _flush(self) -> None:
        """Persist current state; caller holds the lock."""
        payload = [record.model_dump(mode="json") for record in self._records]
        try:
            await self.store.save(HISTORY_KEY, payload)
        except PersistenceError as e:
            logger.warning("History write failed, keeping in memory", error=str(e))

    async def find(self, barcode: str) -> Optional[ProductRecord]:
        """Record for barcode, if present."""
        if not self._loaded:
            await self.load()

        for record in self._records:
            if record.barcode == barcode:
                return record
        return None

    async def insert(self, record: ProductRecord) -> bool:
        """Insert at the front unless the barcode is already present.

        Returns:
            True when inserted, False on the duplicate no-op
        """
        if not self._loaded:
            await self.load()

        async with self._lock:
            if any(existing.barcode == record.barcode for existing in self._records):
                logger.debug("History insert skipped, barcode present", barcode=record.barcode)
                return False

            self._records.insert(0, record)
            await self._flush()

        logger.info("History insert", barcode=record.barcode, size=len(self._records))
        return True

    async def update(
        self,
        barcode: str,
        mutation: Callable[[ProductRecord], ProductRecord],
    ) -> Optional[ProductRecord]:
        """Replace the entry for barcode with a mutated copy at the front.

        Returns:
            The new record, or None when barcode is not in the ledger
        """
        if not self._loaded:
            await self.load()

        async with self._lock:
            current = next((r for r in self._records if r.barcode == barcode), None)
            if current is None:
                return None

            updated = mutation(current)
            self._records = [r for r in self._records if r.barcode != barcode]
            self._records.insert(0, updated)
            await self._flush()

        logger.info("History update", barcode=barcode)
        return updated

    async def delete(self, record: ProductRecord) -> bool:
        """Remove the entry with the same identity as record."""
        if not self._loaded:
            await self.load()

        async with self._lock:
            remaining = [r for r in self._records if r.id != record.id]
            if len(remaining) == len(self._records):
                return False
            self._records = remaining
            await self._flush()

        logger.info("History delete", barcode=record.barcode)
        return True

    async def delete_indices(self, indices: Iterable[int]) -> int:
        """Remove entries at the given positions.

        Out-of-range indices are ignored.

        Returns:
            Number of entries removed
        """
        if not self._loaded:
            await self.load()

        async with self._lock:
            doomed = {i for i in indices if 0 <= i < len(self._records)}
            if not doomed:
                return 0
            self._records = [r for i, r in enumerate(self._records) if i not in doomed]
            await self._flush()

        logger.info("History delete by index", removed=len(doomed))
        return len(doomed)

    async def clear(self) -> None:
        """Empty the ledger and persist the empty state."""
        async with self._lock:
            self._records = []
            self._loaded = True
            await self._flush()

        logger.info("History cleared")


def _dedupe(records: list[ProductRecord]) -> list[ProductRecord]:
    """Keep the first (newest) record per barcode."""
    seen: set[str] = set()
    result: list[ProductRecord] = []
    for record in records:
        if record.barcode in seen:
            continue
        seen.add(record.barcode)
        result.append(record)
    return result
