"""
Tests for the history ledger.
"""

import itertools
from pathlib import Path
from typing import Any, Optional

import pytest

from ecoscan.domain.product.models import ProductRecord
from ecoscan.domain.shared.errors import PersistenceError
from ecoscan.infrastructure.persistence.history_ledger import HISTORY_KEY, HistoryLedger
from ecoscan.infrastructure.storage.json_store import InMemoryStore, JsonFileStore


class FailingSaveStore(InMemoryStore):
    async def save(self, key: str, value: Any) -> None:
        raise PersistenceError("disk full")


class FailingLoadStore(InMemoryStore):
    async def load(self, key: str) -> Optional[Any]:
        raise PersistenceError("disk unreadable")


def _record(barcode: str, name: str = "Product", estimate: Optional[str] = None) -> ProductRecord:
    return ProductRecord(barcode=barcode, name=name, estimated_carbon_footprint=estimate)


# ═══════════════════════════════════════════════════════════
# INSERT / DEDUP
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_insert_newest_first(history_ledger: HistoryLedger) -> None:
    await history_ledger.insert(_record("8901063142125"))
    await history_ledger.insert(_record("0685450116442"))

    assert [r.barcode for r in history_ledger.records] == ["0685450116442", "8901063142125"]


@pytest.mark.asyncio
async def test_insert_duplicate_is_noop(history_ledger: HistoryLedger) -> None:
    first = _record("8901063142125", name="First")

    assert await history_ledger.insert(first)
    assert not await history_ledger.insert(_record("8901063142125", name="Second"))

    assert len(history_ledger) == 1
    assert history_ledger.records[0].name == "First"


@pytest.mark.parametrize(
    "order",
    list(itertools.permutations(["111111", "222222", "111111", "333333", "222222"]))[::17],
)
@pytest.mark.asyncio
async def test_at_most_one_record_per_barcode(order: tuple[str, ...]) -> None:
    ledger = HistoryLedger(InMemoryStore())

    for barcode in order:
        await ledger.insert(_record(barcode))

    barcodes = [r.barcode for r in ledger.records]
    assert len(barcodes) == len(set(barcodes)) == len(set(order))


@pytest.mark.asyncio
async def test_every_mutation_is_persisted(
    history_ledger: HistoryLedger, memory_store: InMemoryStore
) -> None:
    await history_ledger.insert(_record("8901063142125"))

    stored = await memory_store.load(HISTORY_KEY)
    assert [item["barcode"] for item in stored] == ["8901063142125"]


# ═══════════════════════════════════════════════════════════
# UPDATE / DELETE / CLEAR
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_update_moves_to_front(history_ledger: HistoryLedger) -> None:
    await history_ledger.insert(_record("8901063142125"))
    await history_ledger.insert(_record("0685450116442"))

    updated = await history_ledger.update(
        "8901063142125", lambda r: r.with_estimate("0.42 kg CO₂e")
    )

    assert updated is not None
    assert updated.estimated_carbon_footprint == "0.42 kg CO₂e"
    assert [r.barcode for r in history_ledger.records] == ["8901063142125", "0685450116442"]
    assert len(history_ledger) == 2


@pytest.mark.asyncio
async def test_update_missing_barcode(history_ledger: HistoryLedger) -> None:
    assert await history_ledger.update("8901063142125", lambda r: r) is None


@pytest.mark.asyncio
async def test_delete_by_identity(history_ledger: HistoryLedger) -> None:
    record = _record("8901063142125")
    await history_ledger.insert(record)
    await history_ledger.insert(_record("0685450116442"))

    assert await history_ledger.delete(record)
    assert not await history_ledger.delete(record)
    assert [r.barcode for r in history_ledger.records] == ["0685450116442"]


@pytest.mark.asyncio
async def test_delete_requires_same_identity(history_ledger: HistoryLedger) -> None:
    await history_ledger.insert(_record("8901063142125"))

    assert not await history_ledger.delete(_record("8901063142125"))
    assert len(history_ledger) == 1


@pytest.mark.asyncio
async def test_delete_indices(history_ledger: HistoryLedger, memory_store: InMemoryStore) -> None:
    for barcode in ("111111", "222222", "333333", "444444"):
        await history_ledger.insert(_record(barcode))

    removed = await history_ledger.delete_indices([0, 2, 99, -1])

    assert removed == 2
    assert [r.barcode for r in history_ledger.records] == ["333333", "111111"]
    assert len(await memory_store.load(HISTORY_KEY)) == 2


@pytest.mark.asyncio
async def test_clear_is_final(history_ledger: HistoryLedger, memory_store: InMemoryStore) -> None:
    await history_ledger.insert(_record("8901063142125"))
    await history_ledger.insert(_record("0685450116442"))

    await history_ledger.clear()

    assert len(history_ledger) == 0
    assert await memory_store.load(HISTORY_KEY) == []
    assert await HistoryLedger(memory_store).load() == []


# ═══════════════════════════════════════════════════════════
# LOAD / PERSISTENCE FAILURES
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_load_round_trip(tmp_path: Path, sample_record: ProductRecord) -> None:
    store = JsonFileStore(tmp_path)
    ledger = HistoryLedger(store)
    await ledger.insert(sample_record)

    loaded = await HistoryLedger(store).load()

    assert loaded == [sample_record]


@pytest.mark.asyncio
async def test_load_dedupes_keeping_newest(memory_store: InMemoryStore) -> None:
    newer = _record("8901063142125", name="Newer")
    older = _record("8901063142125", name="Older")
    await memory_store.save(
        HISTORY_KEY, [newer.model_dump(mode="json"), older.model_dump(mode="json")]
    )

    loaded = await HistoryLedger(memory_store).load()

    assert [r.name for r in loaded] == ["Newer"]


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{"not": "a list"}, [{"name": "no barcode"}], "garbage"])
async def test_corrupt_store_loads_empty(memory_store: InMemoryStore, payload: Any) -> None:
    await memory_store.save(HISTORY_KEY, payload)

    assert await HistoryLedger(memory_store).load() == []


@pytest.mark.asyncio
async def test_first_insert_without_load_keeps_persisted_history(
    memory_store: InMemoryStore, sample_record: ProductRecord
) -> None:
    await memory_store.save(HISTORY_KEY, [sample_record.model_dump(mode="json")])
    ledger = HistoryLedger(memory_store)

    await ledger.insert(_record("3017620422003"))

    stored = await memory_store.load(HISTORY_KEY)
    assert [item["barcode"] for item in stored] == ["3017620422003", sample_record.barcode]


@pytest.mark.asyncio
async def test_find_without_load_reads_store(
    memory_store: InMemoryStore, sample_record: ProductRecord
) -> None:
    await memory_store.save(HISTORY_KEY, [sample_record.model_dump(mode="json")])

    found = await HistoryLedger(memory_store).find(sample_record.barcode)

    assert found == sample_record


@pytest.mark.asyncio
async def test_corrupt_file_loads_empty(tmp_path: Path) -> None:
    (tmp_path / f"{HISTORY_KEY}.json").write_text("{{{", encoding="utf-8")

    assert await HistoryLedger(JsonFileStore(tmp_path)).load() == []


@pytest.mark.asyncio
async def test_unreadable_store_loads_empty() -> None:
    assert await HistoryLedger(FailingLoadStore()).load() == []


@pytest.mark.asyncio
async def test_write_failure_keeps_memory() -> None:
    ledger = HistoryLedger(FailingSaveStore())

    assert await ledger.insert(_record("8901063142125"))
    assert len(ledger) == 1
