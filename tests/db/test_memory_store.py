"""Tests for the in-memory stores."""

import pytest

from db.memory_store import InMemoryIngestionStore, InMemorySnapshotStore
from db.models import Snapshot
from utils.errors import ConcurrentRecalculation


@pytest.fixture
def store():
    return InMemorySnapshotStore()


def test_first_write_gets_version_one(store):
    saved = store.save_snapshot(Snapshot(company_id="1", period="2024", total=3), None)
    assert saved.version == 1
    assert saved.calculated_at is not None
    assert store.get_snapshot("1", "2024").total == 3


def test_update_requires_current_version(store):
    first = store.save_snapshot(Snapshot(company_id="1", period="2024", total=3), None)
    second = store.save_snapshot(first.model_copy(update={"total": 4}), first.version)
    assert second.version == 2

    with pytest.raises(ConcurrentRecalculation):
        store.save_snapshot(first.model_copy(update={"total": 5}), first.version)
    assert store.get_snapshot("1", "2024").total == 4


def test_insert_conflicts_with_existing_row(store):
    store.save_snapshot(Snapshot(company_id="1", period="2024"), None)
    with pytest.raises(ConcurrentRecalculation) as exc_info:
        store.save_snapshot(Snapshot(company_id="1", period="2024"), None)
    assert exc_info.value.status_code == 409


def test_reads_are_copies(store):
    store.save_snapshot(Snapshot(company_id="1", period="2024", total=3), None)
    snapshot = store.get_snapshot("1", "2024")
    snapshot.total = 99
    assert store.get_snapshot("1", "2024").total == 3


def test_list_snapshots_period_desc_with_limit(store):
    for period in ("2022", "2024", "2023"):
        store.save_snapshot(Snapshot(company_id="1", period=period), None)
    store.save_snapshot(Snapshot(company_id="2", period="2025"), None)

    assert [s.period for s in store.list_snapshots("1")] == ["2024", "2023", "2022"]
    assert [s.period for s in store.list_snapshots("1", limit=2)] == ["2024", "2023"]


def test_ingestion_items_tagged_with_period():
    store = InMemoryIngestionStore()
    store.add(7, "2024-Q1", [{"indicator": "electricidad", "value": 10, "unit": "kWh"}])
    items = store.list_items("7", "2024-Q1")
    assert len(items) == 1
    assert items[0].period == "2024-Q1"
    assert store.list_items("7", "2024-Q1", limit=0) == []
