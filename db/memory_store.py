"""
In-Memory Stores
================
Thread-safe dictionary-backed stores used for local runs and tests.
"""

import threading
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from db.models import EmissionFactor, IngestionItem, Snapshot
from utils.errors import ConcurrentRecalculation


class InMemoryMetricsStore:
    def __init__(self, metrics: Optional[dict[tuple[str, str], dict[str, Any]]] = None):
        self._metrics = dict(metrics or {})

    def put(self, company_id: str, period: str, metrics: dict[str, Any]) -> None:
        self._metrics[(str(company_id), period)] = metrics

    def get_metrics(self, company_id: str, period: str) -> Optional[dict[str, Any]]:
        return self._metrics.get((str(company_id), period))


class InMemoryIngestionStore:
    def __init__(self):
        self._items: dict[tuple[str, str], list[IngestionItem]] = {}

    def add(self, company_id: str, period: str, items: Iterable[Any]) -> None:
        bucket = self._items.setdefault((str(company_id), period), [])
        for item in items:
            parsed = IngestionItem.model_validate(item)
            bucket.append(parsed.model_copy(update={"period": period}))

    def list_items(self, company_id: str, period: str, limit: int = 500) -> list[IngestionItem]:
        return list(self._items.get((str(company_id), period), []))[:limit]


class InMemoryFactorStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._factors: dict[tuple, EmissionFactor] = {}

    def get_factors(self, country_code: Optional[str], year: int) -> list[EmissionFactor]:
        with self._lock:
            return [
                factor
                for factor in self._factors.values()
                if factor.country_code == country_code and factor.year == year
            ]

    def list_years(self, country_code: Optional[str]) -> list[int]:
        with self._lock:
            return sorted(
                {f.year for f in self._factors.values() if f.country_code == country_code}
            )

    def upsert_factors(self, factors: Iterable[EmissionFactor]) -> list[EmissionFactor]:
        stored = []
        with self._lock:
            for factor in factors:
                row = factor.model_copy(update={"updated_at": datetime.now(timezone.utc)})
                self._factors[row.key] = row
                stored.append(row)
        return stored


class InMemorySnapshotStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._snapshots: dict[tuple[str, str], Snapshot] = {}

    def get_snapshot(self, company_id: str, period: str) -> Optional[Snapshot]:
        with self._lock:
            snapshot = self._snapshots.get((str(company_id), period))
            return snapshot.model_copy(deep=True) if snapshot else None

    def list_snapshots(self, company_id: str, limit: int = 12) -> list[Snapshot]:
        with self._lock:
            rows = [s for (cid, _), s in self._snapshots.items() if cid == str(company_id)]
        rows.sort(key=lambda s: s.period, reverse=True)
        return [row.model_copy(deep=True) for row in rows[:limit]]

    def save_snapshot(self, snapshot: Snapshot, expected_version: Optional[int]) -> Snapshot:
        key = (snapshot.company_id, snapshot.period)
        with self._lock:
            current = self._snapshots.get(key)
            current_version = current.version if current else None
            if current_version != expected_version:
                raise ConcurrentRecalculation(
                    f"Snapshot {snapshot.company_id}/{snapshot.period} changed during calculation.",
                    {"expected": expected_version, "found": current_version},
                )
            stored = snapshot.model_copy(
                deep=True,
                update={
                    "version": (current_version or 0) + 1,
                    "calculated_at": datetime.now(timezone.utc),
                },
            )
            self._snapshots[key] = stored
            return stored.model_copy(deep=True)
