"""
Store Interfaces
================
Collaborators the footprint engine reads from and writes to. Concrete
adapters live in ``db.memory_store`` and ``db.snowflake_store``.
"""

from typing import Any, Iterable, Optional, Protocol

from db.models import EmissionFactor, IngestionItem, Snapshot


class MetricsStore(Protocol):
    def get_metrics(self, company_id: str, period: str) -> Optional[dict[str, Any]]:
        """Self-reported indicators, e.g. ``{"environmental": {...}}``."""
        ...


class IngestionItemStore(Protocol):
    def list_items(self, company_id: str, period: str, limit: int = 500) -> list[IngestionItem]:
        ...


class FactorStore(Protocol):
    def get_factors(self, country_code: Optional[str], year: int) -> list[EmissionFactor]:
        """Factors for exactly ``country_code`` (None = global) and ``year``."""
        ...

    def list_years(self, country_code: Optional[str]) -> list[int]:
        ...

    def upsert_factors(self, factors: Iterable[EmissionFactor]) -> list[EmissionFactor]:
        ...


class SnapshotStore(Protocol):
    def get_snapshot(self, company_id: str, period: str) -> Optional[Snapshot]:
        ...

    def list_snapshots(self, company_id: str, limit: int = 12) -> list[Snapshot]:
        """Most recent periods first."""
        ...

    def save_snapshot(self, snapshot: Snapshot, expected_version: Optional[int]) -> Snapshot:
        """
        Write the snapshot row and replace its breakdown/scenario children
        as one visible change.

        ``expected_version`` is the version read before calculating (None when
        no snapshot existed); raises ``ConcurrentRecalculation`` on mismatch.
        """
        ...
