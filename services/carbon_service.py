"""
Carbon Footprint Service
========================
Operations exposed to the controller layer: calculate, read, simulate and
list footprints, and sync the emission factor catalog.
"""

import functools
import logging
import threading
import weakref
from typing import Any, Iterable, Optional

from config.settings import Settings, settings
from db.memory_store import (
    InMemoryFactorStore,
    InMemoryIngestionStore,
    InMemoryMetricsStore,
    InMemorySnapshotStore,
)
from db.models import (
    BreakdownItem,
    CamelModel,
    EmissionFactor,
    RawFactor,
    ScenarioResult,
    Snapshot,
    TimelineEntry,
)
from db.snowflake_store import (
    SnowflakeFactorStore,
    SnowflakeIngestionStore,
    SnowflakeMetricsStore,
    SnowflakeSnapshotStore,
)
from db.stores import FactorStore, IngestionItemStore, MetricsStore, SnapshotStore
from engine.activities import ActivityMapping, load_activity_mapping
from engine.factors import FactorResolver, load_default_factors
from engine.history import build_timeline
from engine.pipeline import PipelineDeps, build_pipeline, run_pipeline
from engine.scenarios import DEFAULT_SCENARIOS, normalize_scenario, project_scenario
from utils.errors import InvalidInput, NotFound

logger = logging.getLogger("carbon_app.service")


class FootprintResult(CamelModel):
    snapshot: Snapshot
    breakdown: list[BreakdownItem]
    scenarios: list[ScenarioResult]
    history: list[TimelineEntry]
    notes: list[str] = []


class SimulationResult(CamelModel):
    snapshot: Snapshot
    scenario: ScenarioResult


class CarbonFootprintService:
    """
    Request-scoped footprint calculations over injected stores.

    Writes for the same (company, period) are serialized in-process; the
    snapshot store's version check rejects collisions across processes.
    """

    def __init__(
        self,
        metrics_store: MetricsStore,
        ingestion_store: IngestionItemStore,
        factor_store: FactorStore,
        snapshot_store: SnapshotStore,
        mapping: Optional[ActivityMapping] = None,
        defaults: Optional[Iterable[RawFactor]] = None,
        config: Settings = settings,
    ):
        self.config = config
        self.snapshot_store = snapshot_store
        self.mapping = mapping or load_activity_mapping(config.ACTIVITY_MAPPING_PATH)
        if defaults is None:
            defaults = load_default_factors(config.DEFAULT_FACTORS_PATH)
        self.resolver = FactorResolver(factor_store, defaults)
        self.pipeline = build_pipeline(
            PipelineDeps(
                metrics_store=metrics_store,
                ingestion_store=ingestion_store,
                snapshot_store=snapshot_store,
                resolver=self.resolver,
                mapping=self.mapping,
                tolerance=config.RECONCILIATION_TOLERANCE,
                history_window=config.HISTORY_WINDOW,
                ingestion_limit=config.INGESTION_ITEM_LIMIT,
            )
        )
        self._locks: weakref.WeakValueDictionary = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def _key_lock(self, company_id: str, period: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault((str(company_id), period), threading.Lock())

    def compute_footprint(
        self,
        company_id: Any,
        period: Optional[str],
        country_code: Optional[str] = None,
        scenarios: Optional[list[Any]] = None,
        persist: bool = True,
        cancel_event: Optional[threading.Event] = None,
    ) -> FootprintResult:
        if company_id in (None, "") or not period:
            raise InvalidInput("companyId and period are required to calculate the carbon footprint.")
        inputs = dict(
            company_id=str(company_id),
            period=period,
            country_code=country_code,
            scenarios=list(scenarios or []),
            persist=persist,
            cancel_event=cancel_event,
        )
        if persist:
            with self._key_lock(str(company_id), period):
                state = run_pipeline(self.pipeline, **inputs)
        else:
            state = run_pipeline(self.pipeline, **inputs)

        snapshot = state["snapshot"]
        return FootprintResult(
            snapshot=snapshot,
            breakdown=snapshot.breakdown,
            scenarios=snapshot.scenarios,
            history=state.get("history", []),
            notes=state.get("notes", []),
        )

    def get_snapshot(self, company_id: Any, period: Optional[str]) -> Optional[Snapshot]:
        if company_id in (None, "") or not period:
            raise InvalidInput("companyId and period are required.")
        return self.snapshot_store.get_snapshot(str(company_id), period)

    def ensure_snapshot(
        self, company_id: Any, period: Optional[str], country_code: Optional[str] = None
    ) -> Snapshot:
        """Stored snapshot for the period, calculating it with the default scenarios if absent."""
        existing = self.get_snapshot(company_id, period)
        if existing:
            return existing
        return self.compute_footprint(
            company_id, period, country_code, scenarios=list(DEFAULT_SCENARIOS)
        ).snapshot

    def list_history(self, company_id: Any, limit: Optional[int] = None) -> list[TimelineEntry]:
        if company_id in (None, ""):
            raise InvalidInput("companyId is required to list the footprint history.")
        limit = limit or self.config.HISTORY_LIMIT
        return build_timeline(self.snapshot_store.list_snapshots(str(company_id), limit))

    def simulate_scenario(
        self, company_id: Any, period: Optional[str], scenario: Any
    ) -> SimulationResult:
        request = normalize_scenario(scenario)
        snapshot = self.get_snapshot(company_id, period)
        if snapshot is None:
            raise NotFound("No carbon footprint has been calculated for the period.")
        projection = project_scenario(snapshot.totals, snapshot.breakdown, request)
        return SimulationResult(snapshot=snapshot, scenario=projection)

    def sync_factors(
        self, factors: Optional[Iterable[Any]] = None, year: Optional[int] = None
    ) -> list[EmissionFactor]:
        return self.resolver.sync_factors(factors or [], year)


def create_service(config: Settings = settings) -> CarbonFootprintService:
    """Wire the service against the configured store backend."""
    if config.STORE_BACKEND == "memory":
        logger.info("Using in-memory stores")
        return CarbonFootprintService(
            InMemoryMetricsStore(),
            InMemoryIngestionStore(),
            InMemoryFactorStore(),
            InMemorySnapshotStore(),
            config=config,
        )

    return CarbonFootprintService(
        SnowflakeMetricsStore(),
        SnowflakeIngestionStore(),
        SnowflakeFactorStore(),
        SnowflakeSnapshotStore(),
        config=config,
    )


@functools.lru_cache(maxsize=1)
def get_carbon_service() -> CarbonFootprintService:
    """Process-wide service instance (FastAPI dependency)."""
    return create_service(settings)
