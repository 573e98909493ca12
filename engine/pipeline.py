"""
Footprint Pipeline — LangGraph
==============================
A LangGraph StateGraph that chains the calculation stages in a fixed
sequential workflow:

  Router → Load → Aggregate → Breakdown → Scenarios → Persist → History → END

The router validates the request; the load node issues the independent
reads concurrently. Each node passes the state through untouched once an
error has been recorded, and the runner re-raises it.
"""

from __future__ import annotations

import functools
import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable, Optional, TypedDict

from langgraph.graph import END, StateGraph

from db.models import (
    FactorSet,
    IngestionItem,
    ScenarioResult,
    Snapshot,
    TimelineEntry,
)
from db.stores import IngestionItemStore, MetricsStore, SnapshotStore
from engine.activities import ActivityExtraction, ActivityMapping, extract_activities
from engine.breakdown import BreakdownResult, compute_breakdown
from engine.factors import FactorResolver, build_factor_map
from engine.history import build_timeline, parse_period_year
from engine.scenarios import compute_scenarios
from utils.errors import CalculationCancelled, CarbonError, InvalidInput, NoSourceData

logger = logging.getLogger("carbon_app.pipeline")


# ── Pipeline State ────────────────────────────────────────
class FootprintState(TypedDict, total=False):
    """Shared state passed between nodes in the LangGraph."""

    company_id: str
    period: str
    country_code: Optional[str]
    scenarios: list[Any]
    persist: bool
    cancel_event: Optional[threading.Event]
    year: int
    metrics: Optional[dict[str, Any]]
    ingestion_items: list[IngestionItem]
    existing: Optional[Snapshot]
    factor_set: FactorSet
    extraction: ActivityExtraction
    breakdown: BreakdownResult
    notes: list[str]
    scenario_results: list[ScenarioResult]
    snapshot: Snapshot
    history: list[TimelineEntry]
    error: Optional[CarbonError]


@dataclass
class PipelineDeps:
    """Collaborators the nodes read from and write to."""

    metrics_store: MetricsStore
    ingestion_store: IngestionItemStore
    snapshot_store: SnapshotStore
    resolver: FactorResolver
    mapping: ActivityMapping
    tolerance: float = 0.01
    history_window: int = 24
    ingestion_limit: int = 500


def _node(fn: Callable[[FootprintState], dict[str, Any]]):
    """Skip the node after an error; record domain errors in the state."""

    @functools.wraps(fn)
    def wrapper(state: FootprintState) -> FootprintState:
        if state.get("error"):
            return state
        try:
            return {**state, **fn(state)}
        except CarbonError as exc:
            return {**state, "error": exc}

    return wrapper


# ── Build the Graph ───────────────────────────────────────
def build_pipeline(deps: PipelineDeps):
    """Construct and compile the footprint pipeline graph."""

    @_node
    def router_node(state: FootprintState) -> dict[str, Any]:
        if not state.get("company_id"):
            raise InvalidInput("companyId is required to calculate the carbon footprint.")
        if not state.get("period"):
            raise InvalidInput("period is required to calculate the carbon footprint.")
        year = parse_period_year(state["period"]) or date.today().year
        logger.info(
            "Calculating footprint for company %s period %s", state["company_id"], state["period"]
        )
        return {"year": year}

    @_node
    def load_node(state: FootprintState) -> dict[str, Any]:
        company_id, period = state["company_id"], state["period"]
        with ThreadPoolExecutor(max_workers=4, thread_name_prefix="footprint-load") as pool:
            metrics_f = pool.submit(deps.metrics_store.get_metrics, company_id, period)
            items_f = pool.submit(
                deps.ingestion_store.list_items, company_id, period, deps.ingestion_limit
            )
            existing_f = pool.submit(deps.snapshot_store.get_snapshot, company_id, period)
            factors_f = pool.submit(
                deps.resolver.resolve_factor_set, state.get("country_code"), state["year"]
            )

            metrics = metrics_f.result()
            items = items_f.result()
            if not (metrics or {}).get("environmental") and not items:
                raise NoSourceData(
                    "No environmental indicators or ingested data found for the period."
                )
            return {
                "metrics": metrics,
                "ingestion_items": items,
                "existing": existing_f.result(),
                "factor_set": factors_f.result(),
            }

    @_node
    def aggregate_node(state: FootprintState) -> dict[str, Any]:
        extraction = extract_activities(
            state.get("metrics"), state.get("ingestion_items") or [], deps.mapping
        )
        return {"extraction": extraction}

    @_node
    def breakdown_node(state: FootprintState) -> dict[str, Any]:
        extraction = state["extraction"]
        result = compute_breakdown(
            extraction.activities,
            build_factor_map(state["factor_set"].factors),
            extraction.direct_emissions,
            deps.tolerance,
        )
        return {"breakdown": result, "notes": extraction.notes + result.notes}

    @_node
    def scenarios_node(state: FootprintState) -> dict[str, Any]:
        result = state["breakdown"]
        return {
            "scenario_results": compute_scenarios(
                result.totals, result.breakdown, state.get("scenarios")
            )
        }

    @_node
    def persist_node(state: FootprintState) -> dict[str, Any]:
        result = state["breakdown"]
        existing = state.get("existing")
        persist = state.get("persist", True)
        snapshot = Snapshot(
            id=(existing.id if existing else str(uuid.uuid4())) if persist else None,
            company_id=state["company_id"],
            period=state["period"],
            scope1=result.totals.scope1,
            scope2=result.totals.scope2,
            scope3=result.totals.scope3,
            total=result.totals.total,
            breakdown=result.breakdown,
            scenarios=state["scenario_results"],
            factors=state["factor_set"].metadata(),
            metadata={
                "activities": state["extraction"].activity_metadata,
                "notes": state.get("notes", []),
                "ingestionItems": len(state.get("ingestion_items") or []),
                "mappingVersion": deps.mapping.version,
            },
            calculated_at=datetime.now(timezone.utc),
        )
        if not persist:
            return {"snapshot": snapshot}

        cancel_event = state.get("cancel_event")
        if cancel_event is not None and cancel_event.is_set():
            raise CalculationCancelled("Calculation cancelled before writing the snapshot.")
        saved = deps.snapshot_store.save_snapshot(
            snapshot, expected_version=existing.version if existing else None
        )
        logger.info(
            "Stored footprint %s/%s v%s: total %s tCO2e",
            saved.company_id,
            saved.period,
            saved.version,
            saved.total,
        )
        return {"snapshot": saved}

    @_node
    def history_node(state: FootprintState) -> dict[str, Any]:
        snapshots = deps.snapshot_store.list_snapshots(state["company_id"], deps.history_window)
        return {"history": build_timeline(snapshots)}

    graph = StateGraph(FootprintState)

    graph.add_node("router", router_node)
    graph.add_node("load", load_node)
    graph.add_node("aggregate", aggregate_node)
    graph.add_node("breakdown", breakdown_node)
    graph.add_node("scenarios", scenarios_node)
    graph.add_node("persist", persist_node)
    graph.add_node("history", history_node)

    graph.set_entry_point("router")
    graph.add_edge("router", "load")
    graph.add_edge("load", "aggregate")
    graph.add_edge("aggregate", "breakdown")
    graph.add_edge("breakdown", "scenarios")
    graph.add_edge("scenarios", "persist")
    graph.add_edge("persist", "history")
    graph.add_edge("history", END)

    return graph.compile()


def run_pipeline(pipeline, **inputs: Any) -> FootprintState:
    """Execute the pipeline, raising the first domain error recorded."""
    initial_state: FootprintState = {"persist": True, **inputs}
    result = pipeline.invoke(initial_state)
    if result.get("error"):
        raise result["error"]
    return result
