"""
Activity Aggregator
===================
Fuses ingestion time-series items and legacy metric fields into one
activity bundle per (scope, category).

Which indicator feeds which category is decided by an explicit, versioned
``ActivityMapping`` loaded from JSON. An ingestion item is assigned to at
most one category: the definition with the longest matching keyword wins,
then the higher ``priority``, then the earlier definition.
"""

import json
from pathlib import Path
from typing import Any, Iterable, Optional

from pydantic import BaseModel, field_validator

from db.models import (
    SCOPES,
    SOURCE_INGESTION,
    SOURCE_METRICS,
    CamelModel,
    IngestionItem,
    Scope,
)
from engine.units import normalize
from utils.helpers import ACTIVITY_PRECISION, round_value, to_number


class ActivityDefinition(BaseModel):
    """How one (scope, category) is recognised and in which unit it is summed."""

    scope: Scope
    category: str
    keywords: list[str]
    unit: str
    priority: int = 0
    fallback_metric: Optional[str] = None
    fallback_unit: Optional[str] = None

    @field_validator("keywords", mode="before")
    @classmethod
    def _lower_keywords(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [str(k).strip().lower() for k in value if str(k).strip()]
        return value

    @field_validator("scope", "category", mode="before")
    @classmethod
    def _lower_slug(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value


class ActivityMapping(BaseModel):
    version: str
    definitions: list[ActivityDefinition]
    # scope -> dotted metric path of the self-reported scope total
    direct_emissions: dict[str, str] = {}


def load_activity_mapping(path: Path) -> ActivityMapping:
    """Load the indicator mapping table from JSON."""
    with open(path, "r", encoding="utf-8") as f:
        return ActivityMapping.model_validate(json.load(f))


class ActivityBundle(CamelModel):
    scope: Scope
    category: str
    activity: float
    unit: str
    source: str
    items: int = 0


class ActivityExtraction(BaseModel):
    activities: dict[str, dict[str, ActivityBundle]]
    direct_emissions: dict[str, Optional[float]]
    activity_metadata: dict[str, dict[str, dict[str, Any]]]
    notes: list[str] = []


def metric_value(metrics: Optional[dict[str, Any]], path: str) -> Any:
    """Read a dotted path such as ``environmental.energiaKwh``."""
    node: Any = metrics or {}
    for part in path.split("."):
        if not isinstance(node, dict):
            return None
        node = node.get(part)
    return node


def match_definition(indicator: Any, mapping: ActivityMapping) -> Optional[ActivityDefinition]:
    """Definition an indicator belongs to, or None when no keyword matches."""
    if not indicator:
        return None
    text = str(indicator).lower()
    best: Optional[ActivityDefinition] = None
    best_rank: Optional[tuple[int, int, int]] = None
    for index, definition in enumerate(mapping.definitions):
        hits = [len(keyword) for keyword in definition.keywords if keyword in text]
        if not hits:
            continue
        rank = (max(hits), definition.priority, -index)
        if best_rank is None or rank > best_rank:
            best, best_rank = definition, rank
    return best


def extract_activities(
    metrics: Optional[dict[str, Any]],
    ingestion_items: Iterable[IngestionItem | dict[str, Any]],
    mapping: ActivityMapping,
) -> ActivityExtraction:
    """Build activity bundles and collect self-reported scope totals."""
    notes: list[str] = []
    sums: dict[tuple[str, str], list[float]] = {}

    for raw in ingestion_items or []:
        item = IngestionItem.model_validate(raw)
        definition = match_definition(item.indicator, mapping)
        if definition is None:
            continue
        converted = normalize(item.value, item.unit, definition.unit)
        if converted is None:
            notes.append(
                f"Ingestion item '{item.indicator}' ({item.value} {item.unit or ''}) "
                f"could not be converted to {definition.unit}; skipped."
            )
            continue
        acc = sums.setdefault((definition.scope, definition.category), [0.0, 0])
        acc[0] += converted
        acc[1] += 1

    activities: dict[str, dict[str, ActivityBundle]] = {scope: {} for scope in SCOPES}
    metadata: dict[str, dict[str, dict[str, Any]]] = {scope: {} for scope in SCOPES}

    for definition in mapping.definitions:
        key = (definition.scope, definition.category)
        bundle = None
        extra: dict[str, Any] = {}
        if key in sums:
            total, count = sums[key]
            bundle = ActivityBundle(
                scope=definition.scope,
                category=definition.category,
                activity=total,
                unit=definition.unit,
                source=SOURCE_INGESTION,
                items=int(count),
            )
        elif definition.fallback_metric:
            raw_value = metric_value(metrics, definition.fallback_metric)
            if raw_value is not None:
                converted = normalize(
                    raw_value, definition.fallback_unit or definition.unit, definition.unit
                )
                if converted is None:
                    notes.append(
                        f"Metric {definition.fallback_metric} ({raw_value}) could not be "
                        f"converted to {definition.unit}; skipped."
                    )
                else:
                    bundle = ActivityBundle(
                        scope=definition.scope,
                        category=definition.category,
                        activity=converted,
                        unit=definition.unit,
                        source=SOURCE_METRICS,
                    )
                    extra["metric"] = definition.fallback_metric
        if bundle is None:
            continue
        activities[definition.scope][definition.category] = bundle
        metadata[definition.scope][definition.category] = {
            "activity": round_value(bundle.activity, ACTIVITY_PRECISION),
            "unit": bundle.unit,
            "source": bundle.source,
            "items": bundle.items,
            **extra,
        }

    direct_emissions: dict[str, Optional[float]] = {}
    for scope in SCOPES:
        path = mapping.direct_emissions.get(scope)
        direct_emissions[scope] = to_number(metric_value(metrics, path)) if path else None

    return ActivityExtraction(
        activities=activities,
        direct_emissions=direct_emissions,
        activity_metadata=metadata,
        notes=notes,
    )
