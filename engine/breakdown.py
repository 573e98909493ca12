"""
Breakdown & Reconciliation
==========================
Multiplies each activity bundle by its emission factor, sums per-scope
totals, and reconciles them against self-reported scope totals. A
divergence is never overwritten silently: it is added as an explicit
``ajuste_reportado`` line so computed and adjusted figures stay auditable.
"""

import logging
from typing import Mapping, Optional

from pydantic import BaseModel

from db.models import (
    ADJUSTMENT_CATEGORY,
    RESULT_UNIT,
    SCOPES,
    SOURCE_INGESTION,
    SOURCE_METRICS,
    BreakdownItem,
    EmissionFactor,
    ScopeTotals,
)
from engine.activities import ActivityBundle
from engine.units import normalize
from utils.helpers import ACTIVITY_PRECISION, CO2E_PRECISION, round_value

logger = logging.getLogger("carbon_app.breakdown")

ADJUSTMENT_NOTE = "Adjustment to align with reported emissions."


class BreakdownResult(BaseModel):
    breakdown: list[BreakdownItem]
    totals: ScopeTotals
    notes: list[str] = []


def compute_breakdown(
    activities: Mapping[str, Mapping[str, ActivityBundle]],
    factor_map: Mapping[str, Mapping[str, EmissionFactor]],
    direct_emissions: Mapping[str, Optional[float]],
    tolerance: float = 0.01,
) -> BreakdownResult:
    """
    Emissions per (scope, category) and reconciled scope totals.

    Categories without a factor, or whose unit cannot be converted to the
    factor's unit, yield a zero-result line with a note instead of failing.
    """
    breakdown: list[BreakdownItem] = []
    computed = {scope: 0.0 for scope in SCOPES}
    notes: list[str] = []

    for scope in SCOPES:
        for category, bundle in (activities.get(scope) or {}).items():
            factor = (factor_map.get(scope) or {}).get(category)
            if factor is None:
                logger.warning("Missing emission factor for %s/%s", scope, category)
                breakdown.append(
                    BreakdownItem(
                        scope=scope,
                        category=category,
                        activity=round_value(bundle.activity, ACTIVITY_PRECISION),
                        unit=bundle.unit,
                        factor=None,
                        result=0.0,
                        source=bundle.source,
                        notes="Missing emission factor.",
                    )
                )
                notes.append(f"Missing emission factor for {scope}/{category}.")
                continue

            activity = normalize(bundle.activity, bundle.unit, factor.activity_unit)
            if activity is None:
                breakdown.append(
                    BreakdownItem(
                        scope=scope,
                        category=category,
                        activity=round_value(bundle.activity, ACTIVITY_PRECISION),
                        unit=bundle.unit,
                        factor=factor.value,
                        result=0.0,
                        source=bundle.source,
                        notes=f"Unable to convert unit {bundle.unit} to {factor.activity_unit}.",
                    )
                )
                notes.append(f"Unable to convert unit {bundle.unit} for {scope}/{category}.")
                continue

            result = round_value(activity * factor.value, CO2E_PRECISION)
            computed[scope] += result
            breakdown.append(
                BreakdownItem(
                    scope=scope,
                    category=category,
                    activity=round_value(activity, ACTIVITY_PRECISION),
                    unit=factor.activity_unit,
                    factor=factor.value,
                    result=result,
                    source=SOURCE_INGESTION if bundle.source == SOURCE_INGESTION else SOURCE_METRICS,
                    notes=None,
                )
            )

    totals = {scope: round_value(value) for scope, value in computed.items()}
    notes.extend(_apply_reported_totals(totals, direct_emissions, breakdown, tolerance))

    scope_totals = {scope: round_value(max(totals[scope], 0.0)) for scope in SCOPES}
    return BreakdownResult(
        breakdown=breakdown,
        totals=ScopeTotals(**scope_totals, total=round_value(sum(scope_totals.values()))),
        notes=notes,
    )


def _apply_reported_totals(
    totals: dict[str, float],
    direct_emissions: Mapping[str, Optional[float]],
    breakdown: list[BreakdownItem],
    tolerance: float,
) -> list[str]:
    """Align ``totals`` with reported values, appending one adjustment line per scope."""
    notes = []
    for scope in SCOPES:
        reported = direct_emissions.get(scope)
        if reported is None:
            continue
        delta = round_value(reported - totals[scope])
        if abs(delta) < tolerance:
            continue
        notes.append(
            f"{scope} aligned to reported {round_value(reported)} {RESULT_UNIT} "
            f"(computed {totals[scope]}, delta {delta})."
        )
        totals[scope] = round_value(reported)
        breakdown.append(
            BreakdownItem(
                scope=scope,
                category=ADJUSTMENT_CATEGORY,
                activity=None,
                unit=RESULT_UNIT,
                factor=None,
                result=delta,
                source=SOURCE_METRICS,
                notes=ADJUSTMENT_NOTE,
            )
        )
    return notes
