"""
Scenario Projector
==================
Projects a percentage reduction over a scope/category slice of a
breakdown. ``"all"`` is a wildcard for both scope and category.
"""

from typing import Any, Iterable, Optional

from pydantic import Field, ValidationError, field_validator

from db.models import SCOPES, BreakdownItem, CamelModel, ScenarioResult, ScopeTotals
from utils.errors import InvalidInput
from utils.helpers import CO2E_PRECISION, round_value

WILDCARD = "all"


class ScenarioRequest(CamelModel):
    name: str = "Custom scenario"
    description: Optional[str] = None
    scope: str = "scope1"
    category: str = WILDCARD
    reduction_percent: float = Field(default=0.0, ge=0, le=100)

    @field_validator("scope", "category", mode="before")
    @classmethod
    def _lower(cls, value: Any) -> Any:
        if value is None:
            return value
        return str(value).strip().lower()

    @field_validator("scope")
    @classmethod
    def _known_scope(cls, value: str) -> str:
        if value not in SCOPES and value != WILDCARD:
            raise ValueError(f"scope must be one of {', '.join(SCOPES)} or '{WILDCARD}'")
        return value


DEFAULT_SCENARIOS = [
    ScenarioRequest(
        name="Energy efficiency (-10%)",
        description="Cut electricity use through operational efficiency and renewable supply.",
        scope="scope2",
        category="electricidad",
        reduction_percent=10,
    ),
    ScenarioRequest(
        name="Sustainable transport (-15%)",
        description="Optimise logistics routes and move the fleet to cleaner fuels.",
        scope="scope3",
        category="logistica",
        reduction_percent=15,
    ),
]


def normalize_scenario(raw: Any) -> ScenarioRequest:
    """Validate a scenario given as a mapping or model."""
    if raw is None:
        raise InvalidInput("A scenario is required to simulate a reduction.")
    if isinstance(raw, ScenarioRequest):
        return raw
    if isinstance(raw, CamelModel):
        raw = raw.model_dump()
    try:
        return ScenarioRequest.model_validate(
            {k: v for k, v in dict(raw).items() if v is not None}
        )
    except (TypeError, ValueError, ValidationError) as exc:
        raise InvalidInput(f"Invalid scenario: {exc}") from exc


def project_scenario(
    totals: ScopeTotals, breakdown: Iterable[BreakdownItem], scenario: ScenarioRequest
) -> ScenarioResult:
    """
    Project ``scenario`` over a stored breakdown.

    ``baseline`` is the sum of the breakdown items matching scope and
    category; only when both are ``"all"`` is it the grand total. A scope of
    ``"all"`` with a specific category therefore reduces that category across
    every scope, while ``projected`` and ``delta`` are measured against the
    grand total.
    """
    scope = None if scenario.scope == WILDCARD else scenario.scope
    category = None if scenario.category == WILDCARD else scenario.category

    if scope is None and category is None:
        baseline = totals.total
    else:
        baseline = sum(
            item.result or 0.0
            for item in breakdown
            if (scope is None or item.scope == scope)
            and (category is None or item.category == category)
        )
    baseline = round_value(baseline, CO2E_PRECISION)

    reduction = round_value(max(baseline, 0.0) * scenario.reduction_percent / 100)
    scope_total = totals.for_scope(scope)
    projected = round_value(max(scope_total - reduction, 0.0))

    return ScenarioResult(
        name=scenario.name,
        description=scenario.description,
        scope=scenario.scope,
        category=scenario.category,
        reduction_percent=scenario.reduction_percent,
        baseline=baseline,
        reduction=reduction,
        projected=projected,
        delta=round_value(projected - scope_total),
    )


def compute_scenarios(
    totals: ScopeTotals,
    breakdown: list[BreakdownItem],
    requested: Optional[Iterable[Any]] = None,
) -> list[ScenarioResult]:
    """Project the requested scenarios, or the defaults when none are given."""
    scenarios = [normalize_scenario(raw) for raw in requested or []] or DEFAULT_SCENARIOS
    return [project_scenario(totals, breakdown, scenario) for scenario in scenarios]
