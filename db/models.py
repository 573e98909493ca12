"""
Database Models
===============
Pydantic models representing emission factors, footprint snapshots and
their child rows. Attributes are snake_case; JSON uses camelCase aliases
(``companyId``, ``reductionPercent``...) and both forms are accepted on input.
"""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic.alias_generators import to_camel

Scope = Literal["scope1", "scope2", "scope3"]
SCOPES: tuple[str, ...] = ("scope1", "scope2", "scope3")

RESULT_UNIT = "tCO2e"
ADJUSTMENT_CATEGORY = "ajuste_reportado"
SOURCE_INGESTION = "ingestion"
SOURCE_METRICS = "metricas"


class CamelModel(BaseModel):
    """Base model serializing to camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


def _lower(value: Any) -> Any:
    return value.strip().lower() if isinstance(value, str) else value


# ── Emission factors ─────────────────────────────────────
class RawFactor(CamelModel):
    """An emission factor as submitted for sync; the year may be implied."""

    scope: Scope
    category: str
    year: Optional[int] = None
    country_code: Optional[str] = None
    country: Optional[str] = None
    value: float
    activity_unit: str = "kWh"
    result_unit: str = RESULT_UNIT
    source: Optional[str] = None
    updated_at: Optional[datetime] = None

    @field_validator("scope", "category", mode="before")
    @classmethod
    def _normalize_slug(cls, value: Any) -> Any:
        return _lower(value)

    @field_validator("country_code", mode="before")
    @classmethod
    def _normalize_country_code(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper() or None
        return value

    @model_validator(mode="after")
    def _default_country_name(self) -> "RawFactor":
        if not self.country:
            self.country = self.country_code or "Global"
        return self


class EmissionFactor(RawFactor):
    """tCO2e emitted per ``activity_unit``; unique per (scope, category, year, country)."""

    year: int

    @property
    def key(self) -> tuple[str, str, int, Optional[str]]:
        return (self.scope, self.category, self.year, self.country_code)


class FactorSet(CamelModel):
    """The factors resolved for one calculation."""

    country_code: Optional[str] = None
    country_name: str = "Global"
    year: int
    factors: list[EmissionFactor] = []

    def metadata(self) -> dict[str, Any]:
        """Compact description persisted with the snapshot."""
        return {
            "countryCode": self.country_code,
            "countryName": self.country_name,
            "year": self.year,
            "factors": [
                {
                    "scope": factor.scope,
                    "category": factor.category,
                    "value": factor.value,
                    "unit": factor.activity_unit,
                    "source": factor.source,
                }
                for factor in self.factors
            ],
        }


# ── Activity inputs ──────────────────────────────────────
class IngestionItem(CamelModel):
    """A time-stamped (indicator, value, unit) tuple extracted upstream."""

    indicator: Optional[str] = None
    value: Any = None
    unit: Optional[str] = None
    source: Optional[str] = None
    recorded_at: Optional[datetime] = None
    period: Optional[str] = None


# ── Snapshot children ────────────────────────────────────
class BreakdownItem(CamelModel):
    """Emissions computed for one (scope, category)."""

    scope: Scope
    category: str
    activity: Optional[float] = None
    unit: Optional[str] = None
    factor: Optional[float] = None
    result: float = 0.0
    source: Optional[str] = None
    notes: Optional[str] = None


class ScenarioResult(CamelModel):
    """A reduction scenario projected over a breakdown."""

    name: str
    description: Optional[str] = None
    scope: str
    category: str
    reduction_percent: float
    baseline: float = 0.0
    reduction: float = 0.0
    projected: float = 0.0
    delta: float = 0.0


class ScopeTotals(CamelModel):
    scope1: float = 0.0
    scope2: float = 0.0
    scope3: float = 0.0
    total: float = 0.0

    def for_scope(self, scope: Optional[str]) -> float:
        """Total of ``scope``; the grand total when scope is None."""
        if scope is None:
            return self.total
        return getattr(self, scope, 0.0) or 0.0


# ── Snapshot ─────────────────────────────────────────────
class Snapshot(CamelModel):
    """Canonical footprint for one (company, period)."""

    id: Optional[str] = None
    company_id: str
    period: str
    scope1: float = 0.0
    scope2: float = 0.0
    scope3: float = 0.0
    total: float = 0.0
    breakdown: list[BreakdownItem] = []
    scenarios: list[ScenarioResult] = []
    factors: Optional[dict[str, Any]] = None
    metadata: Optional[dict[str, Any]] = None
    calculated_at: Optional[datetime] = None
    version: int = 0

    @field_validator("company_id", mode="before")
    @classmethod
    def _company_id_as_str(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    @property
    def totals(self) -> ScopeTotals:
        return ScopeTotals(
            scope1=self.scope1, scope2=self.scope2, scope3=self.scope3, total=self.total
        )


class TimelineEntry(CamelModel):
    period: str
    scope1: float = 0.0
    scope2: float = 0.0
    scope3: float = 0.0
    total: float = 0.0
    change: Optional[float] = None
    change_percent: Optional[float] = None
