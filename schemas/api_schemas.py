"""
API Schemas
===========
Pydantic models for request / response validation on API endpoints.
"""

from typing import Optional, Union

from pydantic import Field

from db.models import CamelModel, EmissionFactor, RawFactor, TimelineEntry
from engine.scenarios import ScenarioRequest

CompanyId = Union[int, str]


# ── Requests ──────────────────────────────────────────────
class CalculateRequest(CamelModel):
    """Body of a footprint calculation request."""

    company_id: CompanyId
    period: str = Field(..., min_length=1)
    country_code: Optional[str] = None
    scenarios: list[ScenarioRequest] = []


class SimulateRequest(CamelModel):
    company_id: CompanyId
    period: str = Field(..., min_length=1)
    scenario: ScenarioRequest


class SyncFactorsRequest(CamelModel):
    factors: list[RawFactor] = []
    year: Optional[int] = None


# ── Responses ─────────────────────────────────────────────
class HistoryResponse(CamelModel):
    items: list[TimelineEntry]


class FactorListResponse(CamelModel):
    items: list[EmissionFactor]
