"""
API Routes
==========
FastAPI router exposing carbon footprint calculation, summary, history,
scenario simulation and emission-factor sync endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from db.models import Snapshot
from schemas.api_schemas import (
    CalculateRequest,
    FactorListResponse,
    HistoryResponse,
    SimulateRequest,
    SyncFactorsRequest,
)
from services.carbon_service import (
    CarbonFootprintService,
    FootprintResult,
    SimulationResult,
    get_carbon_service,
)

router = APIRouter(prefix="/carbon", tags=["carbon"])


@router.post("/calculate", response_model=FootprintResult, status_code=201)
def calculate_footprint(
    body: CalculateRequest,
    service: CarbonFootprintService = Depends(get_carbon_service),
):
    """Calculate, store and return the footprint for a company period."""
    return service.compute_footprint(
        company_id=body.company_id,
        period=body.period,
        country_code=body.country_code,
        scenarios=body.scenarios,
        persist=True,
    )


@router.get("/summary", response_model=Snapshot)
def get_summary(
    company_id: str = Query(..., alias="companyId"),
    period: str = Query(...),
    auto: bool = Query(False),
    country_code: Optional[str] = Query(None, alias="countryCode"),
    service: CarbonFootprintService = Depends(get_carbon_service),
):
    """
    Return the stored snapshot for a period. With ``auto=true`` a missing
    snapshot is calculated on the fly.
    """
    snapshot = service.get_snapshot(company_id, period)
    if snapshot is None and auto:
        snapshot = service.ensure_snapshot(company_id, period, country_code)
    if snapshot is None:
        raise HTTPException(
            status_code=404,
            detail="No carbon footprint has been calculated for the requested period.",
        )
    return snapshot


@router.get("/history", response_model=HistoryResponse)
def get_history(
    company_id: str = Query(..., alias="companyId"),
    limit: Optional[int] = Query(None, ge=1, le=120),
    service: CarbonFootprintService = Depends(get_carbon_service),
):
    """Chronological footprint timeline with period-over-period change."""
    return HistoryResponse(items=service.list_history(company_id, limit))


@router.post("/simulate", response_model=SimulationResult)
def simulate(
    body: SimulateRequest,
    service: CarbonFootprintService = Depends(get_carbon_service),
):
    return service.simulate_scenario(body.company_id, body.period, body.scenario)


@router.post("/factors/sync", response_model=FactorListResponse)
def sync_factors(
    body: SyncFactorsRequest,
    service: CarbonFootprintService = Depends(get_carbon_service),
):
    """Upsert emission factors; an empty list reseeds the built-in defaults."""
    return FactorListResponse(items=service.sync_factors(body.factors, body.year))
