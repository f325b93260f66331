"""Curtailment energy summary endpoints -- daily, monthly and yearly."""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Path
from pydantic import BaseModel

from curtailment.api.deps import get_service
from curtailment.service import CurtailmentService

router = APIRouter(prefix="/summaries", tags=["Summaries"])


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------
class EnergySummary(BaseModel):
    key: str
    energy: float
    payment: float


def _or_404(key: str, summary: dict | None, level: str) -> EnergySummary:
    if summary is None:
        raise HTTPException(status_code=404, detail=f"No {level} summary for {key}")
    return EnergySummary(key=key, energy=summary["energy"], payment=summary["payment"])


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
@router.get("/daily/{settlement_date}", response_model=EnergySummary)
async def daily_summary(
    settlement_date: date,
    service: CurtailmentService = Depends(get_service),
) -> EnergySummary:
    """Curtailed energy (MWh) and payment (GBP) for one settlement date."""
    summary = await service.get_daily_summary(settlement_date)
    return _or_404(settlement_date.isoformat(), summary, "daily")


@router.get("/monthly/{year_month}", response_model=EnergySummary)
async def monthly_summary(
    year_month: str = Path(..., pattern=r"^\d{4}-(0[1-9]|1[0-2])$"),
    service: CurtailmentService = Depends(get_service),
) -> EnergySummary:
    summary = await service.get_monthly_summary(year_month)
    return _or_404(year_month, summary, "monthly")


@router.get("/yearly/{year}", response_model=EnergySummary)
async def yearly_summary(
    year: str = Path(..., pattern=r"^\d{4}$"),
    service: CurtailmentService = Depends(get_service),
) -> EnergySummary:
    summary = await service.get_yearly_summary(year)
    return _or_404(year, summary, "yearly")
