"""Bitcoin mining potential endpoints."""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from curtailment.api.deps import get_service
from curtailment.core.exceptions import NotFoundError
from curtailment.service import CurtailmentService

router = APIRouter(prefix="/mining", tags=["Mining"])


class MiningSummary(BaseModel):
    settlement_date: date
    miner_model: str
    bitcoin_mined: float


@router.get("/daily/{settlement_date}", response_model=MiningSummary)
async def daily_mining(
    settlement_date: date,
    miner_model: str = Query("S19J_PRO", description="Miner hardware profile"),
    service: CurtailmentService = Depends(get_service),
) -> MiningSummary:
    """BTC that the date's curtailed energy could have mined with *miner_model*."""
    try:
        summary = await service.get_mining_summary(settlement_date, miner_model)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if summary is None:
        raise HTTPException(
            status_code=404,
            detail=f"No mining summary for {settlement_date} and {miner_model}",
        )
    return MiningSummary(
        settlement_date=settlement_date,
        miner_model=miner_model.strip().upper(),
        bitcoin_mined=summary["bitcoin_mined"],
    )
