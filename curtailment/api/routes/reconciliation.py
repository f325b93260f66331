"""Reconciliation trigger endpoint.

Runs the date pipeline synchronously within the request, so it is rate
limited well below the read endpoints.
"""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from curtailment.api.deps import get_service, limiter
from curtailment.core.exceptions import NotFoundError, StoreWriteError
from curtailment.service import CurtailmentService

router = APIRouter(prefix="/reconcile", tags=["Reconciliation"])


class ReconcileResponse(BaseModel):
    settlement_date: date
    complete: bool
    missing_periods: list[int]


@router.post("/{settlement_date}", response_model=ReconcileResponse)
@limiter.limit("6/minute")
async def reconcile(
    request: Request,
    settlement_date: date,
    service: CurtailmentService = Depends(get_service),
) -> ReconcileResponse:
    """Bring a settlement date to completeness and recalculate mining."""
    try:
        outcome = await service.reconcile_date(settlement_date)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except StoreWriteError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return ReconcileResponse(settlement_date=settlement_date, **outcome)
