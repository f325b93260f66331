"""Liveness and ledger row-count endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from curtailment.api.deps import get_db
from curtailment.core.models import (
    CurtailmentRecord,
    DailySummary,
    DifficultyRecord,
    HistoricalBitcoinCalculation,
)

router = APIRouter(tags=["Health"])

_COUNTED_TABLES = (
    ("curtailment_records", CurtailmentRecord),
    ("daily_summaries", DailySummary),
    ("historical_bitcoin_calculations", HistoricalBitcoinCalculation),
    ("difficulty_history", DifficultyRecord),
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
async def health_check(session: AsyncSession = Depends(get_db)) -> dict:
    """Report ``ok`` when the ledger database answers a trivial query."""
    try:
        await session.execute(select(1))
        database = "connected"
    except Exception as exc:
        database = f"disconnected: {exc}"

    return {
        "status": "ok" if database == "connected" else "degraded",
        "database": database,
        "timestamp": _now(),
    }


@router.get("/health/data-status")
async def data_status(session: AsyncSession = Depends(get_db)) -> dict:
    """Row counts for the ledger tables and the latest processed date."""
    counts = {
        name: (await session.execute(select(func.count()).select_from(model))).scalar_one()
        for name, model in _COUNTED_TABLES
    }
    latest = (await session.execute(select(func.max(DailySummary.summary_date)))).scalar_one()

    return {
        "table_counts": counts,
        "latest_summary_date": latest.isoformat() if latest else None,
        "timestamp": _now(),
    }
