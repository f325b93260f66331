"""Energy aggregation -- day -> month -> year curtailment summaries.

Every level is a full recompute from the level directly below it:

    daily_summaries   = sum(abs(volume)), sum(payment) over curtailment_records
    monthly_summaries = sum over daily_summaries rows of the month
    yearly_summaries  = sum over monthly_summaries rows of the year

``refresh(date)`` runs the three levels in that order inside one
transaction. A date with no curtailment records still gets a zero daily row,
which is how "processed, nothing curtailed" differs from "never processed".
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import date, datetime, timezone

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from curtailment.core.database import build_upsert, dialect_of
from curtailment.core.models import (
    CurtailmentRecord,
    DailySummary,
    MonthlySummary,
    YearlySummary,
)
from curtailment.core.utils.logging_config import get_logger
from curtailment.core.utils.periods import (
    month_bounds,
    year_key,
    year_month_key,
    year_months,
)

logger = get_logger("aggregation.energy")

_TOTAL_COLUMNS = ("total_curtailed_energy", "total_payment", "updated_at")


@dataclass(frozen=True)
class EnergyTotals:
    """Curtailed energy (MWh, absolute) and payment (GBP) for one key."""

    energy: float
    payment: float


class EnergyAggregator:
    """Recomputes the energy summary caches for a settlement date.

    Refreshes for dates in the same year are serialized so a month or year
    total is never computed from another date's half-written level.

    Args:
        session_factory: Async session factory; defaults to the application
            factory from ``curtailment.core.database``.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        if session_factory is None:
            from curtailment.core.database import async_session_factory

            session_factory = async_session_factory
        self.session_factory = session_factory
        self._year_locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, year: str) -> asyncio.Lock:
        lock = self._year_locks.get(year)
        if lock is None:
            lock = self._year_locks[year] = asyncio.Lock()
        return lock

    async def refresh(self, settlement_date: date) -> EnergyTotals:
        """Recompute daily, then monthly, then yearly totals for *settlement_date*.

        Returns:
            The freshly written daily totals.
        """
        year_month = year_month_key(settlement_date)
        year = year_key(settlement_date)

        async with self._lock_for(year):
            async with self.session_factory() as session:
                async with session.begin():
                    daily = await self._recompute_daily(session, settlement_date)
                    monthly = await self._recompute_monthly(session, year_month)
                    yearly = await self._recompute_yearly(session, year)

        logger.info(
            "energy_summaries_refreshed",
            settlement_date=str(settlement_date),
            daily_energy=round(daily.energy, 3),
            monthly_energy=round(monthly.energy, 3),
            yearly_energy=round(yearly.energy, 3),
        )
        return daily

    async def clear_daily(self, settlement_date: date) -> None:
        """Drop the daily row of *settlement_date* and recompute month and year.

        Used by reprocessing, which returns a date to "never processed".
        """
        year = year_key(settlement_date)
        async with self._lock_for(year):
            async with self.session_factory() as session:
                async with session.begin():
                    await session.execute(
                        delete(DailySummary).where(DailySummary.summary_date == settlement_date)
                    )
                    await self._recompute_monthly(session, year_month_key(settlement_date))
                    await self._recompute_yearly(session, year)
        logger.info("daily_summary_cleared", settlement_date=str(settlement_date))

    async def recompute_daily(self, settlement_date: date) -> EnergyTotals:
        async with self.session_factory() as session:
            async with session.begin():
                return await self._recompute_daily(session, settlement_date)

    async def recompute_monthly(self, year_month: str) -> EnergyTotals:
        async with self.session_factory() as session:
            async with session.begin():
                return await self._recompute_monthly(session, year_month)

    async def recompute_yearly(self, year: str) -> EnergyTotals:
        async with self.session_factory() as session:
            async with session.begin():
                return await self._recompute_yearly(session, year)

    # ------------------------------------------------------------------
    # Levels
    # ------------------------------------------------------------------
    async def _recompute_daily(
        self, session: AsyncSession, settlement_date: date
    ) -> EnergyTotals:
        row = (
            await session.execute(
                select(
                    func.coalesce(func.sum(func.abs(CurtailmentRecord.volume)), 0.0),
                    func.coalesce(func.sum(CurtailmentRecord.payment), 0.0),
                ).where(CurtailmentRecord.settlement_date == settlement_date)
            )
        ).one()
        totals = EnergyTotals(energy=float(row[0]), payment=float(row[1]))
        await self._write(session, DailySummary, "summary_date", settlement_date, totals)
        return totals

    async def _recompute_monthly(self, session: AsyncSession, year_month: str) -> EnergyTotals:
        first_day, last_day = month_bounds(year_month)
        row = (
            await session.execute(
                select(
                    func.coalesce(func.sum(DailySummary.total_curtailed_energy), 0.0),
                    func.coalesce(func.sum(DailySummary.total_payment), 0.0),
                ).where(DailySummary.summary_date.between(first_day, last_day))
            )
        ).one()
        totals = EnergyTotals(energy=float(row[0]), payment=float(row[1]))
        await self._write(session, MonthlySummary, "year_month", year_month, totals)
        return totals

    async def _recompute_yearly(self, session: AsyncSession, year: str) -> EnergyTotals:
        first_month, last_month = year_months(year)
        row = (
            await session.execute(
                select(
                    func.coalesce(func.sum(MonthlySummary.total_curtailed_energy), 0.0),
                    func.coalesce(func.sum(MonthlySummary.total_payment), 0.0),
                ).where(MonthlySummary.year_month.between(first_month, last_month))
            )
        ).one()
        totals = EnergyTotals(energy=float(row[0]), payment=float(row[1]))
        await self._write(session, YearlySummary, "year", year, totals)
        return totals

    @staticmethod
    async def _write(
        session: AsyncSession,
        model_class: type,
        key_column: str,
        key: object,
        totals: EnergyTotals,
    ) -> None:
        stmt = build_upsert(
            dialect_of(session),
            model_class,
            [
                {
                    key_column: key,
                    "total_curtailed_energy": totals.energy,
                    "total_payment": totals.payment,
                    "updated_at": datetime.now(timezone.utc),
                }
            ],
            [key_column],
            _TOTAL_COLUMNS,
        )
        await session.execute(stmt)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def get_daily(self, settlement_date: date) -> DailySummary | None:
        async with self.session_factory() as session:
            return await session.get(DailySummary, settlement_date)

    async def get_monthly(self, year_month: str) -> MonthlySummary | None:
        async with self.session_factory() as session:
            return await session.get(MonthlySummary, year_month)

    async def get_yearly(self, year: str) -> YearlySummary | None:
        async with self.session_factory() as session:
            return await session.get(YearlySummary, year)
