"""Mining aggregation -- per miner model day -> month -> year Bitcoin totals.

Mirrors the energy aggregation, partitioned by ``miner_model``:

    bitcoin_daily_summaries   = sum(bitcoin_mined) over historical_bitcoin_calculations
    bitcoin_monthly_summaries = sum over the month's daily rows
    bitcoin_yearly_summaries  = sum over the year's monthly rows
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from datetime import date, datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from curtailment.core.database import build_upsert, dialect_of
from curtailment.core.models import (
    BitcoinDailySummary,
    BitcoinMonthlySummary,
    BitcoinYearlySummary,
    HistoricalBitcoinCalculation,
)
from curtailment.core.utils.logging_config import get_logger
from curtailment.core.utils.periods import (
    month_bounds,
    year_key,
    year_month_key,
    year_months,
)

logger = get_logger("aggregation.mining")


class MiningAggregator:
    """Recomputes the Bitcoin summary caches for a date and a set of models.

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

    async def refresh(
        self, settlement_date: date, miner_models: Iterable[str]
    ) -> dict[str, float]:
        """Recompute daily, monthly and yearly totals for each miner model.

        Returns:
            Mapping of miner model to its freshly written daily total.
        """
        year_month = year_month_key(settlement_date)
        year = year_key(settlement_date)
        daily_totals: dict[str, float] = {}

        async with self._lock_for(year):
            async with self.session_factory() as session:
                async with session.begin():
                    for model in miner_models:
                        daily_totals[model] = await self._recompute_daily(
                            session, settlement_date, model
                        )
                        await self._recompute_monthly(session, year_month, model)
                        await self._recompute_yearly(session, year, model)

        logger.info(
            "mining_summaries_refreshed",
            settlement_date=str(settlement_date),
            models=sorted(daily_totals),
        )
        return daily_totals

    # ------------------------------------------------------------------
    # Levels
    # ------------------------------------------------------------------
    async def _recompute_daily(
        self, session: AsyncSession, settlement_date: date, miner_model: str
    ) -> float:
        total = await session.scalar(
            select(
                func.coalesce(func.sum(HistoricalBitcoinCalculation.bitcoin_mined), 0.0)
            ).where(
                HistoricalBitcoinCalculation.settlement_date == settlement_date,
                HistoricalBitcoinCalculation.miner_model == miner_model,
            )
        )
        await self._write(
            session, BitcoinDailySummary, "summary_date", settlement_date, miner_model, total
        )
        return float(total)

    async def _recompute_monthly(
        self, session: AsyncSession, year_month: str, miner_model: str
    ) -> float:
        first_day, last_day = month_bounds(year_month)
        total = await session.scalar(
            select(func.coalesce(func.sum(BitcoinDailySummary.bitcoin_mined), 0.0)).where(
                BitcoinDailySummary.summary_date.between(first_day, last_day),
                BitcoinDailySummary.miner_model == miner_model,
            )
        )
        await self._write(
            session, BitcoinMonthlySummary, "year_month", year_month, miner_model, total
        )
        return float(total)

    async def _recompute_yearly(
        self, session: AsyncSession, year: str, miner_model: str
    ) -> float:
        first_month, last_month = year_months(year)
        total = await session.scalar(
            select(func.coalesce(func.sum(BitcoinMonthlySummary.bitcoin_mined), 0.0)).where(
                BitcoinMonthlySummary.year_month.between(first_month, last_month),
                BitcoinMonthlySummary.miner_model == miner_model,
            )
        )
        await self._write(session, BitcoinYearlySummary, "year", year, miner_model, total)
        return float(total)

    @staticmethod
    async def _write(
        session: AsyncSession,
        model_class: type,
        key_column: str,
        key: object,
        miner_model: str,
        total: float,
    ) -> None:
        stmt = build_upsert(
            dialect_of(session),
            model_class,
            [
                {
                    key_column: key,
                    "miner_model": miner_model,
                    "bitcoin_mined": float(total),
                    "updated_at": datetime.now(timezone.utc),
                }
            ],
            [key_column, "miner_model"],
            ("bitcoin_mined", "updated_at"),
        )
        await session.execute(stmt)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def get_daily(
        self, settlement_date: date, miner_model: str
    ) -> BitcoinDailySummary | None:
        async with self.session_factory() as session:
            return await session.scalar(
                select(BitcoinDailySummary).where(
                    BitcoinDailySummary.summary_date == settlement_date,
                    BitcoinDailySummary.miner_model == miner_model,
                )
            )

    async def get_monthly(
        self, year_month: str, miner_model: str
    ) -> BitcoinMonthlySummary | None:
        async with self.session_factory() as session:
            return await session.scalar(
                select(BitcoinMonthlySummary).where(
                    BitcoinMonthlySummary.year_month == year_month,
                    BitcoinMonthlySummary.miner_model == miner_model,
                )
            )

    async def get_yearly(self, year: str, miner_model: str) -> BitcoinYearlySummary | None:
        async with self.session_factory() as session:
            return await session.scalar(
                select(BitcoinYearlySummary).where(
                    BitcoinYearlySummary.year == year,
                    BitcoinYearlySummary.miner_model == miner_model,
                )
            )
