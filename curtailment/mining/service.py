"""Mining calculation service -- per-record Bitcoin potential for a date.

For one settlement date and a set of miner models:

1. Resolve the network difficulty first; ``NotFoundError`` aborts before
   anything is written.
2. Load the date's curtailment records.
3. Per model, replace the date's historical calculations (delete + insert in
   one transaction).
4. Refresh the per-model Bitcoin summaries day -> month -> year.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from curtailment.aggregation.mining import MiningAggregator
from curtailment.core.config import settings
from curtailment.core.exceptions import StoreWriteError
from curtailment.core.models import HistoricalBitcoinCalculation
from curtailment.core.utils.logging_config import get_logger
from curtailment.ingestion.store import CurtailmentStore
from curtailment.mining.calculator import calculate_bitcoin
from curtailment.mining.difficulty import DifficultyOracle, get_difficulty_oracle
from curtailment.mining.profiles import HardwareProfile, get_profile

logger = get_logger("mining.service")


class MiningCalculationService:
    """Writes historical Bitcoin calculations and their summaries.

    Args:
        session_factory: Async session factory; defaults to the application
            factory from ``curtailment.core.database``.
        oracle: Difficulty oracle; defaults to the process-wide one.
        block_reward: BTC per block; defaults to ``settings.block_reward``.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        oracle: DifficultyOracle | None = None,
        block_reward: float | None = None,
        store: CurtailmentStore | None = None,
        aggregator: MiningAggregator | None = None,
    ) -> None:
        if session_factory is None:
            from curtailment.core.database import async_session_factory

            session_factory = async_session_factory
        self.session_factory = session_factory
        self.oracle = oracle or get_difficulty_oracle()
        self.block_reward = settings.block_reward if block_reward is None else block_reward
        self.store = store or CurtailmentStore(session_factory)
        self.aggregator = aggregator or MiningAggregator(session_factory)

    async def process_date(
        self,
        settlement_date: date,
        miner_models: Sequence[str] | None = None,
    ) -> dict[str, float]:
        """Recalculate mining potential for every record of *settlement_date*.

        Returns:
            Mapping of miner model to the date's total BTC.

        Raises:
            NotFoundError: If no difficulty is known for the date or a model
                is unknown. Nothing is written in that case.
            StoreWriteError: If writing the calculations fails.
        """
        profiles = [get_profile(name) for name in (miner_models or settings.miner_models)]
        difficulty = await self.oracle.resolve(settlement_date)
        records = await self.store.records_for_date(settlement_date)

        calculated_at = datetime.now(timezone.utc)
        rows_by_model: dict[str, list[dict[str, Any]]] = {
            profile.name: self._rows_for(records, profile, difficulty, calculated_at)
            for profile in profiles
        }

        async with self.session_factory() as session:
            try:
                async with session.begin():
                    for model, rows in rows_by_model.items():
                        await session.execute(
                            delete(HistoricalBitcoinCalculation).where(
                                HistoricalBitcoinCalculation.settlement_date == settlement_date,
                                HistoricalBitcoinCalculation.miner_model == model,
                            )
                        )
                        if rows:
                            await session.execute(insert(HistoricalBitcoinCalculation), rows)
            except SQLAlchemyError as exc:
                raise StoreWriteError(
                    f"writing bitcoin calculations for {settlement_date} failed: {exc}"
                ) from exc

        totals = await self.aggregator.refresh(settlement_date, list(rows_by_model))
        logger.info(
            "mining_calculations_written",
            settlement_date=str(settlement_date),
            difficulty=difficulty,
            records=len(records),
            totals={model: round(total, 8) for model, total in totals.items()},
        )
        return totals

    def _rows_for(
        self,
        records: Sequence[Any],
        profile: HardwareProfile,
        difficulty: float,
        calculated_at: datetime,
    ) -> list[dict[str, Any]]:
        return [
            {
                "settlement_date": record.settlement_date,
                "settlement_period": record.settlement_period,
                "farm_id": record.farm_id,
                "miner_model": profile.name,
                "bitcoin_mined": calculate_bitcoin(
                    record.volume, profile, difficulty, self.block_reward
                ),
                "difficulty": difficulty,
                "calculated_at": calculated_at,
            }
            for record in records
        ]

    async def audit_date(
        self,
        settlement_date: date,
        miner_models: Sequence[str] | None = None,
        fix: bool = False,
    ) -> dict[str, Any]:
        """Compare calculation counts per model against the curtailment records.

        A model is flagged when its calculation count differs from the number
        of curtailment records for the date. With ``fix=True`` the flagged
        models are recalculated.

        Returns:
            Dict with ``expected``, per-model ``counts``, ``mismatched`` and
            ``fixed`` model lists.
        """
        models = [get_profile(name).name for name in (miner_models or settings.miner_models)]
        _, _, expected = await self.store.totals_for_date(settlement_date)

        async with self.session_factory() as session:
            result = await session.execute(
                select(
                    HistoricalBitcoinCalculation.miner_model,
                    func.count(HistoricalBitcoinCalculation.id),
                )
                .where(HistoricalBitcoinCalculation.settlement_date == settlement_date)
                .group_by(HistoricalBitcoinCalculation.miner_model)
            )
            found = {model: int(count) for model, count in result.all()}

        counts = {model: found.get(model, 0) for model in models}
        mismatched = [model for model, count in counts.items() if count != expected]

        fixed: list[str] = []
        if fix and mismatched:
            await self.process_date(settlement_date, mismatched)
            fixed = list(mismatched)

        report = {
            "settlement_date": settlement_date.isoformat(),
            "expected": expected,
            "counts": counts,
            "mismatched": mismatched,
            "fixed": fixed,
        }
        log = logger.warning if mismatched else logger.info
        log("mining_audit", **report)
        return report
