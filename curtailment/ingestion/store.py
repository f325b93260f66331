"""Record store -- durable, deduplicated curtailment facts.

One row per (settlement_date, settlement_period, farm_id). Writes use
``INSERT ... ON CONFLICT DO UPDATE`` so re-ingesting a period overwrites
every non-key column with the latest values (last-write-wins) and never
duplicates rows, however often the reconciler retries.

Each stored period is also marked in ``processed_periods`` in the same
transaction, so a period that legitimately had zero curtailment still counts
as present.

Deletes are exposed only for explicit reprocessing flows.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from curtailment.core.database import build_upsert, dialect_of
from curtailment.core.exceptions import StoreWriteError
from curtailment.core.models import CurtailmentRecord, ProcessedPeriod
from curtailment.core.utils.logging_config import get_logger

logger = get_logger("ingestion.store")

_RECORD_KEY = ("settlement_date", "settlement_period", "farm_id")
_RECORD_UPDATE = (
    "lead_party_name",
    "volume",
    "payment",
    "original_price",
    "final_price",
    "so_flag",
    "cadl_flag",
    "created_at",
)
_PERIOD_KEY = ("settlement_date", "settlement_period")
_PERIOD_UPDATE = ("record_count", "fetched_at")


class CurtailmentStore:
    """Async repository over curtailment_records and processed_periods.

    Args:
        session_factory: Async session factory; defaults to the application
            factory from ``curtailment.core.database``.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        if session_factory is None:
            from curtailment.core.database import async_session_factory

            session_factory = async_session_factory
        self.session_factory = session_factory

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def upsert(self, rows: Sequence[dict[str, Any]]) -> int:
        """Upsert curtailment rows keyed by (date, period, farm_id).

        Returns:
            Number of rows written.

        Raises:
            StoreWriteError: If the database write fails.
        """
        if not rows:
            return 0
        async with self.session_factory() as session:
            try:
                async with session.begin():
                    await self._upsert_records(session, rows)
            except SQLAlchemyError as exc:
                raise StoreWriteError(f"curtailment upsert failed: {exc}") from exc
        return len(rows)

    async def store_period(
        self,
        settlement_date: date,
        settlement_period: int,
        rows: Sequence[dict[str, Any]],
    ) -> int:
        """Upsert one fetched period's rows and mark the period processed.

        Both writes commit atomically. An empty *rows* list only marks the
        period as processed with zero records.

        Raises:
            StoreWriteError: If the database write fails.
        """
        async with self.session_factory() as session:
            try:
                async with session.begin():
                    if rows:
                        await self._upsert_records(session, rows)
                    stmt = build_upsert(
                        dialect_of(session),
                        ProcessedPeriod,
                        [
                            {
                                "settlement_date": settlement_date,
                                "settlement_period": settlement_period,
                                "record_count": len(rows),
                                "fetched_at": datetime.now(timezone.utc),
                            }
                        ],
                        _PERIOD_KEY,
                        _PERIOD_UPDATE,
                    )
                    await session.execute(stmt)
            except SQLAlchemyError as exc:
                raise StoreWriteError(
                    f"storing {settlement_date} P{settlement_period} failed: {exc}"
                ) from exc

        logger.debug(
            "period_stored",
            settlement_date=str(settlement_date),
            settlement_period=settlement_period,
            records=len(rows),
        )
        return len(rows)

    async def _upsert_records(
        self, session: AsyncSession, rows: Sequence[dict[str, Any]]
    ) -> None:
        now = datetime.now(timezone.utc)
        values = [{**row, "created_at": now} for row in rows]
        stmt = build_upsert(
            dialect_of(session), CurtailmentRecord, values, _RECORD_KEY, _RECORD_UPDATE
        )
        await session.execute(stmt)

    async def delete_for_date(self, settlement_date: date) -> int:
        """Delete every record and period marker for a date (reprocessing only)."""
        async with self.session_factory() as session:
            try:
                async with session.begin():
                    result = await session.execute(
                        delete(CurtailmentRecord).where(
                            CurtailmentRecord.settlement_date == settlement_date
                        )
                    )
                    await session.execute(
                        delete(ProcessedPeriod).where(
                            ProcessedPeriod.settlement_date == settlement_date
                        )
                    )
            except SQLAlchemyError as exc:
                raise StoreWriteError(f"delete for {settlement_date} failed: {exc}") from exc

        logger.info(
            "records_deleted",
            settlement_date=str(settlement_date),
            deleted=result.rowcount,
        )
        return result.rowcount

    async def delete_for_date_and_period(
        self, settlement_date: date, settlement_period: int
    ) -> int:
        """Delete one period's records and marker (reprocessing only)."""
        async with self.session_factory() as session:
            try:
                async with session.begin():
                    result = await session.execute(
                        delete(CurtailmentRecord).where(
                            CurtailmentRecord.settlement_date == settlement_date,
                            CurtailmentRecord.settlement_period == settlement_period,
                        )
                    )
                    await session.execute(
                        delete(ProcessedPeriod).where(
                            ProcessedPeriod.settlement_date == settlement_date,
                            ProcessedPeriod.settlement_period == settlement_period,
                        )
                    )
            except SQLAlchemyError as exc:
                raise StoreWriteError(
                    f"delete for {settlement_date} P{settlement_period} failed: {exc}"
                ) from exc

        logger.info(
            "period_deleted",
            settlement_date=str(settlement_date),
            settlement_period=settlement_period,
            deleted=result.rowcount,
        )
        return result.rowcount

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def list_periods(self, settlement_date: date) -> set[int]:
        """Periods present for a date: with records or marked processed."""
        async with self.session_factory() as session:
            with_records = await session.execute(
                select(CurtailmentRecord.settlement_period)
                .where(CurtailmentRecord.settlement_date == settlement_date)
                .distinct()
            )
            marked = await session.execute(
                select(ProcessedPeriod.settlement_period).where(
                    ProcessedPeriod.settlement_date == settlement_date
                )
            )
            return set(with_records.scalars()) | set(marked.scalars())

    async def record_periods(self, settlement_date: date) -> set[int]:
        """Periods that hold at least one curtailment record."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(CurtailmentRecord.settlement_period)
                .where(CurtailmentRecord.settlement_date == settlement_date)
                .distinct()
            )
            return set(result.scalars())

    async def records_for_date(self, settlement_date: date) -> list[CurtailmentRecord]:
        """All curtailment records of a date, ordered by period and unit."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(CurtailmentRecord)
                .where(CurtailmentRecord.settlement_date == settlement_date)
                .order_by(CurtailmentRecord.settlement_period, CurtailmentRecord.farm_id)
            )
            return list(result.scalars())

    async def totals_for_date(self, settlement_date: date) -> tuple[float, float, int]:
        """(sum abs(volume), sum payment, row count) for a date."""
        async with self.session_factory() as session:
            row = (
                await session.execute(
                    select(
                        func.coalesce(func.sum(func.abs(CurtailmentRecord.volume)), 0.0),
                        func.coalesce(func.sum(CurtailmentRecord.payment), 0.0),
                        func.count(CurtailmentRecord.id),
                    ).where(CurtailmentRecord.settlement_date == settlement_date)
                )
            ).one()
            return float(row[0]), float(row[1]), int(row[2])
