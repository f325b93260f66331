"""Public facade of the curtailment ledger.

CurtailmentService is what the CLI and the HTTP layer call. It wires the
connector, store, aggregators, reconciler and mining writer together and
exposes date-level operations:

    service = CurtailmentService()
    await service.reconcile_date(date(2025, 3, 4))
    # {"complete": True, "missing_periods": []}
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from curtailment.aggregation import EnergyAggregator, MiningAggregator
from curtailment.assets.classifier import AssetClassifier, get_asset_classifier
from curtailment.connectors.base import BaseConnector
from curtailment.connectors.elexon import ElexonConnector
from curtailment.core.exceptions import CurtailmentError
from curtailment.core.utils.logging_config import get_logger
from curtailment.ingestion.reconciler import CompletenessReconciler
from curtailment.ingestion.store import CurtailmentStore
from curtailment.mining.difficulty import DifficultyOracle, get_difficulty_oracle
from curtailment.mining.profiles import get_profile
from curtailment.mining.service import MiningCalculationService
from curtailment.pipeline.date_pipeline import DatePipeline, PipelineResult

logger = get_logger("service")


class CurtailmentService:
    """Date-level operations over the curtailment ledger.

    Args:
        session_factory: Async session factory; defaults to the application one.
        connector_factory: Callable returning a fresh settlement connector.
        classifier: Asset classifier; defaults to the process-wide one.
        oracle: Difficulty oracle; defaults to the process-wide one.
        echo: Print pipeline step lines (used by the CLI).
        **reconciler_options: Keyword overrides for CompletenessReconciler.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        connector_factory: Callable[[], BaseConnector] = ElexonConnector,
        classifier: AssetClassifier | None = None,
        oracle: DifficultyOracle | None = None,
        echo: bool = False,
        **reconciler_options: Any,
    ) -> None:
        if session_factory is None:
            from curtailment.core.database import async_session_factory

            session_factory = async_session_factory
        self.session_factory = session_factory
        self.connector_factory = connector_factory
        self.classifier = classifier if classifier is not None else get_asset_classifier()
        self.oracle = oracle if oracle is not None else get_difficulty_oracle()
        self.echo = echo
        self.reconciler_options = reconciler_options

        self.store = CurtailmentStore(session_factory)
        self.energy_aggregator = EnergyAggregator(session_factory)
        self.mining_aggregator = MiningAggregator(session_factory)
        self.mining_service = MiningCalculationService(
            session_factory,
            oracle=self.oracle,
            store=self.store,
            aggregator=self.mining_aggregator,
        )
        self._active: set[CompletenessReconciler] = set()

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------
    def _pipeline(self, connector: BaseConnector) -> DatePipeline:
        reconciler = CompletenessReconciler(
            connector,
            self.store,
            self.energy_aggregator,
            self.classifier,
            **self.reconciler_options,
        )
        return DatePipeline(
            reconciler,
            self.mining_service,
            session_factory=self.session_factory,
            echo=self.echo,
        )

    def request_cancel(self) -> None:
        """Ask every in-flight reconciliation to stop after its current batch."""
        for reconciler in list(self._active):
            reconciler.request_cancel()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    async def run_date(self, settlement_date: date) -> PipelineResult:
        """Reconcile *settlement_date*, recalculate mining and log the run.

        Raises:
            NotFoundError: If no difficulty is known for the date.
            StoreWriteError: If a database write fails.
        """
        async with self.connector_factory() as connector:
            pipeline = self._pipeline(connector)
            self._active.add(pipeline.reconciler)
            try:
                return await pipeline.run(settlement_date)
            except RuntimeError as exc:
                if isinstance(exc.__cause__, CurtailmentError):
                    raise exc.__cause__
                raise
            finally:
                self._active.discard(pipeline.reconciler)

    async def reconcile_date(self, settlement_date: date) -> dict[str, Any]:
        """Bring a date to completeness.

        Returns:
            ``{"complete": bool, "missing_periods": list[int]}``; unresolved
            periods are reported, not raised.
        """
        result = await self.run_date(settlement_date)
        assert result.reconciliation is not None
        return result.reconciliation.as_dict()

    async def reprocess_date(self, settlement_date: date) -> dict[str, Any]:
        """Delete a date's records and summaries, then ingest it from scratch."""
        deleted = await self.store.delete_for_date(settlement_date)
        await self.energy_aggregator.clear_daily(settlement_date)
        logger.info(
            "reprocess_started",
            settlement_date=str(settlement_date),
            deleted=deleted,
        )
        return await self.reconcile_date(settlement_date)

    async def process_range(
        self,
        start: date,
        end: date,
        concurrency: int | None = None,
    ) -> list[PipelineResult]:
        """Run every date in ``[start, end]`` with bounded concurrency."""
        async with self.connector_factory() as connector:
            pipeline = self._pipeline(connector)
            self._active.add(pipeline.reconciler)
            try:
                return await pipeline.run_range(start, end, concurrency=concurrency)
            finally:
                self._active.discard(pipeline.reconciler)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    async def get_daily_summary(self, settlement_date: date) -> dict[str, float] | None:
        """``{"energy", "payment"}`` for a processed date, else None."""
        row = await self.energy_aggregator.get_daily(settlement_date)
        if row is None:
            return None
        return {"energy": row.total_curtailed_energy, "payment": row.total_payment}

    async def get_monthly_summary(self, year_month: str) -> dict[str, float] | None:
        row = await self.energy_aggregator.get_monthly(year_month)
        if row is None:
            return None
        return {"energy": row.total_curtailed_energy, "payment": row.total_payment}

    async def get_yearly_summary(self, year: str) -> dict[str, float] | None:
        row = await self.energy_aggregator.get_yearly(year)
        if row is None:
            return None
        return {"energy": row.total_curtailed_energy, "payment": row.total_payment}

    async def get_mining_summary(
        self, settlement_date: date, miner_model: str
    ) -> dict[str, float] | None:
        """``{"bitcoin_mined"}`` for a date and miner model, else None.

        Raises:
            NotFoundError: If the miner model is unknown.
        """
        model = get_profile(miner_model).name
        row = await self.mining_aggregator.get_daily(settlement_date, model)
        if row is None:
            return None
        return {"bitcoin_mined": row.bitcoin_mined}
