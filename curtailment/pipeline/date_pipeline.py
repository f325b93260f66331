"""Per-date pipeline orchestration -- reconcile, mine, record the run.

DatePipeline ties the ingestion and mining components together for one
settlement date:

    reconcile -> mining -> persist

Each step is timed and produces CI-style formatted output when ``echo`` is
on. A failing step aborts the remaining ones. Run metadata is written to the
``reconciliation_runs`` table unless ``dry_run`` is set.

``run_range`` processes a span of dates with bounded concurrency; one date's
failure is reported in its result and does not stop the others.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from curtailment.core.config import settings
from curtailment.core.models import ReconciliationRun
from curtailment.core.utils.logging_config import bind_settlement_date, get_logger
from curtailment.core.utils.periods import date_range
from curtailment.ingestion.reconciler import CompletenessReconciler, ReconciliationResult
from curtailment.mining.service import MiningCalculationService

logger = get_logger("pipeline.date_pipeline")


# ---------------------------------------------------------------------------
# PipelineResult dataclass
# ---------------------------------------------------------------------------
@dataclass
class PipelineResult:
    """Output of one date's pipeline run.

    Attributes:
        run_id: Unique UUID for this run.
        settlement_date: Date that was processed.
        status: ``"SUCCESS"``, ``"INCOMPLETE"`` or ``"FAILED"``.
        duration_seconds: Total wall-clock seconds.
        step_timings: Per-step wall-clock seconds.
        reconciliation: Reconciler outcome, if that step finished.
        mining_totals: Daily BTC per miner model, if mining ran.
        error: Failure message for ``"FAILED"`` runs.
    """

    settlement_date: date
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: str = "SUCCESS"
    duration_seconds: float = 0.0
    step_timings: dict[str, float] = field(default_factory=dict)
    reconciliation: ReconciliationResult | None = None
    mining_totals: dict[str, float] = field(default_factory=dict)
    error: str | None = None


# ---------------------------------------------------------------------------
# DatePipeline
# ---------------------------------------------------------------------------
class DatePipeline:
    """Orchestrate reconciliation and mining for settlement dates.

    Args:
        reconciler: Completeness reconciler for the energy data.
        mining_service: Mining calculation writer.
        session_factory: Async session factory used to persist run metadata.
        run_mining: If False, the mining step is skipped.
        dry_run: If True, skip writing the run to ``reconciliation_runs``.
        echo: Print CI-style step lines to stdout.
    """

    STEP_NAMES = ["reconcile", "mining", "persist"]

    def __init__(
        self,
        reconciler: CompletenessReconciler,
        mining_service: MiningCalculationService,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        run_mining: bool = True,
        dry_run: bool = False,
        echo: bool = False,
    ) -> None:
        if session_factory is None:
            from curtailment.core.database import async_session_factory

            session_factory = async_session_factory
        self.reconciler = reconciler
        self.mining_service = mining_service
        self.session_factory = session_factory
        self.run_mining = run_mining
        self.dry_run = dry_run
        self.echo = echo

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def run(self, settlement_date: date, raise_on_error: bool = True) -> PipelineResult:
        """Execute reconcile -> mining -> persist for one date.

        Returns:
            PipelineResult for the date.

        Raises:
            RuntimeError: If a step fails and *raise_on_error* is set.
        """
        result = PipelineResult(settlement_date=settlement_date)
        details: dict[str, str] = {}
        t0 = time.monotonic()
        self._print(f"\n{'=' * 42}\n Date Pipeline Run: {settlement_date}\n{'=' * 42}")

        steps: list[tuple[str, Callable[[], Awaitable[None]]]] = [
            ("reconcile", lambda: self._step_reconcile(result, details)),
            ("mining", lambda: self._step_mining(result, details)),
        ]

        failure: Exception | None = None
        with bind_settlement_date(settlement_date):
            try:
                for name, fn in steps:
                    await self._run_step(name, fn, result, details)
            except RuntimeError as exc:
                failure = exc
                result.status = "FAILED"
                result.error = str(exc.__cause__ or exc)

            result.duration_seconds = round(time.monotonic() - t0, 3)
            if self.dry_run:
                details["persist"] = "dry-run, skipped"
            else:
                try:
                    await self._run_step(
                        "persist", lambda: self._step_persist(result, details), result, details
                    )
                except RuntimeError:
                    logger.exception("pipeline_run_persist_failed", run_id=result.run_id)

            self._print(self._format_summary(result, details))
            if failure is None:
                logger.info(
                    "pipeline_completed",
                    status=result.status,
                    duration=f"{result.duration_seconds:.1f}s",
                )
            else:
                logger.error("pipeline_failed", error=result.error)

        if failure is not None and raise_on_error:
            raise failure
        return result

    async def run_range(
        self,
        start: date,
        end: date,
        concurrency: int | None = None,
    ) -> list[PipelineResult]:
        """Run the pipeline for every date in ``[start, end]``.

        At most *concurrency* dates (default ``settings.max_concurrent_dates``)
        run at the same time. Results are returned in date order.
        """
        semaphore = asyncio.Semaphore(max(1, concurrency or settings.max_concurrent_dates))

        async def _bounded(settlement_date: date) -> PipelineResult:
            async with semaphore:
                return await self.run(settlement_date, raise_on_error=False)

        dates = date_range(start, end)
        logger.info(
            "pipeline_range_started",
            start=str(start),
            end=str(end),
            dates=len(dates),
        )
        results = await asyncio.gather(*(_bounded(d) for d in dates))

        by_status: dict[str, int] = {}
        for r in results:
            by_status[r.status] = by_status.get(r.status, 0) + 1
        logger.info("pipeline_range_finished", **{k.lower(): v for k, v in by_status.items()})
        return list(results)

    # ------------------------------------------------------------------
    # Step execution wrapper
    # ------------------------------------------------------------------
    async def _run_step(
        self,
        name: str,
        fn: Callable[[], Awaitable[None]],
        result: PipelineResult,
        details: dict[str, str],
    ) -> None:
        """Time a step, print CI-style output, abort on failure."""
        t0 = time.monotonic()
        try:
            await fn()
            elapsed = time.monotonic() - t0
            result.step_timings[name] = round(elapsed, 3)
            detail = details.get(name, "")
            detail_str = f"  ({detail})" if detail else ""
            self._print(f"  ✓ {name + ':':<14} {elapsed:.1f}s{detail_str}")
        except Exception as exc:
            elapsed = time.monotonic() - t0
            result.step_timings[name] = round(elapsed, 3)
            self._print(f"  ✗ {name + ':':<14} FAILED -- {exc}")
            raise RuntimeError(f"Pipeline aborted at step '{name}': {exc}") from exc

    # ------------------------------------------------------------------
    # Pipeline steps
    # ------------------------------------------------------------------
    async def _step_reconcile(self, result: PipelineResult, details: dict[str, str]) -> None:
        """Bring the date's curtailment records to completeness."""
        outcome = await self.reconciler.reconcile(result.settlement_date)
        result.reconciliation = outcome
        if not outcome.complete:
            result.status = "INCOMPLETE"
            details["reconcile"] = (
                f"{outcome.state.value}, {len(outcome.missing_periods)} periods missing"
            )
        else:
            details["reconcile"] = (
                f"{outcome.records_upserted} records, {outcome.attempts} passes"
            )

    async def _step_mining(self, result: PipelineResult, details: dict[str, str]) -> None:
        """Recalculate mining potential and its summaries for the date."""
        if not self.run_mining:
            details["mining"] = "skipped"
            return
        outcome = result.reconciliation
        if (
            outcome is not None
            and not outcome.complete
            and len(outcome.missing_periods) >= self.reconciler.periods_per_day
        ):
            # Nothing ingested: the date stays unprocessed for mining too
            details["mining"] = "skipped (no periods ingested)"
            logger.warning(
                "mining_skipped_no_periods",
                settlement_date=str(result.settlement_date),
            )
            return
        result.mining_totals = await self.mining_service.process_date(result.settlement_date)
        details["mining"] = f"{len(result.mining_totals)} models"

    async def _step_persist(self, result: PipelineResult, details: dict[str, str]) -> None:
        """Save run metadata to the reconciliation_runs table."""
        outcome = result.reconciliation
        async with self.session_factory() as session:
            async with session.begin():
                session.add(
                    ReconciliationRun(
                        id=result.run_id,
                        settlement_date=result.settlement_date,
                        status=outcome.state.value if outcome else result.status,
                        missing_periods=outcome.missing_periods if outcome else None,
                        attempts=outcome.attempts if outcome else 0,
                        records_upserted=outcome.records_upserted if outcome else 0,
                        duration_seconds=result.duration_seconds,
                        error_message=result.error,
                        created_at=datetime.now(timezone.utc),
                    )
                )
        logger.info("pipeline_run_persisted", run_id=result.run_id)
        details["persist"] = "persisted"

    # ------------------------------------------------------------------
    # Summary formatting
    # ------------------------------------------------------------------
    def _print(self, text: str) -> None:
        if self.echo:
            print(text)

    @staticmethod
    def _format_summary(result: PipelineResult, details: dict[str, str]) -> str:
        """Generate CI build log style summary string."""
        lines: list[str] = ["", "─" * 42, " Summary", "─" * 42]
        lines.append(f"  Status:    {result.status}")
        lines.append(f"  Duration:  {result.duration_seconds:.1f}s")
        if result.reconciliation is not None:
            rec = result.reconciliation
            lines.append(f"  Records:   {rec.records_upserted}")
            lines.append(
                f"  Missing:   {', '.join(map(str, rec.missing_periods)) or 'none'}"
            )
        for model, total in sorted(result.mining_totals.items()):
            lines.append(f"  {model + ':':<10} {total:.8f} BTC")
        if result.error:
            lines.append(f"  Error:     {result.error}")
        lines.append("─" * 42)
        return "\n".join(lines)
