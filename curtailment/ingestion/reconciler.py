"""Completeness reconciler -- drives one settlement date to all periods present.

State machine per date::

    PENDING -> FETCHING -> PARTIALLY_COMPLETE -> COMPLETE
                                              -> INCOMPLETE

Each pass computes the missing periods ({1..N} minus periods already stored
or marked processed), fetches them in small concurrent batches with a pause
between batches, filters and stores them, and refreshes the energy summaries
after every batch that wrote rows. Passes repeat with tenacity exponential
backoff while periods are still missing: a short base after transient
failures, a long base after rate limiting (which also halves the batch size).

A period whose filtered result is empty is resolved, not failed. Fetch
failures leave the period missing; the caller gets ``complete=False`` and the
unresolved list instead of an exception. ``StoreWriteError`` is the exception
to that rule and propagates immediately.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_result,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential,
)

from curtailment.aggregation.energy import EnergyAggregator
from curtailment.assets.classifier import AssetClassifier, get_asset_classifier
from curtailment.connectors.base import BaseConnector
from curtailment.core.config import settings
from curtailment.core.enums import ReconciliationState
from curtailment.core.exceptions import FetchError, RateLimitError
from curtailment.core.utils.logging_config import bind_settlement_date, get_logger
from curtailment.core.utils.periods import all_periods
from curtailment.ingestion.filter import filter_curtailment
from curtailment.ingestion.store import CurtailmentStore

logger = get_logger("ingestion.reconciler")

SleepFn = Callable[[float], Awaitable[None]]


# ---------------------------------------------------------------------------
# Result containers
# ---------------------------------------------------------------------------
@dataclass
class PeriodOutcome:
    """Result of fetching and storing one settlement period."""

    period: int
    records: int = 0
    error: str | None = None
    rate_limited: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class PassOutcome:
    """Result of one reconciliation pass over the missing periods."""

    missing: set[int]
    records_upserted: int = 0
    rate_limited: bool = False
    cancelled: bool = False
    timed_out: bool = False
    errors: dict[int, str] = field(default_factory=dict)


@dataclass
class ReconciliationResult:
    """Terminal outcome of ``CompletenessReconciler.reconcile``."""

    settlement_date: date
    state: ReconciliationState
    missing_periods: list[int]
    attempts: int
    records_upserted: int
    duration_seconds: float
    cancelled: bool = False
    timed_out: bool = False
    errors: dict[int, str] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return self.state == ReconciliationState.COMPLETE

    def as_dict(self) -> dict[str, Any]:
        return {"complete": self.complete, "missing_periods": list(self.missing_periods)}


@dataclass
class _RunContext:
    settlement_date: date
    deadline: float
    batch_size: int
    state: ReconciliationState = ReconciliationState.PENDING
    attempts: int = 0
    records_upserted: int = 0


# ---------------------------------------------------------------------------
# Reconciler
# ---------------------------------------------------------------------------
class CompletenessReconciler:
    """Reconciles settlement dates against the record store.

    Args:
        connector: Open settlement connector; its lifecycle belongs to the caller.
        store: Record store the periods are written to.
        aggregator: Energy aggregator refreshed after writes.
        classifier: Asset classifier; defaults to the process-wide one.
        periods_per_day: Expected settlement periods per date (N).
        batch_size: Periods fetched concurrently per batch.
        batch_delay_seconds: Pause between batches.
        max_attempts: Maximum number of passes per reconcile call.
        retry_backoff_seconds: Backoff base after transient failures.
        rate_limit_backoff_seconds: Backoff base after rate limiting.
        max_backoff_seconds: Upper bound for a single backoff wait.
        fetch_timeout_seconds: Timeout per period fetch.
        timeout_seconds: Wall-clock budget for a whole reconcile call.
        sleep: Awaitable sleep, injectable for tests.
    """

    def __init__(
        self,
        connector: BaseConnector,
        store: CurtailmentStore,
        aggregator: EnergyAggregator,
        classifier: AssetClassifier | None = None,
        *,
        periods_per_day: int | None = None,
        batch_size: int | None = None,
        batch_delay_seconds: float | None = None,
        max_attempts: int | None = None,
        retry_backoff_seconds: float | None = None,
        rate_limit_backoff_seconds: float | None = None,
        max_backoff_seconds: float | None = None,
        fetch_timeout_seconds: float | None = None,
        timeout_seconds: float | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.connector = connector
        self.store = store
        self.aggregator = aggregator
        self.classifier = classifier if classifier is not None else get_asset_classifier()

        self.periods_per_day = periods_per_day or settings.periods_per_day
        self.batch_size = max(1, batch_size or settings.batch_size)
        self.batch_delay_seconds = (
            settings.batch_delay_seconds if batch_delay_seconds is None else batch_delay_seconds
        )
        self.max_attempts = max(1, max_attempts or settings.max_reconcile_attempts)
        self.retry_backoff_seconds = (
            settings.retry_backoff_seconds if retry_backoff_seconds is None else retry_backoff_seconds
        )
        self.rate_limit_backoff_seconds = (
            settings.rate_limit_backoff_seconds
            if rate_limit_backoff_seconds is None
            else rate_limit_backoff_seconds
        )
        self.max_backoff_seconds = max_backoff_seconds or settings.max_backoff_seconds
        self.fetch_timeout_seconds = fetch_timeout_seconds or settings.elexon_timeout_seconds
        self.timeout_seconds = timeout_seconds or settings.reconcile_timeout_seconds
        self._sleep = sleep
        self._cancel = asyncio.Event()
        self._active = 0

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------
    def request_cancel(self) -> None:
        """Abort every running reconcile after its batch in flight completes.

        The request stays in effect until the last running reconcile returns.
        """
        self._cancel.set()

    @property
    def cancel_requested(self) -> bool:
        return self._cancel.is_set()

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------
    async def reconcile(self, settlement_date: date) -> ReconciliationResult:
        """Bring *settlement_date* to completeness, or report what is missing.

        Raises:
            StoreWriteError: If persisting a period fails.
        """
        if self._active == 0:
            self._cancel.clear()
        self._active += 1
        try:
            return await self._reconcile(settlement_date)
        finally:
            self._active -= 1

    async def _reconcile(self, settlement_date: date) -> ReconciliationResult:
        started = time.monotonic()
        expected = all_periods(self.periods_per_day)
        ctx = _RunContext(
            settlement_date=settlement_date,
            deadline=started + self.timeout_seconds,
            batch_size=self.batch_size,
        )

        with bind_settlement_date(settlement_date):
            missing = expected - await self.store.list_periods(settlement_date)
            logger.info(
                "reconcile_started",
                expected=len(expected),
                missing=len(missing),
            )

            if missing:
                outcome = await self._retrying(ctx)(self._run_pass, ctx, expected)
            else:
                outcome = PassOutcome(missing=set())

            ctx.state = (
                ReconciliationState.COMPLETE
                if not outcome.missing
                else ReconciliationState.INCOMPLETE
            )

            # Zero-curtailment dates still need their (zero) daily row; a date
            # with nothing resolved at all is left without one.
            if ctx.state == ReconciliationState.COMPLETE or len(outcome.missing) < len(expected):
                await self.aggregator.refresh(settlement_date)

            result = ReconciliationResult(
                settlement_date=settlement_date,
                state=ctx.state,
                missing_periods=sorted(outcome.missing),
                attempts=ctx.attempts,
                records_upserted=ctx.records_upserted,
                duration_seconds=round(time.monotonic() - started, 3),
                cancelled=outcome.cancelled,
                timed_out=outcome.timed_out,
                errors=dict(outcome.errors),
            )

            log = logger.info if result.complete else logger.warning
            log(
                "reconcile_complete" if result.complete else "reconcile_incomplete",
                state=result.state.value,
                attempts=result.attempts,
                records_upserted=result.records_upserted,
                missing_periods=result.missing_periods,
                cancelled=result.cancelled,
                timed_out=result.timed_out,
                duration_seconds=result.duration_seconds,
            )
        return result

    # ------------------------------------------------------------------
    # Retry policy
    # ------------------------------------------------------------------
    def _retrying(self, ctx: _RunContext) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts) | stop_after_delay(self.timeout_seconds),
            wait=lambda retry_state: self._backoff(retry_state, ctx),
            retry=retry_if_result(self._should_retry),
            retry_error_callback=lambda retry_state: retry_state.outcome.result(),
            before_sleep=self._log_retry,
            sleep=self._sleep,
        )

    @staticmethod
    def _should_retry(outcome: PassOutcome) -> bool:
        return bool(outcome.missing) and not outcome.cancelled and not outcome.timed_out

    def _backoff(self, retry_state: RetryCallState, ctx: _RunContext) -> float:
        outcome: PassOutcome = retry_state.outcome.result()
        base = (
            self.rate_limit_backoff_seconds
            if outcome.rate_limited
            else self.retry_backoff_seconds
        )
        wait = wait_exponential(multiplier=base, max=self.max_backoff_seconds)(retry_state)
        return max(0.0, min(wait, ctx.deadline - time.monotonic()))

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        outcome: PassOutcome = retry_state.outcome.result()
        logger.warning(
            "reconcile_retry_scheduled",
            attempt=retry_state.attempt_number,
            missing=len(outcome.missing),
            rate_limited=outcome.rate_limited,
            wait_seconds=round(retry_state.next_action.sleep, 3)
            if retry_state.next_action
            else None,
        )

    # ------------------------------------------------------------------
    # Pass
    # ------------------------------------------------------------------
    async def _run_pass(self, ctx: _RunContext, expected: set[int]) -> PassOutcome:
        ctx.attempts += 1
        missing = sorted(expected - await self.store.list_periods(ctx.settlement_date))
        outcome = PassOutcome(missing=set(missing))
        if not missing:
            return outcome

        self._transition(ctx, ReconciliationState.FETCHING)
        index = 0
        while index < len(missing):
            if self._cancel.is_set():
                outcome.cancelled = True
                logger.warning("reconcile_cancelled", remaining=len(missing) - index)
                break
            if time.monotonic() >= ctx.deadline:
                outcome.timed_out = True
                logger.warning("reconcile_timed_out", remaining=len(missing) - index)
                break

            batch = missing[index : index + ctx.batch_size]
            index += len(batch)
            results = await self._run_batch(ctx.settlement_date, batch)

            written = 0
            for result in results:
                if result.ok:
                    written += result.records
                else:
                    outcome.errors[result.period] = result.error or ""
            outcome.records_upserted += written
            ctx.records_upserted += written

            if any(result.rate_limited for result in results):
                outcome.rate_limited = True
                ctx.batch_size = max(1, ctx.batch_size // 2)
                logger.warning("batch_rate_limited", batch_size=ctx.batch_size)

            if written:
                await self.aggregator.refresh(ctx.settlement_date)

            if index < len(missing) and self.batch_delay_seconds > 0:
                await self._sleep(self.batch_delay_seconds)

        outcome.missing = expected - await self.store.list_periods(ctx.settlement_date)
        if outcome.missing and len(outcome.missing) < len(expected):
            self._transition(ctx, ReconciliationState.PARTIALLY_COMPLETE)

        logger.info(
            "reconcile_pass_finished",
            attempt=ctx.attempts,
            records_upserted=outcome.records_upserted,
            missing=len(outcome.missing),
            failed=len(outcome.errors),
        )
        return outcome

    async def _run_batch(self, settlement_date: date, batch: list[int]) -> list[PeriodOutcome]:
        """Process a batch concurrently.

        If any period raises (e.g. ``StoreWriteError``), the rest of the batch
        is cancelled and awaited before the error propagates, so no write lands
        after the caller has seen the failure.
        """
        tasks = [
            asyncio.create_task(self._process_period(settlement_date, period))
            for period in batch
        ]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _process_period(self, settlement_date: date, period: int) -> PeriodOutcome:
        """Fetch, filter and store one period; fetch failures become outcomes."""
        try:
            raw = await asyncio.wait_for(
                self.connector.fetch(settlement_date, period),
                timeout=self.fetch_timeout_seconds,
            )
        except RateLimitError as exc:
            logger.warning("period_rate_limited", settlement_period=period, error=str(exc))
            return PeriodOutcome(period=period, error=str(exc), rate_limited=True)
        except (FetchError, asyncio.TimeoutError) as exc:
            logger.warning(
                "period_fetch_failed",
                settlement_period=period,
                error=str(exc) or type(exc).__name__,
            )
            return PeriodOutcome(period=period, error=str(exc) or type(exc).__name__)

        rows = filter_curtailment(raw, settlement_date, period, self.classifier)
        written = await self.store.store_period(settlement_date, period, rows)
        logger.debug(
            "period_fetched",
            settlement_period=period,
            raw_records=len(raw),
            curtailment_records=written,
        )
        return PeriodOutcome(period=period, records=written)

    @staticmethod
    def _transition(ctx: _RunContext, state: ReconciliationState) -> None:
        if ctx.state != state:
            logger.debug("reconcile_state", previous=ctx.state.value, state=state.value)
            ctx.state = state
