"""Unit tests for the per-date pipeline orchestration.

The reconciler runs against a scripted connector and a SQLite database, so
the whole reconcile -> mining -> persist chain is exercised without network.
"""

from __future__ import annotations

import uuid
from datetime import date

import pytest
from sqlalchemy import select

from curtailment.core.exceptions import NotFoundError, TransientFetchError
from curtailment.core.models import ReconciliationRun
from curtailment.mining import MiningCalculationService
from curtailment.pipeline import DatePipeline, PipelineResult


@pytest.fixture
def make_pipeline(make_reconciler, fake_connector, session_factory, oracle):
    def _make(connector=None, **options) -> DatePipeline:
        reconciler = make_reconciler(connector or fake_connector(), max_attempts=options.pop("max_attempts", 3))
        mining = MiningCalculationService(session_factory, oracle=oracle)
        return DatePipeline(reconciler, mining, session_factory=session_factory, **options)
    return _make


async def _runs(session_factory) -> list[ReconciliationRun]:
    async with session_factory() as session:
        return list((await session.execute(select(ReconciliationRun))).scalars())


# ---------------------------------------------------------------------------
# PipelineResult dataclass
# ---------------------------------------------------------------------------
class TestPipelineResult:
    def test_defaults(self):
        r = PipelineResult(settlement_date=date(2025, 3, 4))
        assert r.status == "SUCCESS"
        assert r.duration_seconds == 0.0
        assert r.step_timings == {}
        assert r.reconciliation is None
        assert r.mining_totals == {}
        assert r.error is None

    def test_run_id_is_uuid(self):
        r = PipelineResult(settlement_date=date(2025, 3, 4))
        uuid.UUID(r.run_id)


# ---------------------------------------------------------------------------
# Step timing wrapper
# ---------------------------------------------------------------------------
class TestStepTimingWrapper:
    @pytest.mark.asyncio
    async def test_successful_step_records_timing(self, make_pipeline, capsys):
        pipeline = make_pipeline(echo=True)
        result = PipelineResult(settlement_date=date(2025, 3, 4))

        async def dummy_step():
            pass

        await pipeline._run_step("test_step", dummy_step, result, {})
        assert result.step_timings["test_step"] >= 0.0
        captured = capsys.readouterr()
        assert "✓" in captured.out
        assert "test_step" in captured.out

    @pytest.mark.asyncio
    async def test_failed_step_prints_error_and_raises(self, make_pipeline, capsys):
        pipeline = make_pipeline(echo=True)
        result = PipelineResult(settlement_date=date(2025, 3, 4))

        async def failing_step():
            raise ValueError("something broke")

        with pytest.raises(RuntimeError, match="Pipeline aborted at step 'bad_step'"):
            await pipeline._run_step("bad_step", failing_step, result, {})

        captured = capsys.readouterr()
        assert "✗" in captured.out
        assert "something broke" in captured.out


# ---------------------------------------------------------------------------
# Full runs
# ---------------------------------------------------------------------------
class TestRun:
    @pytest.mark.asyncio
    async def test_complete_date(self, make_pipeline, make_record, fake_connector, session_factory, sample_date):
        connector = fake_connector({16: [[make_record(volume=-42.5)]]})
        pipeline = make_pipeline(connector)

        result = await pipeline.run(sample_date)

        assert result.status == "SUCCESS"
        assert result.reconciliation.complete
        assert set(result.mining_totals) == {"S19J_PRO", "S9", "M20S"}
        assert result.mining_totals["S19J_PRO"] > 0
        assert set(result.step_timings) == {"reconcile", "mining", "persist"}

        runs = await _runs(session_factory)
        assert len(runs) == 1
        assert runs[0].id == result.run_id
        assert runs[0].status == "COMPLETE"
        assert runs[0].records_upserted == 1
        assert runs[0].missing_periods == []

    @pytest.mark.asyncio
    async def test_incomplete_date_still_mines(self, make_pipeline, fake_connector, session_factory, sample_date):
        connector = fake_connector({30: [TransientFetchError("HTTP 504")]})
        pipeline = make_pipeline(connector, max_attempts=1)

        result = await pipeline.run(sample_date)

        assert result.status == "INCOMPLETE"
        assert result.reconciliation.missing_periods == [30]
        assert "S9" in result.mining_totals
        runs = await _runs(session_factory)
        assert runs[0].status == "INCOMPLETE"
        assert runs[0].missing_periods == [30]

    @pytest.mark.asyncio
    async def test_nothing_ingested_skips_mining(
        self, make_pipeline, fake_connector, session_factory, sample_date
    ):
        async def _fail(settlement_date, period):
            raise TransientFetchError("connection refused")

        pipeline = make_pipeline(fake_connector(on_fetch=_fail), max_attempts=1)
        result = await pipeline.run(sample_date)

        assert result.status == "INCOMPLETE"
        assert len(result.reconciliation.missing_periods) == 48
        assert result.mining_totals == {}
        assert "mining" in result.step_timings
        aggregator = pipeline.mining_service.aggregator
        assert await aggregator.get_daily(sample_date, "S9") is None
        runs = await _runs(session_factory)
        assert runs[0].status == "INCOMPLETE"

    @pytest.mark.asyncio
    async def test_mining_failure_aborts_and_is_recorded(self, make_pipeline, session_factory):
        pipeline = make_pipeline()
        too_early = date(2024, 1, 15)

        with pytest.raises(RuntimeError, match="Pipeline aborted at step 'mining'") as excinfo:
            await pipeline.run(too_early)
        assert isinstance(excinfo.value.__cause__, NotFoundError)

        runs = await _runs(session_factory)
        assert len(runs) == 1
        assert "No difficulty record" in runs[0].error_message

    @pytest.mark.asyncio
    async def test_failure_returned_when_not_raising(self, make_pipeline):
        result = await make_pipeline().run(date(2024, 1, 15), raise_on_error=False)
        assert result.status == "FAILED"
        assert "No difficulty record" in result.error
        assert result.reconciliation.complete

    @pytest.mark.asyncio
    async def test_dry_run_does_not_persist(self, make_pipeline, session_factory, sample_date):
        result = await make_pipeline(dry_run=True).run(sample_date)
        assert result.status == "SUCCESS"
        assert "persist" not in result.step_timings
        assert await _runs(session_factory) == []

    @pytest.mark.asyncio
    async def test_mining_can_be_skipped(self, make_pipeline, sample_date):
        result = await make_pipeline(run_mining=False).run(sample_date)
        assert result.status == "SUCCESS"
        assert result.mining_totals == {}

    @pytest.mark.asyncio
    async def test_echo_prints_summary(self, make_pipeline, sample_date, capsys):
        await make_pipeline(echo=True).run(sample_date)
        out = capsys.readouterr().out
        assert f"Date Pipeline Run: {sample_date}" in out
        assert "Status:    SUCCESS" in out
        assert "Missing:   none" in out
        assert "S19J_PRO:" in out


# ---------------------------------------------------------------------------
# Ranges
# ---------------------------------------------------------------------------
class TestRunRange:
    @pytest.mark.asyncio
    async def test_range_in_date_order(self, make_pipeline, session_factory):
        pipeline = make_pipeline()
        results = await pipeline.run_range(date(2025, 3, 3), date(2025, 3, 5), concurrency=1)

        assert [r.settlement_date for r in results] == [
            date(2025, 3, 3),
            date(2025, 3, 4),
            date(2025, 3, 5),
        ]
        assert all(r.status == "SUCCESS" for r in results)
        assert len(await _runs(session_factory)) == 3

    @pytest.mark.asyncio
    async def test_one_failing_date_does_not_stop_others(self, make_pipeline):
        pipeline = make_pipeline()
        # 2024-12-29 has no difficulty; 2024-12-30 does
        results = await pipeline.run_range(date(2024, 12, 29), date(2024, 12, 30), concurrency=1)
        assert [r.status for r in results] == ["FAILED", "SUCCESS"]
