"""Integrity checks -- summaries against the rows they were derived from.

Uses the sync engine since integrity checks are run offline from scripts.
Each check method returns a list of issue dicts and can be called
independently. ``run_for_date`` runs every check that touches one settlement
date (its day, month and year plus mining per model) and produces an overall
PASS / FAIL status.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from typing import Any

from sqlalchemy import Engine, distinct, func, select, union

from curtailment.core.config import settings
from curtailment.core.enums import CheckStatus
from curtailment.core.models import (
    BitcoinDailySummary,
    CurtailmentRecord,
    DailySummary,
    HistoricalBitcoinCalculation,
    MonthlySummary,
    ProcessedPeriod,
    YearlySummary,
)
from curtailment.core.utils.logging_config import get_logger
from curtailment.core.utils.periods import (
    all_periods,
    month_bounds,
    year_key,
    year_month_key,
    year_months,
)
from curtailment.mining.profiles import get_profile

logger = get_logger("quality.checks")

# Absolute tolerance when comparing float totals
_ENERGY_TOLERANCE = 0.01
_BTC_TOLERANCE = 1e-8


def _issue(check: str, key: str, message: str, **details: Any) -> dict[str, Any]:
    return {"check": check, "key": key, "message": message, **details}


class IntegrityChecker:
    """Verify that the summary caches match the level below them.

    Args:
        engine: Sync SQLAlchemy engine; defaults to ``core.database.sync_engine``.
        periods_per_day: Expected settlement periods per date.
    """

    def __init__(self, engine: Engine | None = None, periods_per_day: int | None = None) -> None:
        if engine is None:
            from curtailment.core.database import sync_engine

            engine = sync_engine
        self.engine = engine
        self.periods_per_day = periods_per_day or settings.periods_per_day

    # ------------------------------------------------------------------
    # 1. Daily
    # ------------------------------------------------------------------
    def check_daily(self, settlement_date: date) -> list[dict[str, Any]]:
        """Daily summary vs curtailment records, plus period completeness.

        Returns:
            Issues of kind ``missing_periods``, ``missing_daily_summary`` or
            ``daily_mismatch``.
        """
        issues: list[dict[str, Any]] = []
        key = settlement_date.isoformat()

        with self.engine.connect() as conn:
            energy, payment, count = conn.execute(
                select(
                    func.coalesce(func.sum(func.abs(CurtailmentRecord.volume)), 0.0),
                    func.coalesce(func.sum(CurtailmentRecord.payment), 0.0),
                    func.count(CurtailmentRecord.id),
                ).where(CurtailmentRecord.settlement_date == settlement_date)
            ).one()

            present = set(
                conn.execute(
                    union(
                        select(CurtailmentRecord.settlement_period).where(
                            CurtailmentRecord.settlement_date == settlement_date
                        ),
                        select(ProcessedPeriod.settlement_period).where(
                            ProcessedPeriod.settlement_date == settlement_date
                        ),
                    )
                ).scalars()
            )
            summary = conn.execute(
                select(DailySummary.total_curtailed_energy, DailySummary.total_payment).where(
                    DailySummary.summary_date == settlement_date
                )
            ).one_or_none()

        missing = sorted(all_periods(self.periods_per_day) - present)
        if missing:
            issues.append(
                _issue(
                    "daily",
                    key,
                    f"{len(missing)} settlement periods not ingested",
                    kind="missing_periods",
                    periods=missing,
                )
            )

        if summary is None:
            if count:
                issues.append(
                    _issue(
                        "daily",
                        key,
                        f"{count} records but no daily summary",
                        kind="missing_daily_summary",
                    )
                )
            return issues

        if (
            abs(summary[0] - float(energy)) > _ENERGY_TOLERANCE
            or abs(summary[1] - float(payment)) > _ENERGY_TOLERANCE
        ):
            issues.append(
                _issue(
                    "daily",
                    key,
                    "daily summary does not match curtailment records",
                    kind="daily_mismatch",
                    summary_energy=summary[0],
                    records_energy=float(energy),
                    summary_payment=summary[1],
                    records_payment=float(payment),
                )
            )
        return issues

    # ------------------------------------------------------------------
    # 2. Monthly / yearly
    # ------------------------------------------------------------------
    def check_month(self, year_month: str) -> list[dict[str, Any]]:
        """Monthly summary vs the sum of its daily summaries."""
        first_day, last_day = month_bounds(year_month)
        with self.engine.connect() as conn:
            energy, payment, days = conn.execute(
                select(
                    func.coalesce(func.sum(DailySummary.total_curtailed_energy), 0.0),
                    func.coalesce(func.sum(DailySummary.total_payment), 0.0),
                    func.count(DailySummary.summary_date),
                ).where(DailySummary.summary_date.between(first_day, last_day))
            ).one()
            summary = conn.execute(
                select(MonthlySummary.total_curtailed_energy, MonthlySummary.total_payment).where(
                    MonthlySummary.year_month == year_month
                )
            ).one_or_none()
        return self._compare_rollup("monthly", year_month, summary, energy, payment, days)

    def check_year(self, year: str) -> list[dict[str, Any]]:
        """Yearly summary vs the sum of its monthly summaries."""
        first_month, last_month = year_months(year)
        with self.engine.connect() as conn:
            energy, payment, months = conn.execute(
                select(
                    func.coalesce(func.sum(MonthlySummary.total_curtailed_energy), 0.0),
                    func.coalesce(func.sum(MonthlySummary.total_payment), 0.0),
                    func.count(MonthlySummary.year_month),
                ).where(MonthlySummary.year_month.between(first_month, last_month))
            ).one()
            summary = conn.execute(
                select(YearlySummary.total_curtailed_energy, YearlySummary.total_payment).where(
                    YearlySummary.year == year
                )
            ).one_or_none()
        return self._compare_rollup("yearly", year, summary, energy, payment, months)

    @staticmethod
    def _compare_rollup(
        check: str,
        key: str,
        summary: Any,
        energy: float,
        payment: float,
        children: int,
    ) -> list[dict[str, Any]]:
        if summary is None:
            if children:
                return [
                    _issue(check, key, f"{check} summary missing", kind=f"missing_{check}_summary")
                ]
            return []
        if (
            abs(summary[0] - float(energy)) > _ENERGY_TOLERANCE
            or abs(summary[1] - float(payment)) > _ENERGY_TOLERANCE
        ):
            return [
                _issue(
                    check,
                    key,
                    f"{check} summary does not match the level below",
                    kind=f"{check}_mismatch",
                    summary_energy=summary[0],
                    children_energy=float(energy),
                    summary_payment=summary[1],
                    children_payment=float(payment),
                )
            ]
        return []

    # ------------------------------------------------------------------
    # 3. Mining
    # ------------------------------------------------------------------
    def check_mining(self, settlement_date: date, miner_model: str) -> list[dict[str, Any]]:
        """Calculations vs curtailment records, and the daily BTC summary vs calculations."""
        model = get_profile(miner_model).name
        key = f"{settlement_date.isoformat()}/{model}"
        issues: list[dict[str, Any]] = []

        with self.engine.connect() as conn:
            record_count = conn.execute(
                select(func.count(CurtailmentRecord.id)).where(
                    CurtailmentRecord.settlement_date == settlement_date
                )
            ).scalar_one()
            calc_count, calc_total, calc_periods = conn.execute(
                select(
                    func.count(HistoricalBitcoinCalculation.id),
                    func.coalesce(func.sum(HistoricalBitcoinCalculation.bitcoin_mined), 0.0),
                    func.count(distinct(HistoricalBitcoinCalculation.settlement_period)),
                ).where(
                    HistoricalBitcoinCalculation.settlement_date == settlement_date,
                    HistoricalBitcoinCalculation.miner_model == model,
                )
            ).one()
            summary = conn.execute(
                select(BitcoinDailySummary.bitcoin_mined).where(
                    BitcoinDailySummary.summary_date == settlement_date,
                    BitcoinDailySummary.miner_model == model,
                )
            ).scalar_one_or_none()

        if calc_count != record_count:
            issues.append(
                _issue(
                    "mining",
                    key,
                    f"{calc_count} calculations for {record_count} curtailment records",
                    kind="calculation_count_mismatch",
                    calculations=int(calc_count),
                    records=int(record_count),
                    calculated_periods=int(calc_periods),
                )
            )
        if summary is None:
            if calc_count:
                issues.append(
                    _issue("mining", key, "bitcoin daily summary missing", kind="missing_bitcoin_summary")
                )
        elif abs(summary - float(calc_total)) > _BTC_TOLERANCE:
            issues.append(
                _issue(
                    "mining",
                    key,
                    "bitcoin daily summary does not match calculations",
                    kind="bitcoin_mismatch",
                    summary_btc=summary,
                    calculations_btc=float(calc_total),
                )
            )
        return issues

    # ------------------------------------------------------------------
    # Aggregate
    # ------------------------------------------------------------------
    def run_for_date(
        self,
        settlement_date: date,
        miner_models: Sequence[str] | None = None,
        include_mining: bool = True,
    ) -> dict[str, Any]:
        """Run every check touching *settlement_date*.

        Returns:
            Dict with keys: settlement_date, status (PASS / FAIL), issue_count,
            daily, monthly, yearly and mining (per model) issue lists.
        """
        logger.info("integrity_checks_started", settlement_date=str(settlement_date))

        daily = self.check_daily(settlement_date)
        monthly = self.check_month(year_month_key(settlement_date))
        yearly = self.check_year(year_key(settlement_date))
        mining: dict[str, list[dict[str, Any]]] = {}
        if include_mining:
            for model in miner_models or settings.miner_models:
                mining[model] = self.check_mining(settlement_date, model)

        issue_count = (
            len(daily) + len(monthly) + len(yearly) + sum(len(v) for v in mining.values())
        )
        status = CheckStatus.PASS if issue_count == 0 else CheckStatus.FAIL
        summary = {
            "settlement_date": settlement_date.isoformat(),
            "status": status.value,
            "issue_count": issue_count,
            "daily": daily,
            "monthly": monthly,
            "yearly": yearly,
            "mining": mining,
        }

        logger.info(
            "integrity_checks_complete",
            settlement_date=str(settlement_date),
            status=summary["status"],
            issues=issue_count,
        )
        return summary
