"""SQLAlchemy 2.0 ORM models for the curtailment ledger.

Re-exports Base and all model classes for convenient imports:
  - ingestion: CurtailmentRecord, ProcessedPeriod
  - energy caches: DailySummary, MonthlySummary, YearlySummary
  - mining: DifficultyRecord, HistoricalBitcoinCalculation,
    BitcoinDailySummary, BitcoinMonthlySummary, BitcoinYearlySummary
  - bookkeeping: ReconciliationRun
"""

from .base import Base
from .bitcoin_calculations import HistoricalBitcoinCalculation
from .bitcoin_summaries import (
    BitcoinDailySummary,
    BitcoinMonthlySummary,
    BitcoinYearlySummary,
)
from .curtailment_records import CurtailmentRecord
from .difficulty import DifficultyRecord
from .processed_periods import ProcessedPeriod
from .reconciliation_runs import ReconciliationRun
from .summaries import DailySummary, MonthlySummary, YearlySummary

__all__ = [
    "Base",
    "CurtailmentRecord",
    "ProcessedPeriod",
    "DailySummary",
    "MonthlySummary",
    "YearlySummary",
    "DifficultyRecord",
    "HistoricalBitcoinCalculation",
    "BitcoinDailySummary",
    "BitcoinMonthlySummary",
    "BitcoinYearlySummary",
    "ReconciliationRun",
]
