"""Energy summary caches -- daily, monthly and yearly rollups.

Pure derived tables, always fully recomputed from the level below:
curtailment_records -> daily_summaries -> monthly_summaries -> yearly_summaries.
"""

from datetime import date

from sqlalchemy import Date, Float, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, SummaryTimestampsMixin


class DailySummary(SummaryTimestampsMixin, Base):
    __tablename__ = "daily_summaries"

    summary_date: Mapped[date] = mapped_column(Date, primary_key=True)
    total_curtailed_energy: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_payment: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)


class MonthlySummary(SummaryTimestampsMixin, Base):
    __tablename__ = "monthly_summaries"

    year_month: Mapped[str] = mapped_column(String(7), primary_key=True)
    total_curtailed_energy: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_payment: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)


class YearlySummary(SummaryTimestampsMixin, Base):
    __tablename__ = "yearly_summaries"

    year: Mapped[str] = mapped_column(String(4), primary_key=True)
    total_curtailed_energy: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_payment: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
