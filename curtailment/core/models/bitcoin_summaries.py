"""Bitcoin summary caches -- daily, monthly and yearly, per miner model.

Same full-recompute semantics as the energy summaries, partitioned by
miner_model: historical_bitcoin_calculations -> daily -> monthly -> yearly.
"""

from datetime import date

from sqlalchemy import Date, Float, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, SummaryTimestampsMixin


class BitcoinDailySummary(SummaryTimestampsMixin, Base):
    __tablename__ = "bitcoin_daily_summaries"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    summary_date: Mapped[date] = mapped_column(Date, nullable=False)
    miner_model: Mapped[str] = mapped_column(String(30), nullable=False)
    bitcoin_mined: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    __table_args__ = (
        UniqueConstraint(
            "summary_date", "miner_model",
            name="uq_bitcoin_daily_summaries_natural_key",
        ),
    )


class BitcoinMonthlySummary(SummaryTimestampsMixin, Base):
    __tablename__ = "bitcoin_monthly_summaries"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    year_month: Mapped[str] = mapped_column(String(7), nullable=False)
    miner_model: Mapped[str] = mapped_column(String(30), nullable=False)
    bitcoin_mined: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    __table_args__ = (
        UniqueConstraint(
            "year_month", "miner_model",
            name="uq_bitcoin_monthly_summaries_natural_key",
        ),
    )


class BitcoinYearlySummary(SummaryTimestampsMixin, Base):
    __tablename__ = "bitcoin_yearly_summaries"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    year: Mapped[str] = mapped_column(String(4), nullable=False)
    miner_model: Mapped[str] = mapped_column(String(30), nullable=False)
    bitcoin_mined: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    __table_args__ = (
        UniqueConstraint(
            "year", "miner_model",
            name="uq_bitcoin_yearly_summaries_natural_key",
        ),
    )
