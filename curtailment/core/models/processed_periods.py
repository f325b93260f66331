"""Processed settlement periods -- one row per fetched (date, period).

A period whose upstream response held no curtailment leaves no
curtailment_records rows; this marker distinguishes "fetched, nothing
curtailed" from "never fetched" so reconciliation does not refetch it.
"""

from datetime import date, datetime

from sqlalchemy import Date, DateTime, Integer, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ProcessedPeriod(Base):
    __tablename__ = "processed_periods"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    settlement_date: Mapped[date] = mapped_column(Date, nullable=False)
    settlement_period: Mapped[int] = mapped_column(Integer, nullable=False)
    record_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    fetched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "settlement_date", "settlement_period",
            name="uq_processed_periods_natural_key",
        ),
    )
