"""Curtailment records -- one row per (settlement date, period, BM Unit).

Volume is stored signed (negative = curtailed); aggregates use abs(volume).
Natural key: (settlement_date, settlement_period, farm_id) for idempotent
upserts from the reconciler.
"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class CurtailmentRecord(Base):
    __tablename__ = "curtailment_records"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    settlement_date: Mapped[date] = mapped_column(Date, nullable=False)
    settlement_period: Mapped[int] = mapped_column(Integer, nullable=False)
    farm_id: Mapped[str] = mapped_column(String(50), nullable=False)
    lead_party_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    volume: Mapped[float] = mapped_column(Float, nullable=False)
    payment: Mapped[float] = mapped_column(Float, nullable=False)
    original_price: Mapped[float] = mapped_column(Float, nullable=False)
    final_price: Mapped[float] = mapped_column(Float, nullable=False)
    so_flag: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    cadl_flag: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "settlement_date", "settlement_period", "farm_id",
            name="uq_curtailment_records_natural_key",
        ),
        Index("ix_curtailment_records_settlement_date", "settlement_date"),
    )
