"""Historical Bitcoin calculations -- per record and miner model.

Natural key: (settlement_date, settlement_period, farm_id, miner_model).
Derived solely from the matching curtailment record and the difficulty
effective on the settlement date.
"""

from datetime import date, datetime

from sqlalchemy import (
    BigInteger,
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


class HistoricalBitcoinCalculation(Base):
    __tablename__ = "historical_bitcoin_calculations"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    settlement_date: Mapped[date] = mapped_column(Date, nullable=False)
    settlement_period: Mapped[int] = mapped_column(Integer, nullable=False)
    farm_id: Mapped[str] = mapped_column(String(50), nullable=False)
    miner_model: Mapped[str] = mapped_column(String(30), nullable=False)
    bitcoin_mined: Mapped[float] = mapped_column(Float, nullable=False)
    difficulty: Mapped[float] = mapped_column(Float, nullable=False)
    calculated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "settlement_date", "settlement_period", "farm_id", "miner_model",
            name="uq_historical_bitcoin_calculations_natural_key",
        ),
        Index(
            "ix_historical_bitcoin_calculations_date_model",
            "settlement_date", "miner_model",
        ),
    )
