"""Bitcoin network difficulty history -- read-only reference data.

One row per difficulty-adjustment epoch. The difficulty oracle selects the
latest row whose effective_at falls before the end of a settlement date.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class DifficultyRecord(Base):
    __tablename__ = "difficulty_history"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    effective_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), unique=True, nullable=False
    )
    difficulty: Mapped[float] = mapped_column(Float, nullable=False)
    block_height: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    source: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
