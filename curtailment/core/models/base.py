"""Declarative base for the ledger tables.

Constraint and index names follow a fixed convention so the model metadata
and the Alembic migrations produce identical names.
"""

from datetime import datetime

from sqlalchemy import DateTime, MetaData, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# e.g. uq_processed_periods_natural_key, pk_daily_summaries
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Root of every ledger table mapping."""

    metadata = MetaData(naming_convention=convention)


class SummaryTimestampsMixin:
    """created_at / updated_at columns shared by the summary caches."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
