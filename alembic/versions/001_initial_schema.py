"""initial schema: curtailment records, summaries, mining and run log

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2025-03-05

"""
from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "a1b2c3d4e5f6"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # -----------------------------------------------------------------
    # Ingestion
    # -----------------------------------------------------------------
    op.create_table(
        "curtailment_records",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("settlement_date", sa.Date(), nullable=False),
        sa.Column("settlement_period", sa.Integer(), nullable=False),
        sa.Column("farm_id", sa.String(50), nullable=False),
        sa.Column("lead_party_name", sa.String(200), nullable=True),
        sa.Column("volume", sa.Float(), nullable=False),
        sa.Column("payment", sa.Float(), nullable=False),
        sa.Column("original_price", sa.Float(), nullable=False),
        sa.Column("final_price", sa.Float(), nullable=False),
        sa.Column("so_flag", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("cadl_flag", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_curtailment_records"),
        sa.UniqueConstraint(
            "settlement_date", "settlement_period", "farm_id",
            name="uq_curtailment_records_natural_key",
        ),
    )
    op.create_index(
        "ix_curtailment_records_settlement_date",
        "curtailment_records",
        ["settlement_date"],
    )

    op.create_table(
        "processed_periods",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("settlement_date", sa.Date(), nullable=False),
        sa.Column("settlement_period", sa.Integer(), nullable=False),
        sa.Column("record_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("fetched_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_processed_periods"),
        sa.UniqueConstraint(
            "settlement_date", "settlement_period",
            name="uq_processed_periods_natural_key",
        ),
    )

    # -----------------------------------------------------------------
    # Energy summaries
    # -----------------------------------------------------------------
    op.create_table(
        "daily_summaries",
        sa.Column("summary_date", sa.Date(), nullable=False),
        sa.Column("total_curtailed_energy", sa.Float(), nullable=False),
        sa.Column("total_payment", sa.Float(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("summary_date", name="pk_daily_summaries"),
    )
    op.create_table(
        "monthly_summaries",
        sa.Column("year_month", sa.String(7), nullable=False),
        sa.Column("total_curtailed_energy", sa.Float(), nullable=False),
        sa.Column("total_payment", sa.Float(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("year_month", name="pk_monthly_summaries"),
    )
    op.create_table(
        "yearly_summaries",
        sa.Column("year", sa.String(4), nullable=False),
        sa.Column("total_curtailed_energy", sa.Float(), nullable=False),
        sa.Column("total_payment", sa.Float(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("year", name="pk_yearly_summaries"),
    )

    # -----------------------------------------------------------------
    # Mining
    # -----------------------------------------------------------------
    op.create_table(
        "difficulty_history",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("effective_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("difficulty", sa.Float(), nullable=False),
        sa.Column("block_height", sa.Integer(), nullable=True),
        sa.Column("source", sa.String(50), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_difficulty_history"),
        sa.UniqueConstraint("effective_at", name="uq_difficulty_history_effective_at"),
    )

    op.create_table(
        "historical_bitcoin_calculations",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("settlement_date", sa.Date(), nullable=False),
        sa.Column("settlement_period", sa.Integer(), nullable=False),
        sa.Column("farm_id", sa.String(50), nullable=False),
        sa.Column("miner_model", sa.String(30), nullable=False),
        sa.Column("bitcoin_mined", sa.Float(), nullable=False),
        sa.Column("difficulty", sa.Float(), nullable=False),
        sa.Column("calculated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_historical_bitcoin_calculations"),
        sa.UniqueConstraint(
            "settlement_date", "settlement_period", "farm_id", "miner_model",
            name="uq_historical_bitcoin_calculations_natural_key",
        ),
    )
    op.create_index(
        "ix_historical_bitcoin_calculations_date_model",
        "historical_bitcoin_calculations",
        ["settlement_date", "miner_model"],
    )

    for table, key_column, key_type in (
        ("bitcoin_daily_summaries", "summary_date", sa.Date()),
        ("bitcoin_monthly_summaries", "year_month", sa.String(7)),
        ("bitcoin_yearly_summaries", "year", sa.String(4)),
    ):
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
            sa.Column(key_column, key_type, nullable=False),
            sa.Column("miner_model", sa.String(30), nullable=False),
            sa.Column("bitcoin_mined", sa.Float(), nullable=False),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id", name=f"pk_{table}"),
            sa.UniqueConstraint(key_column, "miner_model", name=f"uq_{table}_natural_key"),
        )

    # -----------------------------------------------------------------
    # Run log: regular table (low volume -- one row per date run)
    # -----------------------------------------------------------------
    op.create_table(
        "reconciliation_runs",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("settlement_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(30), nullable=False),
        sa.Column("missing_periods", sa.JSON(), nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("records_upserted", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("duration_seconds", sa.Float(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_reconciliation_runs"),
    )
    op.create_index(
        "ix_reconciliation_runs_settlement_date",
        "reconciliation_runs",
        ["settlement_date"],
    )


def downgrade() -> None:
    op.drop_index("ix_reconciliation_runs_settlement_date")
    op.drop_table("reconciliation_runs")
    for table in (
        "bitcoin_yearly_summaries",
        "bitcoin_monthly_summaries",
        "bitcoin_daily_summaries",
    ):
        op.drop_table(table)
    op.drop_index("ix_historical_bitcoin_calculations_date_model")
    op.drop_table("historical_bitcoin_calculations")
    op.drop_table("difficulty_history")
    op.drop_table("yearly_summaries")
    op.drop_table("monthly_summaries")
    op.drop_table("daily_summaries")
    op.drop_table("processed_periods")
    op.drop_index("ix_curtailment_records_settlement_date")
    op.drop_table("curtailment_records")
