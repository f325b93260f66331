"""Pydantic-settings configuration for the curtailment ledger.

Loads database, Elexon API, reconciliation and mining parameters from the
.env file with sensible defaults for local development. Computed fields
produce fully-formed connection URLs and the parsed miner model list.
"""

from pathlib import Path

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_BMU_MAPPING = Path(__file__).resolve().parent.parent / "data" / "bmu_mapping.json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # Project
    project_name: str = "Wind Curtailment Ledger"
    debug: bool = False

    # PostgreSQL
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "curtailment"
    postgres_user: str = "curtailment_user"
    postgres_password: str = ""

    # SQLAlchemy pool settings
    db_pool_size: int = 20
    db_max_overflow: int = 10
    db_pool_pre_ping: bool = True
    db_sslmode: str = "prefer"  # Set to "require" in production

    # Elexon BMRS API
    elexon_base_url: str = "https://data.elexon.co.uk/bmrs/api/v1"
    elexon_timeout_seconds: float = 30.0
    elexon_max_in_flight: int = 10

    # Reconciliation
    periods_per_day: int = 48
    batch_size: int = 5
    batch_delay_seconds: float = 1.0
    max_reconcile_attempts: int = 3
    retry_backoff_seconds: float = 2.0
    rate_limit_backoff_seconds: float = 60.0
    max_backoff_seconds: float = 300.0
    reconcile_timeout_seconds: float = 900.0
    max_concurrent_dates: int = 5

    # Asset reference data
    bmu_mapping_path: str = str(_DEFAULT_BMU_MAPPING)
    asset_reload_on_start: bool = False

    # Mining
    block_reward: float = 3.125
    miner_model_names: str = "S19J_PRO,S9,M20S"  # Comma-separated

    @computed_field
    @property
    def async_database_url(self) -> str:
        """Async connection string for asyncpg."""
        base = (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )
        if self.db_sslmode and self.db_sslmode != "disable":
            return f"{base}?ssl={self.db_sslmode}"
        return base

    @computed_field
    @property
    def sync_database_url(self) -> str:
        """Sync connection string for psycopg2 (used by Alembic)."""
        base = (
            f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )
        if self.db_sslmode and self.db_sslmode != "disable":
            return f"{base}?sslmode={self.db_sslmode}"
        return base

    @computed_field
    @property
    def miner_models(self) -> list[str]:
        """Miner model names parsed from ``miner_model_names``."""
        return [
            name.strip().upper()
            for name in self.miner_model_names.split(",")
            if name.strip()
        ]


# Singleton instance
settings = Settings()
