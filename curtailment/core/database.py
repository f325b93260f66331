"""Database engine layer for the curtailment ledger.

Provides async engine (asyncpg) for application runtime (reconciler, API)
and sync engine (psycopg2) for Alembic migrations and quality scripts.
Session factories are configured with autoflush=False and expire_on_commit=False
for explicit transaction control.

``build_upsert`` produces a dialect-specific ``INSERT ... ON CONFLICT DO
UPDATE`` so every derived table is written with last-write-wins semantics on
its natural key, on PostgreSQL in production and SQLite in tests.
"""

from collections.abc import AsyncGenerator, Sequence
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import Session, sessionmaker

from .config import settings

# ---------------------------------------------------------------------------
# Async engine (for application runtime -- asyncpg)
# ---------------------------------------------------------------------------
async_engine = create_async_engine(
    settings.async_database_url,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=settings.db_pool_pre_ping,
    echo=settings.debug,
)

# Async session factory
async_session_factory = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)

# ---------------------------------------------------------------------------
# Sync engine (for Alembic, seeds, one-off scripts -- psycopg2)
# ---------------------------------------------------------------------------
sync_engine = create_engine(
    settings.sync_database_url,
    pool_size=5,
    pool_pre_ping=True,
    echo=settings.debug,
)

# Sync session factory
sync_session_factory = sessionmaker(
    sync_engine,
    autoflush=False,
    expire_on_commit=False,
)


# ---------------------------------------------------------------------------
# Idempotent upsert
# ---------------------------------------------------------------------------
def build_upsert(
    dialect_name: str,
    model_class: type,
    rows: Sequence[dict[str, Any]],
    index_elements: Sequence[str],
    update_columns: Sequence[str],
) -> Any:
    """Build ``INSERT ... ON CONFLICT (keys) DO UPDATE`` for *model_class*.

    Args:
        dialect_name: ``session.get_bind().dialect.name`` of the target.
        model_class: SQLAlchemy ORM model class (the table).
        rows: List of dicts whose keys match model columns.
        index_elements: Columns of the natural-key unique constraint.
        update_columns: Columns overwritten from the incoming row on conflict.

    Returns:
        An executable insert statement.

    Raises:
        ValueError: If the dialect has no ON CONFLICT support here.
    """
    if dialect_name == "postgresql":
        stmt = pg_insert(model_class).values(list(rows))
    elif dialect_name == "sqlite":
        stmt = sqlite_insert(model_class).values(list(rows))
    else:
        raise ValueError(f"Upsert not supported for dialect '{dialect_name}'")

    return stmt.on_conflict_do_update(
        index_elements=list(index_elements),
        set_={col: stmt.excluded[col] for col in update_columns},
    )


def dialect_of(session: AsyncSession) -> str:
    """Return the dialect name of the engine bound to *session*."""
    return session.get_bind().dialect.name


# ---------------------------------------------------------------------------
# Dependency injectors
# ---------------------------------------------------------------------------
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields an async database session.

    The session is automatically rolled back on unhandled exceptions and
    closed when the request finishes.
    """
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


def get_sync_session() -> Session:
    """Get a sync session for scripts and migrations.

    Caller is responsible for closing the session.
    """
    return sync_session_factory()
