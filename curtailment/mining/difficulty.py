"""Difficulty oracle -- Bitcoin network difficulty effective on a date.

Loaded from the read-only ``difficulty_history`` table (or in-memory entries
in tests) and cached for the life of the process until ``invalidate()``.

``resolve(date)`` returns the difficulty of the latest epoch that started
before the end of that settlement date (next midnight, UTC). A date earlier
than all known history raises ``NotFoundError``; there is no default value.
"""

from __future__ import annotations

import bisect
from collections.abc import Iterable
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from curtailment.core.exceptions import NotFoundError
from curtailment.core.models import DifficultyRecord
from curtailment.core.utils.logging_config import get_logger
from curtailment.core.utils.periods import end_of_day_utc

logger = get_logger("mining.difficulty")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class DifficultyOracle:
    """Point-in-time lookup over the difficulty history.

    Usage::

        oracle = DifficultyOracle()
        difficulty = await oracle.resolve(date(2025, 3, 4))
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory
        self._static_entries: list[tuple[datetime, float]] | None = None
        self._timestamps: list[datetime] | None = None
        self._values: list[float] = []

    @classmethod
    def from_entries(cls, entries: Iterable[tuple[datetime, float]]) -> DifficultyOracle:
        """Build an oracle from ``(effective_at, difficulty)`` pairs."""
        oracle = cls()
        oracle._static_entries = [(_as_utc(ts), float(value)) for ts, value in entries]
        oracle._index(oracle._static_entries)
        return oracle

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            from curtailment.core.database import async_session_factory

            self._session_factory = async_session_factory
        return self._session_factory

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def load(self) -> int:
        """(Re)load the difficulty history. Returns the number of epochs."""
        if self._static_entries is not None:
            self._index(self._static_entries)
            return len(self._static_entries)

        async with self.session_factory() as session:
            result = await session.execute(
                select(DifficultyRecord.effective_at, DifficultyRecord.difficulty).order_by(
                    DifficultyRecord.effective_at
                )
            )
            entries = [(_as_utc(ts), float(value)) for ts, value in result.all()]
        self._index(entries)
        return len(entries)

    def invalidate(self) -> None:
        """Drop the cached history; the next resolve reloads it."""
        self._timestamps = None
        self._values = []
        logger.info("difficulty_oracle_invalidated")

    @property
    def is_loaded(self) -> bool:
        return self._timestamps is not None

    async def ensure_loaded(self) -> None:
        if self._timestamps is None:
            await self.load()

    def _index(self, entries: list[tuple[datetime, float]]) -> None:
        ordered = sorted(entries, key=lambda entry: entry[0])
        self._timestamps = [ts for ts, _ in ordered]
        self._values = [value for _, value in ordered]
        logger.info(
            "difficulty_oracle_loaded",
            epochs=len(ordered),
            earliest=ordered[0][0].isoformat() if ordered else None,
        )

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    async def resolve(self, settlement_date: date) -> float:
        """Difficulty effective on *settlement_date*.

        Raises:
            NotFoundError: If no epoch started on or before that date.
        """
        await self.ensure_loaded()
        assert self._timestamps is not None
        index = bisect.bisect_left(self._timestamps, end_of_day_utc(settlement_date))
        if index == 0:
            raise NotFoundError(
                f"No difficulty record effective on or before {settlement_date}"
            )
        return self._values[index - 1]


# ---------------------------------------------------------------------------
# Process-wide instance
# ---------------------------------------------------------------------------
_oracle: DifficultyOracle | None = None


def get_difficulty_oracle() -> DifficultyOracle:
    """Return the process-wide oracle, creating it on first call."""
    global _oracle
    if _oracle is None:
        _oracle = DifficultyOracle()
    return _oracle


def set_difficulty_oracle(oracle: DifficultyOracle | None) -> None:
    """Replace (or with None, reset) the process-wide oracle."""
    global _oracle
    _oracle = oracle
