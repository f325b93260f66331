"""Root pytest configuration and shared fixtures.

Provides common test fixtures used across all test modules:
- db_url / sync_engine / session_factory: a throwaway SQLite database per test
  with every ledger table created
- classifier: asset classifier built from fixed in-memory BM Unit entries
- oracle: difficulty oracle built from fixed in-memory epochs
- make_record: factory for raw SettlementRecords
- load_fixture: callable to load JSON fixtures from tests/fixtures/
"""

from __future__ import annotations

import json
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from curtailment.assets.classifier import AssetClassifier
from curtailment.connectors.base import BaseConnector, SettlementRecord
from curtailment.core.models import Base
from curtailment.mining.difficulty import DifficultyOracle

FIXTURES_DIR = Path(__file__).parent / "fixtures"

TRACKED_UNITS = [
    {"elexonBmUnit": "T_WHILW-1", "leadPartyName": "ScottishPower Renewables", "fuelType": "WIND"},
    {"elexonBmUnit": "T_CLDCW-1", "leadPartyName": "SSE Generation Ltd", "fuelType": "WIND"},
    {"elexonBmUnit": "T_GORDW-1", "leadPartyName": None, "fuelType": "WIND"},
    {"elexonBmUnit": "T_DRAXX-1", "leadPartyName": "Drax Power Ltd", "fuelType": "BIOMASS"},
]

# Difficulty epochs: 2024-12-30 and 2025-03-02 adjustments
DIFFICULTY_EPOCHS = [
    (datetime(2024, 12, 30, 3, 15, tzinfo=timezone.utc), 109.78e12),
    (datetime(2025, 3, 2, 17, 40, tzinfo=timezone.utc), 110.57e12),
]


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------
@pytest.fixture
def db_url(tmp_path: Path) -> str:
    """Create every ledger table in a fresh SQLite file and return its path."""
    path = tmp_path / "ledger.db"
    engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(engine)
    engine.dispose()
    return str(path)


@pytest.fixture
def sync_engine(db_url: str):
    """Sync engine on the test database (integrity checks)."""
    engine = create_engine(f"sqlite:///{db_url}")
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_url: str) -> async_sessionmaker[AsyncSession]:
    """Async session factory on the test database."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_url}", poolclass=NullPool)
    return async_sessionmaker(engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------
@pytest.fixture
def classifier() -> AssetClassifier:
    return AssetClassifier.from_entries(TRACKED_UNITS)


@pytest.fixture
def oracle() -> DifficultyOracle:
    return DifficultyOracle.from_entries(DIFFICULTY_EPOCHS)


@pytest.fixture
def sample_date() -> date:
    return date(2025, 3, 4)


@pytest.fixture
def make_record() -> Any:
    """Return a factory for raw settlement records.

    Defaults describe a qualifying curtailment event for a tracked unit.
    """
    def _make(
        unit_id: str = "T_WHILW-1",
        volume: float = -10.0,
        original_price: float = 7.20,
        final_price: float = 7.20,
        so_flag: bool = True,
        cadl_flag: bool = False,
        lead_party_name: str | None = None,
    ) -> SettlementRecord:
        return SettlementRecord(
            unit_id=unit_id,
            volume=volume,
            final_price=final_price,
            original_price=original_price,
            so_flag=so_flag,
            cadl_flag=cadl_flag,
            lead_party_name=lead_party_name,
        )
    return _make


@pytest.fixture
def load_fixture() -> Any:
    """Return a callable that loads JSON fixtures from tests/fixtures/.

    Usage::

        def test_something(load_fixture):
            data = load_fixture("elexon_bid_sample.json")
    """
    def _load(filename: str) -> Any:
        filepath = FIXTURES_DIR / filename
        with filepath.open("r", encoding="utf-8") as f:
            return json.load(f)
    return _load


# ---------------------------------------------------------------------------
# Scripted connector and reconciler wiring
# ---------------------------------------------------------------------------
class FakeConnector(BaseConnector):
    """Connector whose responses are scripted per settlement period.

    ``responses`` maps a period to a list of outcomes, each either a list of
    SettlementRecords or an exception instance to raise. Outcomes are consumed
    in order; the last one repeats. Unscripted periods return no records.
    """

    SOURCE_NAME = "FAKE"
    BASE_URL = "http://elexon.invalid"

    def __init__(self, responses: dict[int, list[Any]] | None = None, on_fetch: Any = None) -> None:
        super().__init__()
        self.responses = {period: list(script) for period, script in (responses or {}).items()}
        self.on_fetch = on_fetch
        self.calls: list[tuple[date, int]] = []

    async def fetch(self, settlement_date: date, settlement_period: int) -> list[SettlementRecord]:
        self.calls.append((settlement_date, settlement_period))
        if self.on_fetch is not None:
            await self.on_fetch(settlement_date, settlement_period)
        script = self.responses.get(settlement_period)
        if not script:
            return []
        outcome = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return list(outcome)

    def periods_called(self) -> list[int]:
        return [period for _, period in self.calls]


class RecordingSleep:
    """Awaitable no-op sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def fake_connector() -> Any:
    """Return the FakeConnector class for building scripted connectors."""
    return FakeConnector


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_reconciler(session_factory, classifier, recording_sleep) -> Any:
    """Return a factory wiring a CompletenessReconciler onto the test database.

    Defaults: 48 periods, batches of 8, no delay between batches, 3 passes.
    """
    from curtailment.aggregation.energy import EnergyAggregator
    from curtailment.ingestion.reconciler import CompletenessReconciler
    from curtailment.ingestion.store import CurtailmentStore

    def _make(connector: BaseConnector, **options: Any) -> CompletenessReconciler:
        params: dict[str, Any] = {
            "periods_per_day": 48,
            "batch_size": 8,
            "batch_delay_seconds": 0.0,
            "max_attempts": 3,
            "retry_backoff_seconds": 1.0,
            "rate_limit_backoff_seconds": 30.0,
            "max_backoff_seconds": 300.0,
            "fetch_timeout_seconds": 5.0,
            "timeout_seconds": 60.0,
            "sleep": recording_sleep,
        }
        params.update(options)
        return CompletenessReconciler(
            connector,
            CurtailmentStore(session_factory),
            EnergyAggregator(session_factory),
            classifier,
            **params,
        )
    return _make
