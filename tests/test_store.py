"""Tests for the curtailment record store.

Runs against a throwaway SQLite database; the upsert path is the same
``INSERT ... ON CONFLICT DO UPDATE`` used on PostgreSQL.
"""

from __future__ import annotations

from datetime import date
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from curtailment.core.exceptions import StoreWriteError
from curtailment.ingestion.store import CurtailmentStore


def _row(period: int, farm_id: str, volume: float, price: float = 7.20) -> dict:
    return {
        "settlement_date": date(2025, 3, 4),
        "settlement_period": period,
        "farm_id": farm_id,
        "lead_party_name": "Owner",
        "volume": volume,
        "payment": abs(volume) * price,
        "original_price": price,
        "final_price": price,
        "so_flag": True,
        "cadl_flag": False,
    }


# ---------------------------------------------------------------------------
# Upsert semantics
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_upsert_is_idempotent(session_factory, sample_date):
    store = CurtailmentStore(session_factory)
    rows = [_row(16, "T_WHILW-1", -20.0), _row(16, "T_CLDCW-1", -15.0)]

    await store.upsert(rows)
    await store.upsert(rows)

    records = await store.records_for_date(sample_date)
    assert len(records) == 2
    energy, payment, count = await store.totals_for_date(sample_date)
    assert count == 2
    assert energy == pytest.approx(35.0)
    assert payment == pytest.approx(252.0)


@pytest.mark.asyncio
async def test_upsert_last_write_wins(session_factory, sample_date):
    store = CurtailmentStore(session_factory)
    await store.upsert([_row(16, "T_WHILW-1", -20.0)])
    await store.upsert([_row(16, "T_WHILW-1", -25.0, price=8.0)])

    records = await store.records_for_date(sample_date)
    assert len(records) == 1
    assert records[0].volume == pytest.approx(-25.0)
    assert records[0].payment == pytest.approx(200.0)
    assert records[0].original_price == pytest.approx(8.0)


@pytest.mark.asyncio
async def test_upsert_empty_rows_is_noop(session_factory):
    assert await CurtailmentStore(session_factory).upsert([]) == 0


@pytest.mark.asyncio
async def test_records_ordered_by_period_then_unit(session_factory, sample_date):
    store = CurtailmentStore(session_factory)
    await store.upsert(
        [_row(20, "T_AAA-1", -1.0), _row(3, "T_ZZZ-1", -1.0), _row(3, "T_BBB-1", -1.0)]
    )
    records = await store.records_for_date(sample_date)
    assert [(r.settlement_period, r.farm_id) for r in records] == [
        (3, "T_BBB-1"),
        (3, "T_ZZZ-1"),
        (20, "T_AAA-1"),
    ]


# ---------------------------------------------------------------------------
# Period markers
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_empty_period_counts_as_present(session_factory, sample_date):
    store = CurtailmentStore(session_factory)
    assert await store.store_period(sample_date, 5, []) == 0
    await store.store_period(sample_date, 16, [_row(16, "T_WHILW-1", -20.0)])

    assert await store.list_periods(sample_date) == {5, 16}
    assert await store.record_periods(sample_date) == {16}


@pytest.mark.asyncio
async def test_upserted_records_count_as_present_without_marker(session_factory, sample_date):
    store = CurtailmentStore(session_factory)
    await store.upsert([_row(7, "T_WHILW-1", -1.0)])
    assert await store.list_periods(sample_date) == {7}


@pytest.mark.asyncio
async def test_list_periods_other_date_is_empty(session_factory):
    store = CurtailmentStore(session_factory)
    await store.store_period(date(2025, 3, 4), 1, [])
    assert await store.list_periods(date(2025, 3, 5)) == set()


# ---------------------------------------------------------------------------
# Deletes
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_delete_for_date_removes_records_and_markers(session_factory, sample_date):
    store = CurtailmentStore(session_factory)
    await store.store_period(sample_date, 1, [])
    await store.store_period(sample_date, 16, [_row(16, "T_WHILW-1", -20.0), _row(16, "T_CLDCW-1", -1.0)])

    assert await store.delete_for_date(sample_date) == 2
    assert await store.list_periods(sample_date) == set()


@pytest.mark.asyncio
async def test_delete_for_date_and_period(session_factory, sample_date):
    store = CurtailmentStore(session_factory)
    await store.store_period(sample_date, 16, [_row(16, "T_WHILW-1", -20.0)])
    await store.store_period(sample_date, 17, [_row(17, "T_WHILW-1", -5.0)])

    assert await store.delete_for_date_and_period(sample_date, 16) == 1
    assert await store.list_periods(sample_date) == {17}


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_database_failure_raises_store_write_error(session_factory, sample_date):
    store = CurtailmentStore(session_factory)

    async def _boom(*args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("disk I/O error"))

    store._upsert_records = MagicMock(side_effect=_boom)
    with pytest.raises(StoreWriteError, match="failed"):
        await store.store_period(sample_date, 16, [_row(16, "T_WHILW-1", -20.0)])

    # Nothing was marked for the failed period
    assert await store.list_periods(sample_date) == set()
