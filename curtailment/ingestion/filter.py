"""Curtailment filter -- decides which raw settlement records are curtailment.

A record is a curtailment event iff:
    volume < 0
    AND (so_flag OR cadl_flag)
    AND the BM Unit is tracked by the asset classifier.

Everything else is dropped silently; that is expected filtering, not failure.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from typing import Any

from curtailment.assets.classifier import AssetClassifier
from curtailment.connectors.base import SettlementRecord
from curtailment.core.utils.logging_config import get_logger

logger = get_logger("ingestion.filter")


def is_curtailment(record: SettlementRecord, classifier: AssetClassifier) -> bool:
    """Return True when *record* is a curtailment event for a tracked unit."""
    if record.volume >= 0:
        return False
    if not (record.so_flag or record.cadl_flag):
        return False
    return classifier.is_tracked(record.unit_id)


def energy_and_payment(record: SettlementRecord) -> tuple[float, float]:
    """Curtailed energy magnitude (MWh) and payment (energy x original price)."""
    energy = abs(record.volume)
    return energy, energy * record.original_price


def to_curtailment_row(
    record: SettlementRecord,
    settlement_date: date,
    settlement_period: int,
    classifier: AssetClassifier,
) -> dict[str, Any]:
    """Build a curtailment_records row dict from a qualifying record.

    Volume stays signed at rest; payment is abs(volume) x original price, so it
    carries the sign of the accepted price (negative bids give negative payments).
    """
    _, payment = energy_and_payment(record)
    return {
        "settlement_date": settlement_date,
        "settlement_period": settlement_period,
        "farm_id": record.unit_id,
        "lead_party_name": classifier.lead_party(record.unit_id) or record.lead_party_name,
        "volume": record.volume,
        "payment": payment,
        "original_price": record.original_price,
        "final_price": record.final_price,
        "so_flag": record.so_flag,
        "cadl_flag": record.cadl_flag,
    }


def filter_curtailment(
    records: Iterable[SettlementRecord],
    settlement_date: date,
    settlement_period: int,
    classifier: AssetClassifier,
) -> list[dict[str, Any]]:
    """Apply the curtailment predicate and build rows for the survivors.

    The same unit can appear on both the bid and offer stack of a period;
    rows are unique per (date, period, unit), so repeated units are merged by
    summing volume and payment into a single row.
    """
    rows: dict[str, dict[str, Any]] = {}
    seen = kept = 0
    for record in records:
        seen += 1
        if not is_curtailment(record, classifier):
            continue
        kept += 1
        row = to_curtailment_row(record, settlement_date, settlement_period, classifier)
        existing = rows.get(record.unit_id)
        if existing is None:
            rows[record.unit_id] = row
            continue
        existing["volume"] += row["volume"]
        existing["payment"] += row["payment"]
        existing["so_flag"] = existing["so_flag"] or row["so_flag"]
        existing["cadl_flag"] = existing["cadl_flag"] or row["cadl_flag"]

    logger.debug(
        "records_filtered",
        settlement_date=str(settlement_date),
        settlement_period=settlement_period,
        seen=seen,
        kept=kept,
        units=len(rows),
    )
    return list(rows.values())
