"""Tests for the curtailment filter."""

from __future__ import annotations

import pytest

from curtailment.ingestion.filter import (
    energy_and_payment,
    filter_curtailment,
    is_curtailment,
)


# ---------------------------------------------------------------------------
# Predicate
# ---------------------------------------------------------------------------
def test_qualifying_record_is_curtailment(classifier, make_record):
    assert is_curtailment(make_record(), classifier)
    assert is_curtailment(make_record(so_flag=False, cadl_flag=True), classifier)


@pytest.mark.parametrize("volume", [0.0, 5.0])
def test_non_negative_volume_is_dropped(classifier, make_record, volume):
    assert not is_curtailment(make_record(volume=volume), classifier)


def test_record_without_reason_flags_is_dropped(classifier, make_record):
    assert not is_curtailment(make_record(so_flag=False, cadl_flag=False), classifier)


def test_untracked_unit_is_dropped(classifier, make_record):
    assert not is_curtailment(make_record(unit_id="T_DRAXX-1"), classifier)
    assert not is_curtailment(make_record(unit_id="E_UNKNOWN-1"), classifier)


# ---------------------------------------------------------------------------
# Row building
# ---------------------------------------------------------------------------
def test_energy_and_payment_use_magnitude(make_record):
    energy, payment = energy_and_payment(make_record(volume=-42.5, original_price=7.20))
    assert energy == pytest.approx(42.5)
    assert payment == pytest.approx(306.0)


def test_negative_price_gives_negative_payment(make_record):
    energy, payment = energy_and_payment(make_record(volume=-10.0, original_price=-35.0))
    assert energy == pytest.approx(10.0)
    assert payment == pytest.approx(-350.0)


def test_filter_builds_rows_with_signed_volume(classifier, make_record, sample_date):
    rows = filter_curtailment(
        [
            make_record(unit_id="T_WHILW-1", volume=-20.0),
            make_record(unit_id="T_CLDCW-1", volume=-15.0, so_flag=False, cadl_flag=True),
            make_record(unit_id="T_DRAXX-1", volume=-50.0),
            make_record(unit_id="T_GORDW-1", volume=4.0),
        ],
        sample_date,
        16,
        classifier,
    )

    assert [row["farm_id"] for row in rows] == ["T_WHILW-1", "T_CLDCW-1"]
    whitelee = rows[0]
    assert whitelee["settlement_date"] == sample_date
    assert whitelee["settlement_period"] == 16
    assert whitelee["volume"] == pytest.approx(-20.0)
    assert whitelee["payment"] == pytest.approx(144.0)
    assert whitelee["lead_party_name"] == "ScottishPower Renewables"
    assert rows[1]["cadl_flag"] is True


def test_lead_party_falls_back_to_upstream_name(classifier, make_record, sample_date):
    rows = filter_curtailment(
        [make_record(unit_id="T_GORDW-1", lead_party_name="Gordonbush Wind")],
        sample_date,
        1,
        classifier,
    )
    assert rows[0]["lead_party_name"] == "Gordonbush Wind"


def test_repeated_unit_in_period_is_merged(classifier, make_record, sample_date):
    rows = filter_curtailment(
        [
            make_record(unit_id="T_WHILW-1", volume=-10.0, original_price=5.0),
            make_record(unit_id="T_WHILW-1", volume=-2.0, original_price=10.0, so_flag=False, cadl_flag=True),
        ],
        sample_date,
        3,
        classifier,
    )
    assert len(rows) == 1
    assert rows[0]["volume"] == pytest.approx(-12.0)
    assert rows[0]["payment"] == pytest.approx(70.0)
    assert rows[0]["so_flag"] is True
    assert rows[0]["cadl_flag"] is True


def test_nothing_qualifying_gives_empty_list(classifier, make_record, sample_date):
    assert filter_curtailment([make_record(volume=1.0)], sample_date, 1, classifier) == []
    assert filter_curtailment([], sample_date, 1, classifier) == []
