"""Shared enumerations used across models and modules.

All enums use the (str, Enum) mixin pattern so their values are
serializable strings, compatible with database storage and JSON output.
"""

from enum import Enum


class ReconciliationState(str, Enum):
    """Lifecycle of a per-date completeness reconciliation.

    PENDING -> FETCHING -> PARTIALLY_COMPLETE -> COMPLETE | INCOMPLETE
    """

    PENDING = "PENDING"
    FETCHING = "FETCHING"
    PARTIALLY_COMPLETE = "PARTIALLY_COMPLETE"
    COMPLETE = "COMPLETE"
    INCOMPLETE = "INCOMPLETE"


class FuelType(str, Enum):
    """Fuel type of a BM Unit in the asset reference dataset."""

    WIND = "WIND"
    SOLAR = "SOLAR"
    HYDRO = "HYDRO"
    BIOMASS = "BIOMASS"


class CheckStatus(str, Enum):
    """Outcome of an integrity check run."""

    PASS = "PASS"
    FAIL = "FAIL"
