"""Ingestion: curtailment filtering, the record store and the completeness reconciler."""

from .filter import energy_and_payment, filter_curtailment, is_curtailment, to_curtailment_row
from .reconciler import CompletenessReconciler, PassOutcome, ReconciliationResult
from .store import CurtailmentStore

__all__ = [
    "CompletenessReconciler",
    "CurtailmentStore",
    "PassOutcome",
    "ReconciliationResult",
    "energy_and_payment",
    "filter_curtailment",
    "is_curtailment",
    "to_curtailment_row",
]
