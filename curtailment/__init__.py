"""Curtailment ledger: wind curtailment ingestion, reconciliation and mining potential."""

__version__ = "0.1.0"
