"""Settlement data connectors package.

Re-exports the BaseConnector ABC, the raw record contract, the fetch
exception hierarchy and the Elexon connector for convenient imports.
"""

from curtailment.core.exceptions import (
    DataParsingError,
    FetchError,
    RateLimitError,
    TransientFetchError,
)

from .base import BaseConnector, SettlementRecord
from .elexon import ElexonConnector

__all__ = [
    # Base
    "BaseConnector",
    "SettlementRecord",
    "FetchError",
    "TransientFetchError",
    "RateLimitError",
    "DataParsingError",
    # Connectors
    "ElexonConnector",
]
