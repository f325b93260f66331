"""Full-recompute summary caches for curtailed energy and mining potential."""

from .energy import EnergyAggregator, EnergyTotals
from .mining import MiningAggregator

__all__ = ["EnergyAggregator", "EnergyTotals", "MiningAggregator"]
