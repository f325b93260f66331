"""Miner hardware profiles.

Hash rate is given in TH/s and power draw in watts; the calculator converts
hash rate to H/s.
"""

from __future__ import annotations

from dataclasses import dataclass

from curtailment.core.exceptions import NotFoundError


@dataclass(frozen=True)
class HardwareProfile:
    """A named mining rig: hash rate (TH/s) and power draw (W)."""

    name: str
    hashrate_th: float
    power_watts: float

    @property
    def efficiency_j_per_th(self) -> float:
        return self.power_watts / self.hashrate_th


MINER_PROFILES: dict[str, HardwareProfile] = {
    "S19J_PRO": HardwareProfile(name="S19J_PRO", hashrate_th=100.0, power_watts=3050.0),
    "S9": HardwareProfile(name="S9", hashrate_th=13.5, power_watts=1350.0),
    "M20S": HardwareProfile(name="M20S", hashrate_th=68.0, power_watts=3360.0),
}


def get_profile(name: str) -> HardwareProfile:
    """Look up a profile by (case-insensitive) model name.

    Raises:
        NotFoundError: If the model is unknown.
    """
    try:
        return MINER_PROFILES[name.strip().upper()]
    except KeyError as exc:
        raise NotFoundError(
            f"Unknown miner model '{name}'. Available: {sorted(MINER_PROFILES)}"
        ) from exc
