"""Mining potential calculator -- Bitcoin minable with a quantity of energy.

The only implementation of the formula in the package:

    joules  = energy_mwh * 3.6e9
    seconds = joules / power_watts
    hashes  = seconds * hashrate_th * 1e12
    blocks  = hashes / (difficulty * 2**32)
    btc     = blocks * block_reward

Pure and deterministic: identical inputs always give bit-identical output.
"""

from __future__ import annotations

import math

from curtailment.mining.profiles import HardwareProfile

JOULES_PER_MWH = 3.6e9
HASHES_PER_TH = 1e12
HASHES_PER_DIFFICULTY = 2**32
BLOCK_REWARD = 3.125


def calculate_bitcoin(
    energy_mwh: float,
    profile: HardwareProfile,
    difficulty: float,
    block_reward: float = BLOCK_REWARD,
) -> float:
    """Expected BTC mined by running *profile* on *energy_mwh* of energy.

    Args:
        energy_mwh: Energy magnitude in MWh; the sign is ignored.
        profile: Miner hardware profile.
        difficulty: Network difficulty effective on the settlement date.
        block_reward: BTC per block.

    Raises:
        ValueError: On non-positive difficulty, power draw or hash rate, or
            non-finite inputs.
    """
    if not math.isfinite(energy_mwh):
        raise ValueError(f"energy must be finite, got {energy_mwh}")
    if not math.isfinite(difficulty) or difficulty <= 0:
        raise ValueError(f"difficulty must be positive, got {difficulty}")
    if profile.power_watts <= 0:
        raise ValueError(f"{profile.name}: power draw must be positive")
    if profile.hashrate_th <= 0:
        raise ValueError(f"{profile.name}: hash rate must be positive")
    if block_reward < 0:
        raise ValueError(f"block reward must be non-negative, got {block_reward}")

    joules = abs(energy_mwh) * JOULES_PER_MWH
    seconds = joules / profile.power_watts
    hashes = seconds * profile.hashrate_th * HASHES_PER_TH
    blocks = hashes / (difficulty * HASHES_PER_DIFFICULTY)
    return blocks * block_reward
