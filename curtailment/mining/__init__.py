"""Mining potential: hardware profiles, the calculator, the difficulty oracle and the writer."""

from .calculator import BLOCK_REWARD, calculate_bitcoin
from .difficulty import DifficultyOracle, get_difficulty_oracle, set_difficulty_oracle
from .profiles import MINER_PROFILES, HardwareProfile, get_profile
from .service import MiningCalculationService

__all__ = [
    "BLOCK_REWARD",
    "DifficultyOracle",
    "HardwareProfile",
    "MINER_PROFILES",
    "MiningCalculationService",
    "calculate_bitcoin",
    "get_difficulty_oracle",
    "get_profile",
    "set_difficulty_oracle",
]
