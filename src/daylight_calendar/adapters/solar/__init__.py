from .astral_oracle import AstralSolarOracle
from .base import SolarOracle, SolarOracleError, SolarTimes

__all__ = ["AstralSolarOracle", "SolarOracle", "SolarOracleError", "SolarTimes"]
