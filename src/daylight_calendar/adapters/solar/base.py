from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol


class SolarOracleError(RuntimeError):
    """Raised when solar data cannot be computed for the given input."""


@dataclass(frozen=True, slots=True)
class SolarTimes:
    sunrise: datetime | None = None
    sunset: datetime | None = None


class SolarOracle(Protocol):
    def solar_times(self, instant: datetime, lat: float, lon: float) -> SolarTimes:
        """Return sunrise/sunset for the local day of ``instant``; absent when the sun never crosses."""

    def solar_altitude(self, instant: datetime, lat: float, lon: float) -> float:
        """Return the sun's altitude above the horizon in degrees at ``instant``."""
