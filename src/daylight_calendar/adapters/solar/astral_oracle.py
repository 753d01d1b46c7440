from __future__ import annotations

from datetime import datetime

from astral import Observer
from astral.sun import elevation, sunrise, sunset

from .base import SolarOracleError, SolarTimes


def _observer(lat: float, lon: float) -> Observer:
    return Observer(latitude=lat, longitude=lon)


class AstralSolarOracle:
    """Solar oracle backed by ``astral``.

    astral raises ``ValueError`` when the sun never reaches the horizon on the
    requested day; that is reported as an absent rise or set time.
    """

    def solar_times(self, instant: datetime, lat: float, lon: float) -> SolarTimes:
        if instant.tzinfo is None:
            raise SolarOracleError("solar_times needs a timezone-aware instant")
        observer = _observer(lat, lon)
        local_date = instant.date()
        try:
            rise = sunrise(observer, date=local_date, tzinfo=instant.tzinfo)
        except ValueError:
            rise = None
        try:
            set_ = sunset(observer, date=local_date, tzinfo=instant.tzinfo)
        except ValueError:
            set_ = None
        return SolarTimes(sunrise=rise, sunset=set_)

    def solar_altitude(self, instant: datetime, lat: float, lon: float) -> float:
        if instant.tzinfo is None:
            raise SolarOracleError("solar_altitude needs a timezone-aware instant")
        return float(elevation(_observer(lat, lon), instant))
