from __future__ import annotations

from datetime import datetime, tzinfo
from typing import Any, Iterable

from ..adapters.solar import AstralSolarOracle, SolarOracle
from ..domain.dates import start_of_day
from ..domain.minutes import MINUTES_IN_DAY
from ..domain.models import Coordinates, DaylightShading, DaylightWindow

DEFAULT_ORACLE: SolarOracle = AstralSolarOracle()


def _safe_instant(value: Any, zone: tzinfo) -> datetime | None:
    if not isinstance(value, datetime) or value.tzinfo is None:
        return None
    try:
        return value.astimezone(zone)
    except (OverflowError, ValueError):
        return None


def _local_noon(day: datetime) -> datetime:
    return day.replace(hour=12, minute=0, second=0, microsecond=0)


def compute_daylight_window(
    day: datetime,
    coords: Coordinates,
    *,
    oracle: SolarOracle | None = None,
) -> DaylightWindow:
    oracle = oracle or DEFAULT_ORACLE
    zone = day.tzinfo
    if zone is None:
        raise ValueError("daylight computation needs a timezone-aware day")

    # Asking at local noon keeps rise/set on this calendar day even when the
    # zone is far from UTC.
    noon = _local_noon(day)
    times = oracle.solar_times(noon, coords.lat, coords.lon)
    sunrise = _safe_instant(times.sunrise, zone)
    sunset = _safe_instant(times.sunset, zone)

    is_polar_day = False
    is_polar_night = False
    if sunrise is None or sunset is None:
        if oracle.solar_altitude(noon, coords.lat, coords.lon) > 0:
            is_polar_day = True
        else:
            is_polar_night = True
        sunrise = None
        sunset = None

    return DaylightWindow(
        iso_date=day.date().isoformat(),
        sunrise=sunrise,
        sunset=sunset,
        is_polar_day=is_polar_day,
        is_polar_night=is_polar_night,
    )


def build_daylight_map(
    days: Iterable[datetime],
    coords: Coordinates | None,
    *,
    oracle: SolarOracle | None = None,
) -> dict[str, DaylightWindow]:
    if coords is None:
        return {}
    return {
        day.date().isoformat(): compute_daylight_window(day, coords, oracle=oracle)
        for day in days
    }


def _percent_of_day(minutes: float) -> float:
    clamped = max(0.0, min(float(MINUTES_IN_DAY), minutes))
    return clamped / MINUTES_IN_DAY * 100


def shading_for_day(window: DaylightWindow | None, day: datetime) -> DaylightShading | None:
    """Boundaries of the night/day/night gradient painted behind a day column."""
    if window is None:
        return None
    if window.is_polar_day:
        return DaylightShading(mode="polar_day", sunrise_percent=0.0, sunset_percent=100.0)
    if window.is_polar_night:
        return DaylightShading(mode="polar_night", sunrise_percent=0.0, sunset_percent=0.0)
    if window.sunrise is None or window.sunset is None:
        return None

    day_start = start_of_day(day)
    zone = day_start.tzinfo
    sunrise_minutes = (window.sunrise.astimezone(zone) - day_start).total_seconds() / 60
    sunset_minutes = (window.sunset.astimezone(zone) - day_start).total_seconds() / 60
    return DaylightShading(
        mode="gradient",
        sunrise_percent=_percent_of_day(sunrise_minutes),
        sunset_percent=_percent_of_day(sunset_minutes),
    )


def format_coordinates(coords: Coordinates | None) -> str:
    if coords is None:
        return ""
    return f"{coords.lat:.2f}°, {coords.lon:.2f}°"
