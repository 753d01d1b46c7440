from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError

from daylight_calendar.adapters.solar import AstralSolarOracle, SolarTimes
from daylight_calendar.daylight.service import (
    build_daylight_map,
    compute_daylight_window,
    format_coordinates,
    shading_for_day,
)
from daylight_calendar.domain.dates import week_days
from daylight_calendar.domain.models import Coordinates, DaylightWindow


class FakeOracle:
    """Scripted oracle that records the instants it was asked about."""

    def __init__(self, sunrise=None, sunset=None, altitude=0.0):
        self.sunrise = sunrise
        self.sunset = sunset
        self.altitude = altitude
        self.calls: list[datetime] = []

    def solar_times(self, instant, lat, lon):
        self.calls.append(instant)
        return SolarTimes(sunrise=self.sunrise, sunset=self.sunset)

    def solar_altitude(self, instant, lat, lon):
        return self.altitude


HELSINKI = Coordinates(lat=60.17, lon=24.94)


def test_window_is_queried_at_local_noon_and_converted_to_day_zone(at):
    oracle = FakeOracle(
        sunrise=datetime(2024, 7, 10, 1, 0, tzinfo=timezone.utc),
        sunset=datetime(2024, 7, 10, 19, 30, tzinfo=timezone.utc),
    )
    window = compute_daylight_window(at(2024, 7, 10), HELSINKI, oracle=oracle)

    assert oracle.calls == [at(2024, 7, 10, 12)]
    assert window.iso_date == "2024-07-10"
    assert window.sunrise == at(2024, 7, 10, 4)
    assert window.sunset == at(2024, 7, 10, 22, 30)
    assert not window.is_polar_day
    assert not window.is_polar_night


@pytest.mark.parametrize(
    ("altitude", "polar_day", "polar_night"),
    [(12.5, True, False), (-3.0, False, True), (0.0, False, True)],
)
def test_missing_crossing_is_polar(at, altitude, polar_day, polar_night):
    oracle = FakeOracle(sunrise=None, sunset=datetime(2024, 7, 10, 20, tzinfo=timezone.utc), altitude=altitude)
    window = compute_daylight_window(at(2024, 7, 10), HELSINKI, oracle=oracle)
    assert window.is_polar_day is polar_day
    assert window.is_polar_night is polar_night
    assert window.sunrise is None
    assert window.sunset is None


def test_naive_oracle_values_are_treated_as_missing(at):
    oracle = FakeOracle(sunrise=datetime(2024, 7, 10, 4), sunset=datetime(2024, 7, 10, 22), altitude=-1)
    window = compute_daylight_window(at(2024, 7, 10), HELSINKI, oracle=oracle)
    assert window.is_polar_night


def test_arctic_circle_summer_solstice_is_polar_day():
    rovaniemi_day = datetime(2024, 6, 20, tzinfo=ZoneInfo("Europe/Helsinki"))
    window = compute_daylight_window(rovaniemi_day, Coordinates(lat=66.5, lon=25.7), oracle=AstralSolarOracle())
    assert window.is_polar_day
    assert not window.is_polar_night
    assert window.sunrise is None
    assert window.sunset is None


def test_svalbard_winter_is_polar_night():
    day = datetime(2024, 12, 21, tzinfo=ZoneInfo("Arctic/Longyearbyen"))
    window = compute_daylight_window(day, Coordinates(lat=78.22, lon=15.65), oracle=AstralSolarOracle())
    assert window.is_polar_night
    assert window.sunrise is None


def test_helsinki_midsummer_has_long_day(at):
    window = compute_daylight_window(at(2024, 6, 21), HELSINKI, oracle=AstralSolarOracle())
    assert window.sunrise is not None and window.sunset is not None
    assert window.sunrise.date() == window.sunset.date()
    assert window.sunrise.hour < 5
    assert window.sunset.hour >= 22


def test_daylight_map_is_empty_without_coordinates(at):
    assert build_daylight_map(week_days(at(2024, 7, 10), 1), None) == {}


def test_daylight_map_is_keyed_by_iso_date(at):
    oracle = FakeOracle(altitude=5)
    days = week_days(at(2024, 7, 10), 1)
    windows = build_daylight_map(days, HELSINKI, oracle=oracle)
    assert list(windows) == [day.date().isoformat() for day in days]
    assert all(window.is_polar_day for window in windows.values())


def test_window_model_rejects_contradictory_state(at):
    with pytest.raises(ValidationError):
        DaylightWindow(iso_date="2024-07-10", is_polar_day=True, is_polar_night=True)
    with pytest.raises(ValidationError):
        DaylightWindow(iso_date="2024-07-10", is_polar_day=True, sunrise=at(2024, 7, 10, 4))
    with pytest.raises(ValidationError):
        DaylightWindow(iso_date="2024-07-10", sunrise=at(2024, 7, 10, 4))


def test_shading_uses_minutes_since_local_midnight(at):
    window = DaylightWindow(iso_date="2024-07-10", sunrise=at(2024, 7, 10, 6), sunset=at(2024, 7, 10, 18))
    shading = shading_for_day(window, at(2024, 7, 10))
    assert shading.mode == "gradient"
    assert shading.sunrise_percent == pytest.approx(25.0)
    assert shading.sunset_percent == pytest.approx(75.0)


def test_shading_for_polar_days_and_missing_windows(at):
    polar_day = DaylightWindow(iso_date="2024-06-20", is_polar_day=True)
    polar_night = DaylightWindow(iso_date="2024-12-21", is_polar_night=True)
    assert shading_for_day(polar_day, at(2024, 6, 20)).mode == "polar_day"
    assert shading_for_day(polar_night, at(2024, 12, 21)).mode == "polar_night"
    assert shading_for_day(None, at(2024, 7, 10)) is None


def test_coordinates_are_clamped_and_formatted():
    coords = Coordinates(lat=95, lon=-200)
    assert (coords.lat, coords.lon) == (90.0, -180.0)
    assert format_coordinates(HELSINKI) == "60.17°, 24.94°"
    assert format_coordinates(None) == ""
    with pytest.raises(ValidationError):
        Coordinates(lat=float("nan"), lon=0)
