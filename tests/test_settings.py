from __future__ import annotations

from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError

from daylight_calendar.settings import EnvSettings, _load_yaml_settings


def test_defaults_fill_missing_sections(make_settings, tmp_path):
    settings = make_settings({})
    assert settings.yaml.ui.default_view == "week"
    assert settings.yaml.ui.first_day_of_week == 1
    assert settings.yaml.provider.type == "google"
    assert settings.yaml.location.mode == "auto"
    assert settings.db_path == tmp_path / "calendar.db"
    assert isinstance(settings.timezone, ZoneInfo)


def test_timezone_is_validated():
    with pytest.raises(ValidationError, match="Unknown timezone"):
        EnvSettings(_env_file=None, calendar_timezone="Nowhere/City")


def test_manual_location_requires_coordinates(make_settings):
    with pytest.raises(ValidationError, match="location.lat and location.lon"):
        make_settings({"location": {"mode": "manual"}})


@pytest.mark.parametrize(
    "config",
    [
        {"ui": {"first_day_of_week": 7}},
        {"ui": {"default_view": "year"}},
        {"provider": {"base_url": "calendar.example"}},
        {"location": {"fallback_city": "   "}},
    ],
)
def test_invalid_yaml_values_are_rejected(make_settings, config):
    with pytest.raises(ValidationError):
        make_settings(config)


def test_yaml_must_be_a_mapping(make_settings, tmp_path):
    settings = make_settings({})
    settings.config_path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ValueError, match="YAML mapping"):
        _load_yaml_settings(settings.config_path)


def test_blank_token_is_treated_as_missing():
    assert EnvSettings(_env_file=None, google_access_token="   ").google_access_token is None
