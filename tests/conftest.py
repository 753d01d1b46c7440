"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest
import yaml

from daylight_calendar.domain.models import CalendarEvent
from daylight_calendar.settings import AppSettings, EnvSettings, build_settings


@pytest.fixture
def zone() -> ZoneInfo:
    """Zone every calendar computation in the tests runs in."""
    return ZoneInfo("Europe/Helsinki")


@pytest.fixture
def at(zone):
    """Build aware local datetimes: ``at(2024, 7, 10, 9, 30)``."""

    def _at(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
        return datetime(year, month, day, hour, minute, tzinfo=zone)

    return _at


@pytest.fixture
def make_event():
    """Factory for calendar events in the ``primary`` calendar."""

    def _make(
        external_id: str,
        start: datetime,
        end: datetime,
        *,
        all_day: bool = False,
        calendar_id: str = "primary",
        **extra,
    ) -> CalendarEvent:
        return CalendarEvent(
            id=f"{calendar_id}-{external_id}",
            external_id=external_id,
            calendar_id=calendar_id,
            title=external_id,
            start=start,
            end=end,
            is_all_day=all_day,
            **extra,
        )

    return _make


@pytest.fixture
def make_settings(tmp_path: Path):
    """Write a calendar.yaml into a temp dir and load settings from it."""

    def _make(config: dict | None = None, **env) -> AppSettings:
        config_path = tmp_path / "calendar.yaml"
        config_path.write_text(yaml.safe_dump(config or {}), encoding="utf-8")
        env_settings = EnvSettings(
            _env_file=None,
            calendar_config_path=config_path,
            calendar_db_path=tmp_path / "calendar.db",
            **env,
        )
        return build_settings(env_settings)

    return _make


@pytest.fixture
def memory_settings(make_settings) -> AppSettings:
    """Settings for the in-memory provider with a fixed manual location."""
    return make_settings(
        {
            "provider": {"type": "memory"},
            "location": {"mode": "manual", "lat": 60.17, "lon": 24.94, "label": "Helsinki"},
        },
        calendar_timezone="Europe/Helsinki",
        google_access_token=None,
    )
