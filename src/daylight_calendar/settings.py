from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal
from urllib.parse import urlparse
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[2]


class UiSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str = "Daylight Calendar"
    default_view: Literal["week", "month"] = "week"
    first_day_of_week: int = Field(default=1, ge=0, le=6)
    hour_height_px: float = Field(default=64.0, gt=0, le=1000)
    month_cell_event_limit: int = Field(default=3, ge=1, le=20)


class RefreshSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    interval_minutes: int = Field(default=10, ge=1, le=60)
    jitter_seconds: int = Field(default=15, ge=0, le=300)


class LocationSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    mode: Literal["auto", "fixed", "manual"] = "auto"
    fallback_city: str = "Helsinki, FI"
    lat: float | None = None
    lon: float | None = None
    label: str | None = None

    @field_validator("fallback_city")
    @classmethod
    def validate_fallback_city(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("location.fallback_city must not be empty")
        return text

    @field_validator("label")
    @classmethod
    def validate_label(cls, value: str | None) -> str | None:
        if value is None:
            return None
        text = value.strip()
        return text or None

    @model_validator(mode="after")
    def validate_manual_coordinates(self) -> LocationSettings:
        if self.mode != "manual":
            return self
        if self.lat is None or self.lon is None:
            raise ValueError("location.lat and location.lon are required when mode is 'manual'")
        return self


class ProviderSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Literal["google", "memory"] = "google"
    base_url: str = "https://www.googleapis.com/calendar/v3"
    timeout_seconds: int = Field(default=10, ge=1, le=120)
    default_calendar_count: int = Field(default=2, ge=1, le=20)

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, value: str) -> str:
        text = value.strip().rstrip("/")
        parsed = urlparse(text)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("provider.base_url must be an absolute http(s) URL")
        return text


class CalendarYamlSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    ui: UiSettings = Field(default_factory=UiSettings)
    refresh: RefreshSettings = Field(default_factory=RefreshSettings)
    location: LocationSettings = Field(default_factory=LocationSettings)
    provider: ProviderSettings = Field(default_factory=ProviderSettings)


class EnvSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    calendar_env: Literal["dev", "test", "prod"] = "dev"
    calendar_timezone: str = "Europe/Helsinki"
    calendar_config_path: Path = Path("config/calendar.yaml")
    calendar_db_path: Path = Path("data/calendar.db")
    google_access_token: str | None = None

    @field_validator("calendar_timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("google_access_token")
    @classmethod
    def validate_token(cls, value: str | None) -> str | None:
        if value is None:
            return None
        text = value.strip()
        return text or None


class AppSettings(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    env: EnvSettings
    yaml: CalendarYamlSettings
    project_root: Path
    config_path: Path
    db_path: Path
    timezone: ZoneInfo


def _resolve_project_path(path: Path) -> Path:
    if path.is_absolute():
        return path
    return (PROJECT_ROOT / path).resolve()


def _load_yaml_settings(path: Path) -> CalendarYamlSettings:
    if not path.exists():
        raise FileNotFoundError(f"Calendar config file not found: {path}")

    raw_config = yaml.safe_load(path.read_text(encoding="utf-8"))
    if raw_config is None:
        raw_config = {}
    if not isinstance(raw_config, dict):
        raise ValueError("Calendar config must be a YAML mapping/object at the top level")
    return CalendarYamlSettings.model_validate(raw_config)


def build_settings(env: EnvSettings) -> AppSettings:
    config_path = _resolve_project_path(env.calendar_config_path)
    db_path = _resolve_project_path(env.calendar_db_path)
    yaml_settings = _load_yaml_settings(config_path)
    return AppSettings(
        env=env,
        yaml=yaml_settings,
        project_root=PROJECT_ROOT,
        config_path=config_path,
        db_path=db_path,
        timezone=ZoneInfo(env.calendar_timezone),
    )


@lru_cache(maxsize=1)
def load_settings() -> AppSettings:
    return build_settings(EnvSettings())
