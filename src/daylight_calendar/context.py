from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .adapters.calendar import CalendarProvider, GoogleCalendarProvider, InMemoryCalendarProvider
from .events.service import CalendarDataService
from .location.service import LocationService
from .settings import AppSettings

LOCAL_DEV_TOKEN = "local-dev"


@dataclass(slots=True)
class AppContext:
    settings: AppSettings
    calendar_data: CalendarDataService
    location: LocationService
    token: str | None


def build_provider(settings: AppSettings) -> CalendarProvider:
    provider = settings.yaml.provider
    if provider.type == "google":
        return GoogleCalendarProvider(
            base_url=provider.base_url,
            timeout_seconds=provider.timeout_seconds,
        )
    if provider.type == "memory":
        return InMemoryCalendarProvider.sample(settings.timezone, datetime.now(settings.timezone).date())
    raise ValueError(f"Unsupported calendar provider: {provider.type}")


def build_context(settings: AppSettings, provider: CalendarProvider | None = None) -> AppContext:
    token = settings.env.google_access_token
    if token is None and settings.yaml.provider.type == "memory":
        token = LOCAL_DEV_TOKEN
    calendar_data = CalendarDataService(
        provider or build_provider(settings),
        zone=settings.timezone,
        default_calendar_count=settings.yaml.provider.default_calendar_count,
        db_path=settings.db_path,
    )
    return AppContext(
        settings=settings,
        calendar_data=calendar_data,
        location=LocationService(),
        token=token,
    )
